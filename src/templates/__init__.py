from pathlib import Path

from .template_store import MessageText, TemplateKeyAccessor, TemplateNotFoundError, TemplateStore

_catalogue_path = Path(__file__).parent / "messages.json"

store = TemplateStore(catalogue_path=_catalogue_path)

# Default accessor for convenience
Key = TemplateKeyAccessor(store)

__all__ = [
    "Key",
    "store",
    "MessageText",
    "TemplateStore",
    "TemplateKeyAccessor",
    "TemplateNotFoundError",
]
