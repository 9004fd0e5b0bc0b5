from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, init=False, eq=False, repr=False)
class MessageText(str):
    """Catalogue string that remembers which key it came from.

    Behaves like a regular ``str``; ``is_multiline`` tells whether the entry
    was written as an array of lines in the catalogue file.
    """

    is_multiline: bool = False
    key: Optional[str] = None

    def __new__(cls, value: str, *, is_multiline: bool = False, key: Optional[str] = None):  # type: ignore[override]
        obj = super().__new__(cls, value)
        object.__setattr__(obj, "is_multiline", is_multiline)
        object.__setattr__(obj, "key", key)
        return obj

    def format(self, *args: Any, **kwargs: Any) -> "MessageText":  # type: ignore[override]
        return MessageText(super().format(*args, **kwargs), is_multiline=self.is_multiline, key=self.key)


class TemplateNotFoundError(KeyError):
    pass


class TemplateStore:
    """Loads reply templates from a JSON catalogue and renders them with ``str.format``."""

    def __init__(self, catalogue_path: Path):
        self.catalogue_path = catalogue_path
        self._templates: Dict[str, MessageText] = {}
        self._load()

    def has_key(self, key: str) -> bool:
        return key in self._templates

    def get(self, key: str) -> MessageText:
        entry = self._templates.get(key)
        if entry is None:
            raise TemplateNotFoundError(f"Template '{key}' not found in {self.catalogue_path.name}")
        return entry

    def render(self, key: str, **data: Any) -> MessageText:
        entry = self.get(key)
        if data:
            return entry.format(**data)
        return entry

    def keys(self):
        return self._templates.keys()

    def _load(self) -> None:
        try:
            with self.catalogue_path.open(encoding="utf-8") as handle:
                raw_data = json.load(handle)
        except FileNotFoundError:
            logger.error(f"Template catalogue not found: {self.catalogue_path}")
            raise

        flattened = self._flatten_keys(raw_data)
        self._templates = {
            key: self._normalize_value(value, key=key)
            for key, value in flattened.items()
        }
        logger.debug(f"Loaded {len(self._templates)} templates from {self.catalogue_path.name}")

    def _normalize_value(self, value: Any, *, key: str) -> MessageText:
        if isinstance(value, list):
            return MessageText("\n".join(str(line) for line in value), is_multiline=True, key=key)
        return MessageText(str(value), key=key)

    def _flatten_keys(self, data: Dict[str, Any], parent_key: str = "") -> Dict[str, Any]:
        items: Dict[str, Any] = {}
        for key, value in data.items():
            new_key = f"{parent_key}.{key}" if parent_key else key
            if isinstance(value, dict):
                items.update(self._flatten_keys(value, new_key))
            else:
                items[new_key] = value
        return items


class TemplateKeyAccessor:
    """Attribute access to templates: ``Key.user_list`` or ``Key.errors.user_not_found``."""

    def __init__(self, store: TemplateStore, prefix: str = ""):
        self._store = store
        self._prefix = prefix

    def __getattr__(self, item: str):
        if item.startswith("__"):
            raise AttributeError(item)
        candidate_key = f"{self._prefix}.{item}" if self._prefix else item

        if self._store.has_key(candidate_key):
            return self._store.get(candidate_key)

        return TemplateKeyAccessor(self._store, prefix=candidate_key)
