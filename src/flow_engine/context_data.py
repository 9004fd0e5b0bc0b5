from typing import Any, Dict, Generic, Optional, Tuple, Type, TypeVar, Union

from flow_engine.errors import ContextTypeError

T = TypeVar("T")


def _type_name(value_type: Union[type, Tuple[type, ...]]) -> str:
    if isinstance(value_type, tuple):
        return " | ".join(t.__name__ for t in value_type)
    return value_type.__name__


class ContextKey(Generic[T]):
    """
    A named slot in a session's context bag with a fixed value type.

    A name is bound to its type when the first key with that name is
    declared; declaring the same name again with another type raises
    :class:`ContextTypeError`. Values are checked when written, so reading a
    key always yields a ``T`` (or the default) without casting::

        TARGET_USER_ID = ContextKey("target_user_id", int)
    """

    __slots__ = ("name", "value_type")

    _declared: Dict[str, Union[type, Tuple[type, ...]]] = {}

    def __init__(self, name: str, value_type: Union[Type[T], Tuple[type, ...]]):
        known = ContextKey._declared.setdefault(name, value_type)
        if known != value_type:
            raise ContextTypeError(
                f"Context key '{name}' is already declared as {_type_name(known)}, not {_type_name(value_type)}"
            )
        self.name = name
        self.value_type = value_type

    def check(self, value: Any) -> T:
        # bool is an int subclass; an int key must not silently accept True
        if isinstance(value, bool) and self.value_type is not bool and not (
            isinstance(self.value_type, tuple) and bool in self.value_type
        ):
            raise ContextTypeError(f"Context key '{self.name}' expects {_type_name(self.value_type)}, got bool")
        if not isinstance(value, self.value_type):
            raise ContextTypeError(
                f"Context key '{self.name}' expects {_type_name(self.value_type)}, got {type(value).__name__}"
            )
        return value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ContextKey) and other.name == self.name and other.value_type == self.value_type

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"ContextKey({self.name!r}, {_type_name(self.value_type)})"


class ContextData:
    """Per-session key/value scratch space. Later writes overwrite earlier ones."""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def set(self, key: ContextKey[T], value: T) -> None:
        self._values[key.name] = key.check(value)

    def get(self, key: ContextKey[T], default: Optional[T] = None) -> Optional[T]:
        return self._values.get(key.name, default)

    def pop(self, key: ContextKey[T], default: Optional[T] = None) -> Optional[T]:
        return self._values.pop(key.name, default)

    def clear(self) -> None:
        self._values.clear()

    def copy(self) -> "ContextData":
        clone = ContextData()
        clone._values = dict(self._values)
        return clone

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: ContextKey) -> bool:
        return key.name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)
