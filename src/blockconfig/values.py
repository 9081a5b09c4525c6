"""The value model shared by decoded configurations and the evaluation environment.

Values published into the evaluation environment are one of a small set of kinds:
null, string, number, bool, list, and object. Simple kinds are represented by the
corresponding Python objects. Lists are represented by tuples, and objects by
:class:`ObjectValue`, a read-only mapping. Both are immutable, so that a value cannot be
changed after it has been published.

:func:`to_value` converts plain Python data (such as a decoded block) into this
representation, and :func:`to_native` converts it back.

"""

from collections.abc import Mapping
from typing import Any, Iterator
import enum

from .exceptions import ConversionError


class Kind(enum.Enum):
    """The kinds of values."""

    NULL = "null"
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    LIST = "list"
    OBJECT = "object"


class ObjectValue(Mapping):
    """An immutable mapping from attribute names to values.

    Example
    -------

    >>> obj = ObjectValue({"host": "localhost"})
    >>> obj["host"]
    'localhost'
    >>> obj.with_member("port", 5432)
    ObjectValue({'host': 'localhost', 'port': 5432})

    """

    def __init__(self, members: Mapping[str, Any] | None = None):
        self._members = dict(members) if members is not None else {}

    def __getitem__(self, key: str) -> Any:
        return self._members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self) -> str:
        return f"ObjectValue({self._members!r})"

    def with_member(self, key: str, value: Any) -> "ObjectValue":
        """Return a new object with one more member. Existing members are kept."""
        members = dict(self._members)
        members[key] = value
        return ObjectValue(members)


def kind_of(value: Any) -> Kind:
    """Determine the kind of a value.

    Raises
    ------
    ConversionError
        If the value is not one of the supported kinds.

    """
    if value is None:
        return Kind.NULL
    # bool must be checked before int, since bool is a subclass of int
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, (int, float)):
        return Kind.NUMBER
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, Mapping):
        return Kind.OBJECT
    if isinstance(value, (list, tuple)):
        return Kind.LIST
    raise ConversionError(f"Unsupported value of type {type(value).__name__}.")


def to_value(native: Any) -> Any:
    """Convert plain Python data into an environment value.

    Dictionaries become :class:`ObjectValue` and lists become tuples, recursively.

    """
    kind = kind_of(native)
    if kind is Kind.OBJECT:
        return ObjectValue({str(k): to_value(v) for k, v in native.items()})
    elif kind is Kind.LIST:
        return tuple(to_value(x) for x in native)
    else:
        return native


def to_native(value: Any) -> Any:
    """Convert an environment value into plain Python dictionaries and lists."""
    kind = kind_of(value)
    if kind is Kind.OBJECT:
        return {k: to_native(v) for k, v in value.items()}
    elif kind is Kind.LIST:
        return [to_native(x) for x in value]
    else:
        return value


def format_number(number: int | float) -> str:
    """Format a number the way it is written in a document.

    Integral floats are written without a fractional part.

    >>> format_number(5432.0)
    '5432'
    >>> format_number(0.75)
    '0.75'

    """
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def to_template_string(value: Any) -> str:
    """Convert a value into the text that replaces an interpolation in a template.

    Raises
    ------
    ConversionError
        If the value is null, a list, or an object.

    """
    kind = kind_of(value)
    if kind is Kind.STRING:
        return value
    elif kind is Kind.BOOL:
        return "true" if value else "false"
    elif kind is Kind.NUMBER:
        return format_number(value)
    else:
        raise ConversionError(f"Cannot include a {kind.value} value in a string.")
