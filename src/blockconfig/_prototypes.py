"""Prototype: Define document shapes using Python class syntax."""

from typing import Self
import types
import typing

from blockconfig.types import Schema

# sentinel for missing default values
_MISSING = object()

# mapping from Python types to schema types
_TYPE_MAP = {
    str: "string",
    int: "integer",
    float: "float",
    bool: "boolean",
}


class Label(str):
    """Marks the field of a Prototype that receives the block's label.

    Examples
    --------
    ::

        class Service(Prototype):
            name: Label
            port: int

    decodes ``service "api" { port = 8080 }`` into ``Service(name='api', port=8080)``.

    """


class NotRequired[T]:
    """Marker for optional fields in a Prototype.

    Annotating an attribute field with ``NotRequired[T]`` places it in the
    "optional_attributes" section of the schema generated from the Prototype;
    annotating a block field places it in "optional_blocks". This type hint is called
    ``NotRequired`` rather than simply ``Optional`` to avoid confusion with
    ``typing.Optional`` from the Python standard library.

    Examples
    --------
    The ``cache`` block below may be omitted from the document entirely::

        from blockconfig import NotRequired, Prototype

        class Config(Prototype):
            database: Database
            cache: NotRequired[Cache]
    """

    pass


class Prototype:
    """Base class for defining document shapes using Python class syntax.

    Subclass this to describe the attributes and blocks a document or block contains.
    The resulting class can be used in place of a schema in :func:`load`, and the
    result of loading will be an instance of the prototype class.

    Fields are mapped as follows:

    - ``str``, ``int``, ``float``, ``bool``, ``typing.Any``, ``list[T]``,
      ``dict[str, T]`` and ``T | None`` describe attributes;
    - a Prototype subclass describes a required block, ``NotRequired[P]`` an optional
      block, and ``list[P]`` a repeated block;
    - :class:`Label` marks the field receiving the block's label.

    Fields with a default value, or wrapped in :class:`NotRequired`, are optional.

    .. warning::

       Instances built by hand are not checked against their annotations. Values
       are only converted and checked when a document is decoded by :func:`load`.

    Examples
    --------
    ::

        from blockconfig import Prototype, load

        class Database(Prototype):
            host: str
            port: int

        class Config(Prototype):
            database: Database

        cfg = load('database {\\n host = "db"\\n port = 5432\\n}', "x.hcl", Config)
        assert cfg.database.port == 5432

    """

    def __init_subclass__(cls) -> None:
        """Reject subclasses whose fields cannot be mapped to a body schema.

        Every public class attribute needs a supported annotation, block fields may
        not have defaults, and at most one field may be a :class:`Label`.

        """
        labels = []
        for field_name, (type_hint, default) in cls._defined_fields().items():
            if not _is_supported_type_hint(type_hint):
                raise TypeError(
                    f"Unsupported type hint for field '{field_name}': {type_hint}"
                )
            if type_hint is Label:
                labels.append(field_name)
            if default is not _MISSING and _block_multiplicity(type_hint) is not None:
                raise TypeError(f"Block field '{field_name}' cannot have a default.")

        if len(labels) > 1:
            raise TypeError(
                f"Prototype subclass '{cls.__name__}' has more than one label field: "
                f"{', '.join(labels)}"
            )

        undefined_fields = cls.__dict__.keys() - cls._defined_fields().keys()

        # filter out special attributes/methods and private fields
        undefined_fields = {f for f in undefined_fields if not f.startswith("_")}

        if undefined_fields:
            raise TypeError(
                f"Undefined fields in Prototype subclass '{cls.__name__}': "
                f"{', '.join(undefined_fields)}"
            )

    def __init__(self, **kwargs):
        """Set each field from ``kwargs``, falling back to its default.

        A ``NotRequired`` field that is neither given nor defaulted stays unset. A
        required field that is neither given nor defaulted raises ``TypeError``.
        Unknown keyword arguments are ignored.

        """
        for field_name, (type_hint, default_value) in self._defined_fields().items():
            if field_name in kwargs:
                setattr(self, field_name, kwargs[field_name])
            elif default_value is not _MISSING:
                setattr(self, field_name, default_value)
            elif _is_not_required_type(type_hint):
                pass
            else:
                raise TypeError(f"missing required field '{field_name}'")

    def __eq__(self, other: typing.Any) -> bool:
        """Two Prototype instances are equal if they are of the same class and all
        their fields are equal."""
        if type(self) is not type(other):
            return False

        for field_name in self._defined_fields().keys():
            self_has = hasattr(self, field_name)
            other_has = hasattr(other, field_name)
            if self_has != other_has:
                return False
            if self_has and getattr(self, field_name) != getattr(other, field_name):
                return False

        return True

    def __repr__(self) -> str:
        """Show the class name and the fields that are set.

        Examples
        --------
        >>> class Database(Prototype):
        ...     host: str
        ...     port: int
        >>> Database(host='localhost', port=5432)
        Database(host='localhost', port=5432)

        """
        field_strs = []
        for field_name in self._defined_fields().keys():
            if hasattr(self, field_name):
                value = getattr(self, field_name)
                field_strs.append(f"{field_name}={value!r}")

        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    @classmethod
    def _defined_fields(cls) -> dict[str, typing.Any]:
        """Map each annotated field to a ``(type_hint, default)`` pair.

        ``default`` is ``_MISSING`` when the class gives none.

        """
        type_hints = typing.get_type_hints(cls)

        result = {}
        for field_name, type_hint in type_hints.items():
            default_value = getattr(cls, field_name, _MISSING)
            result[field_name] = (type_hint, default_value)

        return result

    @classmethod
    def _schema(cls) -> Schema:
        """Convert this Prototype class to an equivalent body schema.

        This is a public method; the leading underscore is to avoid name clashes
        with user-defined fields.

        """
        sections: dict[str, dict[str, typing.Any]] = {
            "required_attributes": {},
            "optional_attributes": {},
            "required_blocks": {},
            "optional_blocks": {},
            "repeated_blocks": {},
        }
        label = None

        for field_name, (type_hint, default) in cls._defined_fields().items():
            if type_hint is Label:
                label = field_name
                continue

            multiplicity = _block_multiplicity(type_hint)
            if multiplicity is not None:
                section = {
                    "single": "required_blocks",
                    "optional": "optional_blocks",
                    "repeated": "repeated_blocks",
                }[multiplicity]
                sections[section][field_name] = _block_prototype(type_hint)._schema()
                continue

            type_schema = dict(_type_to_schema(type_hint))
            if default is not _MISSING:
                type_schema["default"] = default
                sections["optional_attributes"][field_name] = type_schema
            elif _is_not_required_type(type_hint):
                sections["optional_attributes"][field_name] = type_schema
            else:
                sections["required_attributes"][field_name] = type_schema

        result: dict[str, typing.Any] = {"type": "body"}
        for section, entries in sections.items():
            if entries:
                result[section] = entries
        if label is not None:
            result["label"] = label

        return typing.cast(Schema, result)

    @classmethod
    def _from_dict(cls, data: dict[str, typing.Any]) -> Self:
        """Create a Prototype instance from a decoded dictionary.

        This will recursively create nested Prototype instances for block fields.

        """
        init_kwargs = {}
        for field_name, (type_hint, _) in cls._defined_fields().items():
            if field_name not in data:
                continue

            value = data[field_name]
            multiplicity = _block_multiplicity(type_hint)
            if multiplicity == "repeated":
                prototype = _block_prototype(type_hint)
                value = [prototype._from_dict(item) for item in value]
            elif multiplicity is not None and value is not None:
                value = _block_prototype(type_hint)._from_dict(value)

            init_kwargs[field_name] = value
        return cls(**init_kwargs)


def _is_not_required_type(type_hint: type) -> bool:
    """Check if a type hint is blockconfig.NotRequired[T]."""
    return typing.get_origin(type_hint) is NotRequired


def _unwrap_not_required(type_hint: type) -> type:
    """Extract T from blockconfig.NotRequired[T]."""
    args = typing.get_args(type_hint)
    if args:
        return args[0]
    raise TypeError(
        f"Cannot unwrap NotRequired without type argument: {type_hint}"
    )  # pragma: no cover


def _is_nullable_type(type_hint: type) -> bool:
    """Check if a type hint is T | None (nullable)."""
    origin = typing.get_origin(type_hint)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(type_hint)
        none_count = sum(1 for arg in args if arg is type(None))
        return none_count == 1 and len(args) == 2
    return False


def _unwrap_nullable(type_hint: type) -> type:
    """Extract T from T | None."""
    args = typing.get_args(type_hint)
    for arg in args:
        if arg is not type(None):
            return arg
    raise TypeError(f"Cannot unwrap nullable type: {type_hint}")  # pragma: no cover


def _unwrap_type_hint(type_hint: type) -> type:
    """Unwrap NotRequired and nullable from a type hint."""
    if _is_not_required_type(type_hint):
        type_hint = _unwrap_not_required(type_hint)

    if _is_nullable_type(type_hint):
        type_hint = _unwrap_nullable(type_hint)

    return type_hint


def _block_multiplicity(type_hint: type) -> typing.Optional[str]:
    """If the type hint describes a block, return its multiplicity, else None.

    ``P`` is a single block, ``NotRequired[P]`` and ``P | None`` are optional blocks,
    and ``list[P]`` is a repeated block.

    """
    optional = _is_not_required_type(type_hint)
    if optional:
        type_hint = _unwrap_not_required(type_hint)
    if _is_nullable_type(type_hint):
        optional = True
        type_hint = _unwrap_nullable(type_hint)

    if is_prototype_class(type_hint):
        return "optional" if optional else "single"

    if typing.get_origin(type_hint) is list:
        args = typing.get_args(type_hint)
        if len(args) == 1 and is_prototype_class(args[0]):
            return "repeated"

    return None


def _block_prototype(type_hint: type) -> type["Prototype"]:
    """The Prototype subclass of a block field's type hint."""
    type_hint = _unwrap_type_hint(type_hint)
    if typing.get_origin(type_hint) is list:
        type_hint = typing.get_args(type_hint)[0]
    assert is_prototype_class(type_hint)
    return type_hint


def _is_supported_type_hint(type_hint: type, allow_blocks: bool = True) -> bool:
    """Check if a type hint is supported in Prototype fields.

    Supported type hints include:
    - Builtin types: str, int, float, bool, and typing.Any
    - blockconfig.Label
    - blockconfig.NotRequired[T]
    - T | None (nullable types)
    - list[T] and dict[str, T] of the above
    - Prototype subclasses and lists of them (blocks), not nested in other types

    """
    if type_hint is Label:
        return allow_blocks

    if allow_blocks and _block_multiplicity(type_hint) is not None:
        return True

    type_hint = _unwrap_type_hint(type_hint)

    type_origin = typing.get_origin(type_hint)
    type_args = typing.get_args(type_hint)

    if type_origin is list:
        return len(type_args) == 1 and _is_supported_type_hint(
            type_args[0], allow_blocks=False
        )

    if type_origin is dict:
        return (
            len(type_args) == 2
            and type_args[0] is str
            and _is_supported_type_hint(type_args[1], allow_blocks=False)
        )

    if type_hint in _TYPE_MAP:
        return True

    if type_hint is typing.Any:
        return True

    return False


def _type_to_schema(type_hint: type) -> Schema:
    """Convert an attribute's type hint to a value schema.

    This function assumes that _is_supported_type_hint(type_hint) is True.

    """
    if _is_not_required_type(type_hint):
        type_hint = _unwrap_not_required(type_hint)

    if type_hint in _TYPE_MAP:
        return {"type": _TYPE_MAP[type_hint]}

    if type_hint is typing.Any:
        return {"type": "any"}

    type_origin = typing.get_origin(type_hint)

    if type_origin is list:
        (element_type,) = typing.get_args(type_hint)
        return {"type": "list", "element_schema": _type_to_schema(element_type)}

    if type_origin is dict:
        _, value_type = typing.get_args(type_hint)
        return {"type": "dict", "extra_keys_schema": _type_to_schema(value_type)}

    if _is_nullable_type(type_hint):
        schema = dict(_type_to_schema(_unwrap_nullable(type_hint)))
        schema["nullable"] = True
        return schema

    # we should never reach here if the type hint is supported
    raise TypeError(f"Unsupported type hint: {type_hint}")  # pragma: no cover


def is_prototype_class(
    type_: typing.Any,
) -> typing.TypeGuard[type[Prototype]]:
    """Check if a type is a Prototype subclass (but not Prototype itself).

    Examples
    --------
    >>> from blockconfig import Prototype, is_prototype_class
    >>> class Database(Prototype):
    ...     host: str
    >>> is_prototype_class(Database)
    True
    >>> is_prototype_class(Prototype)
    False

    """
    return (
        isinstance(type_, type)
        and issubclass(type_, Prototype)
        and type_ is not Prototype
    )
