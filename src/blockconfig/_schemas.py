"""Provides validate_schema(), which checks that a schema is valid, and slots(), which
lists the attributes and blocks a body schema expects.

A body schema describes the contents of the document or of a block:

.. code:: python

    {
        "type": "body",
        "required_attributes": {"group": {"type": "string"}},
        "optional_attributes": {"debug": {"type": "boolean", "default": False}},
        "required_blocks": {"database": {"type": "body", ...}},
        "optional_blocks": {"cache": {"type": "body", ...}},
        "repeated_blocks": {"service": {"type": "body", "label": "name", ...}},
    }

Attribute values are described by value schemas: leaf schemas such as
``{"type": "integer"}``, list schemas with an ``element_schema``, and dict schemas with
``required_keys``, ``optional_keys`` and ``extra_keys_schema``. A block schema is a body
schema that may name, under ``label``, the field that receives the block's label.

"""

from typing import Dict
import dataclasses

from . import exceptions
from ._context import VARIABLES_NAMESPACE

# the leaf types understood by the default converters
LEAF_TYPES = {"string", "integer", "float", "boolean", "any"}

# the multiplicity of each block section
BLOCK_SECTIONS = {
    "required_blocks": "single",
    "optional_blocks": "optional",
    "repeated_blocks": "repeated",
}

ATTRIBUTE_SECTIONS = {
    "required_attributes": "single",
    "optional_attributes": "optional",
}

# slots ================================================================================


@dataclasses.dataclass(frozen=True)
class Slot:
    """A named place in a body schema that an attribute or block is decoded into.

    Attributes
    ----------
    name : str
        The attribute name or block type.
    kind : str
        Either "attribute" or "block".
    multiplicity : str
        "single" (required), "optional", or "repeated" (blocks only).
    schema : dict
        The value schema of an attribute, or the body schema of a block.

    """

    name: str
    kind: str
    multiplicity: str
    schema: dict

    @property
    def label_field(self):
        """The field receiving the block's label, or None if the block is unlabeled."""
        if self.kind != "block":
            return None
        return self.schema.get("label")


def slots(body_schema) -> Dict[str, Slot]:
    """List the slots of a body schema, keyed by name, in schema order."""
    result = {}
    for section, multiplicity in ATTRIBUTE_SECTIONS.items():
        for name, schema in body_schema.get(section, {}).items():
            result[name] = Slot(name, "attribute", multiplicity, schema)
    for section, multiplicity in BLOCK_SECTIONS.items():
        for name, schema in body_schema.get(section, {}).items():
            result[name] = Slot(name, "block", multiplicity, schema)
    return result


# validation ===========================================================================


def _check_keys(provided, required, optional, keypath, allow_default):
    allowed = required | optional
    if allow_default:
        allowed.add("default")

    extra = provided - allowed
    missing = required - provided

    if extra:
        exemplar = sorted(extra)[0]
        raise exceptions.InvalidSchemaError("Unexpected key.", keypath + (exemplar,))

    if missing:
        exemplar = sorted(missing)[0]
        raise exceptions.InvalidSchemaError("Missing key.", keypath + (exemplar,))


def _validate_body_schema(body_schema, keypath, is_document, leaf_types):
    optional = set(ATTRIBUTE_SECTIONS) | set(BLOCK_SECTIONS)
    if not is_document:
        optional.add("label")

    _check_keys(
        body_schema.keys(),
        required={"type"},
        optional=optional,
        keypath=keypath,
        allow_default=False,
    )

    seen = set()
    for section in list(ATTRIBUTE_SECTIONS) + list(BLOCK_SECTIONS):
        entries = body_schema.get(section, {})
        if not isinstance(entries, dict):
            raise exceptions.InvalidSchemaError("Must be a dict.", keypath + (section,))

        for name in entries:
            if name in seen:
                raise exceptions.InvalidSchemaError(
                    "Name is used more than once.", keypath + (section, name)
                )
            if is_document and name == VARIABLES_NAMESPACE:
                raise exceptions.InvalidSchemaError(
                    f'The name "{VARIABLES_NAMESPACE}" is reserved for variables.',
                    keypath + (section, name),
                )
            seen.add(name)

    for name, schema in body_schema.get("required_attributes", {}).items():
        validate_value_schema(
            schema, keypath + ("required_attributes", name), leaf_types=leaf_types
        )

    for name, schema in body_schema.get("optional_attributes", {}).items():
        validate_value_schema(
            schema,
            keypath + ("optional_attributes", name),
            allow_default=True,
            leaf_types=leaf_types,
        )

    for section in BLOCK_SECTIONS:
        for name, schema in body_schema.get(section, {}).items():
            if not isinstance(schema, dict) or schema.get("type") != "body":
                raise exceptions.InvalidSchemaError(
                    "Block schema must be a body schema.", keypath + (section, name)
                )
            _validate_body_schema(
                schema, keypath + (section, name), False, leaf_types
            )

    if "label" in body_schema:
        label = body_schema["label"]
        if not isinstance(label, str):
            raise exceptions.InvalidSchemaError(
                "Label must be a string.", keypath + ("label",)
            )
        if label in seen:
            raise exceptions.InvalidSchemaError(
                "Label field collides with an attribute or block.", keypath + ("label",)
            )


def _validate_dict_schema(dict_schema, keypath, allow_default, leaf_types):
    _check_keys(
        dict_schema.keys(),
        required={"type"},
        optional={"required_keys", "optional_keys", "extra_keys_schema", "nullable"},
        keypath=keypath,
        allow_default=allow_default,
    )

    for key, key_schema in dict_schema.get("required_keys", {}).items():
        validate_value_schema(
            key_schema, keypath + ("required_keys", key), leaf_types=leaf_types
        )

    for key, key_schema in dict_schema.get("optional_keys", {}).items():
        validate_value_schema(
            key_schema,
            keypath + ("optional_keys", key),
            allow_default=True,
            leaf_types=leaf_types,
        )

    if "extra_keys_schema" in dict_schema:
        validate_value_schema(
            dict_schema["extra_keys_schema"],
            keypath + ("extra_keys_schema",),
            leaf_types=leaf_types,
        )


def _validate_list_schema(list_schema, keypath, allow_default, leaf_types):
    _check_keys(
        list_schema.keys(),
        required={"type", "element_schema"},
        optional={"nullable"},
        keypath=keypath,
        allow_default=allow_default,
    )

    validate_value_schema(
        list_schema["element_schema"],
        keypath + ("element_schema",),
        leaf_types=leaf_types,
    )


def _validate_leaf_schema(leaf_schema, keypath, allow_default, leaf_types):
    _check_keys(
        leaf_schema.keys(),
        required={"type"},
        optional={"nullable"},
        keypath=keypath,
        allow_default=allow_default,
    )

    if leaf_schema["type"] not in leaf_types:
        raise exceptions.InvalidSchemaError(
            f"Invalid type: {leaf_schema['type']}.", keypath + ("type",)
        )


def validate_value_schema(
    schema, keypath=tuple(), allow_default=False, leaf_types=LEAF_TYPES
):
    """Validate the schema of an attribute value.

    ``leaf_types`` lists the leaf types that have a converter.

    Raises
    ------
    InvalidSchemaError
        If the schema is not valid.

    """
    if not isinstance(schema, dict):
        raise exceptions.InvalidSchemaError("Schema must be a dict.", keypath)

    if "type" not in schema:
        raise exceptions.InvalidSchemaError("Required key missing.", keypath + ("type",))

    args = (schema, keypath, allow_default, leaf_types)

    if schema["type"] == "dict":
        _validate_dict_schema(*args)
    elif schema["type"] == "list":
        _validate_list_schema(*args)
    else:
        _validate_leaf_schema(*args)


def validate_schema(schema, keypath=tuple(), leaf_types=LEAF_TYPES):
    """Validate the schema of a whole document.

    ``leaf_types`` lists the leaf types that have a converter.

    Raises
    ------
    InvalidSchemaError
        If the schema is not valid.

    """
    if not isinstance(schema, dict):
        raise exceptions.InvalidSchemaError("Schema must be a dict.", keypath)

    if schema.get("type") != "body":
        raise exceptions.InvalidSchemaError(
            'Document schema must have type "body".', keypath + ("type",)
        )

    _validate_body_schema(schema, keypath, True, leaf_types)
