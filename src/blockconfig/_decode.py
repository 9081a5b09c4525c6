"""Provides decode_block(), which decodes the body of a block into plain Python data,
and convert_value(), which coerces an evaluated value to the type a schema asks for.

Decoding happens against the evaluation context as it stands when the block's turn
comes, so every entity the block depends on has already been published. Problems found
while decoding a block are collected rather than raised one at a time; once the whole
block has been looked at, they are raised together as a :class:`DiagnosticsError`,
each annotated with the block it was found in.

"""

from typing import Any, Callable, Dict, List, Mapping, Optional
import dataclasses

from . import _schemas
from . import values as _values
from ._context import EvaluationContext
from .exceptions import ConversionError, DiagnosticsError
from .parsers import Attribute, Block, Body
from .types import Diagnostic, KeyPath, Position

# value conversion =====================================================================


def convert_value(
    value: Any,
    schema: Mapping[str, Any],
    converters: Mapping[str, Callable],
    keypath: KeyPath = tuple(),
) -> Any:
    """Coerce an evaluated value to the type described by a value schema.

    Objects become dictionaries, lists become lists, and leaves are passed through the
    converter registered for their type.

    Raises
    ------
    ConversionError
        If the value does not fit the schema.

    """
    if value is None:
        if schema.get("nullable", False) or schema["type"] == "any":
            return None
        raise _conversion_error("Unexpectedly null.", keypath)

    if schema["type"] == "dict":
        return _convert_dict(value, schema, converters, keypath)
    elif schema["type"] == "list":
        return _convert_list(value, schema, converters, keypath)

    try:
        return converters[schema["type"]](value)
    except ConversionError as exc:
        raise _conversion_error(str(exc), keypath) from None
    except (TypeError, ValueError) as exc:
        # user-supplied converters may raise the usual Python errors
        raise _conversion_error(str(exc), keypath) from exc


def _convert_dict(value, schema, converters, keypath):
    kind = _values.kind_of(value)
    if kind is not _values.Kind.OBJECT:
        raise _conversion_error(f"Expected an object, got {kind.value}.", keypath)

    result = {}
    for key, key_schema in schema.get("required_keys", {}).items():
        if key not in value:
            raise _conversion_error(f'Missing required key "{key}".', keypath)
        result[key] = convert_value(value[key], key_schema, converters, keypath + (key,))

    for key, key_schema in schema.get("optional_keys", {}).items():
        if key in value:
            item = value[key]
        elif "default" in key_schema:
            item = _values.to_value(key_schema["default"])
        else:
            continue
        result[key] = convert_value(item, key_schema, converters, keypath + (key,))

    expected = set(schema.get("required_keys", {})) | set(
        schema.get("optional_keys", {})
    )
    for key in value:
        if key in expected:
            continue
        if "extra_keys_schema" not in schema:
            raise _conversion_error(f'Unexpected key "{key}".', keypath)
        result[key] = convert_value(
            value[key], schema["extra_keys_schema"], converters, keypath + (key,)
        )

    return result


def _convert_list(value, schema, converters, keypath):
    kind = _values.kind_of(value)
    if kind is not _values.Kind.LIST:
        raise _conversion_error(f"Expected a list, got {kind.value}.", keypath)

    return [
        convert_value(item, schema["element_schema"], converters, keypath + (str(i),))
        for i, item in enumerate(value)
    ]


def _conversion_error(message: str, keypath: KeyPath) -> ConversionError:
    if not keypath:
        return ConversionError(message)
    dotted = ".".join(keypath)
    return ConversionError(f'At "{dotted}": {message}')


def conversion_diagnostic(
    name: str, exc: ConversionError, position: Position
) -> Diagnostic:
    """The diagnostic reported when an attribute's value has the wrong type."""
    return Diagnostic(
        "Incorrect attribute value type",
        f'Inappropriate value for attribute "{name}": {exc}',
        position,
    )


# environment values ===================================================================


def environment_value(decoded: Optional[Dict[str, Any]], schema) -> Any:
    """Turn a decoded block back into a value that can be published.

    Nested labeled blocks become objects keyed by label, so that they are referenced
    the same way top-level labeled blocks are, e.g. ``database.replica.r1.host``.

    """
    if decoded is None:
        return None

    slots = _schemas.slots(schema)
    members = {}
    for name, item in decoded.items():
        slot = slots.get(name)
        if slot is None or slot.kind == "attribute":
            members[name] = _values.to_value(item)
        elif slot.multiplicity != "repeated":
            members[name] = environment_value(item, slot.schema)
        elif slot.label_field is not None:
            members[name] = _values.ObjectValue(
                {
                    element[slot.label_field]: environment_value(element, slot.schema)
                    for element in item
                }
            )
        else:
            members[name] = tuple(
                environment_value(element, slot.schema) for element in item
            )
    return _values.ObjectValue(members)


# block decoding =======================================================================


def decode_block(
    block: Block,
    schema,
    context: EvaluationContext,
    converters: Mapping[str, Callable],
) -> Dict[str, Any]:
    """Decode a block into a dictionary using its body schema.

    If the schema names a label field, the block's label is stored under it.

    Raises
    ------
    DiagnosticsError
        If the block's contents do not match the schema or an expression fails.
    MissingEnvironmentVariableError
        If ``env()`` is asked for an unset variable in strict mode.

    """
    decoder = _BodyDecoder(context, converters)
    result = decoder.block(block, schema)

    if decoder.diagnostics:
        raise DiagnosticsError(decoder.diagnostics)

    return result


class _BodyDecoder:
    def __init__(
        self, context: EvaluationContext, converters: Mapping[str, Callable]
    ):
        self.context = context
        self.converters = converters
        self.diagnostics: List[Diagnostic] = []

    def block(self, block: Block, schema) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if "label" in schema:
            result[schema["label"]] = block.label
        result.update(self.body(block.body, schema, block))
        return result

    def body(self, body: Body, schema, block: Block) -> Dict[str, Any]:
        slots = _schemas.slots(schema)
        result: Dict[str, Any] = {}

        for attribute in body.attributes.values():
            slot = slots.get(attribute.name)
            if slot is None or slot.kind != "attribute":
                self.report(
                    Diagnostic(
                        "Unsupported argument",
                        f'An argument named "{attribute.name}" is not expected here.',
                        attribute.position,
                    ),
                    block,
                )
                continue
            self.attribute(attribute, slot, result, block)

        blocks_by_type: Dict[str, List[Block]] = {}
        for nested in body.blocks:
            slot = slots.get(nested.type)
            if slot is None or slot.kind != "block":
                self.report(
                    Diagnostic(
                        "Unsupported block type",
                        f'Blocks of type "{nested.type}" are not expected here.',
                        nested.position,
                    ),
                    block,
                )
                continue
            blocks_by_type.setdefault(nested.type, []).append(nested)

        for slot in slots.values():
            if slot.kind == "attribute":
                self.missing_attribute(slot, body, result, block)
            else:
                self.nested_blocks(slot, blocks_by_type.get(slot.name, []), result, block)

        return result

    def attribute(self, attribute: Attribute, slot, result, block: Block):
        try:
            value = attribute.expression.evaluate(self.context)
        except DiagnosticsError as exc:
            for diagnostic in exc.diagnostics:
                self.report(diagnostic, block)
            return

        try:
            result[attribute.name] = convert_value(value, slot.schema, self.converters)
        except ConversionError as exc:
            self.report(
                conversion_diagnostic(attribute.name, exc, attribute.position), block
            )

    def missing_attribute(self, slot, body: Body, result, block: Block):
        if slot.name in body.attributes:
            return

        if slot.multiplicity == "single":
            self.report(
                Diagnostic(
                    "Missing required argument",
                    f'The argument "{slot.name}" is required, but no definition was '
                    "found.",
                    block.position,
                ),
                block,
            )
        elif "default" in slot.schema:
            default = _values.to_value(slot.schema["default"])
            try:
                result[slot.name] = convert_value(default, slot.schema, self.converters)
            except ConversionError as exc:
                self.report(conversion_diagnostic(slot.name, exc, block.position), block)

    def nested_blocks(self, slot, blocks: List[Block], result, block: Block):
        label_count = 1 if slot.label_field else 0
        accepted = []
        for nested in blocks:
            if len(nested.labels) < label_count:
                self.report(
                    Diagnostic(
                        f"Missing name for {nested.type}",
                        f"All {nested.type} blocks must have 1 labels "
                        f"({slot.label_field}).",
                        nested.position,
                    ),
                    block,
                )
            elif len(nested.labels) > label_count:
                self.report(
                    Diagnostic(
                        f"Extraneous label for {nested.type}",
                        "No more labels are expected.",
                        nested.position,
                    ),
                    block,
                )
            else:
                accepted.append(nested)

        if slot.multiplicity == "repeated":
            seen: Dict[str, Position] = {}
            elements = []
            for nested in accepted:
                if nested.label is not None:
                    if nested.label in seen:
                        self.duplicate(nested, seen[nested.label], block)
                        continue
                    seen[nested.label] = nested.position
                elements.append(self.block(nested, slot.schema))
            result[slot.name] = elements
            return

        if len(accepted) > 1:
            self.duplicate(accepted[1], accepted[0].position, block)

        if accepted:
            result[slot.name] = self.block(accepted[0], slot.schema)
        elif slot.multiplicity == "optional":
            result[slot.name] = None
        elif not blocks:
            self.report(
                Diagnostic(
                    f"Missing {slot.name} block",
                    f'A block of type "{slot.name}" is required here.',
                    block.position,
                ),
                block,
            )

    def duplicate(self, nested: Block, previous: Position, block: Block):
        self.report(
            Diagnostic(
                f"Duplicate {nested.type} block",
                f"Only one {nested.type} block is allowed here. Another was defined "
                f"at {previous}.",
                nested.position,
            ),
            block,
        )

    def report(self, diagnostic: Diagnostic, block: Block):
        if diagnostic.context is None:
            diagnostic = dataclasses.replace(diagnostic, context=block.describe())
        self.diagnostics.append(diagnostic)
