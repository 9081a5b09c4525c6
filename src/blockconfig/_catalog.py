"""Provides build_catalog(), which lists the entities of a document.

An entity is a unit of dependency ordering: a block (one per label for labeled
blocks), a top-level attribute, or a variable declaration. Each entity has a key that
is unique across the whole document:

.. code::

    database { ... }          # key "database"
    service "api" { ... }     # key "service.api"
    group = "web"             # key "group"
    var "base" { ... }        # key "var.base"

Blocks nested inside another block are not entities of their own. Their expressions
belong to the top-level block that encloses them.

"""

from typing import Dict, List, Optional, Union
import dataclasses
import logging

from . import _schemas
from ._context import VARIABLES_NAMESPACE
from .exceptions import DiagnosticsError
from .parsers import Attribute, Block, Body
from .types import Diagnostic, EntityKind, Position

logger = logging.getLogger(__name__)

# the attributes a variable declaration may have
VARIABLE_ATTRIBUTES = {"default", "description"}


@dataclasses.dataclass
class Entity:
    """A named unit of the document that takes part in dependency ordering.

    Attributes
    ----------
    kind : EntityKind
        What sort of entity this is.
    type_name : str
        The block type, attribute name, or ``"var"`` for variables.
    label : Optional[str]
        The label of a labeled block or variable.
    position : Position
        Where the entity is first defined.
    index : int
        The position of the entity's first definition among the top-level items of
        the document. Used for ordering only when nothing else decides.
    nodes : List[Union[Attribute, Block]]
        The syntax tree nodes that define the entity. This has more than one element
        only for unlabeled repeated blocks, which share a single entity.
    slot : Optional[Slot]
        The schema slot the entity is decoded into, or None if it has no slot.

    """

    kind: EntityKind
    type_name: str
    label: Optional[str]
    position: Position
    index: int
    nodes: List[Union[Attribute, Block]]
    slot: Optional[_schemas.Slot] = None

    @property
    def key(self) -> str:
        if self.label is None:
            return self.type_name
        return f"{self.type_name}.{self.label}"

    @property
    def nested_children(self) -> List[Block]:
        """The blocks declared directly inside this entity's blocks, in order."""
        children = []
        for node in self.nodes:
            if isinstance(node, Block):
                children.extend(node.body.blocks)
        return children


def build_catalog(body: Body, schema) -> List[Entity]:
    """List the entities of a document in the order they are first defined.

    Parameters
    ----------
    body : Body
        The top-level body of the parsed document.
    schema : dict
        The document's body schema. It is assumed to be valid.

    Raises
    ------
    DiagnosticsError
        If a required attribute or block is missing, a block has the wrong number of
        labels, or two definitions produce the same entity.

    """
    slots = _schemas.slots(schema)
    builder = _CatalogBuilder(slots)

    for index, item in enumerate(body.items):
        if isinstance(item, Attribute):
            builder.add_attribute(item, index)
        elif item.type == VARIABLES_NAMESPACE:
            builder.add_variable(item, index)
        else:
            builder.add_block(item, index)

    builder.check_required()

    if builder.diagnostics:
        raise DiagnosticsError(builder.diagnostics)

    return list(builder.entities.values())


class _CatalogBuilder:
    def __init__(self, slots: Dict[str, _schemas.Slot]):
        self.slots = slots
        self.entities: Dict[str, Entity] = {}
        self.diagnostics: List[Diagnostic] = []
        # the first block seen for each single or optional block slot
        self._first_blocks: Dict[str, Block] = {}

    def add_attribute(self, attribute: Attribute, index: int):
        slot = self.slots.get(attribute.name)

        if attribute.name == VARIABLES_NAMESPACE:
            self.diagnostics.append(
                Diagnostic(
                    "Reserved name",
                    f'The name "{VARIABLES_NAMESPACE}" is reserved for variable '
                    "declarations.",
                    attribute.position,
                )
            )
            return

        if slot is not None and slot.kind == "block":
            self.diagnostics.append(
                Diagnostic(
                    "Unsupported argument",
                    f'An argument named "{attribute.name}" is not expected here. Did '
                    f'you mean to define a block of type "{attribute.name}"?',
                    attribute.position,
                )
            )
            return

        self.entities[attribute.name] = Entity(
            EntityKind.ATTRIBUTE,
            attribute.name,
            None,
            attribute.position,
            index,
            [attribute],
            slot,
        )

    def add_variable(self, block: Block, index: int):
        if len(block.labels) != 1:
            self._wrong_labels(block, ["name"])
            return

        for attribute in block.body.attributes.values():
            if attribute.name not in VARIABLE_ATTRIBUTES:
                self.diagnostics.append(
                    Diagnostic(
                        "Unsupported argument",
                        f'An argument named "{attribute.name}" is not expected here.',
                        attribute.position,
                        block.describe(),
                    )
                )

        for nested in block.body.blocks:
            self.diagnostics.append(
                Diagnostic(
                    "Unsupported block type",
                    f'Blocks of type "{nested.type}" are not expected here.',
                    nested.position,
                    block.describe(),
                )
            )

        key = f"{VARIABLES_NAMESPACE}.{block.label}"
        if key in self.entities:
            previous = self.entities[key]
            self.diagnostics.append(
                Diagnostic(
                    f'Duplicate variable "{block.label}"',
                    f"A variable of this name was already declared at "
                    f"{previous.position}.",
                    block.position,
                )
            )
            return

        self.entities[key] = Entity(
            EntityKind.VARIABLE,
            VARIABLES_NAMESPACE,
            block.label,
            block.position,
            index,
            [block],
        )

    def add_block(self, block: Block, index: int):
        slot = self.slots.get(block.type)

        if slot is None:
            logger.debug("Ignoring %s.", block.describe())
            return

        if slot.kind == "attribute":
            self.diagnostics.append(
                Diagnostic(
                    "Unsupported block type",
                    f'Blocks of type "{block.type}" are not expected here. Did you '
                    f'mean to define an argument named "{block.type}"?',
                    block.position,
                )
            )
            return

        expected_labels = [slot.label_field] if slot.label_field else []
        if len(block.labels) != len(expected_labels):
            self._wrong_labels(block, expected_labels)
            return

        if slot.multiplicity != "repeated":
            first = self._first_blocks.get(block.type)
            if first is not None:
                self.diagnostics.append(
                    Diagnostic(
                        f"Duplicate {block.type} block",
                        f"Only one {block.type} block is allowed. Another was defined "
                        f"at {first.position}.",
                        block.position,
                    )
                )
                return
            self._first_blocks[block.type] = block

        if block.label is None:
            kind = EntityKind.TYPED_BLOCK
            key = block.type
        else:
            kind = EntityKind.LABELED_BLOCK
            key = f"{block.type}.{block.label}"

        if key in self.entities:
            existing = self.entities[key]
            if block.label is None:
                # unlabeled repeated blocks are decoded together, in order
                existing.nodes.append(block)
                return

            self.diagnostics.append(
                Diagnostic(
                    f'Duplicate {block.type} "{block.label}" block',
                    f'A {block.type} block labeled "{block.label}" was already '
                    f"defined at {existing.position}.",
                    block.position,
                )
            )
            return

        self.entities[key] = Entity(
            kind, block.type, block.label, block.position, index, [block], slot
        )

    def check_required(self):
        present = {entity.type_name for entity in self.entities.values()}
        for slot in self.slots.values():
            if slot.multiplicity != "single" or slot.name in present:
                continue

            if slot.kind == "attribute":
                self.diagnostics.append(
                    Diagnostic(
                        "Missing required argument",
                        f'The argument "{slot.name}" is required, but no definition '
                        "was found.",
                    )
                )
            else:
                self.diagnostics.append(
                    Diagnostic(
                        f"Missing {slot.name} block",
                        f'A block of type "{slot.name}" is required here.',
                    )
                )

    def _wrong_labels(self, block: Block, expected: List[str]):
        if len(block.labels) < len(expected):
            summary = f"Missing name for {block.type}"
            detail = (
                f"All {block.type} blocks must have {len(expected)} labels "
                f"({', '.join(expected)})."
            )
        else:
            summary = f"Extraneous label for {block.type}"
            if expected:
                detail = "No more labels are expected."
            else:
                detail = f"No labels are expected for {block.type} blocks."
        self.diagnostics.append(Diagnostic(summary, detail, block.position))
