"""Provides build_dependency_graph(), which finds out which entities read which.

An entity depends on another if one of its expressions references the other's value.
References are found statically, without evaluating anything: each expression reports
its free variable references as traversals such as ``service.api.port``, and each
traversal is matched to an entity key by its root name and, for labeled blocks and
variables, its first step:

    - ``database.host`` depends on the entity ``database``
    - ``service.api.port`` depends on ``service.api``, not on the other services
    - ``var.base`` depends on ``var.base``
    - ``service`` (the whole label map) depends on every ``service`` block

References to names that no entity defines, such as functions and global variables,
are not dependencies. Steps past the first are never used; the structure of the
evaluation context already takes care of deeper field access.

"""

from typing import Dict, Iterable, List
import logging

from ._catalog import Entity
from .parsers import Attribute, Block, Body
from .types import DependencyGraph, Traversal

logger = logging.getLogger(__name__)


def build_dependency_graph(entities: List[Entity]) -> DependencyGraph:
    """Map each entity key to the set of keys it depends on.

    Every key has an entry, possibly empty. A key never depends on itself.

    """
    keys = {entity.key for entity in entities}
    known_roots = {entity.type_name for entity in entities}

    # the labels defined for each type, and the keys of each type
    labels: Dict[str, set[str]] = {}
    keys_by_type: Dict[str, List[str]] = {}
    for entity in entities:
        keys_by_type.setdefault(entity.type_name, []).append(entity.key)
        if entity.label is not None:
            labels.setdefault(entity.type_name, set()).add(entity.label)

    graph: DependencyGraph = {entity.key: set() for entity in entities}

    for entity in entities:
        for traversal in references(entity):
            if traversal.root not in known_roots:
                continue

            for target in _targets(traversal, keys, labels, keys_by_type):
                if target != entity.key:
                    graph[entity.key].add(target)

        if graph[entity.key]:
            logger.debug(
                "%s depends on %s", entity.key, ", ".join(sorted(graph[entity.key]))
            )

    return graph


def references(entity: Entity) -> List[Traversal]:
    """The free variable references of an entity, including its nested blocks."""
    found = []
    for node in entity.nodes:
        if isinstance(node, Attribute):
            found.extend(node.expression.variables())
        else:
            found.extend(_attribute_references(node.body))

    # references in nested blocks belong to the top-level entity
    for child in entity.nested_children:
        found.extend(_block_references(child))
    return found


def _attribute_references(body: Body) -> Iterable[Traversal]:
    for attribute in body.attributes.values():
        yield from attribute.expression.variables()


def _block_references(block: Block) -> Iterable[Traversal]:
    yield from _attribute_references(block.body)
    for child in block.body.blocks:
        yield from _block_references(child)


def _targets(
    traversal: Traversal,
    keys: set[str],
    labels: Dict[str, set[str]],
    keys_by_type: Dict[str, List[str]],
) -> List[str]:
    """The keys of the entities a traversal reads."""
    root = traversal.root
    if root not in labels:
        return [root] if root in keys else []

    if traversal.steps and not traversal.steps[0].computed:
        label = traversal.steps[0].key
        if label in labels[root]:
            return [f"{root}.{label}"]
        # no such instance; evaluating the reference reports it
        return []

    # the reference reads the whole label map
    return list(keys_by_type[root])
