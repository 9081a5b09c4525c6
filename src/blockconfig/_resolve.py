"""Provides the load() and load_file() functions.

This module does the heavy-lifting of loading documents.

We describe the implementation details of load() here. For instructions on how to use
it, see the main documentation.

Approach
========

The entries of a document may reference one another, and they may do so in any order:
a block near the top of a file can read an attribute defined at the bottom. The
entries must therefore be evaluated in an order determined by their references rather
than by their position in the file.

Loading happens in five phases, each using only the results of the ones before it:

    1. The document is parsed into a syntax tree (:func:`parsers.parse`). Every
       expression is compiled by Jinja2 at this point, so syntax errors in expressions
       are found before anything is evaluated.

    2. The syntax tree is turned into a catalog of *entities* (:mod:`_catalog`): one
       per unlabeled block, one per labeled block, one per top-level attribute, and
       one per variable declaration. Each entity has a unique key, such as
       ``database``, ``service.api`` or ``var.base``. Missing or duplicated entries
       are reported here.

    3. A dependency graph is built (:mod:`_dependencies`) by asking each entity's
       expressions, including those in nested blocks, which variables they reference
       and matching the references to entity keys.

    4. The keys are sorted topologically (:mod:`_toposort`). If the references form a
       cycle, a :class:`CycleError` naming the cycle is raised.

    5. The entities are resolved in that order. Each is evaluated against an
       :class:`EvaluationContext` holding everything resolved so far, and its value is
       then published into the context so that the entities after it can read it. The
       decoded values are collected into the result.

Any failure aborts the load immediately. There are no partial results.

Publishing
==========

Each kind of entity is published differently:

    - an unlabeled block is published under its type, e.g. ``database``;
    - labeled blocks of the same type are published together as one object keyed by
      label, which gains a member each time another block of the type resolves, e.g.
      ``service.api``;
    - variables are published the same way, as members of the ``var`` object;
    - a top-level attribute is published under its name, as evaluated and before
      conversion.

Published values never change afterwards.

Worked Example
==============

Consider the document:

    .. code::

        app {
            db_url = "postgres://${database.host}:${database.port}"
        }

        database {
            host = var.host
            port = 5432
        }

        var "host" {
            default = "db.internal"
        }

The catalog has three entities, with keys ``app``, ``database`` and ``var.host``.
``app`` references ``database`` twice, and ``database`` references ``var.host``, so the
dependency graph is::

    app -> {database}
    database -> {var.host}
    var.host -> {}

and the sorted order is ``var.host``, ``database``, ``app``. Resolving ``var.host``
publishes ``var = {host: "db.internal"}``. Resolving ``database`` decodes the block
against the schema, giving ``{"host": "db.internal", "port": 5432}``, which is published
under ``database``. Finally ``app.db_url`` is evaluated to
``"postgres://db.internal:5432"``.

"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
import logging
import os
import typing

from . import _schemas
from . import converters as _converters
from . import functions as _functions
from . import types as _types
from ._catalog import Entity, build_catalog
from ._context import EvaluationContext
from ._decode import (
    conversion_diagnostic,
    convert_value,
    decode_block,
    environment_value,
)
from ._dependencies import build_dependency_graph
from ._prototypes import Prototype, is_prototype_class
from ._toposort import topological_sort
from .exceptions import ConversionError, DiagnosticsError, MissingFieldError
from .expressions import ExpressionEngine, default_engine
from .parsers import parse

logger = logging.getLogger(__name__)

# defaults =============================================================================

# the default converters used by load()
DEFAULT_CONVERTERS = {
    "integer": _converters.arithmetic(int),
    "float": _converters.arithmetic(float),
    "string": _converters.text,
    "boolean": _converters.logic,
    "any": _converters.anything,
}

# the default functions available to expressions, with env() in lenient mode
DEFAULT_FUNCTIONS = _functions.default_functions()


# the resolver =========================================================================


class _Resolver:
    """Resolves entities one at a time and collects the decoded result.

    Entities must be given in dependency order.

    """

    def __init__(
        self,
        schema: _types.Schema,
        context: EvaluationContext,
        options: _types.LoadOptions,
    ):
        self.slots = _schemas.slots(schema)
        self.context = context
        self.options = options
        self.result: Dict[str, Any] = {}

        # decoded elements of repeated block slots, with their document positions
        self._repeated: Dict[str, List[Tuple[int, int, Any]]] = {}

    def resolve(self, entity: Entity):
        logger.debug("Resolving %s", entity.key)
        if entity.kind is _types.EntityKind.VARIABLE:
            self._variable(entity)
        elif entity.kind is _types.EntityKind.ATTRIBUTE:
            self._attribute(entity)
        else:
            self._block(entity)

    def _variable(self, entity: Entity):
        block = entity.nodes[0]
        default = block.body.attributes.get("default")
        if default is None:
            raise MissingFieldError("default", f'var "{entity.label}"', entity.position)

        value = default.expression.evaluate(self.context)
        self.context.publish_variable(entity.label, value)

    def _attribute(self, entity: Entity):
        attribute = entity.nodes[0]
        value = attribute.expression.evaluate(self.context)

        if entity.slot is not None:
            try:
                self.result[attribute.name] = convert_value(
                    value, entity.slot.schema, self.options.converters
                )
            except ConversionError as exc:
                raise DiagnosticsError(
                    [conversion_diagnostic(attribute.name, exc, attribute.position)]
                )

        self.context.publish(attribute.name, value)

    def _block(self, entity: Entity):
        slot = entity.slot
        assert slot is not None

        decoded = [
            decode_block(node, slot.schema, self.context, self.options.converters)
            for node in entity.nodes
        ]
        published = [environment_value(element, slot.schema) for element in decoded]

        if entity.label is not None:
            self.context.publish_member(entity.type_name, entity.label, published[0])
        elif slot.multiplicity == "repeated":
            self.context.publish(entity.type_name, tuple(published))
        else:
            self.context.publish(entity.type_name, published[0])

        if slot.multiplicity == "repeated":
            elements = self._repeated.setdefault(slot.name, [])
            for i, element in enumerate(decoded):
                elements.append((entity.index, i, element))
        else:
            self.result[slot.name] = decoded[0]

    def publish_defaults(self, entities: List[Entity]):
        """Publish the defaults of optional attributes that the document omits."""
        present = {entity.type_name for entity in entities}
        for slot in self.slots.values():
            if (
                slot.kind != "attribute"
                or slot.name in present
                or "default" not in slot.schema
            ):
                continue

            try:
                value = convert_value(
                    slot.schema["default"], slot.schema, self.options.converters
                )
            except ConversionError as exc:
                raise DiagnosticsError([conversion_diagnostic(slot.name, exc, None)])

            self.result[slot.name] = value
            self.context.publish(slot.name, value)

    def finish(self) -> _types.ConfigurationDict:
        """Fill in the empty block slots and return the result in schema order."""
        for slot in self.slots.values():
            if slot.kind != "block":
                continue

            if slot.multiplicity == "repeated":
                elements = sorted(self._repeated.get(slot.name, []), key=lambda e: e[:2])
                self.result[slot.name] = [element for _, _, element in elements]
            elif slot.name not in self.result:
                self.result[slot.name] = None

        return {name: self.result[name] for name in self.slots if name in self.result}


# load() ===============================================================================


def _make_options(
    converters: Mapping[str, Callable],
    functions: Optional[Mapping[str, Callable]],
    global_variables: Optional[Mapping[str, Any]],
    filters: Optional[Mapping[str, Callable]],
    strict_env: bool,
) -> _types.LoadOptions:
    all_functions = dict(DEFAULT_FUNCTIONS)
    if strict_env:
        all_functions["env"] = _functions.make_env(strict=True)
    if functions is not None:
        all_functions.update(functions)

    return _types.LoadOptions(
        converters=converters,
        functions=all_functions,
        global_variables=dict(global_variables or {}),
        filters=dict(filters or {}),
        strict_env=strict_env,
    )


@typing.overload
def load[P: Prototype](
    source: Union[str, bytes],
    filename: str,
    schema: type[P],
    *,
    converters: Mapping[str, Callable] = ...,
    functions: Optional[Mapping[str, Callable]] = ...,
    global_variables: Optional[Mapping[str, Any]] = ...,
    filters: Optional[Mapping[str, Callable]] = ...,
    strict_env: bool = ...,
) -> P:
    """Overloaded load() for Prototype classes."""


@typing.overload
def load(
    source: Union[str, bytes],
    filename: str,
    schema: _types.Schema,
    *,
    converters: Mapping[str, Callable] = ...,
    functions: Optional[Mapping[str, Callable]] = ...,
    global_variables: Optional[Mapping[str, Any]] = ...,
    filters: Optional[Mapping[str, Callable]] = ...,
    strict_env: bool = ...,
) -> _types.ConfigurationDict:
    """Overloaded load() for schema dictionaries."""


def load(
    source: Union[str, bytes],
    filename: str,
    schema: Union[_types.Schema, type[Prototype]],
    *,
    converters: Mapping[str, Callable] = DEFAULT_CONVERTERS,
    functions: Optional[Mapping[str, Callable]] = None,
    global_variables: Optional[Mapping[str, Any]] = None,
    filters: Optional[Mapping[str, Callable]] = None,
    strict_env: bool = False,
) -> Any:
    """Load a document, resolving the references between its entries.

    Parameters
    ----------
    source : Union[str, bytes]
        The text of the document. Bytes are decoded as UTF-8.
    filename : str
        The name of the document, used in error messages.
    schema : Union[:class:`types.Schema`, type[Prototype]]
        A body schema describing the attributes and blocks the document contains, or a
        :class:`Prototype` subclass describing the same.
    converters : Mapping[str, Callable]
        A dictionary mapping value types to converter functions. The converter functions
        take an evaluated value and convert it to the specified type. If this is not
        provided, the default converters in :data:`DEFAULT_CONVERTERS` are used.
    functions : Optional[Mapping[str, Callable]]
        A mapping of function names to functions callable from expressions. These are
        added to the built-in ``env`` and ``env_or`` functions, and override them if
        they share a name.
    global_variables : Optional[Mapping[str, Any]]
        A dictionary of extra bindings available to every expression. A document entry
        with the same name shadows the binding.
    filters : Optional[Mapping[str, Callable]]
        A dictionary of Jinja2 filters to make available to expressions. These will be
        added to Jinja2's set of default filters.
    strict_env : bool (default: False)
        If True, ``env("NAME")`` raises :class:`MissingEnvironmentVariableError` when
        ``NAME`` is not set. Otherwise it evaluates to an empty string. Calls with a
        fallback, ``env("NAME", "fallback")``, never fail.

    Returns
    -------
    Union[dict, Prototype]
        The decoded document. If ``schema`` is a Prototype subclass, this is an
        instance of it.

    Raises
    ------
    InvalidSchemaError
        If the schema is not valid.
    ParseError
        If the document is malformed.
    DiagnosticsError
        If the document does not match the schema, or an expression cannot be
        evaluated.
    CycleError
        If the entries of the document reference each other in a cycle.
    MissingFieldError
        If a variable declaration has no ``default``.
    MissingEnvironmentVariableError
        If ``strict_env`` is True and an unset environment variable is requested.

    """
    prototype = None
    if is_prototype_class(schema):
        prototype = schema
        schema = schema._schema()

    _schemas.validate_schema(schema, leaf_types=set(converters))

    options = _make_options(converters, functions, global_variables, filters, strict_env)

    if options.filters:
        engine = ExpressionEngine(options.filters)
    else:
        engine = default_engine()

    body = parse(source, filename, engine)
    entities = build_catalog(body, schema)
    graph = build_dependency_graph(entities)
    order = topological_sort([entity.key for entity in entities], graph)
    logger.debug("Resolution order: %s", ", ".join(order))

    context = EvaluationContext(options.global_variables, options.functions)
    resolver = _Resolver(schema, context, options)
    resolver.publish_defaults(entities)

    entities_by_key = {entity.key: entity for entity in entities}
    for key in order:
        resolver.resolve(entities_by_key[key])

    result = resolver.finish()

    if prototype is not None:
        return prototype._from_dict(result)
    return result


def load_file(
    path: Union[str, os.PathLike],
    schema: Union[_types.Schema, type[Prototype]],
    **kwargs,
) -> Any:
    """Read a document from a file and load it.

    The file's path is used as the filename in error messages. Keyword arguments are
    passed to :func:`load`.

    """
    with open(path, "rb") as fileobj:
        source = fileobj.read()

    return load(source, os.fspath(path), schema, **kwargs)
