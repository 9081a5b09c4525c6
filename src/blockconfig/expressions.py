"""The expression engine.

Expressions appear on the right-hand side of attributes, inside ``${...}``
interpolations of template strings, and as elements of list and object literals.
Literals, templates, lists and objects are represented directly by the classes in this
module; everything else -- references like ``database.host``, function calls like
``env("HOME")``, arithmetic, filters -- is delegated to Jinja2.

Every expression can do two things:

    1. Report the free variable references it contains, as :class:`types.Traversal`
       objects. These are found by walking the Jinja2 syntax tree, so they are known
       before anything is evaluated.
    2. Evaluate itself against an :class:`EvaluationContext`.

"""

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple
import abc

import jinja2
from jinja2 import nodes
from jinja2.parser import Parser

from . import values as _values
from .exceptions import (
    ConversionError,
    DiagnosticsError,
    MissingEnvironmentVariableError,
    ParseError,
)
from .types import Diagnostic, Position, Step, Traversal


# the engine ===========================================================================


class ExpressionEngine(jinja2.Environment):
    """The Jinja2 environment used to compile and evaluate expressions.

    Undefined references raise errors. Attribute access on mappings looks up the
    mapping's keys rather than its methods, so that ``cfg.items`` reads a field named
    ``items`` instead of returning the bound method.

    Parameters
    ----------
    filters : Optional[Mapping[str, Callable]]
        Extra filters to make available, in addition to Jinja2's builtins.

    """

    def __init__(self, filters=None):
        super().__init__(
            variable_start_string="${",
            variable_end_string="}",
            undefined=jinja2.StrictUndefined,
        )
        if filters:
            self.filters.update(filters)

    def getattr(self, obj, attribute):
        if isinstance(obj, Mapping):
            try:
                return obj[attribute]
            except KeyError:
                return self.undefined(
                    hint=f"Object has no attribute '{attribute}'",
                    obj=obj,
                    name=attribute,
                )
        return super().getattr(obj, attribute)


# the default engine, used when no custom filters are requested
_DEFAULT_ENGINE = ExpressionEngine()


def default_engine() -> ExpressionEngine:
    return _DEFAULT_ENGINE


# expression classes ===================================================================


class Expression(abc.ABC):
    """Abstract base class for expressions.

    Attributes
    ----------
    position : Position
        Where the expression starts in the source document.

    """

    def __init__(self, position: Position):
        self.position = position

    @abc.abstractmethod
    def variables(self) -> List[Traversal]:
        """The free variable references in the expression, in source order."""

    @abc.abstractmethod
    def evaluate(self, context) -> Any:
        """Evaluate the expression against an :class:`EvaluationContext`.

        Raises
        ------
        DiagnosticsError
            If evaluation fails.

        """


class Literal(Expression):
    """A constant: a number, a bool, null, or a string without interpolations."""

    def __init__(self, value: Any, position: Position):
        super().__init__(position)
        self.value = value

    def variables(self) -> List[Traversal]:
        return []

    def evaluate(self, context) -> Any:
        return self.value

    def __repr__(self):
        return f"Literal({self.value!r})"


class JinjaExpression(Expression):
    """An expression compiled and evaluated by Jinja2.

    The source is parsed when the object is created. Syntax errors are raised as
    :class:`ParseError` located at the expression.

    Template strings such as ``"${a}-${b}"`` have no Jinja2 equivalent, so the parser
    replaces each of them in the source with a placeholder name and passes the
    templates in ``templates``, keyed by placeholder. A placeholder is bound to the
    value of its template before the expression is evaluated, and reports the
    template's references as its own. ``text`` is the expression as written in the
    document, used in error messages; it defaults to ``source``.

    """

    def __init__(
        self,
        source: str,
        position: Position,
        engine: Optional[ExpressionEngine] = None,
        templates: Optional[Dict[str, Expression]] = None,
        text: Optional[str] = None,
    ):
        super().__init__(position)
        self.source = source if text is None else text
        self.templates = dict(templates or {})
        engine = default_engine() if engine is None else engine

        try:
            parser = Parser(engine, source, state="variable")
            self._node = parser.parse_expression()
            if not parser.stream.eos:
                raise jinja2.TemplateSyntaxError(
                    f"Unexpected '{parser.stream.current.value}' after expression.",
                    parser.stream.current.lineno,
                )
            self._compiled = engine.compile_expression(source, undefined_to_none=False)
        except jinja2.TemplateSyntaxError as exc:
            raise ParseError(
                f"Invalid expression '{self.source}': {exc.message}",
                _offset(position, exc.lineno),
            ) from exc

    def variables(self) -> List[Traversal]:
        found: List[Traversal] = []
        _collect_traversals(self._node, found)

        result = []
        for traversal in found:
            if traversal.root in self.templates:
                result.extend(self.templates[traversal.root].variables())
            else:
                result.append(traversal)
        return result

    def evaluate(self, context) -> Any:
        bindings = context.bindings()
        for name, template in self.templates.items():
            bindings[name] = template.evaluate(context)

        try:
            result = self._compiled(**bindings)
            _ensure_defined(result)
        except jinja2.UndefinedError as exc:
            message = str(exc)
            if message.endswith("is undefined"):
                summary = "Unknown variable"
            else:
                summary = "Unsupported attribute"
            raise _failure(summary, message, self.position)
        except MissingEnvironmentVariableError as exc:
            if exc.position is not None:
                raise
            raise MissingEnvironmentVariableError(exc.name, self.position) from None
        except (
            jinja2.TemplateError,
            ArithmeticError,
            LookupError,
            TypeError,
            ValueError,
        ) as exc:
            raise _failure(
                "Error in expression", f"{self.source}: {exc}", self.position
            )

        try:
            return _values.to_value(result)
        except ConversionError as exc:
            raise _failure("Unsupported value", str(exc), self.position)

    def __repr__(self):
        return f"JinjaExpression({self.source!r})"


class Template(Expression):
    """A string with interpolations, such as ``"postgres://${database.host}/db"``.

    ``parts`` is a list of literal strings and expressions. A template made of a single
    interpolation and nothing else evaluates to the interpolated value itself, without
    converting it into a string.

    """

    def __init__(self, parts: List[Any], position: Position):
        super().__init__(position)
        self.parts = parts

    def variables(self) -> List[Traversal]:
        found = []
        for part in self.parts:
            if isinstance(part, Expression):
                found.extend(part.variables())
        return found

    def evaluate(self, context) -> Any:
        if len(self.parts) == 1 and isinstance(self.parts[0], Expression):
            return self.parts[0].evaluate(context)

        pieces = []
        for part in self.parts:
            if isinstance(part, Expression):
                value = part.evaluate(context)
                try:
                    pieces.append(_values.to_template_string(value))
                except ConversionError as exc:
                    raise _failure(
                        "Invalid template interpolation value", str(exc), part.position
                    )
            else:
                pieces.append(part)
        return "".join(pieces)

    def __repr__(self):
        return f"Template({self.parts!r})"


class ListExpression(Expression):
    """A list literal, such as ``["web", network.name]``."""

    def __init__(self, items: List[Expression], position: Position):
        super().__init__(position)
        self.items = items

    def variables(self) -> List[Traversal]:
        found = []
        for item in self.items:
            found.extend(item.variables())
        return found

    def evaluate(self, context) -> Any:
        return tuple(item.evaluate(context) for item in self.items)


class ObjectExpression(Expression):
    """An object literal, such as ``{ user = "admin", port = 5432 }``."""

    def __init__(self, items: List[Tuple[str, Expression]], position: Position):
        super().__init__(position)
        self.items = items

    def variables(self) -> List[Traversal]:
        found = []
        for _, item in self.items:
            found.extend(item.variables())
        return found

    def evaluate(self, context) -> Any:
        return _values.ObjectValue(
            {key: item.evaluate(context) for key, item in self.items}
        )


# helpers ==============================================================================


def _offset(position: Position, lineno: Optional[int]) -> Position:
    """Translate a line number within an expression into a document position."""
    if not lineno or lineno == 1:
        return position
    return Position(position.filename, position.line + lineno - 1, 1)


def _failure(summary: str, detail: str, position: Position) -> DiagnosticsError:
    return DiagnosticsError([Diagnostic(summary, detail, position)])


def _ensure_defined(value: Any):
    """Raise an UndefinedError if an undefined value hides in the result.

    StrictUndefined raises as soon as it is used, but a bare reference like ``${foo}``
    evaluates to the undefined object itself without using it.

    """
    if isinstance(value, jinja2.Undefined):
        value._fail_with_undefined_error()
    elif isinstance(value, Mapping):
        for item in value.values():
            _ensure_defined(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _ensure_defined(item)


def _traversal_of(node: nodes.Node) -> Optional[Traversal]:
    """Turn a chain of attribute/item accesses over a name into a Traversal.

    Returns None if the chain does not start at a plain name, e.g. ``env("X").upper``.

    """
    steps = []
    while isinstance(node, (nodes.Getattr, nodes.Getitem)):
        if isinstance(node, nodes.Getattr):
            steps.append(Step(node.attr))
        elif isinstance(node.arg, nodes.Const):
            steps.append(Step(node.arg.value, computed=True))
        else:
            steps.append(Step(None, computed=True))
        node = node.node

    if isinstance(node, nodes.Name) and node.ctx == "load":
        return Traversal(node.name, tuple(reversed(steps)))
    return None


def _index_arguments(node: nodes.Node) -> Iterable[nodes.Node]:
    """The non-constant index expressions in a chain of attribute/item accesses."""
    while isinstance(node, (nodes.Getattr, nodes.Getitem)):
        if isinstance(node, nodes.Getitem) and not isinstance(node.arg, nodes.Const):
            yield node.arg
        node = node.node


def _collect_traversals(node: nodes.Node, found: List[Traversal]):
    """Recursively collect the free variable references below a Jinja2 node."""
    if isinstance(node, (nodes.Getattr, nodes.Getitem)):
        traversal = _traversal_of(node)
        if traversal is not None:
            found.append(traversal)
            for argument in _index_arguments(node):
                _collect_traversals(argument, found)
            return

    elif isinstance(node, nodes.Name):
        if node.ctx == "load":
            found.append(Traversal(node.name))
        return

    elif isinstance(node, nodes.Call) and isinstance(node.node, nodes.Name):
        # function names are not variable references
        for child in node.iter_child_nodes(exclude=("node",)):
            _collect_traversals(child, found)
        return

    for child in node.iter_child_nodes():
        _collect_traversals(child, found)
