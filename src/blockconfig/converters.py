"""Provides the built-in converters.

A converter is a function that accepts an evaluated value and returns it in the type
that the schema asks for. Converters also act as type validators: a value that cannot
be represented in the requested type raises a :class:`ConversionError`, which is
reported as a diagnostic naming the attribute.

"""

from typing import Any
import ast
import functools
import operator as op

from . import exceptions
from . import values as _values

# the AST code in this module is based on:
# https://stackoverflow.com/questions/2371436/evaluating-a-mathematical-expression-in-a-string

# arithmetic ===========================================================================


def arithmetic(type_):
    """A factory that creates a numeric converter.

    Numbers are passed through. Strings are parsed as arithmetic expressions, so that
    both ``"5432"`` and ``"(7 + 3) / 5"`` are accepted.

    If the integer converter is given a float value, it will raise a
    :class:`ConversionError` unless that float represents an integer. This is to avoid
    possible unexpected loss of precision. If the float converter is given an integer
    value, it will convert it to a float, since there are no ambiguities there.

    Example
    -------

    >>> from blockconfig.converters import arithmetic
    >>> converter = arithmetic(int)
    >>> converter('(7 + 3) / 5')
    2
    >>> converter(42)
    42

    """

    def _eval(node):
        operators = {
            ast.Add: op.add,
            ast.Sub: op.sub,
            ast.Mult: op.mul,
            ast.Div: op.truediv,
            ast.Pow: op.pow,
            ast.USub: op.neg,
        }

        if isinstance(node, ast.Constant):  # <number>
            if not isinstance(node.value, (int, float)) or isinstance(node.value, bool):
                raise TypeError(node)
            return node.value
        elif type(node.op) not in operators:
            raise TypeError(node)

        if isinstance(node, ast.BinOp):  # <left> <operator> <right>
            return operators[type(node.op)](_eval(node.left), _eval(node.right))
        elif isinstance(node, ast.UnaryOp):  # <operator> <operand> e.g., -1
            return operators[type(node.op)](_eval(node.operand))

        raise TypeError(node)

    def converter(value: Any):
        if isinstance(value, bool):
            raise exceptions.ConversionError(
                f"Cannot convert bool to {type_.__name__}."
            )

        if isinstance(value, type_):
            return value

        if type_ is float and isinstance(value, int):
            return float(value)

        if type_ is int and isinstance(value, float):
            if value.is_integer():
                return int(value)
            raise exceptions.ConversionError(
                f"Cannot implicitly convert float {value} into integer."
            )

        if not isinstance(value, str):
            kind = _values.kind_of(value).value
            raise exceptions.ConversionError(
                f"Cannot convert {kind} to {type_.__name__}."
            )

        try:
            number = _eval(ast.parse(value.strip(), mode="eval").body)
        except Exception:
            raise exceptions.ConversionError(
                f"Cannot parse into {type_.__name__}: '{value}'."
            )

        if type_ is int and isinstance(number, float) and not number.is_integer():
            raise exceptions.ConversionError(
                f"Cannot implicitly convert '{value}' into integer."
            )
        return type_(number)

    return converter


# logical ==============================================================================


def logic(value: Any) -> bool:
    """Converts booleans and boolean logic expressions.

    If the converter is given a boolean value, it leaves it alone. The strings "true"
    and "false" are accepted in any case, and other strings are parsed as boolean
    expressions. Any other type raises a :class:`ConversionError`.

    Example
    -------

    >>> from blockconfig.converters import logic
    >>> logic('True and (False or True)')
    True
    >>> logic('false')
    False

    """
    if isinstance(value, bool):
        return value

    if not isinstance(value, str):
        kind = _values.kind_of(value).value
        raise exceptions.ConversionError(f"Cannot convert {kind} to bool.")

    if value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"

    def _eval(node):
        operators = {ast.Or: op.or_, ast.And: op.and_, ast.Not: op.not_}

        if isinstance(node, ast.Constant):
            return node.value
        elif isinstance(node, ast.Name) and node.id.lower() in ("true", "false"):
            return node.id.lower() == "true"
        elif not hasattr(node, "op") or type(node.op) not in operators:
            raise exceptions.ConversionError(
                f"Cannot parse: '{value}'. Unknown operator."
            )

        if isinstance(node, ast.UnaryOp):
            return operators[type(node.op)](_eval(node.operand))
        elif isinstance(node, ast.BoolOp):
            operands = [_eval(v) for v in node.values]
            return functools.reduce(operators[type(node.op)], operands)

    try:
        return bool(_eval(ast.parse(value, mode="eval").body))
    except Exception:
        raise exceptions.ConversionError(f"Cannot parse into bool: '{value}'.")


# text =================================================================================


def text(value: Any) -> str:
    """Converts strings, numbers and booleans into a string.

    Numbers and booleans are written the way they would be written in a document, so
    ``True`` becomes ``"true"``. Null, lists and objects raise a
    :class:`ConversionError`.

    >>> from blockconfig.converters import text
    >>> text(5432)
    '5432'

    """
    try:
        return _values.to_template_string(value)
    except exceptions.ConversionError:
        kind = _values.kind_of(value).value
        raise exceptions.ConversionError(f"Cannot convert {kind} to string.")


# any ==================================================================================


def anything(value: Any) -> Any:
    """Accepts any value, returning it as plain Python data."""
    return _values.to_native(value)
