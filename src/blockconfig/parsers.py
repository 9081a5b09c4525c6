"""Provides parse(), which turns the text of a document into a syntax tree.

A document is a *body*: a sequence of attributes and blocks, one per line.

.. code::

    # a comment
    group = "web"

    database {
        host = "localhost"
        port = 5432
    }

    service "api" {
        url = "http://${database.host}:8080"
    }

Attributes assign an expression to a name. Blocks have a type, zero or more labels,
and a body of their own, which may contain nested blocks. Expressions are one of:

- a quoted template string, possibly with ``${...}`` interpolations,
- a heredoc (``<<EOF`` ... ``EOF``, or ``<<-EOF`` to strip indentation),
- a number, ``true``, ``false`` or ``null``,
- a list literal ``[a, b]`` or an object literal ``{ key = value }``,
- anything else, which is handed to Jinja2 as an expression. A literal followed by
  an operator or a filter, such as ``"a" ~ b``, is also handed to Jinja2.

Comments start with ``#``, ``//`` or ``/*``. Inside an expression ``//`` is Jinja2's
floor division, so a comment after an expression must use ``#`` or ``/* */``. Names
contain letters, digits and underscores. Labels with other characters are quoted, and
are referenced by index, as in ``service["my-api"].port``.

"""

from typing import Dict, List, Optional, Union
import bisect
import dataclasses
import re

from .exceptions import DiagnosticsError, ParseError
from .expressions import (
    Expression,
    ExpressionEngine,
    JinjaExpression,
    ListExpression,
    Literal,
    ObjectExpression,
    Template,
)
from .types import Diagnostic, Position

# syntax tree ==========================================================================


@dataclasses.dataclass
class Attribute:
    """An attribute definition, ``name = expression``."""

    name: str
    expression: Expression
    position: Position


@dataclasses.dataclass
class Block:
    """A block, ``type "label" { ... }``."""

    type: str
    labels: List[str]
    body: "Body"
    position: Position

    @property
    def label(self) -> Optional[str]:
        return self.labels[0] if self.labels else None

    def describe(self) -> str:
        """Describe the block for error messages, e.g. ``service "api" block``."""
        labels = "".join(f' "{label}"' for label in self.labels)
        return f"{self.type}{labels} block defined at {self.position}"


@dataclasses.dataclass
class Body:
    """The contents of a document or a block.

    Attributes
    ----------
    items : List[Union[Attribute, Block]]
        The attributes and blocks in the order they appear.

    """

    items: List[Union[Attribute, Block]] = dataclasses.field(default_factory=list)

    @property
    def attributes(self) -> Dict[str, Attribute]:
        return {x.name: x for x in self.items if isinstance(x, Attribute)}

    @property
    def blocks(self) -> List[Block]:
        return [x for x in self.items if isinstance(x, Block)]


# parser ===============================================================================

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER = re.compile(r"-?[0-9]+(\.[0-9]+)?([eE][+-]?[0-9]+)?")
_KEYWORDS = {"true": True, "false": False, "null": None}
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}
_OPENERS = {"(": ")", "[": "]", "{": "}"}

# quoted strings, and attribute steps that contain a hyphen, such as ".my-api"
_QUOTED = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"")
_HYPHENATED_STEP = re.compile(r"\.\s*([A-Za-z_]\w*(?:-[A-Za-z_]\w*)+)")
_HYPHENATED_NAME = re.compile(r"[A-Za-z_][\w-]*")


class _DocumentParser:
    """A recursive descent parser over the characters of a document."""

    def __init__(self, source: str, filename: str, engine: Optional[ExpressionEngine]):
        self.source = source
        self.filename = filename
        self.engine = engine
        self.pos = 0
        self.diagnostics: List[Diagnostic] = []

        self._line_starts = [0]
        for i, char in enumerate(source):
            if char == "\n":
                self._line_starts.append(i + 1)

    # low-level helpers ----------------------------------------------------------------

    def position(self, offset: Optional[int] = None) -> Position:
        if offset is None:
            offset = self.pos
        line = bisect.bisect_right(self._line_starts, offset)
        column = offset - self._line_starts[line - 1] + 1
        return Position(self.filename, line, column)

    def error(self, message: str, offset: Optional[int] = None) -> ParseError:
        return ParseError(message, self.position(offset))

    def peek(self, n: int = 1) -> str:
        return self.source[self.pos : self.pos + n]

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def skip_inline_space(self):
        """Skip spaces, tabs and comments, but not newlines."""
        while not self.at_end():
            char = self.peek()
            if char in " \t":
                self.pos += 1
            elif char == "#" or self.peek(2) == "//":
                while not self.at_end() and self.peek() != "\n":
                    self.pos += 1
            elif self.peek(2) == "/*":
                end = self.source.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("Unterminated comment.")
                self.pos = end + 2
            else:
                break

    def skip_space(self):
        """Skip whitespace, newlines and comments."""
        while True:
            self.skip_inline_space()
            if self.peek() == "\n":
                self.pos += 1
            else:
                break

    def identifier(self) -> Optional[str]:
        match = _IDENTIFIER.match(self.source, self.pos)
        if match is None:
            return None
        if self.source.startswith("-", match.end()) and _IDENTIFIER.match(
            self.source, match.end() + 1
        ):
            name = _HYPHENATED_NAME.match(self.source, self.pos).group()
            raise self.error(
                f'Invalid name "{name}": names cannot contain "-". Use "_" instead, '
                "or quote the label.",
            )
        self.pos = match.end()
        return match.group()

    def expect_line_end(self, closer: Optional[str]):
        self.skip_inline_space()
        if self.at_end() or self.peek() == "\n":
            return
        if closer is not None and self.peek() == closer:
            return
        raise self.error(f"Unexpected '{self.peek()}'; expected a newline.")

    # bodies ---------------------------------------------------------------------------

    def body(self, closer: Optional[str] = None) -> Body:
        body = Body()
        seen: Dict[str, Attribute] = {}

        while True:
            self.skip_space()
            if self.at_end():
                if closer is not None:
                    raise self.error(f"Missing '{closer}' at end of block.")
                return body
            if closer is not None and self.peek() == closer:
                return body

            start = self.pos
            name = self.identifier()
            if name is None:
                raise self.error(
                    f"Unexpected '{self.peek()}'; expected an attribute or block."
                )

            self.skip_inline_space()
            if self.peek() == "=" and self.peek(2) != "==":
                self.pos += 1
                expression = self.expression(terminators=closer or "")
                attribute = Attribute(name, expression, self.position(start))
                if name in seen:
                    self.diagnostics.append(
                        Diagnostic(
                            "Attribute redefined",
                            f'The argument "{name}" was already set at '
                            f"{seen[name].position}.",
                            attribute.position,
                        )
                    )
                else:
                    seen[name] = attribute
                    body.items.append(attribute)
            else:
                body.items.append(self.block(name, start))

            self.expect_line_end(closer)

    def block(self, type_name: str, start: int) -> Block:
        labels = []
        while True:
            self.skip_inline_space()
            if self.peek() == '"':
                label = self.string_literal()
            elif self.peek() == "{":
                break
            else:
                label = self.identifier()
                if label is None:
                    raise self.error(
                        f"Unexpected '{self.peek()}'; expected a block label or '{{'."
                    )
            labels.append(label)

        self.pos += 1
        body = self.body(closer="}")
        self.pos += 1
        return Block(type_name, labels, body, self.position(start))

    # expressions ----------------------------------------------------------------------

    def expression(self, terminators: str = "") -> Expression:
        """Parse an expression ending at a newline, a terminator or a comment.

        A quoted string, a list literal or an object literal that makes up the whole
        expression is parsed here. Anything else, including a literal followed by an
        operator or a filter, is handed to Jinja2.

        """
        self.skip_inline_space()
        start = self.pos

        if self.at_end() or self.peek() == "\n":
            raise self.error("Expected an expression.")
        if self.peek(2) == "<<":
            # the heredoc ends with its closing line
            return self.heredoc()

        text = self.source[start : self.expression_end(terminators)].rstrip()
        if not text:
            raise self.error("Expected an expression.", start)
        end = start + len(text)
        position = self.position(start)

        if text in _KEYWORDS:
            expression = Literal(_KEYWORDS[text], position)
        elif _NUMBER.fullmatch(text):
            number = float(text) if any(c in text for c in ".eE") else int(text)
            expression = Literal(number, position)
        elif text[0] in '"[{' and self.group_end(start) == end:
            expression = self.literal(start)
        else:
            expression = self.jinja_expression(start, end)

        self.pos = end
        return expression

    def expression_end(self, terminators: str) -> int:
        """Find where the expression starting at the current offset ends."""
        i = self.pos
        while i < len(self.source):
            char = self.source[i]
            if char == "\n" or char in terminators:
                break
            if char == "#" or self.source.startswith("/*", i):
                break
            if self.source.startswith("//", i) and self.starts_comment(i):
                break
            if char in "\"'" or char in _OPENERS:
                i = self.group_end(i)
            elif char in ")]}":
                raise self.error(f"Unexpected '{char}'.", i)
            else:
                i += 1
        return i

    def starts_comment(self, i: int) -> bool:
        """Whether the ``//`` at ``i`` begins a comment.

        Inside an expression ``//`` is Jinja2's floor division. It begins a comment only
        where no operand can precede it: at the start of a line, or after an opening
        bracket, a comma or an equals sign.

        """
        j = i - 1
        while j >= 0 and self.source[j] in " \t":
            j -= 1
        return j < 0 or self.source[j] in "\n,=([{"

    def group_end(self, start: int) -> int:
        """The offset just past the quoted string or bracketed group at ``start``."""
        char = self.source[start]
        if char == '"':
            return self.template_end(start)
        if char == "'":
            return self.quoted_end(start)

        closers = [_OPENERS[char]]
        i = start + 1
        while closers:
            if i >= len(self.source):
                raise self.error(f"Missing '{closers[-1]}' in expression.", start)
            char = self.source[i]
            if char == "#" or (
                self.source.startswith("//", i) and self.starts_comment(i)
            ):
                end = self.source.find("\n", i)
                i = len(self.source) if end == -1 else end
            elif self.source.startswith("/*", i):
                end = self.source.find("*/", i + 2)
                if end == -1:
                    raise self.error("Unterminated comment.", i)
                i = end + 2
            elif char in "\"'":
                i = self.group_end(i)
            else:
                if char in _OPENERS:
                    closers.append(_OPENERS[char])
                elif char == closers[-1]:
                    closers.pop()
                elif char in ")]}":
                    raise self.error(f"Unexpected '{char}'.", i)
                i += 1
        return i

    def template_end(self, start: int) -> int:
        """The offset just past the template string starting at ``start``."""
        i = start + 1
        while i < len(self.source) and self.source[i] != "\n":
            char = self.source[i]
            if char == '"':
                return i + 1
            if char == "\\":
                i += 2
            elif self.source.startswith("$${", i):
                i += 3
            elif self.source.startswith("${", i):
                end = _find_interpolation_end(self.source, i + 2)
                if end == -1:
                    raise self.error("Unterminated interpolation.", i)
                i = end + 1
            else:
                i += 1
        raise self.error("Unterminated string.", start)

    def quoted_end(self, start: int) -> int:
        """The offset just past the single-quoted Jinja2 string at ``start``."""
        i = start + 1
        while i < len(self.source) and self.source[i] != "\n":
            if self.source[i] == "\\":
                i += 2
            elif self.source[i] == "'":
                return i + 1
            else:
                i += 1
        raise self.error("Unterminated string.", start)

    def literal(self, start: int) -> Expression:
        self.pos = start
        char = self.peek()
        if char == '"':
            return self.template_string()
        elif char == "[":
            return self.list_literal()
        else:
            return self.object_literal()

    def jinja_expression(self, start: int, end: int) -> Expression:
        """Hand the source between two offsets to Jinja2.

        Two literals in a row are an error rather than Jinja2's implicit string
        concatenation. Template strings are replaced by placeholders.

        """
        if self.source[start] in "\"'[{":
            after = self.group_end(start)
            following = self.source[after:end].lstrip(" \t")
            if following[:1] in ("\"", "'"):
                raise self.error(
                    f"Unexpected '{following[0]}' after expression starting at "
                    f"{self.position(start)}.",
                    end - len(following),
                )

        pieces = []
        templates: Dict[str, Expression] = {}
        i = start
        while i < end:
            char = self.source[i]
            if char == '"':
                j = self.template_end(i)
                if "${" in self.source[i:j]:
                    self.pos = i
                    name = f"__template_{len(templates)}__"
                    templates[name] = self.template_string()
                    pieces.append(name)
                else:
                    pieces.append(self.source[i:j])
                i = j
            elif char == "'":
                j = self.quoted_end(i)
                pieces.append(self.source[i:j])
                i = j
            else:
                pieces.append(char)
                i += 1

        return self.make_jinja(
            "".join(pieces),
            self.position(start),
            templates=templates,
            text=self.source[start:end],
        )

    def make_jinja(
        self,
        source: str,
        position: Position,
        templates: Optional[Dict[str, Expression]] = None,
        text: Optional[str] = None,
    ) -> JinjaExpression:
        """Compile a Jinja2 expression, rejecting hyphenated attribute names."""
        match = _HYPHENATED_STEP.search(_QUOTED.sub('""', source))
        if match is not None:
            name = match.group(1)
            raise ParseError(
                f'"{name}" cannot be used as an attribute name in an expression. '
                f'Write it as an index, ["{name}"], or put spaces around "-" to '
                "subtract.",
                position,
            )
        return JinjaExpression(source, position, self.engine, templates, text)

    def string_literal(self) -> str:
        """Parse a quoted string that may not contain interpolations."""
        start = self.pos
        expression = self.template_string()
        if not isinstance(expression, Literal):
            raise self.error("Interpolations are not allowed here.", start)
        return expression.value

    def template_string(self) -> Expression:
        start = self.pos
        self.pos += 1
        parts: List[Union[str, Expression]] = []
        buffer: List[str] = []

        while True:
            if self.at_end() or self.peek() == "\n":
                raise self.error("Unterminated string.", start)

            char = self.peek()
            if char == '"':
                self.pos += 1
                break
            elif char == "\\":
                buffer.append(self.escape_sequence())
            elif self.peek(3) == "$${":
                buffer.append("${")
                self.pos += 3
            elif self.peek(2) == "${":
                if buffer:
                    parts.append("".join(buffer))
                    buffer = []
                end = _find_interpolation_end(self.source, self.pos + 2)
                if end == -1:
                    raise self.error("Unterminated interpolation.")
                parts.append(self.interpolation(self.pos + 2, end))
                self.pos = end + 1
            else:
                buffer.append(char)
                self.pos += 1

        if buffer:
            parts.append("".join(buffer))

        position = self.position(start)
        if not any(isinstance(p, Expression) for p in parts):
            return Literal("".join(parts), position)
        return Template(parts, position)

    def escape_sequence(self) -> str:
        start = self.pos
        code = self.source[self.pos + 1 : self.pos + 2]
        if code in _ESCAPES:
            self.pos += 2
            return _ESCAPES[code]
        if code in ("u", "U"):
            width = 4 if code == "u" else 8
            digits = self.source[self.pos + 2 : self.pos + 2 + width]
            if len(digits) == width and all(
                c in "0123456789abcdefABCDEF" for c in digits
            ):
                self.pos += 2 + width
                return chr(int(digits, 16))
        raise self.error(f"Invalid escape sequence '\\{code}'.", start)

    def interpolation(self, start: int, end: int) -> Expression:
        """Make an expression from the source between ``${`` and ``}``."""
        text = self.source[start:end]
        stripped = text.lstrip()
        offset = start + len(text) - len(stripped)
        if not stripped.strip():
            raise self.error("Empty interpolation.", start)
        return self.make_jinja(stripped.strip(), self.position(offset))

    def heredoc(self) -> Expression:
        start = self.pos
        self.pos += 2
        indented = self.peek() == "-"
        if indented:
            self.pos += 1

        marker = self.identifier()
        if marker is None:
            raise self.error("Expected a heredoc marker after '<<'.")
        self.skip_inline_space()
        if self.peek() != "\n":
            raise self.error("Expected a newline after the heredoc marker.")
        self.pos += 1

        content_start = self.pos
        lines = []
        while True:
            if self.at_end():
                raise self.error(f"Unterminated heredoc; expected '{marker}'.", start)
            line_end = self.source.find("\n", self.pos)
            if line_end == -1:
                line_end = len(self.source)
            line = self.source[self.pos : line_end]
            self.pos = line_end
            if line.strip() == marker:
                break
            lines.append(line)
            self.pos += 1

        indent = 0
        if indented:
            indents = [len(x) - len(x.lstrip()) for x in lines if x.strip()]
            indent = min(indents) if indents else 0
            lines = [x[indent:] for x in lines]

        text = "".join(line + "\n" for line in lines)
        first = self.position(content_start)
        return self.template_text(text, first, indent, self.position(start))

    def template_text(
        self, text: str, first: Position, indent: int, position: Position
    ) -> Expression:
        """Split already unescaped text, such as a heredoc, into a template."""
        parts: List[Union[str, Expression]] = []
        buffer: List[str] = []
        i = 0

        def position_of(index: int) -> Position:
            line = text.count("\n", 0, index)
            column = index - (text.rfind("\n", 0, index) + 1) + indent + 1
            return Position(first.filename, first.line + line, column)

        while i < len(text):
            if text.startswith("$${", i):
                buffer.append("${")
                i += 3
            elif text.startswith("${", i):
                end = _find_interpolation_end(text, i + 2)
                if end == -1:
                    raise ParseError("Unterminated interpolation.", position_of(i))
                source = text[i + 2 : end].strip()
                if not source:
                    raise ParseError("Empty interpolation.", position_of(i))
                if buffer:
                    parts.append("".join(buffer))
                    buffer = []
                parts.append(self.make_jinja(source, position_of(i + 2)))
                i = end + 1
            else:
                buffer.append(text[i])
                i += 1

        if buffer:
            parts.append("".join(buffer))

        if not any(isinstance(p, Expression) for p in parts):
            return Literal("".join(parts), position)
        return Template(parts, position)

    def list_literal(self) -> Expression:
        start = self.pos
        self.pos += 1
        items = []

        while True:
            self.skip_space()
            if self.at_end():
                raise self.error("Missing ']' at end of list.", start)
            if self.peek() == "]":
                self.pos += 1
                break

            items.append(self.expression(terminators=",]"))
            self.skip_space()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.error(f"Unexpected '{self.peek()}'; expected ',' or ']'.")

        return ListExpression(items, self.position(start))

    def object_literal(self) -> Expression:
        start = self.pos
        self.pos += 1
        items = []
        keys = set()

        while True:
            self.skip_space()
            if self.at_end():
                raise self.error("Missing '}' at end of object.", start)
            if self.peek() == "}":
                self.pos += 1
                break

            key_start = self.pos
            if self.peek() == '"':
                key = self.string_literal()
            else:
                key = self.identifier()
                if key is None:
                    raise self.error(f"Unexpected '{self.peek()}'; expected a key.")
            if key in keys:
                raise self.error(f'Duplicate object key "{key}".', key_start)
            keys.add(key)

            self.skip_inline_space()
            if self.peek() not in ("=", ":") or self.at_end():
                raise self.error(f"Expected '=' or ':' after key \"{key}\".")
            self.pos += 1

            items.append((key, self.expression(terminators=",}")))
            self.skip_inline_space()
            if self.peek() == ",":
                self.pos += 1

        return ObjectExpression(items, self.position(start))


def _find_interpolation_end(text: str, start: int) -> int:
    """Find the ``}`` closing an interpolation whose contents begin at ``start``.

    Braces nest, and quoted strings inside the interpolation are skipped. Returns -1 if
    there is no closing brace.

    """
    depth = 0
    i = start
    while i < len(text):
        char = text[i]
        if char in "\"'":
            i += 1
            while i < len(text) and text[i] != char:
                i += 2 if text[i] == "\\" else 1
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return -1


# parse() ==============================================================================


def parse(
    source: Union[str, bytes],
    filename: str = "<string>",
    engine: Optional[ExpressionEngine] = None,
) -> Body:
    """Parse the text of a document into its top-level body.

    Parameters
    ----------
    source : Union[str, bytes]
        The document. Bytes are decoded as UTF-8.
    filename : str
        The name used in error messages.
    engine : Optional[ExpressionEngine]
        The engine used to compile expressions. Custom filters must be registered on it
        before parsing. If None, a default engine is used.

    Raises
    ------
    ParseError
        If the document is malformed.
    DiagnosticsError
        If an attribute is defined twice in the same body.

    """
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(
                f"Document is not valid UTF-8: {exc.reason}.", Position(filename, 1, 1)
            ) from exc

    source = source.removeprefix("\ufeff").replace("\r\n", "\n")

    parser = _DocumentParser(source, filename, engine)
    body = parser.body()

    if parser.diagnostics:
        raise DiagnosticsError(parser.diagnostics)

    return body
