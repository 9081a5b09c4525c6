"""Types and type aliases."""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
import dataclasses
import enum

# configuration type aliases ===========================================================

# the decoded output of a load is built out of these: plain dictionaries, lists, and
# simple values

# as of Feb. 2025, using the "type" keyword in the type alias causes the type
# checker to throw a fit, so we'll use the old way for now

ConfigurationValue = Union[str, int, float, bool, None]
ConfigurationContainer = Union["ConfigurationDict", "ConfigurationList"]
ConfigurationList = List[Union[ConfigurationContainer, ConfigurationValue]]
ConfigurationDict = Dict[str, Union[ConfigurationContainer, ConfigurationValue]]

# source locations =====================================================================


@dataclasses.dataclass(frozen=True)
class Position:
    """A location in a source document. Lines and columns start at 1."""

    filename: str
    line: int
    column: int

    def __str__(self):
        return f"{self.filename}:{self.line}:{self.column}"


@dataclasses.dataclass(frozen=True)
class Diagnostic:
    """A single problem found while decoding or evaluating a document.

    Attributes
    ----------
    summary : str
        A short description, e.g. "Unknown variable".
    detail : str
        A human-readable explanation.
    position : Optional[Position]
        Where the problem is, if known.
    context : Optional[str]
        For problems inside a block, a description of the enclosing block, e.g.
        ``service "api" block defined at app.hcl:3:1``.

    """

    summary: str
    detail: str = ""
    position: Optional[Position] = None
    context: Optional[str] = None

    def __str__(self):
        message = self.summary
        if self.detail:
            message = f"{message}; {self.detail}"
        if self.position is not None:
            message = f"{self.position}: {message}"
        if self.context is not None:
            message = f"{message} (in {self.context})"
        return message


# references ===========================================================================


@dataclasses.dataclass(frozen=True)
class Step:
    """One step of a traversal after its root name.

    ``computed`` is True for index access (``a["b"]``, ``a[0]``, ``a[x]``) and False
    for plain field access (``a.b``). The key of a non-constant index is None.

    """

    key: Any
    computed: bool = False


@dataclasses.dataclass(frozen=True)
class Traversal:
    """A free variable reference found in an expression, such as ``service.api.port``."""

    root: str
    steps: Tuple[Step, ...] = ()

    def __str__(self):
        parts = [self.root]
        for step in self.steps:
            if not step.computed:
                parts.append(f".{step.key}")
            elif step.key is None:
                parts.append("[...]")
            else:
                parts.append(f"[{step.key!r}]")
        return "".join(parts)


# entities =============================================================================


class EntityKind(enum.Enum):
    """The kinds of entities that take part in dependency ordering."""

    TYPED_BLOCK = "typed block"
    LABELED_BLOCK = "labeled block"
    ATTRIBUTE = "attribute"
    VARIABLE = "variable"


# misc. type aliases ===================================================================

# a schema is a dictionary that describes the expected shape of a document
type Schema = Mapping[str, Any]

# a keypath is a tuple of strings that represents a path through a schema or a
# decoded configuration, e.g. ("service", "api", "port")
type KeyPath = Tuple[str, ...]

# the dependency graph maps an entity key to the keys it depends on
type DependencyGraph = Dict[str, set[str]]


@dataclasses.dataclass
class LoadOptions:
    """Holds the settings that control a single load.

    Attributes
    ----------
    converters : Mapping[str, Callable]
        Converters for the leaf value types named in the schema.
    functions : Mapping[str, Callable]
        Functions that can be called from expressions.
    global_variables : Mapping[str, Any]
        Extra bindings available to every expression.
    filters : Mapping[str, Callable]
        Jinja2 filters available to every expression.
    strict_env : bool
        If True, ``env()`` fails when asked for an unset environment variable
        without a fallback. Otherwise it returns an empty string.

    """

    converters: Mapping[str, Callable]
    functions: Mapping[str, Callable]
    global_variables: Mapping[str, Any]
    filters: Mapping[str, Callable]
    strict_env: bool = False
