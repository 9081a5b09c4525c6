from . import exceptions
from . import functions
from . import converters
from . import types
from . import values
from ._resolve import load, load_file, DEFAULT_FUNCTIONS, DEFAULT_CONVERTERS
from ._schemas import validate_schema
from ._prototypes import Prototype, Label, NotRequired, is_prototype_class
from .parsers import parse

__all__ = [
    "exceptions",
    "converters",
    "functions",
    "types",
    "values",
    "load",
    "load_file",
    "parse",
    "validate_schema",
    "DEFAULT_FUNCTIONS",
    "DEFAULT_CONVERTERS",
    "Prototype",
    "Label",
    "NotRequired",
    "is_prototype_class",
]
