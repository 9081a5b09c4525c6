"""Provides the exceptions used by blockconfig."""

# exceptions ===========================================================================


class Error(Exception):
    """A general error."""


class InvalidSchemaError(Error):
    """An error while validating a blockconfig schema."""

    def __init__(self, reason, keypath):
        self.reason = reason
        self.keypath = keypath

    def __str__(self):
        dotted = _join_dotted(self.keypath)
        return f'Invalid schema at keypath: "{dotted}". {self.reason}'


class ParseError(Error):
    """The document is syntactically malformed."""

    def __init__(self, message, position):
        self.message = message
        self.position = position

    def __str__(self):
        return f"{self.position}: {self.message}"


class ConversionError(Error):
    """Could not convert a value into the type the schema asks for."""


class DiagnosticsError(Error):
    """One or more problems found while decoding or evaluating the document.

    Attributes
    ----------
    diagnostics : list[Diagnostic]
        The problems, in the order they were found.

    """

    def __init__(self, diagnostics):
        self.diagnostics = list(diagnostics)

    def __str__(self):
        return "\n".join(str(d) for d in self.diagnostics)


class CycleError(Error):
    """The entities of the document reference each other in a circle.

    ``cycle`` is the closed path of entity keys, e.g. ``["a", "b", "a"]``.

    """

    def __init__(self, cycle):
        self.cycle = list(cycle)

    def __str__(self):
        return f"Circular dependency detected: {' -> '.join(self.cycle)}"


class MissingFieldError(Error):
    """A declaration lacks a field it must have, such as a variable's default."""

    def __init__(self, field, name, position=None):
        self.field = field
        self.name = name
        self.position = position

    def __str__(self):
        message = f'Missing required "{self.field}" attribute in {self.name}.'
        if self.position is not None:
            return f"{self.position.filename}:{self.position.line}: {message}"
        return message


class MissingEnvironmentVariableError(Error):
    """An environment variable was requested in strict mode but is not set."""

    def __init__(self, name, position=None):
        self.name = name
        self.position = position

    def __str__(self):
        message = f'Environment variable "{self.name}" is not set.'
        if self.position is not None:
            return f"{self.position}: {message}"
        return message


# helpers ==============================================================================


def _join_dotted(keypath):
    """Joins a keypath into a dotted string.

    If it is already a string, it is returned as-is.
    """
    if isinstance(keypath, str):
        return keypath
    else:
        return ".".join(str(x) for x in keypath)
