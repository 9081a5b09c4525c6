"""Provides the evaluation environment used during a single load."""

from typing import Any, Callable, Dict, Mapping, Optional
import logging

from . import values as _values
from .exceptions import Error

logger = logging.getLogger(__name__)

# the name under which variable declarations are published
VARIABLES_NAMESPACE = "var"


class EvaluationContext:
    """The names visible to expressions, built up as entities are resolved.

    A context starts out with the caller's seed bindings and functions. Each resolved
    entity then publishes its value under its name. A published name cannot be
    published again; the only way a name grows is through :meth:`publish_member`,
    which adds a member to an object without touching the existing ones. This is how
    labeled blocks of the same type and variable declarations accumulate.

    Parameters
    ----------
    variables : Optional[Mapping[str, Any]]
        Seed bindings. They are converted with :func:`values.to_value`, and may be
        shadowed by names published from the document.
    functions : Optional[Mapping[str, Callable]]
        Functions callable from expressions.

    """

    def __init__(
        self,
        variables: Optional[Mapping[str, Any]] = None,
        functions: Optional[Mapping[str, Callable]] = None,
    ):
        self.functions: Dict[str, Callable] = dict(functions or {})
        self.variables: Dict[str, Any] = {"null": None}
        for name, value in (variables or {}).items():
            self.variables[name] = _values.to_value(value)

        # the names published from the document so far
        self._published: set[str] = set()

    def bindings(self) -> Dict[str, Any]:
        """All names visible to an expression. Variables shadow functions."""
        return {**self.functions, **self.variables}

    def publish(self, name: str, value: Any):
        """Publish a value under a name.

        Raises
        ------
        Error
            If the name has already been published from the document.

        """
        if name in self._published:
            raise Error(f'The name "{name}" has already been published.')

        logger.debug("Publishing %s", name)
        self.variables[name] = _values.to_value(value)
        self._published.add(name)

    def publish_member(self, name: str, member: str, value: Any):
        """Add a member to the object published under a name.

        If nothing has been published under the name yet, a new object is started.
        Members published earlier are kept as they are.

        Raises
        ------
        Error
            If the member already exists, or if the name holds something other than an
            object.

        """
        if name in self._published:
            current = self.variables[name]
            if not isinstance(current, _values.ObjectValue):
                raise Error(f'The name "{name}" does not hold an object.')
        else:
            current = _values.ObjectValue()

        if member in current:
            raise Error(f'The name "{name}.{member}" has already been published.')

        logger.debug("Publishing %s.%s", name, member)
        self.variables[name] = current.with_member(member, _values.to_value(value))
        self._published.add(name)

    def publish_variable(self, label: str, value: Any):
        """Add a variable declaration's value to the cumulative ``var`` namespace."""
        self.publish_member(VARIABLES_NAMESPACE, label, value)
