"""Provides built-in functions that can be called within expressions.

Functions are plain Python callables. They are called by Jinja2 with the evaluated
arguments of the call, as in ``host = env("DB_HOST", "localhost")``.

"""

from typing import Callable, Dict
import os

from .exceptions import MissingEnvironmentVariableError

# sentinel for a fallback that was not given
_MISSING = object()


def make_env(strict: bool = False) -> Callable[..., str]:
    """Create the ``env(name[, fallback])`` function.

    ``env`` returns the value of the environment variable ``name``. If the variable is
    not set, the fallback is returned when one is given. Otherwise, the behavior
    depends on ``strict``: in strict mode a :class:`MissingEnvironmentVariableError` is
    raised, and in lenient mode an empty string is returned.

    Parameters
    ----------
    strict : bool
        Whether an unset variable without a fallback is an error.

    """

    def env(name, fallback=_MISSING):
        value = os.environ.get(str(name))
        if value is not None:
            return value
        if fallback is not _MISSING:
            return fallback
        if strict:
            raise MissingEnvironmentVariableError(str(name))
        return ""

    return env


def env_or(name, default) -> str:
    """Return the environment variable ``name``, or ``default`` if it is not set."""
    value = os.environ.get(str(name))
    if value is None:
        return default
    return value


def default_functions(strict_env: bool = False) -> Dict[str, Callable]:
    """The functions available to every expression unless overridden by the caller."""
    return {
        "env": make_env(strict_env),
        "env_or": env_or,
    }
