"""
coreorm/errors.py
-----------------
Exceptions raised by the ORM core itself.
Driver errors (psycopg2.Error, sqlite3.Error, ...) are never wrapped and
reach the caller unchanged.
"""

from typing import Any, Optional


class CoreError(Exception):
    """Base class for every error raised by coreorm."""


class ConfigurationError(CoreError):
    """A schema declaration is inconsistent (detected when it is described)."""


class QueryError(CoreError):
    """A query was built or used in a way that cannot be compiled."""


class NoResultsError(CoreError):
    """Exactly one row was required but the store returned none."""

    def __init__(self, sql: str, params: Optional[list] = None) -> None:
        super().__init__(f"No results for query: {sql}")
        self.sql = sql
        self.params = list(params or [])


class UnsetFieldError(CoreError, AttributeError):
    """
    Read access to a field that was never set or selected.

    Also an AttributeError so ``getattr(record, name, default)`` and
    ``hasattr`` behave as expected for unloaded fields.
    """

    def __init__(self, model: str, field: str) -> None:
        super().__init__(f"{model}.{field} is unset (not assigned and not selected)")
        self.model = model
        self.field = field


class ConversionError(CoreError):
    """A converter could not transform a value to or from its stored form."""

    def __init__(self, model: str, field: str, value: Any, reason: str) -> None:
        super().__init__(f"Cannot convert {value!r} for {model}.{field}: {reason}")
        self.model = model
        self.field = field
        self.value = value


class ValidationError(CoreError):
    """A record failed validation; the write was not attempted."""

    def __init__(self, model: str, errors: list[str]) -> None:
        super().__init__(f"{model} is invalid: " + "; ".join(errors))
        self.model = model
        self.errors = errors
