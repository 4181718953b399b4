"""coreorm - declarative schemas, immutable queries and a repository over SQL."""

from coreorm.converters import Converter, EnumConverter, JSONConverter
from coreorm.db import Database, ExecResult, compile_insert, compile_query
from coreorm.errors import (
    ConfigurationError,
    ConversionError,
    CoreError,
    NoResultsError,
    QueryError,
    UnsetFieldError,
    ValidationError,
)
from coreorm.models import (
    UNSET,
    Direction,
    Query,
    Record,
    configure,
    declare,
    describe,
    field,
    to_many,
    to_one,
)
from coreorm.repositories import Repository, materialize

__all__ = [
    # Schema and records
    "Record",
    "UNSET",
    "declare",
    "field",
    "to_one",
    "to_many",
    "describe",
    "configure",
    # Queries
    "Query",
    "Direction",
    "compile_query",
    "compile_insert",
    # Execution
    "Database",
    "ExecResult",
    "Repository",
    "materialize",
    # Converters
    "Converter",
    "EnumConverter",
    "JSONConverter",
    # Errors
    "CoreError",
    "ConfigurationError",
    "ConversionError",
    "NoResultsError",
    "QueryError",
    "UnsetFieldError",
    "ValidationError",
]

__version__ = "0.1.0"
