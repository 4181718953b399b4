"""
models/ - Schema, Records and Queries
=====================================
Declarative schema tables, the record base class and the immutable query
builder. Nothing in this layer talks to the database.
"""

from coreorm.models.schema import (
    DefaultKind,
    DefaultPolicy,
    FieldDescriptor,
    ReferenceDescriptor,
    ReferenceKind,
    SchemaDescriptor,
    configure,
    declare,
    describe,
    field,
    to_many,
    to_one,
)
from coreorm.models.record import UNSET, Record
from coreorm.models.query import Direction, Join, Operation, Query

__all__ = [
    "DefaultKind",
    "DefaultPolicy",
    "FieldDescriptor",
    "ReferenceDescriptor",
    "ReferenceKind",
    "SchemaDescriptor",
    "configure",
    "declare",
    "describe",
    "field",
    "to_many",
    "to_one",
    "UNSET",
    "Record",
    "Direction",
    "Join",
    "Operation",
    "Query",
]
