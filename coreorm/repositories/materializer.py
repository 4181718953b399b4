"""
coreorm/repositories/materializer.py
------------------------------------
Binds driver rows to record instances and resolves joined to-one
associations out of the same row. Never issues a query.
"""

from typing import Any, Mapping, Sequence

from coreorm.models.query import Join
from coreorm.models.record import Record
from coreorm.models.schema import ReferenceKind, describe


def materialize(model: type, row: Mapping[str, Any], joins: Sequence[Join] = ()) -> Record:
    """
    Build a record from a row.

    Every field whose storage key is a column of the row is set (converted
    through its converter); the rest stay UNSET. Unmapped columns, other
    than those belonging to a join, are kept as the record's extras.

    Args:
        model: Record class.
        row: Column name -> raw value.
        joins: Joins of the query that produced the row.

    Raises:
        ConversionError: If a converter rejects a raw value.
    """
    schema = describe(model)
    values = {}
    extras = {}
    prefixes = tuple(f"{j.reference}." for j in joins)
    for column, raw in row.items():
        found = schema.field_by_key(column)
        if found is not None:
            values[found.name] = found.load(raw, schema.model_name)
        elif not (prefixes and column.startswith(prefixes)):
            extras[column] = raw

    record = model()
    record._hydrate(values, extras)
    for join in joins:
        _resolve(record, row, join)
    return record


def _resolve(record: Record, row: Mapping[str, Any], join: Join) -> None:
    """
    Attach the nested record of a to-one join; to-many joins only feed
    aggregates. A NULL target key (outer join without a match) attaches None.
    """
    ref = record.schema().reference(join.reference)
    if ref.kind is not ReferenceKind.TO_ONE:
        return
    prefix = f"{ref.name}."
    sub = {column[len(prefix):]: raw for column, raw in row.items() if column.startswith(prefix)}
    if not sub:
        return
    key = ref.target_schema.primary_key.key
    if key in sub:
        missing = sub[key] is None
    else:
        missing = ref.nilable and all(raw is None for raw in sub.values())
    if missing:
        record._attach(ref.name, None)
    else:
        record._attach(ref.name, materialize(ref.target_model, sub))
