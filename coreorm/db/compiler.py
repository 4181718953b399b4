"""
coreorm/db/compiler.py
----------------------
Turns a Query into SQL text plus a positional parameter list.

Pure functions: no connection, no state. Every user value becomes a bound
parameter (after its field converter runs); only identifiers taken from
schema declarations and caller-written fragments are placed in the text.
"""

from typing import Any, Sequence

from coreorm.errors import QueryError
from coreorm.models.query import Operation, Query, RawCondition
from coreorm.models.schema import ReferenceKind, SchemaDescriptor


def _column(schema: SchemaDescriptor, name: str) -> str:
    """Qualified storage column for a field name; other text is left as written."""
    found = schema.field(name)
    if found is None:
        return name
    return f"{schema.table}.{found.key}"


def _projection(query: Query) -> list[str]:
    schema = query.schema
    columns = [_column(schema, c) for c in query.projection] or [f"{schema.table}.*"]
    for join in query.joins:
        ref = schema.reference(join.reference)
        if ref.kind is not ReferenceKind.TO_ONE:
            continue
        target = ref.target_schema
        names = join.columns if join.columns is not None else target.field_names
        if target.primary_key.name not in names:
            # The resolver tells a missing row from a row of NULLs by its key.
            names = (target.primary_key.name,) + tuple(names)
        for name in names:
            key = target.field(name).key
            columns.append(f'{ref.name}.{key} AS "{ref.name}.{key}"')
    return columns


def _joins(query: Query) -> list[str]:
    schema = query.schema
    clauses = []
    for join in query.joins:
        ref = schema.reference(join.reference)
        target = ref.target_schema
        if ref.kind is ReferenceKind.TO_ONE:
            owning = schema.field(ref.key)
            kind = "LEFT JOIN" if ref.nilable else "JOIN"
            on = f"{ref.name}.{target.primary_key.key} = {schema.table}.{owning.key}"
        else:
            kind = "LEFT JOIN"
            on = f"{ref.name}.{target.field(ref.key).key} = {schema.table}.{schema.primary_key.key}"
        clauses.append(f"{kind} {target.table} AS {ref.name} ON {on}")
    return clauses


def _where(query: Query, placeholder: str) -> tuple[str, list]:
    schema = query.schema
    fragments: list[str] = []
    params: list = []
    for condition in query.conditions:
        if isinstance(condition, RawCondition):
            fragments.append(f"({condition.sql})")
            params.extend(condition.params)
            continue
        target = query.resolve_field(condition.field)
        column = f"{schema.table}.{target.key}"
        value = condition.value
        if value is None:
            fragments.append(f"{column} IS NULL")
        elif isinstance(value, tuple):
            if not value:
                fragments.append("1 = 0")
            else:
                fragments.append(f"{column} IN ({', '.join([placeholder] * len(value))})")
                params.extend(target.dump(v, schema.model_name) for v in value)
        else:
            fragments.append(f"{column} = {placeholder}")
            params.append(target.dump(value, schema.model_name))
    if not fragments:
        return "", params
    return " WHERE " + " AND ".join(fragments), params


def _compile_select(query: Query, placeholder: str) -> tuple[str, list]:
    schema = query.schema
    parts = [f"SELECT {', '.join(_projection(query))} FROM {schema.table}"]
    parts.extend(_joins(query))
    sql = " ".join(parts)

    where, params = _where(query, placeholder)
    sql += where
    if query.grouping:
        sql += " GROUP BY " + ", ".join(_column(schema, c) for c in query.grouping)
    if query.ordering:
        sql += " ORDER BY " + ", ".join(f"{_column(schema, c)} {d.value}" for c, d in query.ordering)
    if query.limit_to is not None:
        sql += f" LIMIT {int(query.limit_to)}"
    if query.offset_by is not None:
        sql += f" OFFSET {int(query.offset_by)}"
    return sql, params


def _compile_update(query: Query, placeholder: str) -> tuple[str, list]:
    if not query.assignments:
        raise QueryError("UPDATE without SET clauses")
    schema = query.schema
    sets = []
    params: list = []
    for name, value in query.assignments:
        target = schema.field(name)
        sets.append(f"{target.key} = {placeholder}")
        params.append(target.dump(value, schema.model_name))
    where, where_params = _where(query, placeholder)
    return f"UPDATE {schema.table} SET {', '.join(sets)}{where}", params + where_params


def _compile_delete(query: Query, placeholder: str) -> tuple[str, list]:
    where, params = _where(query, placeholder)
    return f"DELETE FROM {query.schema.table}{where}", params


def compile_query(query: Query, placeholder: str = "%s") -> tuple[str, list]:
    """
    Compile a query.

    Args:
        query: The expression to compile.
        placeholder: Driver parameter marker ("%s" for psycopg2, "?" for sqlite3).

    Returns:
        (sql, params)

    Raises:
        QueryError: For an UPDATE with no SET clauses.
    """
    if query.operation is Operation.UPDATE:
        return _compile_update(query, placeholder)
    if query.operation is Operation.DELETE:
        return _compile_delete(query, placeholder)
    return _compile_select(query, placeholder)


def compile_insert(
    schema: SchemaDescriptor,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    returning: Sequence[str] = (),
    placeholder: str = "%s",
) -> tuple[str, list]:
    """
    Multi-row INSERT for already-converted values.

    Args:
        schema: Target table schema.
        columns: Storage keys, in value order.
        rows: One value sequence per record.
        returning: Storage keys to read back.
        placeholder: Driver parameter marker.
    """
    if not rows:
        raise QueryError(f"INSERT into {schema.table} without rows")
    if columns:
        group = f"({', '.join([placeholder] * len(columns))})"
        sql = (
            f"INSERT INTO {schema.table} ({', '.join(columns)}) "
            f"VALUES {', '.join([group] * len(rows))}"
        )
    elif len(rows) == 1:
        sql = f"INSERT INTO {schema.table} DEFAULT VALUES"
    else:
        raise QueryError(f"Multi-row INSERT into {schema.table} needs at least one column")
    if returning:
        sql += f" RETURNING {', '.join(returning)}"
    params = [value for row in rows for value in row]
    return sql, params
