"""
coreorm/repositories/repository.py
----------------------------------
Executes queries against a `Database` and reconciles the results with
in-memory records. Works for any record type; the SQL comes from the
compiler or from the caller.

Driver errors are never caught here: they reach the caller unchanged and
the `Database` has already rolled the transaction back.
"""

from typing import Any, Callable, Iterator, Optional, Sequence, Union

from coreorm.db.compiler import compile_insert, compile_query
from coreorm.db.connection import Database, ExecResult
from coreorm.errors import NoResultsError, QueryError, ValidationError
from coreorm.models.query import Join, Query
from coreorm.models.record import UNSET, Record
from coreorm.models.schema import describe
from coreorm.repositories.materializer import materialize
from coreorm.utils.logger import get_logger

logger = get_logger(__name__)

Records = Union[Record, Sequence[Record]]


class Repository:
    """Generic data access for every mapped record type."""

    def __init__(self, database: Database) -> None:
        self.db = database

    # ── HELPERS ───────────────────────────────────────────

    def _compile(self, query: Query) -> tuple[str, list]:
        return compile_query(query, self.db.placeholder)

    def _statement(self, target: Union[Query, type], sql: Optional[str], args: Sequence[Any]):
        """(model, sql, params, joins) for either a Query or a model plus raw SQL."""
        if isinstance(target, Query):
            if sql is not None or args:
                raise TypeError("Pass either a Query or a record type with SQL, not both")
            compiled, params = self._compile(target)
            return target.model, compiled, params, target.joins
        if sql is None:
            raise TypeError(f"SQL is required when querying {target.__name__} directly")
        return target, sql, list(args), ()

    def _sql(self, target: Union[Query, str], args: Sequence[Any]) -> tuple[str, list]:
        if isinstance(target, Query):
            if args:
                raise TypeError("A Query carries its own parameters")
            return self._compile(target)
        return target, list(args)

    def _records(self, model: type, sql: str, params: list, joins: Sequence[Join]) -> Iterator[Record]:
        rows = self.db.rows(sql, params)
        try:
            for row in rows:
                yield materialize(model, row, joins)
        finally:
            rows.close()

    @staticmethod
    def _batch(records: Records) -> tuple[bool, list[Record]]:
        if isinstance(records, Record):
            return True, [records]
        batch = list(records)
        models = {type(r) for r in batch}
        if len(models) > 1:
            raise TypeError(f"A batch must hold one record type, got {sorted(m.__name__ for m in models)}")
        return False, batch

    @staticmethod
    def _check(record: Record, for_insert: bool) -> None:
        errors = record.errors(for_insert=for_insert)
        if errors:
            raise ValidationError(type(record).__name__, errors)

    # ── CREATE ────────────────────────────────────────────

    def insert(self, records: Records) -> Records:
        """
        Insert one record or a batch of records of the same type.

        Application defaults are filled in first, then every record is
        validated. Database defaults (primary key, timestamps, ...) the
        caller left unset are read back through RETURNING and written into
        the records; values the caller did set are sent as given.

        A batch is one multi-row statement per combination of set database
        default fields (usually just one), all in a single transaction.

        Returns:
            The same record (or list) with generated fields populated.

        Raises:
            ValidationError: Before anything is sent.
        """
        single, batch = self._batch(records)
        if not batch:
            return batch
        schema = describe(type(batch[0]))

        for record in batch:
            for f in schema.fields:
                if f.app_default and not record.is_set(f.name):
                    setattr(record, f.name, f.default.compute())
        for record in batch:
            self._check(record, for_insert=True)

        groups: dict[tuple[str, ...], list[Record]] = {}
        for record in batch:
            provided = tuple(f.name for f in schema.fields if f.db_default and record.is_set(f.name))
            groups.setdefault(provided, []).append(record)

        plans = []
        statements = []
        for provided, members in groups.items():
            sent = [f for f in schema.fields if not f.db_default or f.name in provided]
            generated = [f for f in schema.fields if f.db_default and f.name not in provided]
            values = [[f.dump(r.get(f.name), schema.model_name) for f in sent] for r in members]
            statements.append(compile_insert(
                schema, [f.key for f in sent], values, [f.key for f in generated], self.db.placeholder
            ))
            plans.append((members, sent, generated))
        results = self.db.write_many(statements, returning=True)

        for (members, sent, generated), result in zip(plans, results):
            for index, record in enumerate(members):
                loaded = {f.name: None for f in sent if not record.is_set(f.name)}
                if generated:
                    row = result.rows[index]
                    loaded.update((f.name, f.load(row[f.key], schema.model_name)) for f in generated)
                record._hydrate(loaded)
        logger.debug(f"Inserted {len(batch)} row(s) into {schema.table}")
        return batch[0] if single else batch

    # ── READ ──────────────────────────────────────────────

    def query(self, target: Union[Query, type], sql: Optional[str] = None, *args: Any) -> Iterator[Record]:
        """
        Lazily materialize the rows of a Query, or of raw SQL for a record type:

            repo.query(User.where(active=True))
            repo.query(User, "SELECT * FROM users WHERE id = %s", 1)

        The iterator is single-pass; call again to re-run the query.
        """
        model, sql, params, joins = self._statement(target, sql, args)
        return self._records(model, sql, params, joins)

    def query_all(self, target: Union[Query, type], sql: Optional[str] = None, *args: Any) -> list[Record]:
        return list(self.query(target, sql, *args))

    def query_one_or_none(self, target: Union[Query, type], sql: Optional[str] = None, *args: Any) -> Optional[Record]:
        """First record, or None when the query returns no rows."""
        model, sql, params, joins = self._statement(target, sql, args)
        records = self._records(model, sql, params, joins)
        try:
            return next(records, None)
        finally:
            records.close()

    def query_one(self, target: Union[Query, type], sql: Optional[str] = None, *args: Any) -> Record:
        """
        First record of the query. Further rows are ignored.

        Raises:
            NoResultsError: When the query returns no rows.
        """
        model, sql, params, joins = self._statement(target, sql, args)
        records = self._records(model, sql, params, joins)
        try:
            record = next(records, None)
        finally:
            records.close()
        if record is None:
            raise NoResultsError(sql, params)
        return record

    # ── UPDATE ────────────────────────────────────────────

    def _update_statement(self, record: Record) -> Optional[tuple[str, list]]:
        changes = record.changes()
        if not changes:
            return None
        self._check(record, for_insert=False)
        pk = record.schema().primary_key.name
        key = record._snapshot.get(pk, UNSET)
        if key is UNSET:
            key = record.primary_key
        query = type(record).where(**{pk: key}).set(**changes)
        return self._compile(query)

    def update(self, target: Union[Query, Records]) -> Optional[ExecResult]:
        """
        Write changes.

        With a record: only fields that differ from the last stored state are
        sent; nothing changed means None and no round trip. With a list of
        records: every changed record in one transaction. With a Query: its
        SET clauses against its own conditions.

        Raises:
            QueryError: For a Query without SET clauses.
            ValidationError: Before anything is sent.
        """
        if isinstance(target, Query):
            if not target.assignments:
                raise QueryError(f"Update of {target.schema.table} has no SET clauses")
            sql, params = self._compile(target)
            return self.db.write(sql, params)

        single, batch = self._batch(target)
        pending = []
        for record in batch:
            statement = self._update_statement(record)
            if statement is not None:
                pending.append((record, statement))
        if not pending:
            return None

        results = self.db.write_many([statement for _, statement in pending])
        for record, _ in pending:
            record._take_snapshot()
        if single:
            return results[0]
        return ExecResult(sum(max(r.rowcount, 0) for r in results))

    # ── DELETE ────────────────────────────────────────────

    def delete(self, target: Union[Query, Records]) -> ExecResult:
        """
        Delete by primary key (one record or a batch, as `=` or `IN`) or by
        the conditions of a Query. In-memory records are left as they are.

        Raises:
            QueryError: For a Query without conditions; clearing a table
                takes an explicit `exec("DELETE FROM ...")`.
        """
        if isinstance(target, Query):
            if not target.conditions:
                raise QueryError(f"Delete from {target.schema.table} has no conditions")
            query = target.as_delete()
        else:
            single, batch = self._batch(target)
            if not batch:
                return ExecResult(0)
            model = type(batch[0])
            pk = describe(model).primary_key.name
            keys = batch[0].primary_key if single else [r.primary_key for r in batch]
            query = model.where(**{pk: keys}).as_delete()
        sql, params = self._compile(query)
        result = self.db.write(sql, params)
        logger.debug(f"Deleted {result.rowcount} row(s) from {query.schema.table}")
        return result

    # ── RAW ───────────────────────────────────────────────

    def exec(self, target: Union[Query, str], *args: Any) -> ExecResult:
        """Run a statement and return the driver's execution result."""
        sql, params = self._sql(target, args)
        return self.db.write(sql, params)

    def scalar(self, target: Union[Query, str], *args: Any, as_type: Optional[Callable[[Any], Any]] = None) -> Any:
        """
        First column of the first row, optionally passed through ``as_type``.

        Raises:
            NoResultsError: When the query returns no rows.
        """
        sql, params = self._sql(target, args)
        rows = self.db.rows(sql, params)
        try:
            row = next(rows, None)
        finally:
            rows.close()
        if row is None:
            raise NoResultsError(sql, params)
        value = next(iter(row.values()), None)
        return as_type(value) if as_type is not None and value is not None else value
