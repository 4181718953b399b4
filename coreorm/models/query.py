"""
coreorm/models/query.py
-----------------------
Immutable query expressions.

Every builder method returns a new `Query`; the receiver is never changed,
so a query can be kept as a template and extended by many callers:

    recent = Post.order_by("created_at", "desc").limit(10)
    mine = recent.where(author=user).join("author", select=["id", "name"])
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional, Union

from coreorm.errors import QueryError
from coreorm.models.record import Record
from coreorm.models.schema import FieldDescriptor, ReferenceKind, SchemaDescriptor, describe


class Operation(Enum):
    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


class Direction(Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: Union[str, "Direction"]) -> "Direction":
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise QueryError(f"Unknown sort direction {value!r}") from None


@dataclass(frozen=True)
class Join:
    reference: str
    columns: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class Condition:
    """``field = value``; a tuple value means IN, ``None`` means IS NULL."""
    field: str
    value: Any


@dataclass(frozen=True)
class RawCondition:
    sql: str
    params: tuple = ()


_SEQUENCES = (list, tuple, set, frozenset)


def _key_of(value: Any) -> Any:
    if isinstance(value, Record):
        return value.primary_key
    return value


def _plain(value: Any) -> Any:
    """Predicate value: records become primary keys, sequences become IN tuples."""
    if isinstance(value, _SEQUENCES):
        return tuple(_key_of(v) for v in value)
    return _key_of(value)


@dataclass(frozen=True)
class Query:
    model: type
    operation: Operation = Operation.SELECT
    projection: tuple[str, ...] = ()
    joins: tuple[Join, ...] = ()
    conditions: tuple[Union[Condition, RawCondition], ...] = ()
    grouping: tuple[str, ...] = ()
    ordering: tuple[tuple[str, Direction], ...] = ()
    limit_to: Optional[int] = None
    offset_by: Optional[int] = None
    assignments: tuple[tuple[str, Any], ...] = ()

    @property
    def schema(self) -> SchemaDescriptor:
        return describe(self.model)

    def resolve_field(self, name: str) -> FieldDescriptor:
        """Field named ``name``, or the owning key of the to-one reference ``name``."""
        schema = self.schema
        found = schema.field(name)
        if found is not None:
            return found
        ref = schema.reference(name)
        if ref is None:
            raise QueryError(f"{schema.model_name} has no field or reference '{name}'")
        if ref.kind is not ReferenceKind.TO_ONE:
            raise QueryError(
                f"{schema.model_name}.{name} is a to-many reference; "
                f"query {ref.target_model.__name__} by '{ref.key}' instead"
            )
        return schema.field(ref.key)

    # ── BUILDERS ──────────────────────────────────────────

    def select(self, *columns: str) -> "Query":
        """Replace the projection. Field names are mapped; anything else is emitted as written."""
        return replace(self, projection=tuple(columns))

    def join(self, reference: str, select: Optional[Iterable[str]] = None) -> "Query":
        """
        Join a reference. For to-one references the joined record is
        materialized and attached; ``select`` limits which of its fields
        are fetched.
        """
        ref = self.schema.reference(reference)
        if ref is None:
            raise QueryError(f"{self.schema.model_name} has no reference '{reference}'")
        if any(j.reference == reference for j in self.joins):
            raise QueryError(f"Reference '{reference}' is already joined")
        columns = None
        if select is not None:
            if ref.kind is ReferenceKind.TO_MANY:
                raise QueryError(f"Cannot select columns of to-many reference '{reference}'")
            columns = tuple(select)
            target = ref.target_schema
            unknown = [c for c in columns if target.field(c) is None]
            if unknown:
                raise QueryError(f"{target.model_name} has no fields {unknown}")
        return replace(self, joins=self.joins + (Join(reference, columns),))

    def where(self, sql: Optional[str] = None, /, *params: Any, **constraints: Any) -> "Query":
        """
        Add conditions, ANDed with the existing ones.

            Post.where(author=user)               # author_id = user.id
            User.where(id=[1, 2, 3])              # IN
            User.where("created_at > %s", since)  # raw fragment, driver placeholder
        """
        added: list[Union[Condition, RawCondition]] = []
        if sql is not None:
            added.append(RawCondition(sql, tuple(params)))
        elif params:
            raise QueryError("Positional parameters given without a SQL fragment")
        for name, value in constraints.items():
            self.resolve_field(name)
            added.append(Condition(name, _plain(value)))
        return replace(self, conditions=self.conditions + tuple(added))

    def group_by(self, *columns: str) -> "Query":
        return replace(self, grouping=self.grouping + tuple(columns))

    def order_by(self, column: str, direction: Union[str, Direction] = "asc") -> "Query":
        return replace(self, ordering=self.ordering + ((column, Direction.parse(direction)),))

    def limit(self, count: int) -> "Query":
        return replace(self, limit_to=int(count))

    def offset(self, count: int) -> "Query":
        return replace(self, offset_by=int(count))

    def set(self, **assignments: Any) -> "Query":
        """
        Turn the query into an UPDATE of the given fields (or to-one references).
        Values are sent as given; a list stays a list (array columns).
        """
        added = []
        for name, value in assignments.items():
            added.append((self.resolve_field(name).name, _key_of(value)))
        return replace(self, operation=Operation.UPDATE, assignments=self.assignments + tuple(added))

    def as_delete(self) -> "Query":
        return replace(self, operation=Operation.DELETE)

    # ── TERMINALS ─────────────────────────────────────────

    def all(self) -> "Query":
        return self

    def last(self) -> "Query":
        """The row with the highest primary key."""
        pk = self.schema.primary_key.name
        return replace(self, ordering=((pk, Direction.DESC),), limit_to=1)
