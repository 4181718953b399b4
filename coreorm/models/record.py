"""
coreorm/models/record.py
------------------------
Base class for mapped records.

Every field lives in a slot that is either UNSET (never assigned, never
selected) or holds a value, possibly ``None`` for nilable fields. A record
also keeps a snapshot of its values as last known to the store; the
difference between the two is what `Repository.update` writes.
"""

import copy
from types import MappingProxyType
from typing import Any, ClassVar, Iterable, Mapping, Optional

from coreorm.errors import UnsetFieldError, ValidationError
from coreorm.models.schema import (
    RESERVED_NAMES,
    Declaration,
    ReferenceKind,
    SchemaDescriptor,
    describe,
    register,
)


class _Unset:
    """Sentinel type for a slot that holds no value."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNSET: Any = _Unset()


class Record:
    """
    A row of a mapped table.

    Subclasses set ``__schema__ = declare(...)``. Fields and references are
    read and written as plain attributes:

        user = User(name="Foo")
        user.name = "Bar"
        user.created_at   # UnsetFieldError until inserted or selected
    """

    __schema__: ClassVar[Declaration]

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        if "__schema__" in cls.__dict__:
            register(cls)

    def __init__(self, **values: Any) -> None:
        schema = describe(type(self))
        object.__setattr__(self, "_slots", {f.name: UNSET for f in schema.fields})
        object.__setattr__(self, "_references", {r.name: UNSET for r in schema.references})
        object.__setattr__(self, "_snapshot", MappingProxyType({}))
        object.__setattr__(self, "_extras", {})
        for name, value in values.items():
            try:
                setattr(self, name, value)
            except AttributeError:
                raise TypeError(f"{type(self).__name__}() got an unexpected keyword argument '{name}'") from None

    # ── ATTRIBUTE ACCESS ──────────────────────────────────

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails, i.e. for fields and references.
        if name.startswith("_"):
            raise AttributeError(name)
        if isinstance(getattr(type(self), name, None), property):
            # A property raised AttributeError (e.g. UnsetFieldError); surface it.
            return object.__getattribute__(self, name)
        for slots in (self._slots, self._references):
            if name in slots:
                value = slots[name]
                if value is UNSET:
                    raise UnsetFieldError(type(self).__name__, name)
                return value
        raise AttributeError(f"'{type(self).__name__}' has no field or reference '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        elif name in self._slots:
            self._slots[name] = value
        elif name in self._references:
            self._set_reference(name, value)
        else:
            raise AttributeError(f"'{type(self).__name__}' has no field or reference '{name}'")

    def _set_reference(self, name: str, value: Any) -> None:
        ref = self.schema().reference(name)
        if ref.kind is ReferenceKind.TO_ONE:
            if value is not None and not isinstance(value, ref.target_model):
                raise TypeError(f"{name} expects {ref.target_model.__name__}, got {type(value).__name__}")
            self._slots[ref.key] = None if value is None else value.primary_key
        else:
            value = list(value)
        self._references[name] = value

    @classmethod
    def schema(cls) -> SchemaDescriptor:
        return describe(cls)

    @property
    def primary_key(self) -> Any:
        return getattr(self, self.schema().primary_key.name)

    @property
    def extras(self) -> Mapping[str, Any]:
        """Selected columns that map to no field (aggregates, computed values)."""
        return MappingProxyType(self._extras)

    def get(self, name: str, default: Any = None) -> Any:
        """Read a field or reference, returning ``default`` when it is unset."""
        value = self._slots.get(name, self._references.get(name, UNSET))
        return default if value is UNSET else value

    def is_set(self, name: str) -> bool:
        return self._slots.get(name, self._references.get(name, UNSET)) is not UNSET

    def to_dict(self) -> dict[str, Any]:
        """Field values that are set, keyed by field name."""
        return {name: value for name, value in self._slots.items() if value is not UNSET}

    def changes(self) -> dict[str, Any]:
        """Fields whose value differs from the last known stored state."""
        snapshot = self._snapshot
        return {
            name: value
            for name, value in self._slots.items()
            if value is not UNSET and (name not in snapshot or snapshot[name] != value)
        }

    # ── VALIDATION ────────────────────────────────────────

    def validate(self) -> Iterable[str]:
        """Hook for record-specific rules; return a list of error messages."""
        return []

    def errors(self, for_insert: bool = True) -> list[str]:
        """
        Collect validation errors.

        Args:
            for_insert: Also require every field with no default to be set.
        """
        messages = []
        for f in self.schema().fields:
            value = self._slots[f.name]
            if value is UNSET:
                if for_insert and f.required:
                    messages.append(f"{f.name} is required")
            elif value is None and not f.nilable:
                messages.append(f"{f.name} cannot be nil")
        messages.extend(self.validate())
        return messages

    def is_valid(self) -> bool:
        return not self.errors()

    def valid(self) -> "Record":
        """Return self, or raise ValidationError listing what is wrong."""
        errors = self.errors()
        if errors:
            raise ValidationError(type(self).__name__, errors)
        return self

    # ── STORE STATE (used by the repository) ──────────────

    def _take_snapshot(self) -> None:
        values = {name: copy.deepcopy(value) for name, value in self._slots.items() if value is not UNSET}
        object.__setattr__(self, "_snapshot", MappingProxyType(values))

    def _hydrate(self, values: Mapping[str, Any], extras: Optional[Mapping[str, Any]] = None) -> None:
        self._slots.update(values)
        if extras:
            self._extras.update(extras)
        self._take_snapshot()

    def _attach(self, name: str, nested: Optional["Record"]) -> None:
        self._references[name] = nested

    # ── QUERY ENTRY POINTS ────────────────────────────────

    @classmethod
    def query(cls):
        from coreorm.models.query import Query
        return Query(cls)

    @classmethod
    def select(cls, *columns: str):
        return cls.query().select(*columns)

    @classmethod
    def join(cls, reference: str, select: Optional[Iterable[str]] = None):
        return cls.query().join(reference, select=select)

    @classmethod
    def where(cls, sql: Optional[str] = None, /, *params: Any, **constraints: Any):
        return cls.query().where(sql, *params, **constraints)

    @classmethod
    def group_by(cls, *columns: str):
        return cls.query().group_by(*columns)

    @classmethod
    def order_by(cls, column: str, direction: str = "asc"):
        return cls.query().order_by(column, direction)

    @classmethod
    def limit(cls, count: int):
        return cls.query().limit(count)

    @classmethod
    def offset(cls, count: int):
        return cls.query().offset(count)

    @classmethod
    def all(cls):
        return cls.query().all()

    @classmethod
    def last(cls):
        return cls.query().last()

    # ── DUNDER ────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record) or type(other) is not type(self):
            return NotImplemented
        if self is other:
            return True
        mine, theirs = self.get(self.schema().primary_key.name, UNSET), other.get(other.schema().primary_key.name, UNSET)
        return mine is not UNSET and mine is not None and mine == theirs

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        shown = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{type(self).__name__}({shown})"


RESERVED_NAMES.update(name for name in dir(Record) if not name.startswith("_"))
