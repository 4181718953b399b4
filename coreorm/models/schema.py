"""
coreorm/models/schema.py
------------------------
Schema declaration and the process-wide schema registry.

Record classes carry a `declare(...)` table as their ``__schema__``; the
registry compiles it once into an immutable `SchemaDescriptor` and keeps it
for the life of the process. Nothing here is mutated after `describe`
returns, so descriptors are shared freely between instances and threads.
"""

from dataclasses import dataclass, field as dc_field, replace
from enum import Enum
from typing import Any, Callable, Optional, Union

from coreorm.converters import Converter
from coreorm.errors import ConfigurationError, ConversionError

_MISSING = object()


class DefaultKind(Enum):
    NONE = "none"
    APPLICATION = "application"
    DATABASE = "database"


@dataclass(frozen=True)
class DefaultPolicy:
    """How a field gets its value when the caller supplies none."""
    kind: DefaultKind = DefaultKind.NONE
    value: Any = None
    factory: Optional[Callable[[], Any]] = None

    def compute(self) -> Any:
        """Value for an application default (factory called on every use)."""
        return self.factory() if self.factory is not None else self.value


NO_DEFAULT = DefaultPolicy()
DB_DEFAULT = DefaultPolicy(DefaultKind.DATABASE)


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One stored column of a record type.

    Attributes:
        name: Attribute name on the record.
        key: Storage column name (defaults to ``name``).
        type: Application value type (informational).
        nilable: Whether ``None`` is a legal value.
        default: Default policy (none, application or database).
        converter: Optional value converter.
    """
    name: str
    key: str
    type: Any = object
    nilable: bool = False
    default: DefaultPolicy = NO_DEFAULT
    converter: Optional[Converter] = None

    @property
    def db_default(self) -> bool:
        return self.default.kind is DefaultKind.DATABASE

    @property
    def app_default(self) -> bool:
        return self.default.kind is DefaultKind.APPLICATION

    @property
    def required(self) -> bool:
        """Must be supplied by the caller on insert."""
        return not self.nilable and self.default.kind is DefaultKind.NONE

    def dump(self, value: Any, model: str = "?") -> Any:
        """Application value -> driver value."""
        if value is None or self.converter is None:
            return value
        try:
            return self.converter.to_db(value)
        except (ValueError, TypeError, KeyError) as e:
            raise ConversionError(model, self.name, value, str(e)) from e

    def load(self, raw: Any, model: str = "?") -> Any:
        """Driver value -> application value."""
        if raw is None or self.converter is None:
            return raw
        try:
            return self.converter.from_db(raw)
        except (ValueError, TypeError, KeyError) as e:
            raise ConversionError(model, self.name, raw, str(e)) from e


class ReferenceKind(Enum):
    TO_ONE = "to_one"
    TO_MANY = "to_many"


@dataclass(frozen=True)
class ReferenceDescriptor:
    """
    An association to another record type.

    For TO_ONE, ``key`` is the foreign-key field on this record. For
    TO_MANY, ``key`` is the foreign-key field on the target record; nothing
    is stored on this side.
    """
    name: str
    kind: ReferenceKind
    target: Union[str, type]
    key: str
    nilable: bool = False

    @property
    def target_model(self) -> type:
        if isinstance(self.target, str):
            return _resolve(self.target, self.name)
        return self.target

    @property
    def target_schema(self) -> "SchemaDescriptor":
        return describe(self.target_model)


@dataclass(frozen=True)
class Declaration:
    """Unresolved schema table, as written on the record class."""
    table: str
    fields: tuple[FieldDescriptor, ...]
    references: tuple[ReferenceDescriptor, ...]
    primary_key: str = "id"
    primary_key_type: Any = int


@dataclass(frozen=True)
class SchemaDescriptor:
    model_name: str
    table: str
    primary_key: FieldDescriptor
    fields: tuple[FieldDescriptor, ...]
    references: tuple[ReferenceDescriptor, ...]
    _by_name: dict = dc_field(default_factory=dict, repr=False, compare=False)
    _by_key: dict = dc_field(default_factory=dict, repr=False, compare=False)
    _refs: dict = dc_field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_name.update((f.name, f) for f in self.fields)
        self._by_key.update((f.key, f) for f in self.fields)
        self._refs.update((r.name, r) for r in self.references)

    def field(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    def field_by_key(self, key: str) -> Optional[FieldDescriptor]:
        return self._by_key.get(key)

    def reference(self, name: str) -> Optional[ReferenceDescriptor]:
        return self._refs.get(name)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def keys(self) -> list[str]:
        return [f.key for f in self.fields]


# ── DECLARATION HELPERS ───────────────────────────────────

def field(
    name: str,
    type: Any = object,
    *,
    key: Optional[str] = None,
    nilable: bool = False,
    default: Any = _MISSING,
    default_factory: Optional[Callable[[], Any]] = None,
    db_default: bool = False,
    converter: Optional[Converter] = None,
) -> FieldDescriptor:
    """
    Declare a stored field.

    Args:
        name: Attribute name.
        type: Application value type.
        key: Storage column, when it differs from ``name``.
        nilable: Allow ``None``.
        default: Application default value.
        default_factory: Application default thunk, called per insert.
        db_default: The store generates the value; it is read back after insert.
        converter: Value converter.
    """
    chosen = sum((default is not _MISSING, default_factory is not None, db_default))
    if chosen > 1:
        raise ConfigurationError(f"Field '{name}' declares more than one default")
    if db_default:
        policy = DB_DEFAULT
    elif default_factory is not None:
        policy = DefaultPolicy(DefaultKind.APPLICATION, factory=default_factory)
    elif default is not _MISSING:
        policy = DefaultPolicy(DefaultKind.APPLICATION, value=default)
    else:
        policy = NO_DEFAULT
    return FieldDescriptor(name, key or name, type, nilable, policy, converter)


def to_one(name: str, target: Union[str, type], *, key: str, nilable: bool = False) -> ReferenceDescriptor:
    """Owning-side association; ``key`` is the foreign-key field on this table."""
    return ReferenceDescriptor(name, ReferenceKind.TO_ONE, target, key, nilable)


def to_many(name: str, target: Union[str, type], *, foreign_key: str) -> ReferenceDescriptor:
    """Reverse association; ``foreign_key`` is a field on the target table."""
    return ReferenceDescriptor(name, ReferenceKind.TO_MANY, target, foreign_key, True)


def declare(
    table: str,
    *members: Union[FieldDescriptor, ReferenceDescriptor],
    primary_key: str = "id",
    primary_key_type: Any = int,
) -> Declaration:
    """
    Build the schema table for a record class.

    The primary key is generated by the database unless a field of the same
    name is declared explicitly.
    """
    fields = tuple(m for m in members if isinstance(m, FieldDescriptor))
    references = tuple(m for m in members if isinstance(m, ReferenceDescriptor))
    if len(fields) + len(references) != len(members):
        raise ConfigurationError(f"Schema '{table}' has members that are neither fields nor references")
    return Declaration(table, fields, references, primary_key, primary_key_type)


# ── REGISTRY ──────────────────────────────────────────────

_models: dict[str, type] = {}
_schemas: dict[type, SchemaDescriptor] = {}

# Names a field may not take because Record already uses them.
RESERVED_NAMES: set[str] = set()


def register(model: type) -> None:
    """Make a record class resolvable by name for string reference targets."""
    _models[model.__name__] = model
    _models[f"{model.__module__}.{model.__qualname__}"] = model
    _schemas.pop(model, None)


def registered_models() -> list[type]:
    return list(dict.fromkeys(_models.values()))


def _resolve(target: str, reference: str) -> type:
    model = _models.get(target)
    if model is None:
        raise ConfigurationError(f"Reference '{reference}' targets unknown record type '{target}'")
    return model


def _declaration(model: type) -> Declaration:
    declaration = getattr(model, "__schema__", None)
    if not isinstance(declaration, Declaration):
        raise ConfigurationError(f"{model.__name__} has no __schema__ declaration")
    return declaration


def _declared_pk_type(declaration: Declaration) -> Any:
    for f in declaration.fields:
        if f.name == declaration.primary_key:
            return f.type
    return declaration.primary_key_type


def _target_columns(declaration: Declaration) -> set[str]:
    names = {f.name for f in declaration.fields}
    names.update(r.key for r in declaration.references if r.kind is ReferenceKind.TO_ONE)
    names.add(declaration.primary_key)
    return names


def _build(model: type, declaration: Declaration) -> SchemaDescriptor:
    name = model.__name__
    fields = list(declaration.fields)
    by_name = {f.name: f for f in fields}

    pk = by_name.get(declaration.primary_key)
    if pk is None:
        pk = FieldDescriptor(declaration.primary_key, declaration.primary_key, declaration.primary_key_type,
                             default=DB_DEFAULT)
    else:
        fields.remove(pk)
    fields.insert(0, pk)

    references = []
    for ref in declaration.references:
        target = ref.target_model
        target_declaration = _declaration(target)
        if ref.kind is ReferenceKind.TO_ONE:
            if ref.key not in by_name and ref.key != pk.name:
                implicit = FieldDescriptor(ref.key, ref.key, _declared_pk_type(target_declaration), ref.nilable)
                fields.append(implicit)
                by_name[ref.key] = implicit
        elif ref.key not in _target_columns(target_declaration):
            raise ConfigurationError(
                f"{name}.{ref.name}: foreign key '{ref.key}' is not a field of {target.__name__}"
            )
        references.append(replace(ref, target=target))

    seen_names: set[str] = set()
    seen_keys: set[str] = set()
    for f in fields:
        if f.name in seen_names or f.key in seen_keys:
            raise ConfigurationError(f"{name}: duplicate field '{f.name}' (column '{f.key}')")
        if f.name in RESERVED_NAMES or f.name.startswith("_"):
            raise ConfigurationError(f"{name}: field name '{f.name}' is reserved")
        seen_names.add(f.name)
        seen_keys.add(f.key)
    for ref in references:
        if ref.name in seen_names or ref.name in RESERVED_NAMES or ref.name.startswith("_"):
            raise ConfigurationError(f"{name}: reference name '{ref.name}' clashes with a field or reserved name")
        if ref.kind is ReferenceKind.TO_ONE and ref.key not in seen_names:
            raise ConfigurationError(f"{name}.{ref.name}: owning key '{ref.key}' is not a field")
        seen_names.add(ref.name)

    return SchemaDescriptor(name, declaration.table, pk, tuple(fields), tuple(references))


def describe(model: type) -> SchemaDescriptor:
    """
    Get the compiled schema of a record class.

    Resolved once and memoized for the rest of the process.

    Raises:
        ConfigurationError: If the declaration is inconsistent.
    """
    schema = _schemas.get(model)
    if schema is None:
        schema = _build(model, _declaration(model))
        _schemas[model] = schema
    return schema


def configure(*models: type) -> list[SchemaDescriptor]:
    """
    Describe the given record classes (all registered ones by default).
    Call at process start so configuration errors surface immediately.
    """
    return [describe(m) for m in (models or registered_models())]
