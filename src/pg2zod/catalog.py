"""Type catalog data structures for pg2zod.

This module defines the read-only snapshot of a PostgreSQL database that the
resolver works from: column/attribute/parameter type descriptors, the four
kinds of user-defined types (enums, domains, composite types and range types)
and the tables, views and routines that use them.

Every structure is an immutable dataclass. A `TypeCatalog` is built once per
generation run, either by a loader or by hand, and is never mutated.

Example:
    >>> from pg2zod.catalog import EnumType, Table, TypeCatalog, TypeDescriptor
    >>> catalog = TypeCatalog(
    ...     enums=(EnumType(name="user_role", schema="public", values=("admin", "user")),),
    ...     tables=(
    ...         Table(
    ...             name="users",
    ...             schema="public",
    ...             columns=(
    ...                 TypeDescriptor(name="id", data_type="integer", udt_name="int4",
    ...                                is_nullable=False),
    ...                 TypeDescriptor(name="role", data_type="USER-DEFINED",
    ...                                udt_name="user_role"),
    ...             ),
    ...         ),
    ...     ),
    ... )
    >>> catalog.find_enum("user_role").values
    ('admin', 'user')
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Literal, TypeVar

from .exceptions import CatalogError

ParameterMode = Literal["IN", "OUT", "INOUT", "VARIADIC"]
RoutineKind = Literal["FUNCTION", "PROCEDURE"]
SecurityType = Literal["DEFINER", "INVOKER"]

_CHARACTER_TYPES = frozenset(
    {"character varying", "varchar", "character", "char", "bpchar", "bit", "bit varying", "varbit"}
)
_NUMERIC_TYPES = frozenset({"numeric", "decimal"})
_DATETIME_TYPES = frozenset(
    {
        "time",
        "time without time zone",
        "time with time zone",
        "timestamp",
        "timestamp without time zone",
        "timestamp with time zone",
        "interval",
    }
)

# <base>[(<modifiers>)][<trailing words>][[]...]
_FORMAT_TYPE_RE = re.compile(
    r"^(?P<base>.*?)(?:\((?P<mods>[^)]*)\))?(?P<rest>[^()\[\]]*)(?P<arrays>(?:\[\d*\])*)$"
)


# %% ---- Descriptors ----------------------------------------------------------------
@dataclass(frozen=True)
class TypeDescriptor:
    """The declared type of one column, attribute or parameter.

    Field names follow `information_schema.columns`. `data_type` holds the SQL
    standard spelling (`character varying`, `ARRAY`, `USER-DEFINED`), while
    `udt_name` holds the internal name (`varchar`, `_int4`, `user_role`).

    Args:
        name: Column, attribute or parameter name.
        data_type: information_schema data type.
        udt_name: Underlying type name. Defaults to `data_type`.
        udt_schema: Namespace owning the underlying type, when known.
        is_nullable: Whether the value may be NULL. Defaults to True.
        default: Column default expression, if any.
        character_maximum_length: Declared length of character and bit types.
        numeric_precision: Declared precision of numeric types.
        numeric_scale: Declared scale of numeric types.
        datetime_precision: Fractional seconds precision of temporal types.
        domain_name: Domain the column is declared with, if any.
        domain_schema: Namespace owning `domain_name`.
        array_dimensions: Number of array dimensions. 0 for scalars.
        is_array: Whether the value is an array.

    Raises:
        CatalogError: If `array_dimensions` is negative.
    """

    name: str
    data_type: str
    udt_name: str = ""
    udt_schema: str | None = None
    is_nullable: bool = True
    default: str | None = None
    character_maximum_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    datetime_precision: int | None = None
    domain_name: str | None = None
    domain_schema: str | None = None
    array_dimensions: int = 0
    is_array: bool = False

    def __post_init__(self):
        if not self.udt_name:
            object.__setattr__(self, "udt_name", self.data_type)
        if self.array_dimensions < 0:
            raise CatalogError(
                f"Descriptor '{self.name}' has a negative array dimension count "
                f"({self.array_dimensions})."
            )
        if self.data_type.upper() == "ARRAY" and not self.is_array:
            object.__setattr__(self, "is_array", True)

    @property
    def category(self) -> Literal["builtin", "array", "user-defined"]:
        if self.is_array:
            return "array"
        if self.data_type.upper() == "USER-DEFINED":
            return "user-defined"
        return "builtin"

    def with_nullability(self, is_nullable: bool) -> TypeDescriptor:
        return replace(self, is_nullable=is_nullable)

    @classmethod
    def from_format_type(
        cls,
        name: str,
        type_text: str,
        *,
        is_nullable: bool = True,
    ) -> TypeDescriptor:
        """Synthesize a descriptor from `format_type()` output.

        Composite attributes, domain base types, range subtypes and routine
        parameters only come with a rendered type such as
        `character varying(100)`, `numeric(10,2)` or `public.address[]`.
        The modifiers are parsed back into length, precision and scale,
        trailing `[]` pairs become array dimensions, and a schema
        qualification becomes `udt_schema`.

        Example:
            >>> d = TypeDescriptor.from_format_type("city", "character varying(100)")
            >>> d.data_type, d.character_maximum_length
            ('character varying', 100)
            >>> d = TypeDescriptor.from_format_type("tags", "text[]")
            >>> d.is_array, d.udt_name, d.array_dimensions
            (True, '_text', 1)
        """
        text = type_text.strip()
        match = _FORMAT_TYPE_RE.match(text)
        if match is None:
            return cls(name=name, data_type=text, is_nullable=is_nullable)

        type_name = " ".join(f"{match['base']} {match['rest']}".split())
        modifiers = [m.strip() for m in (match["mods"] or "").split(",") if m.strip()]
        dimensions = match["arrays"].count("[")

        udt_schema: str | None = None
        if not type_name.startswith('"') and "." in type_name:
            udt_schema, type_name = type_name.split(".", 1)
            udt_schema = udt_schema.strip('"')
        type_name = type_name.strip('"')
        lowered = type_name.lower()

        char_length: int | None = None
        precision: int | None = None
        scale: int | None = None
        datetime_precision: int | None = None
        if modifiers and all(m.lstrip("-").isdigit() for m in modifiers):
            values = [int(m) for m in modifiers]
            if lowered in _CHARACTER_TYPES:
                char_length = values[0]
            elif lowered in _NUMERIC_TYPES:
                precision = values[0]
                scale = values[1] if len(values) > 1 else 0
            elif lowered in _DATETIME_TYPES or lowered.startswith(("time", "interval")):
                datetime_precision = values[0]

        if dimensions:
            return cls(
                name=name,
                data_type="ARRAY",
                udt_name=f"_{type_name}",
                udt_schema=udt_schema,
                is_nullable=is_nullable,
                character_maximum_length=char_length,
                numeric_precision=precision,
                numeric_scale=scale,
                datetime_precision=datetime_precision,
                array_dimensions=dimensions,
                is_array=True,
            )
        return cls(
            name=name,
            data_type=type_name,
            udt_name=type_name,
            udt_schema=udt_schema,
            is_nullable=is_nullable,
            character_maximum_length=char_length,
            numeric_precision=precision,
            numeric_scale=scale,
            datetime_precision=datetime_precision,
        )


@dataclass(frozen=True)
class CheckConstraint:
    """A CHECK constraint clause as stored by PostgreSQL.

    Args:
        name: Constraint name.
        clause: Raw boolean clause text, e.g. `((price > (0)::numeric))`.
        column_name: Column the clause is scoped to. None for table-level
            or multi-column clauses, and for domain constraints, which
            always apply to the domain's implicit `VALUE`.
    """

    name: str
    clause: str
    column_name: str | None = None


# %% ---- User-defined types ----------------------------------------------------------
@dataclass(frozen=True)
class EnumType:
    """A PostgreSQL enum type and its labels in sort order."""

    name: str
    schema: str
    values: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.values:
            raise CatalogError(f"Enum '{self.schema}.{self.name}' has no values.")


@dataclass(frozen=True)
class DomainType:
    """A PostgreSQL domain: a base type plus nullability and CHECK constraints.

    Args:
        name: Domain name.
        schema: Owning namespace.
        data_type: `format_type()` rendering of the base type.
        character_maximum_length: Length of character base types.
        numeric_precision: Precision of numeric base types.
        numeric_scale: Scale of numeric base types.
        is_nullable: False when the domain is declared NOT NULL.
        default: Domain default expression, if any.
        check_constraints: The domain's CHECK constraints.
    """

    name: str
    schema: str
    data_type: str
    character_maximum_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    is_nullable: bool = True
    default: str | None = None
    check_constraints: tuple[CheckConstraint, ...] = ()

    def base_descriptor(self) -> TypeDescriptor:
        """Synthesize the descriptor of the domain's base type."""
        parsed = TypeDescriptor.from_format_type(
            self.name, self.data_type, is_nullable=self.is_nullable
        )
        return replace(
            parsed,
            default=self.default,
            character_maximum_length=(
                self.character_maximum_length
                if self.character_maximum_length is not None
                else parsed.character_maximum_length
            ),
            numeric_precision=(
                self.numeric_precision
                if self.numeric_precision is not None
                else parsed.numeric_precision
            ),
            numeric_scale=(
                self.numeric_scale if self.numeric_scale is not None else parsed.numeric_scale
            ),
        )


@dataclass(frozen=True)
class CompositeAttribute:
    name: str
    data_type: str
    position: int = 0

    def descriptor(self) -> TypeDescriptor:
        # Composite attributes can always hold NULL.
        return TypeDescriptor.from_format_type(self.name, self.data_type, is_nullable=True)


@dataclass(frozen=True)
class CompositeType:
    """A PostgreSQL composite (row) type created with `CREATE TYPE ... AS (...)`."""

    name: str
    schema: str
    attributes: tuple[CompositeAttribute, ...] = ()


@dataclass(frozen=True)
class RangeType:
    """A PostgreSQL range type over `subtype`."""

    name: str
    schema: str
    subtype: str

    def subtype_descriptor(self) -> TypeDescriptor:
        return TypeDescriptor.from_format_type(self.name, self.subtype, is_nullable=False)


# %% ---- Relations -------------------------------------------------------------------
@dataclass(frozen=True)
class UniqueConstraint:
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class Relationship:
    """A foreign key from a table to another relation."""

    foreign_key_name: str
    columns: tuple[str, ...]
    referenced_relation: str
    referenced_columns: tuple[str, ...]
    is_one_to_one: bool = False


@dataclass(frozen=True)
class Table:
    """A base table with its columns and table-scoped metadata."""

    name: str
    schema: str
    columns: tuple[TypeDescriptor, ...] = ()
    check_constraints: tuple[CheckConstraint, ...] = ()
    primary_keys: tuple[str, ...] = ()
    unique_constraints: tuple[UniqueConstraint, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    def __post_init__(self):
        seen: set[str] = set()
        for column in self.columns:
            if column.name in seen:
                raise CatalogError(
                    f"Duplicate column '{column.name}' in table '{self.schema}.{self.name}'."
                )
            seen.add(column.name)

    def constraints_for(self, column_name: str) -> tuple[CheckConstraint, ...]:
        """Return the CHECK constraints scoped to `column_name`, in catalog order."""
        return tuple(c for c in self.check_constraints if c.column_name == column_name)


@dataclass(frozen=True)
class View:
    """A view. Views are read-only, so only a row schema is generated."""

    name: str
    schema: str
    columns: tuple[TypeDescriptor, ...] = ()
    definition: str | None = None


@dataclass(frozen=True)
class RoutineParameter:
    name: str
    data_type: str
    udt_name: str = ""
    mode: ParameterMode = "IN"
    position: int = 0
    is_nullable: bool = False

    def descriptor(self) -> TypeDescriptor:
        return TypeDescriptor(
            name=self.name,
            data_type=self.data_type,
            udt_name=self.udt_name or self.data_type,
            is_nullable=self.is_nullable,
            is_array=self.data_type.upper() == "ARRAY",
        )


@dataclass(frozen=True)
class Routine:
    """A function or procedure and its parameters."""

    name: str
    schema: str
    kind: RoutineKind = "FUNCTION"
    security_type: SecurityType = "INVOKER"
    parameters: tuple[RoutineParameter, ...] = ()
    return_type: str | None = None
    return_udt_name: str | None = None
    returns_set: bool = False

    @property
    def input_parameters(self) -> tuple[RoutineParameter, ...]:
        return tuple(p for p in self.parameters if p.mode in ("IN", "INOUT"))

    @property
    def output_parameters(self) -> tuple[RoutineParameter, ...]:
        return tuple(p for p in self.parameters if p.mode in ("OUT", "INOUT"))

    @property
    def has_return_value(self) -> bool:
        return (
            self.kind == "FUNCTION"
            and self.return_type is not None
            and self.return_type.lower() != "void"
        )

    def return_descriptor(self) -> TypeDescriptor:
        """Synthesize the descriptor of a scalar return value."""
        return_type = self.return_type or "void"
        return TypeDescriptor(
            name="return_value",
            data_type=return_type,
            udt_name=self.return_udt_name or return_type,
            is_nullable=False,
            is_array=return_type.upper() == "ARRAY",
        )


# %% ---- Catalog ---------------------------------------------------------------------
_Named = TypeVar("_Named", EnumType, DomainType, CompositeType, RangeType, Table)


def _find(entries: Iterable[_Named], name: str, schema: str | None) -> _Named | None:
    for entry in entries:
        if entry.name == name and (schema is None or entry.schema == schema):
            return entry
    return None


@dataclass(frozen=True)
class TypeCatalog:
    """Read-only snapshot of every relation and user-defined type of a run.

    Lookups are keyed by local name plus owning namespace. When no namespace
    is given, the first entry with a matching name wins.
    """

    tables: tuple[Table, ...] = ()
    views: tuple[View, ...] = ()
    routines: tuple[Routine, ...] = ()
    enums: tuple[EnumType, ...] = ()
    composite_types: tuple[CompositeType, ...] = ()
    range_types: tuple[RangeType, ...] = ()
    domains: tuple[DomainType, ...] = ()

    def find_enum(self, name: str, schema: str | None = None) -> EnumType | None:
        return _find(self.enums, name, schema)

    def find_domain(self, name: str, schema: str | None = None) -> DomainType | None:
        return _find(self.domains, name, schema)

    def find_composite(self, name: str, schema: str | None = None) -> CompositeType | None:
        return _find(self.composite_types, name, schema)

    def find_range(self, name: str, schema: str | None = None) -> RangeType | None:
        return _find(self.range_types, name, schema)

    def find_table(self, name: str, schema: str | None = None) -> Table | None:
        return _find(self.tables, name, schema)

    @property
    def schemas(self) -> tuple[str, ...]:
        """Every namespace that owns at least one catalog entry, sorted."""
        owners: set[str] = set()
        for group in (
            self.tables,
            self.views,
            self.routines,
            self.enums,
            self.composite_types,
            self.range_types,
            self.domains,
        ):
            owners.update(entry.schema for entry in group)
        return tuple(sorted(owners))
