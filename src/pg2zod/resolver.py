"""Resolve PostgreSQL type descriptors into validator descriptions.

`resolve()` maps one `TypeDescriptor` plus the `TypeCatalog` to a
`ResolvedValidator`: a builtin Zod expression, a reference to the generated
schema of an enum, domain, composite or range type, an array wrapper around
either of those, or an `Unknown` marker.

Resolution is first-match-wins, in this order:

1. Domain: the descriptor is declared with a domain present in the catalog.
2. Array: the element type is resolved through steps 3 to 8 and wrapped
   once, carrying the number of dimensions.
3. Custom override supplied by the caller, used verbatim.
4. Enum.
5. Composite type.
6. Range type.
7. Domain used as an element or attribute type (no `domain_name` on the
   descriptor, but the type name itself is a domain).
8. Builtin table, by information_schema data type, then by udt name.
9. `Unknown`.

The resolver never raises for unmapped types. Whether an `Unknown` becomes a
warning or a hard failure is decided by the converter.

Example:
    >>> from pg2zod.catalog import TypeCatalog, TypeDescriptor
    >>> column = TypeDescriptor(name="tags", data_type="ARRAY", udt_name="_text",
    ...                         array_dimensions=1)
    >>> resolve(column, TypeCatalog()).to_zod().to_source()
    'z.array(z.string()).nullable()'
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Literal

from .builtin_types import lookup_builtin
from .catalog import TypeCatalog, TypeDescriptor
from .diagnostics import WarningSink
from .exceptions import CatalogError, CatalogReferenceError
from .naming import schema_const_name
from .zod import ZodArray, ZodExpression, ZodReference, ZodType, nullable

logger = logging.getLogger(__name__)

ReferenceKind = Literal["enum", "domain", "composite", "range"]

# PostgreSQL names the array type of `int4` `_int4`.
ARRAY_TYPE_PREFIX = "_"


# %% ---- Resolved validators ---------------------------------------------------------
@dataclass(frozen=True)
class ResolvedValidator(ABC):
    """Abstract description of the validator that represents one type.

    Args:
        nullable: Whether the outermost validator accepts null.
    """

    nullable: bool = field(default=False, kw_only=True)

    @abstractmethod
    def base_zod(self) -> ZodType:
        """Build the Zod node without the outer `.nullable()` wrapper."""

    def to_zod(self) -> ZodType:
        return nullable(self.base_zod(), self.nullable)

    def iter_unknowns(self) -> Iterator[Unknown]:
        return iter(())


@dataclass(frozen=True)
class Builtin(ResolvedValidator):
    """A builtin type, or a caller override, with its Zod expression."""

    expression: ZodType

    def base_zod(self) -> ZodType:
        return self.expression


@dataclass(frozen=True)
class Reference(ResolvedValidator):
    """A reference to the generated schema of a user-defined type.

    Composite type schemas carry a `Composite` suffix so they never collide
    with the schema of a table of the same name.
    """

    kind: ReferenceKind
    schema: str
    name: str

    @property
    def target(self) -> str:
        suffix = "Composite" if self.kind == "composite" else ""
        return schema_const_name(self.schema, self.name, suffix)

    def base_zod(self) -> ZodType:
        return ZodReference(self.target)


@dataclass(frozen=True)
class ArrayOf(ResolvedValidator):
    """An array of `element`, `depth` dimensions deep.

    Multi-dimensional arrays are a single node with `depth > 1`, never nested
    `ArrayOf` nodes, so nullability only ever applies to the outermost array.
    """

    element: ResolvedValidator
    depth: int = 1

    def __post_init__(self):
        if self.depth < 1:
            raise CatalogError(f"Array depth must be at least 1, not {self.depth}.")
        if isinstance(self.element, ArrayOf):
            raise CatalogError(
                "ArrayOf cannot wrap another ArrayOf; use 'depth' for extra dimensions."
            )

    def base_zod(self) -> ZodType:
        return ZodArray(self.element.to_zod(), depth=self.depth)

    def iter_unknowns(self) -> Iterator[Unknown]:
        return self.element.iter_unknowns()


@dataclass(frozen=True)
class Unknown(ResolvedValidator):
    """No mapping exists for a type.

    Args:
        column_name: Column, attribute or parameter holding the type.
        data_type: information_schema data type of the descriptor.
        type_name: The type name that could not be mapped.
    """

    column_name: str
    data_type: str
    type_name: str

    @property
    def reason(self) -> str:
        return f"no mapping for {self.type_name}"

    @property
    def message(self) -> str:
        return (
            f"Unknown type: {self.data_type} (udt: {self.type_name}) "
            f"in column {self.column_name}"
        )

    def base_zod(self) -> ZodType:
        return ZodExpression("z.unknown()", notes=("unmapped type",))

    def iter_unknowns(self) -> Iterator[Unknown]:
        yield self


# %% ---- Resolver --------------------------------------------------------------------
class TypeResolver:
    """Resolve descriptors against one catalog.

    Args:
        catalog: The fully populated catalog of the current run.
        custom_type_mappings: Mapping of type name to a Zod expression used
            verbatim instead of the builtin table or catalog types.
        warnings: Sink receiving warnings about malformed catalog references.
        strict_references: Raise `CatalogReferenceError` instead of warning
            when a column names a domain the catalog does not define.
    """

    def __init__(
        self,
        catalog: TypeCatalog,
        *,
        custom_type_mappings: Mapping[str, str] | None = None,
        warnings: WarningSink | None = None,
        strict_references: bool = False,
    ) -> None:
        self.catalog = catalog
        self.custom_type_mappings: Mapping[str, str] = MappingProxyType(
            dict(custom_type_mappings or {})
        )
        self.warnings = warnings
        self.strict_references = strict_references

    def resolve(self, descriptor: TypeDescriptor) -> ResolvedValidator:
        """Resolve `descriptor` into a `ResolvedValidator`. Never raises for unmapped types."""
        if descriptor.domain_name:
            domain = self.catalog.find_domain(descriptor.domain_name, descriptor.domain_schema)
            if domain is not None:
                # The domain schema already carries the domain's own nullability.
                return Reference(
                    kind="domain",
                    schema=domain.schema,
                    name=domain.name,
                    nullable=descriptor.is_nullable,
                )
            message = (
                f"Domain '{descriptor.domain_name}' of column '{descriptor.name}' is not "
                "in the catalog"
            )
            if self.strict_references:
                raise CatalogReferenceError(message)
            self._warn(f"{message}; resolving its underlying type instead")

        if descriptor.is_array:
            element_name = descriptor.udt_name
            if element_name.startswith(ARRAY_TYPE_PREFIX):
                element_name = element_name[len(ARRAY_TYPE_PREFIX) :]
            element = replace(
                descriptor,
                data_type=element_name,
                udt_name=element_name,
                is_nullable=False,
                domain_name=None,
                domain_schema=None,
                array_dimensions=0,
                is_array=False,
            )
            return ArrayOf(
                element=self._resolve_scalar(element),
                depth=max(1, descriptor.array_dimensions),
                nullable=descriptor.is_nullable,
            )

        return self._resolve_scalar(descriptor)

    def _resolve_scalar(self, descriptor: TypeDescriptor) -> ResolvedValidator:
        udt_name = descriptor.udt_name
        schema = descriptor.udt_schema
        is_nullable = descriptor.is_nullable

        override = self.custom_type_mappings.get(udt_name)
        if override is None:
            override = self.custom_type_mappings.get(descriptor.data_type)
        if override is not None:
            return Builtin(ZodExpression(override), nullable=is_nullable)

        enum_type = self.catalog.find_enum(udt_name, schema)
        if enum_type is not None:
            return Reference(
                kind="enum", schema=enum_type.schema, name=enum_type.name, nullable=is_nullable
            )

        composite = self.catalog.find_composite(udt_name, schema)
        if composite is not None:
            return Reference(
                kind="composite",
                schema=composite.schema,
                name=composite.name,
                nullable=is_nullable,
            )

        range_type = self.catalog.find_range(udt_name, schema)
        if range_type is not None:
            return Reference(
                kind="range", schema=range_type.schema, name=range_type.name, nullable=is_nullable
            )

        domain = self.catalog.find_domain(udt_name, schema)
        if domain is not None:
            return Reference(
                kind="domain", schema=domain.schema, name=domain.name, nullable=is_nullable
            )

        factory = lookup_builtin(descriptor.data_type) or lookup_builtin(udt_name)
        if factory is not None:
            return Builtin(factory(descriptor), nullable=is_nullable)

        logger.debug(
            "No mapping for type %r (udt %r) of %r",
            descriptor.data_type,
            udt_name,
            descriptor.name,
        )
        return Unknown(
            column_name=descriptor.name,
            data_type=descriptor.data_type,
            type_name=udt_name,
            nullable=is_nullable,
        )

    def _warn(self, message: str) -> None:
        if self.warnings is not None:
            self.warnings.add(message, module=__name__)


def resolve(
    descriptor: TypeDescriptor,
    catalog: TypeCatalog,
    *,
    custom_type_mappings: Mapping[str, str] | None = None,
    warnings: WarningSink | None = None,
    strict_references: bool = False,
) -> ResolvedValidator:
    """Resolve a single descriptor. See `TypeResolver` for the arguments."""
    resolver = TypeResolver(
        catalog,
        custom_type_mappings=custom_type_mappings,
        warnings=warnings,
        strict_references=strict_references,
    )
    return resolver.resolve(descriptor)
