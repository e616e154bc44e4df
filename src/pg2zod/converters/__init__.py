from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal

from .base import BaseConverter, BaseConverterConfig
from .zod_converter import (
    GeneratedEntity,
    GenerationResult,
    ZodConverter,
    ZodConverterConfig,
    render_database_interface,
    render_document,
)

__all__ = [
    "to_zod",
    "BaseConverter",
    "BaseConverterConfig",
    "GeneratedEntity",
    "GenerationResult",
    "ZodConverter",
    "ZodConverterConfig",
    "render_database_interface",
    "render_document",
]

if TYPE_CHECKING:
    from ..catalog import TypeCatalog


def to_zod(
    catalog: TypeCatalog,
    *,
    # BaseConverterConfig options
    mode: Literal["raise", "coerce"] = "coerce",
    custom_type_mappings: Mapping[str, str] | None = None,
    # ZodConverterConfig options
    include_comments: bool = True,
    use_camel_case: bool = False,
    generate_input_schemas: bool = True,
    include_composite_types: bool = True,
    include_views: bool = True,
    include_routines: bool = True,
    include_security_invoker: bool = False,
    schemas: Iterable[str] | None = None,
    tables: Iterable[str] | None = None,
    exclude_tables: Iterable[str] | None = None,
) -> str:
    """Convert a `TypeCatalog` to a complete TypeScript module of Zod schemas.

    Args:
        catalog: The fully populated type catalog to convert.
        mode: Conversion mode. "raise" raises `UnmappedTypeError` on the first
            type without a mapping; "coerce" emits `z.unknown()` and records a
            warning. Defaults to "coerce".
        custom_type_mappings: PostgreSQL type name to Zod expression overrides.
        include_comments: Emit doc comments describing each schema and field.
        use_camel_case: Convert field names to camelCase.
        generate_input_schemas: Emit insert and update schemas for tables.
        include_composite_types: Emit composite type schemas.
        include_views: Emit view schemas.
        include_routines: Emit routine parameter and return schemas.
        include_security_invoker: Also emit SECURITY INVOKER routines.
        schemas: If provided, only entities of these schemas are emitted.
        tables: If provided, only these tables are emitted.
        exclude_tables: Tables to skip.

    Returns:
        The generated TypeScript source.
    """
    config = ZodConverterConfig(
        mode=mode,
        custom_type_mappings=MappingProxyType(dict(custom_type_mappings or {})),
        include_comments=include_comments,
        use_camel_case=use_camel_case,
        generate_input_schemas=generate_input_schemas,
        include_composite_types=include_composite_types,
        include_views=include_views,
        include_routines=include_routines,
        include_security_invoker=include_security_invoker,
        schemas=frozenset(schemas) if schemas is not None else None,
        tables=frozenset(tables) if tables is not None else None,
        exclude_tables=frozenset(exclude_tables or ()),
    )
    return render_document(ZodConverter(config).convert(catalog))
