"""Zod converter from a pg2zod `TypeCatalog` to TypeScript source.

This module defines the `ZodConverter`, responsible for producing one block
of TypeScript per catalog entity (enums, domains, range types, composite
types, tables, views and routines), and `render_document()`, which
assembles those blocks into a complete module with a `Database` interface.

Example:
    >>> from pg2zod.catalog import EnumType, TypeCatalog
    >>> from pg2zod.converters import ZodConverter, ZodConverterConfig
    >>> catalog = TypeCatalog(
    ...     enums=(EnumType(name="user_role", schema="public", values=("admin", "user")),),
    ... )
    >>> converter = ZodConverter(ZodConverterConfig(include_comments=False))
    >>> print(converter.convert(catalog).enums[0].code, end="")
    export const PublicUserRoleSchema = z.enum(['admin', 'user']);
    export type PublicUserRole = z.infer<typeof PublicUserRoleSchema>;
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Literal, TypeVar

from ..catalog import (
    CompositeType,
    DomainType,
    EnumType,
    RangeType,
    Relationship,
    Routine,
    RoutineParameter,
    Table,
    TypeCatalog,
    TypeDescriptor,
    View,
)
from ..compositor import compose_schema
from ..constraints import DOMAIN_VALUE, parse_predicates
from ..diagnostics import WarningSink
from ..exceptions import ConverterConfigError
from ..naming import qualified_name, schema_const_name, to_camel_case
from ..resolver import TypeResolver
from ..zod import (
    ZodArray,
    ZodEnum,
    ZodOptional,
    ZodReference,
    ZodTuple,
    ZodType,
    nullable,
    string_literal,
)
from .base import BaseConverter, BaseConverterConfig, Mode

logger = logging.getLogger(__name__)

EntityKind = Literal["enum", "domain", "range", "composite", "table", "view", "routine"]

# Pseudo-types only usable from C or by the server itself.
INTERNAL_PSEUDO_TYPES = frozenset(
    {
        "internal",
        "trigger",
        "event_trigger",
        "cstring",
        "opaque",
        '"char"',
        "language_handler",
        "fdw_handler",
        "index_am_handler",
        "tsm_handler",
        "table_am_handler",
    }
)

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_BANNER = "// " + "=" * 44

_Field = tuple[str, ZodType, str]
_Entry = TypeVar("_Entry", EnumType, DomainType, RangeType, CompositeType, View)


# %% ---- Configuration --------------------------------------------------------------
@dataclass(frozen=True)
class ZodConverterConfig(BaseConverterConfig):
    """Configuration for ZodConverter.

    Args:
        include_comments: Emit `/** ... */` doc comments describing the
            PostgreSQL source of each schema and field. Defaults to True.
        use_camel_case: Convert field names to camelCase. Defaults to False.
        generate_input_schemas: Emit `...InsertSchema` and `...UpdateSchema`
            for each table. Defaults to True.
        include_composite_types: Emit composite type schemas. Defaults to True.
        include_views: Emit view schemas. Defaults to True.
        include_routines: Emit routine parameter and return schemas.
            Defaults to True.
        include_security_invoker: Also emit SECURITY INVOKER routines. By
            default only SECURITY DEFINER routines are emitted.
        schemas: Only emit entities owned by these schemas. None emits all.
        tables: Only emit these tables, by name or `schema.name`. None emits
            all tables.
        exclude_tables: Tables to skip, by name or `schema.name`.
    """

    include_comments: bool = True
    use_camel_case: bool = False
    generate_input_schemas: bool = True
    include_composite_types: bool = True
    include_views: bool = True
    include_routines: bool = True
    include_security_invoker: bool = False
    schemas: frozenset[str] | None = None
    tables: frozenset[str] | None = None
    exclude_tables: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        super().__post_init__()
        for name in ("schemas", "tables"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, frozenset(value))
        object.__setattr__(self, "exclude_tables", frozenset(self.exclude_tables))

        if self.schemas is not None and not self.schemas:
            raise ConverterConfigError("schemas must not be empty when provided.")

        if self.tables is not None and self.exclude_tables:
            overlap = self.tables & self.exclude_tables
            if overlap:
                raise ConverterConfigError(
                    f"Tables cannot be both included and excluded: {sorted(overlap)}"
                )


# %% ---- Results --------------------------------------------------------------------
@dataclass(frozen=True)
class GeneratedEntity:
    """TypeScript code generated for one catalog entity.

    Args:
        kind: Entity kind.
        schema: Owning PostgreSQL schema.
        name: PostgreSQL name of the entity.
        type_name: Name of the exported TypeScript type, e.g. `PublicUsers`.
        code: The generated TypeScript block.
        has_params: Routines only: a `...Params` type was emitted.
        has_return: Routines only: a `...Return` type was emitted.
        relationships: Tables only: foreign keys of the table.
    """

    kind: EntityKind
    schema: str
    name: str
    type_name: str
    code: str
    has_params: bool = False
    has_return: bool = False
    relationships: tuple[Relationship, ...] = ()


@dataclass(frozen=True)
class GenerationResult:
    """Everything generated from one catalog, plus the warnings of the run."""

    enums: tuple[GeneratedEntity, ...] = ()
    domains: tuple[GeneratedEntity, ...] = ()
    ranges: tuple[GeneratedEntity, ...] = ()
    composite_types: tuple[GeneratedEntity, ...] = ()
    tables: tuple[GeneratedEntity, ...] = ()
    views: tuple[GeneratedEntity, ...] = ()
    routines: tuple[GeneratedEntity, ...] = ()
    warnings: tuple[str, ...] = ()
    has_input_schemas: bool = True

    @property
    def entities(self) -> tuple[GeneratedEntity, ...]:
        return (
            self.enums
            + self.domains
            + self.ranges
            + self.composite_types
            + self.tables
            + self.views
            + self.routines
        )


@dataclass(frozen=True)
class _Run:
    catalog: TypeCatalog
    resolver: TypeResolver
    warnings: WarningSink


# %% ---- Converter ------------------------------------------------------------------
class ZodConverter(BaseConverter):
    """Convert a `TypeCatalog` into Zod schemas.

    Every column, attribute and parameter goes through the same pipeline:
    the type is resolved against the catalog, the CHECK constraints scoped
    to it are parsed into predicates, and the predicates are folded onto the
    resolved validator.

    Notes:
        - Unmapped types become `z.unknown()` with a warning in "coerce" mode
          and raise `UnmappedTypeError` in "raise" mode.
        - Routines using internal pseudo-types, routines with duplicate
          parameter names and overloads of an already emitted routine are
          skipped.
    """

    def __init__(self, config: ZodConverterConfig | None = None) -> None:
        """Initialize the ZodConverter.

        Args:
            config: Configuration object. If None, uses default ZodConverterConfig.
        """
        self.config: ZodConverterConfig = config or ZodConverterConfig()
        super().__init__(self.config)

    def convert(self, catalog: TypeCatalog, *, mode: Mode | None = None) -> GenerationResult:
        """Generate Zod schemas for every selected entity of `catalog`.

        Args:
            catalog: The fully populated type catalog.
            mode: Optional conversion mode override for this call. When not
                provided, the converter's configured mode is used.

        Returns:
            A `GenerationResult` with one `GeneratedEntity` per emitted entity
            and the warnings recorded during the run.
        """
        with self.conversion_context(mode=mode):
            warnings = WarningSink()
            run = _Run(
                catalog=catalog,
                resolver=TypeResolver(
                    catalog,
                    custom_type_mappings=self.config.custom_type_mappings,
                    warnings=warnings,
                    strict_references=self.config.mode == "raise",
                ),
                warnings=warnings,
            )

            enums = tuple(self._convert_enum(e) for e in self._in_schemas(catalog.enums))
            domains = tuple(
                self._convert_domain(run, d) for d in self._in_schemas(catalog.domains)
            )
            ranges = tuple(
                self._convert_range(run, r) for r in self._in_schemas(catalog.range_types)
            )
            composite_types: tuple[GeneratedEntity, ...] = ()
            if self.config.include_composite_types:
                composite_types = tuple(
                    self._convert_composite(run, c)
                    for c in self._in_schemas(catalog.composite_types)
                )
            tables = tuple(self._convert_table(run, t) for t in self._select_tables(catalog))
            views: tuple[GeneratedEntity, ...] = ()
            if self.config.include_views:
                views = tuple(self._convert_view(run, v) for v in self._in_schemas(catalog.views))
            routines: tuple[GeneratedEntity, ...] = ()
            if self.config.include_routines:
                routines = tuple(
                    self._convert_routine(run, r) for r in self._select_routines(catalog)
                )

        return GenerationResult(
            enums=enums,
            domains=domains,
            ranges=ranges,
            composite_types=composite_types,
            tables=tables,
            views=views,
            routines=routines,
            warnings=warnings.messages,
            has_input_schemas=self.config.generate_input_schemas,
        )

    # %% ---- Selection ---------------------------------------------------------------
    def _in_schemas(self, entries: Iterable[_Entry]) -> Iterator[_Entry]:
        for entry in entries:
            if self.config.schemas is None or entry.schema in self.config.schemas:
                yield entry

    def _select_tables(self, catalog: TypeCatalog) -> Iterator[Table]:
        for table in catalog.tables:
            if self.config.schemas is not None and table.schema not in self.config.schemas:
                continue
            names = {table.name, f"{table.schema}.{table.name}"}
            if self.config.tables is not None and not names & self.config.tables:
                continue
            if names & self.config.exclude_tables:
                continue
            yield table

    def _select_routines(self, catalog: TypeCatalog) -> Iterator[Routine]:
        seen: set[str] = set()
        for routine in catalog.routines:
            if self.config.schemas is not None and routine.schema not in self.config.schemas:
                continue
            label = f"{routine.schema}.{routine.name}"
            if routine.security_type == "INVOKER" and not self.config.include_security_invoker:
                logger.debug("Skipping SECURITY INVOKER routine %s", label)
                continue
            if self._uses_internal_type(routine):
                logger.debug("Skipping routine %s using an internal pseudo-type", label)
                continue
            parameter_names = [p.name.lower() for p in routine.parameters]
            if len(set(parameter_names)) != len(parameter_names):
                logger.debug("Skipping routine %s with duplicate parameter names", label)
                continue
            base_name = qualified_name(routine.schema, routine.name)
            if base_name in seen:
                logger.debug("Skipping overload of routine %s", label)
                continue
            seen.add(base_name)
            yield routine

    @staticmethod
    def _uses_internal_type(routine: Routine) -> bool:
        type_names = [routine.return_type, routine.return_udt_name]
        for parameter in routine.parameters:
            type_names.extend((parameter.data_type, parameter.udt_name))
        return any(name and name.lower() in INTERNAL_PSEUDO_TYPES for name in type_names)

    # %% ---- Entities ----------------------------------------------------------------
    def _convert_enum(self, enum_type: EnumType) -> GeneratedEntity:
        base_name = qualified_name(enum_type.schema, enum_type.name)
        code = self._doc(f"PostgreSQL enum: {enum_type.name}")
        code += _export(f"{base_name}Schema", ZodEnum(enum_type.values).to_source(), base_name)
        return self._entity("enum", enum_type.schema, enum_type.name, base_name, code)

    def _convert_domain(self, run: _Run, domain: DomainType) -> GeneratedEntity:
        base_name = qualified_name(domain.schema, domain.name)
        with self.conversion_context(entity=f"domain {domain.schema}.{domain.name}"):
            clauses = [c.clause for c in domain.check_constraints]
            node = self._field_schema(run, domain.base_descriptor(), clauses, DOMAIN_VALUE)
        code = self._doc(f"PostgreSQL domain: {domain.name} (base: {domain.data_type})")
        code += _export(f"{base_name}Schema", node.to_source(), base_name)
        return self._entity("domain", domain.schema, domain.name, base_name, code)

    def _convert_range(self, run: _Run, range_type: RangeType) -> GeneratedEntity:
        base_name = qualified_name(range_type.schema, range_type.name)
        with self.conversion_context(entity=f"range {range_type.schema}.{range_type.name}"):
            subtype = self._field_schema(run, range_type.subtype_descriptor())
        # Either bound of a range may be unbounded.
        node = ZodTuple((nullable(subtype), nullable(subtype)))
        code = self._doc(f"PostgreSQL range type: {range_type.name}<{range_type.subtype}>")
        code += _export(f"{base_name}Schema", node.to_source(), base_name)
        return self._entity("range", range_type.schema, range_type.name, base_name, code)

    def _convert_composite(self, run: _Run, composite: CompositeType) -> GeneratedEntity:
        base_name = qualified_name(composite.schema, composite.name, "Composite")
        fields: list[_Field] = []
        entity = f"composite type {composite.schema}.{composite.name}"
        with self.conversion_context(entity=entity):
            for attribute in sorted(composite.attributes, key=lambda a: a.position):
                node = self._field_schema(run, attribute.descriptor())
                fields.append((self._field_key(attribute.name), node, attribute.data_type))
        code = self._doc(f"PostgreSQL composite type: {composite.name}")
        code += _export(f"{base_name}Schema", self._object(fields), base_name)
        return self._entity("composite", composite.schema, composite.name, base_name, code)

    def _convert_table(self, run: _Run, table: Table) -> GeneratedEntity:
        base_name = qualified_name(table.schema, table.name)
        read_const = f"{base_name}Schema"
        fields: list[_Field] = []
        optional_fields: list[_Field] = []

        with self.conversion_context(entity=f"table {table.schema}.{table.name}"):
            for column in table.columns:
                clauses = [c.clause for c in table.constraints_for(column.name)]
                node = self._field_schema(run, column, clauses)
                key = self._field_key(column.name)
                comment = [column.data_type]
                if column.default is not None:
                    comment.append(f"default: {column.default}")
                fields.append((key, node, ", ".join(comment)))

                # Columns with a default may be omitted on insert.
                if column.default is not None:
                    if "nextval" in column.default:
                        comment.append("auto-generated")
                    optional_fields.append((key, ZodOptional(node), ", ".join(comment)))

        blocks = [
            self._doc(f"Table: {table.schema}.{table.name}")
            + _export(read_const, self._object(fields), base_name)
        ]
        if self.config.generate_input_schemas:
            insert_type = f"{base_name}Insert"
            update_type = f"{base_name}Update"
            insert_expression = read_const
            if optional_fields:
                insert_expression = self._object(
                    optional_fields, constructor=f"{read_const}.extend"
                )
            blocks.append(
                self._doc(f"Insert schema for {table.name}")
                + _export(f"{insert_type}Schema", insert_expression, insert_type)
            )
            blocks.append(
                self._doc(f"Update schema for {table.name} (all fields optional)")
                + _export(f"{update_type}Schema", f"{read_const}.partial()", update_type)
            )

        return self._entity(
            "table",
            table.schema,
            table.name,
            base_name,
            "\n".join(blocks),
            relationships=table.relationships,
        )

    def _convert_view(self, run: _Run, view: View) -> GeneratedEntity:
        base_name = qualified_name(view.schema, view.name, "View")
        fields: list[_Field] = []
        with self.conversion_context(entity=f"view {view.schema}.{view.name}"):
            for column in view.columns:
                node = self._field_schema(run, column)
                fields.append((self._field_key(column.name), node, column.data_type))
        code = self._doc(f"View: {view.schema}.{view.name} (read-only)")
        code += _export(f"{base_name}Schema", self._object(fields), base_name)
        return self._entity("view", view.schema, view.name, base_name, code)

    def _convert_routine(self, run: _Run, routine: Routine) -> GeneratedEntity:
        base_name = qualified_name(routine.schema, routine.name)
        code = self._doc(f"{routine.kind}: {routine.schema}.{routine.name}")
        inputs = routine.input_parameters
        outputs = routine.output_parameters

        with self.conversion_context(entity=f"routine {routine.schema}.{routine.name}"):
            if inputs:
                code += _export(
                    f"{base_name}ParamsSchema",
                    self._object(self._parameter_fields(run, inputs)),
                    f"{base_name}Params",
                )
                code += "\n"

            if outputs:
                # OUT and INOUT parameters make up the returned record.
                code += _export(
                    f"{base_name}ReturnSchema",
                    self._object(self._parameter_fields(run, outputs)),
                    f"{base_name}Return",
                )
            elif routine.has_return_value:
                node = self._return_schema(run, routine)
                code += self._doc(f"Returns: {routine.return_type}")
                code += _export(
                    f"{base_name}ReturnSchema", node.to_source(), f"{base_name}Return"
                )

        return self._entity(
            "routine",
            routine.schema,
            routine.name,
            base_name,
            code,
            has_params=bool(inputs),
            has_return=bool(outputs) or routine.has_return_value,
        )

    # %% ---- Fields ------------------------------------------------------------------
    def _field_schema(
        self,
        run: _Run,
        descriptor: TypeDescriptor,
        clauses: Sequence[str] = (),
        subject: str | None = None,
    ) -> ZodType:
        validator = run.resolver.resolve(descriptor)
        self._report_unknowns(validator, run.warnings)
        predicates = parse_predicates(subject or descriptor.name, clauses)
        return compose_schema(validator, predicates)

    def _parameter_fields(
        self, run: _Run, parameters: Iterable[RoutineParameter]
    ) -> list[_Field]:
        return [
            (
                self._field_key(parameter.name),
                self._field_schema(run, parameter.descriptor()),
                f"{parameter.data_type} ({parameter.mode})",
            )
            for parameter in parameters
        ]

    def _return_schema(self, run: _Run, routine: Routine) -> ZodType:
        descriptor = routine.return_descriptor()
        table = None
        if not descriptor.is_array:
            table = run.catalog.find_table(descriptor.udt_name)
        if table is not None:
            node: ZodType = ZodReference(schema_const_name(table.schema, table.name))
        else:
            node = self._field_schema(run, descriptor)
        if routine.returns_set:
            node = ZodArray(node)
        return node

    def _field_key(self, name: str) -> str:
        if self.config.use_camel_case:
            name = to_camel_case(name)
        return property_key(name)

    # %% ---- Rendering ---------------------------------------------------------------
    def _doc(self, text: str, indent: str = "") -> str:
        if not self.config.include_comments:
            return ""
        return f"{indent}/** {text.replace('*/', '* /')} */\n"

    def _object(self, fields: Iterable[_Field], constructor: str = "z.object") -> str:
        body = ""
        for key, node, comment in fields:
            body += self._doc(comment, indent="  ")
            body += f"  {key}: {node.to_source()},\n"
        return f"{constructor}({{\n{body}}})"

    def _entity(
        self, kind: EntityKind, schema: str, name: str, type_name: str, code: str, **extra
    ) -> GeneratedEntity:
        logger.debug("Generated %s schema %s for %s.%s", kind, type_name, schema, name)
        return GeneratedEntity(
            kind=kind, schema=schema, name=name, type_name=type_name, code=code, **extra
        )


def property_key(name: str) -> str:
    """Return `name` as a TypeScript property key, quoting it when required."""
    return name if _IDENTIFIER.match(name) else string_literal(name)


def _export(const_name: str, expression: str, type_name: str) -> str:
    return (
        f"export const {const_name} = {expression};\n"
        f"export type {type_name} = z.infer<typeof {const_name}>;\n"
    )


# %% ---- Document -------------------------------------------------------------------
HEADER = """\
/**
 * ==========================================
 *     | GENERATED BY PG2ZOD |
 * ==========================================
 *
 * DO NOT EDIT THIS FILE MANUALLY!
 *
 * This file was automatically generated from
 * your PostgreSQL database schema.
 *
 * Any manual changes will be overwritten when
 * the code is regenerated.
 * ==========================================
 */

"""

NEVER = "[_ in never]: never"


def _section(title: str) -> str:
    return f"{_BANNER}\n// {title}\n{_BANNER}\n\n"


def _string_list(values: Iterable[str]) -> str:
    return ", ".join(json.dumps(value) for value in values)


def _group(title: str, entries: list[str]) -> list[str]:
    lines = [f"    {title}: {{"]
    lines.extend(entries or [f"      {NEVER}"])
    lines.append("    };")
    return lines


def _table_entry(entity: GeneratedEntity, has_input_schemas: bool) -> list[str]:
    row = entity.type_name
    insert = f"{row}Insert" if has_input_schemas else row
    update = f"{row}Update" if has_input_schemas else f"Partial<{row}>"
    lines = [
        f"      {property_key(entity.name)}: {{",
        f"        Row: {row};",
        f"        Insert: {insert};",
        f"        Update: {update};",
        "        Relationships: [",
    ]
    for relationship in entity.relationships:
        lines.extend(
            [
                "          {",
                f"            foreignKeyName: {json.dumps(relationship.foreign_key_name)}",
                f"            columns: [{_string_list(relationship.columns)}]",
                f"            isOneToOne: {'true' if relationship.is_one_to_one else 'false'}",
                f"            referencedRelation: {json.dumps(relationship.referenced_relation)}",
                "            referencedColumns: "
                f"[{_string_list(relationship.referenced_columns)}]",
                "          },",
            ]
        )
    lines.extend(["        ];", "      };"])
    return lines


def _routine_entry(entity: GeneratedEntity) -> list[str]:
    args = f"{entity.type_name}Params" if entity.has_params else "Record<string, never>"
    returns = f"{entity.type_name}Return" if entity.has_return else "void"
    return [
        f"      {property_key(entity.name)}: {{",
        f"        Args: {args};",
        f"        Returns: {returns};",
        "      };",
    ]


def _owned(entities: tuple[GeneratedEntity, ...], schema: str) -> list[GeneratedEntity]:
    return [entity for entity in entities if entity.schema == schema]


def _alias_entry(entity: GeneratedEntity) -> list[str]:
    return [f"      {property_key(entity.name)}: {entity.type_name};"]


def _view_entry(entity: GeneratedEntity) -> list[str]:
    return [
        f"      {property_key(entity.name)}: {{",
        f"        Row: {entity.type_name};",
        "      };",
    ]


def render_database_interface(result: GenerationResult) -> str:
    """Render the `Database` interface grouping generated types by schema."""
    lines = [_BANNER, "// Database Types", _BANNER, "", "export interface Database {"]
    for schema in sorted({entity.schema for entity in result.entities}):
        tables = [
            line
            for entity in _owned(result.tables, schema)
            for line in _table_entry(entity, result.has_input_schemas)
        ]
        views = [
            line for entity in _owned(result.views, schema) for line in _view_entry(entity)
        ]
        functions = [
            line for entity in _owned(result.routines, schema) for line in _routine_entry(entity)
        ]
        enums = [
            line for entity in _owned(result.enums, schema) for line in _alias_entry(entity)
        ]
        composite_types = [
            line
            for entity in _owned(result.composite_types, schema)
            for line in _alias_entry(entity)
        ]

        lines.append(f"  {property_key(schema)}: {{")
        lines += _group("Tables", tables)
        lines += _group("Views", views)
        lines += _group("Functions", functions)
        lines += _group("Enums", enums)
        lines += _group("CompositeTypes", composite_types)
        lines.append("  };")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_document(result: GenerationResult) -> str:
    """Assemble a complete TypeScript module from a `GenerationResult`.

    The module holds the header, the `zod` import, one section per entity
    kind, the `Database` interface and, when any were recorded, the warnings
    of the run as trailing comments.
    """
    parts = [HEADER, "import { z } from 'zod';\n\n"]
    sections = (
        ("Enums", result.enums),
        ("Domains", result.domains),
        ("Range Types", result.ranges),
        ("Composite Types", result.composite_types),
        ("Tables", result.tables),
        ("Views", result.views),
        ("Routines (Functions/Procedures)", result.routines),
    )
    for title, entities in sections:
        if not entities:
            continue
        parts.append(_section(title))
        parts.extend(f"{entity.code}\n" for entity in entities)

    parts.append(render_database_interface(result) + "\n")

    if result.warnings:
        parts.append(f"{_BANNER}\n// Warnings\n{_BANNER}\n")
        parts.append("// The following warnings were generated:\n")
        parts.extend(f"// - {' '.join(warning.split())}\n" for warning in result.warnings)

    return "".join(parts)
