"""Load a `TypeCatalog` from a live PostgreSQL database.

This loader queries the PostgreSQL catalogs (information_schema, pg_catalog)
and assembles every relation and user-defined type of the requested schemas
into a `TypeCatalog`.

Loaded entities:
- Tables with columns, CHECK constraints, primary keys, unique constraints
  and foreign keys
- Views with their columns and definition
- Functions and procedures with their parameters and return types
- Enum, composite, range and domain types, including domain CHECK
  constraints

Queries run one after another on the supplied connection, and the catalog
is only assembled once every query completed.

Example:
    >>> import psycopg2
    >>> from pg2zod.loaders import PostgresCatalogLoader
    >>> conn = psycopg2.connect("postgresql://localhost/mydb")
    >>> catalog = PostgresCatalogLoader(conn).load(schemas=("public",))
    >>> [table.name for table in catalog.tables]
    ['orders', 'users']
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ... import catalog as pgc
from ...exceptions import LoaderConfigError, LoaderError
from ..base import BaseLoader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostgresLoaderConfig:
    """Configuration for `PostgresCatalogLoader`.

    Args:
        include_views: Whether to introspect views. Defaults to True.
        include_routines: Whether to introspect functions and procedures.
            Defaults to True.
        tables: If provided, only these tables are loaded.
        exclude_tables: Tables to skip. Defaults to none.
    """

    include_views: bool = True
    include_routines: bool = True
    tables: frozenset[str] | None = None
    exclude_tables: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.tables is not None:
            object.__setattr__(self, "tables", frozenset(self.tables))
        object.__setattr__(self, "exclude_tables", frozenset(self.exclude_tables))
        if self.tables is not None and not self.tables:
            raise LoaderConfigError("tables must be None or a non-empty set of names.")
        if self.tables and self.tables & self.exclude_tables:
            overlap = ", ".join(sorted(self.tables & self.exclude_tables))
            raise LoaderConfigError(
                f"Tables cannot be both included and excluded: {overlap}."
            )


def parse_pg_array(value: Any) -> list[str]:
    """Normalize an array column that the driver may return as text.

    Drivers return `text[]` results as lists but may hand back `name[]` or
    custom array types in their literal form, e.g. `{a,b,"c d"}`.

    Example:
        >>> parse_pg_array('{admin,"power user"}')
        ['admin', 'power user']
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    text = str(value)
    if not (text.startswith("{") and text.endswith("}")):
        return [text]
    body = text[1:-1]
    if not body:
        return []

    items: list[str] = []
    current: list[str] = []
    quoted = False
    escaped = False
    for char in body:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == "," and not quoted:
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return items


class PostgresCatalogLoader(BaseLoader):
    """Load a `TypeCatalog` from a PostgreSQL database.

    The connection must implement the DBAPI 2.0 specification (PEP 249) and
    accept `%s` placeholders (psycopg2, psycopg). Schema lists are passed as
    a single array parameter and matched with `= ANY(%s)`.
    """

    def __init__(
        self,
        connection: Any,
        config: PostgresLoaderConfig | None = None,
    ) -> None:
        """Initialize the PostgresCatalogLoader.

        Args:
            connection: A DBAPI-compatible PostgreSQL connection. Must support
                `cursor()` returning a cursor with `execute()`, `fetchall()`,
                `close()`, and a `description` attribute.
            config: Configuration object. If None, uses default
                PostgresLoaderConfig.
        """
        self._connection = connection
        self.config = config or PostgresLoaderConfig()

    def load(self, schemas: Iterable[str] = ("public",)) -> pgc.TypeCatalog:
        """Introspect `schemas` and return the assembled catalog.

        Args:
            schemas: PostgreSQL schema names to introspect. Defaults to
                `("public",)`.

        Returns:
            A `TypeCatalog` holding every loaded entity.

        Raises:
            LoaderConfigError: If no schema is given.
            LoaderError: If a catalog query fails.
        """
        schema_list = list(schemas)
        if not schema_list:
            raise LoaderConfigError("At least one schema must be introspected.")
        logger.debug("Introspecting schemas: %s", ", ".join(schema_list))

        tables, views = self._load_relations(schema_list)
        catalog = pgc.TypeCatalog(
            tables=tables,
            views=views,
            routines=self._load_routines(schema_list) if self.config.include_routines else (),
            enums=self._load_enums(schema_list),
            composite_types=self._load_composite_types(schema_list),
            range_types=self._load_range_types(schema_list),
            domains=self._load_domains(schema_list),
        )
        logger.debug(
            "Loaded %d tables, %d views, %d routines",
            len(catalog.tables),
            len(catalog.views),
            len(catalog.routines),
        )
        return catalog

    # %% ---- Relations ---------------------------------------------------------------
    def _load_relations(
        self, schemas: list[str]
    ) -> tuple[tuple[pgc.Table, ...], tuple[pgc.View, ...]]:
        columns_by_relation: dict[tuple[str, str], list[pgc.TypeDescriptor]] = {}
        relation_kinds: dict[tuple[str, str], str] = {}
        for row in self._query_columns(schemas):
            key = (row["table_schema"], row["table_name"])
            relation_kinds[key] = row["table_type"]
            columns_by_relation.setdefault(key, []).append(self._column_descriptor(row))

        checks = self._query_check_constraints(schemas)
        primary_keys = self._query_primary_keys(schemas)
        uniques = self._query_unique_constraints(schemas)
        foreign_keys = self._query_foreign_keys(schemas)

        tables: list[pgc.Table] = []
        for key, columns in columns_by_relation.items():
            if relation_kinds[key] != "BASE TABLE" or not self._table_selected(key[1]):
                continue
            schema, name = key
            table_uniques = tuple(uniques.get(key, ()))
            table_pk = tuple(primary_keys.get(key, ()))
            tables.append(
                pgc.Table(
                    name=name,
                    schema=schema,
                    columns=tuple(columns),
                    check_constraints=tuple(checks.get(key, ())),
                    primary_keys=table_pk,
                    unique_constraints=table_uniques,
                    relationships=tuple(
                        self._relationship(row, table_pk, table_uniques)
                        for row in foreign_keys.get(key, ())
                    ),
                )
            )

        views: list[pgc.View] = []
        if self.config.include_views:
            for row in self._query_views(schemas):
                key = (row["schema_name"], row["view_name"])
                views.append(
                    pgc.View(
                        name=row["view_name"],
                        schema=row["schema_name"],
                        columns=tuple(columns_by_relation.get(key, ())),
                        definition=row["view_definition"],
                    )
                )
        return tuple(tables), tuple(views)

    def _table_selected(self, name: str) -> bool:
        if self.config.tables is not None and name not in self.config.tables:
            return False
        return name not in self.config.exclude_tables

    def _column_descriptor(self, row: dict[str, Any]) -> pgc.TypeDescriptor:
        is_array = row["data_type"] == "ARRAY"
        dimensions = row.get("array_dimensions") or 0
        if is_array and dimensions < 1:
            dimensions = 1
        return pgc.TypeDescriptor(
            name=row["column_name"],
            data_type=row["data_type"],
            udt_name=row["udt_name"],
            udt_schema=row.get("udt_schema"),
            is_nullable=row["is_nullable"] == "YES",
            default=row.get("column_default"),
            character_maximum_length=row.get("character_maximum_length"),
            numeric_precision=row.get("numeric_precision"),
            numeric_scale=row.get("numeric_scale"),
            datetime_precision=row.get("datetime_precision"),
            domain_name=row.get("domain_name"),
            domain_schema=row.get("domain_schema"),
            array_dimensions=dimensions,
            is_array=is_array,
        )

    def _relationship(
        self,
        row: dict[str, Any],
        primary_keys: tuple[str, ...],
        uniques: tuple[pgc.UniqueConstraint, ...],
    ) -> pgc.Relationship:
        columns = tuple(parse_pg_array(row["columns"]))
        # One-to-one when the referencing columns are themselves unique.
        unique_sets = [set(unique.columns) for unique in uniques]
        if primary_keys:
            unique_sets.append(set(primary_keys))
        return pgc.Relationship(
            foreign_key_name=row["constraint_name"],
            columns=columns,
            referenced_relation=row["referenced_table"],
            referenced_columns=tuple(parse_pg_array(row["referenced_columns"])),
            is_one_to_one=set(columns) in unique_sets,
        )

    def _query_columns(self, schemas: list[str]) -> list[dict[str, Any]]:
        """Query the columns of every table and view, in ordinal order."""
        query = """
        SELECT
            c.table_schema,
            c.table_name,
            t.table_type,
            c.column_name,
            c.data_type,
            c.udt_name,
            c.udt_schema,
            c.is_nullable,
            c.column_default,
            c.character_maximum_length,
            c.numeric_precision,
            c.numeric_scale,
            c.datetime_precision,
            c.domain_name,
            c.domain_schema,
            COALESCE(
                (
                    SELECT NULLIF(a.attndims, 0)
                    FROM pg_catalog.pg_attribute a
                    JOIN pg_catalog.pg_class cl ON a.attrelid = cl.oid
                    JOIN pg_catalog.pg_namespace ns ON cl.relnamespace = ns.oid
                    WHERE ns.nspname = c.table_schema
                        AND cl.relname = c.table_name
                        AND a.attname = c.column_name
                ),
                CASE WHEN c.data_type = 'ARRAY' THEN 1 ELSE 0 END
            ) AS array_dimensions
        FROM information_schema.columns c
        JOIN information_schema.tables t
            ON t.table_schema = c.table_schema
            AND t.table_name = c.table_name
        WHERE c.table_schema = ANY(%s)
            AND t.table_type IN ('BASE TABLE', 'VIEW')
        ORDER BY c.table_schema, c.table_name, c.ordinal_position
        """
        return self._execute_query(query, (schemas,))

    def _query_check_constraints(
        self, schemas: list[str]
    ) -> dict[tuple[str, str], list[pgc.CheckConstraint]]:
        """Query table CHECK constraints.

        A constraint referencing exactly one column is scoped to that column;
        multi-column constraints stay table-level.
        """
        query = """
        SELECT
            n.nspname AS table_schema,
            cl.relname AS table_name,
            con.conname AS constraint_name,
            pg_catalog.pg_get_constraintdef(con.oid) AS check_clause,
            ARRAY(
                SELECT a.attname::text
                FROM pg_catalog.pg_attribute a
                WHERE a.attrelid = con.conrelid
                    AND a.attnum = ANY(con.conkey)
                ORDER BY a.attnum
            ) AS columns
        FROM pg_catalog.pg_constraint con
        JOIN pg_catalog.pg_class cl ON con.conrelid = cl.oid
        JOIN pg_catalog.pg_namespace n ON cl.relnamespace = n.oid
        WHERE con.contype = 'c'
            AND n.nspname = ANY(%s)
        ORDER BY n.nspname, cl.relname, con.conname
        """
        result: dict[tuple[str, str], list[pgc.CheckConstraint]] = {}
        for row in self._execute_query(query, (schemas,)):
            columns = parse_pg_array(row["columns"])
            result.setdefault((row["table_schema"], row["table_name"]), []).append(
                pgc.CheckConstraint(
                    name=row["constraint_name"],
                    clause=row["check_clause"],
                    column_name=columns[0] if len(columns) == 1 else None,
                )
            )
        return result

    def _query_primary_keys(self, schemas: list[str]) -> dict[tuple[str, str], list[str]]:
        query = """
        SELECT
            tc.table_schema,
            tc.table_name,
            kcu.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
            ON tc.constraint_name = kcu.constraint_name
            AND tc.table_schema = kcu.table_schema
            AND tc.table_name = kcu.table_name
        WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_schema = ANY(%s)
        ORDER BY tc.table_schema, tc.table_name, kcu.ordinal_position
        """
        result: dict[tuple[str, str], list[str]] = {}
        for row in self._execute_query(query, (schemas,)):
            result.setdefault((row["table_schema"], row["table_name"]), []).append(
                row["column_name"]
            )
        return result

    def _query_unique_constraints(
        self, schemas: list[str]
    ) -> dict[tuple[str, str], list[pgc.UniqueConstraint]]:
        query = """
        SELECT
            tc.table_schema,
            tc.table_name,
            tc.constraint_name,
            array_agg(kcu.column_name::text ORDER BY kcu.ordinal_position) AS columns
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
            ON tc.constraint_name = kcu.constraint_name
            AND tc.table_schema = kcu.table_schema
            AND tc.table_name = kcu.table_name
        WHERE tc.constraint_type = 'UNIQUE'
            AND tc.table_schema = ANY(%s)
        GROUP BY tc.table_schema, tc.table_name, tc.constraint_name
        ORDER BY tc.table_schema, tc.table_name, tc.constraint_name
        """
        result: dict[tuple[str, str], list[pgc.UniqueConstraint]] = {}
        for row in self._execute_query(query, (schemas,)):
            result.setdefault((row["table_schema"], row["table_name"]), []).append(
                pgc.UniqueConstraint(
                    name=row["constraint_name"],
                    columns=tuple(parse_pg_array(row["columns"])),
                )
            )
        return result

    def _query_foreign_keys(
        self, schemas: list[str]
    ) -> dict[tuple[str, str], list[dict[str, Any]]]:
        query = """
        SELECT
            n.nspname AS table_schema,
            cl.relname AS table_name,
            con.conname AS constraint_name,
            ref.relname AS referenced_table,
            ARRAY(
                SELECT a.attname::text
                FROM unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord)
                JOIN pg_catalog.pg_attribute a
                    ON a.attrelid = con.conrelid AND a.attnum = k.attnum
                ORDER BY k.ord
            ) AS columns,
            ARRAY(
                SELECT a.attname::text
                FROM unnest(con.confkey) WITH ORDINALITY AS k(attnum, ord)
                JOIN pg_catalog.pg_attribute a
                    ON a.attrelid = con.confrelid AND a.attnum = k.attnum
                ORDER BY k.ord
            ) AS referenced_columns
        FROM pg_catalog.pg_constraint con
        JOIN pg_catalog.pg_class cl ON con.conrelid = cl.oid
        JOIN pg_catalog.pg_namespace n ON cl.relnamespace = n.oid
        JOIN pg_catalog.pg_class ref ON con.confrelid = ref.oid
        WHERE con.contype = 'f'
            AND n.nspname = ANY(%s)
        ORDER BY n.nspname, cl.relname, con.conname
        """
        result: dict[tuple[str, str], list[dict[str, Any]]] = {}
        for row in self._execute_query(query, (schemas,)):
            result.setdefault((row["table_schema"], row["table_name"]), []).append(row)
        return result

    def _query_views(self, schemas: list[str]) -> list[dict[str, Any]]:
        query = """
        SELECT
            table_name AS view_name,
            table_schema AS schema_name,
            view_definition
        FROM information_schema.views
        WHERE table_schema = ANY(%s)
        ORDER BY table_schema, table_name
        """
        return self._execute_query(query, (schemas,))

    # %% ---- Routines ----------------------------------------------------------------
    def _load_routines(self, schemas: list[str]) -> tuple[pgc.Routine, ...]:
        parameters: dict[str, list[pgc.RoutineParameter]] = {}
        for row in self._query_parameters(schemas):
            position = row["ordinal_position"]
            mode = row["parameter_mode"]
            parameters.setdefault(row["specific_name"], []).append(
                pgc.RoutineParameter(
                    name=row["parameter_name"] or f"arg{position}",
                    data_type=row["data_type"],
                    udt_name=row["udt_name"] or "",
                    mode=mode,
                    position=position,
                    is_nullable=mode in ("OUT", "INOUT"),
                )
            )

        routines = []
        for row in self._query_routines(schemas):
            return_type = row["return_type"]
            return_udt_name = row["return_udt_name"]
            if return_type not in ("USER-DEFINED", "ARRAY"):
                return_udt_name = return_type
            routines.append(
                pgc.Routine(
                    name=row["routine_name"],
                    schema=row["schema_name"],
                    kind=row["routine_type"],
                    security_type=row["security_type"],
                    parameters=tuple(parameters.get(row["specific_name"], ())),
                    return_type=return_type,
                    return_udt_name=return_udt_name,
                    returns_set=bool(row["returns_set"]),
                )
            )
        return tuple(routines)

    def _query_routines(self, schemas: list[str]) -> list[dict[str, Any]]:
        query = """
        SELECT
            r.specific_name,
            r.routine_name,
            r.routine_schema AS schema_name,
            r.routine_type,
            r.security_type,
            r.data_type AS return_type,
            r.type_udt_name AS return_udt_name,
            COALESCE(p.proretset, false) AS returns_set
        FROM information_schema.routines r
        LEFT JOIN pg_catalog.pg_proc p
            ON r.specific_name = p.proname || '_' || p.oid
        WHERE r.routine_schema = ANY(%s)
            AND r.routine_type IN ('FUNCTION', 'PROCEDURE')
        ORDER BY r.routine_schema, r.routine_name, r.specific_name
        """
        return self._execute_query(query, (schemas,))

    def _query_parameters(self, schemas: list[str]) -> list[dict[str, Any]]:
        query = """
        SELECT
            p.specific_name,
            p.parameter_name,
            p.parameter_mode,
            p.ordinal_position,
            p.data_type,
            p.udt_name
        FROM information_schema.parameters p
        JOIN information_schema.routines r ON p.specific_name = r.specific_name
        WHERE r.routine_schema = ANY(%s)
            AND p.parameter_mode IS NOT NULL
        ORDER BY p.specific_name, p.ordinal_position
        """
        return self._execute_query(query, (schemas,))

    # %% ---- User-defined types ------------------------------------------------------
    def _load_enums(self, schemas: list[str]) -> tuple[pgc.EnumType, ...]:
        query = """
        SELECT
            t.typname AS enum_name,
            n.nspname AS schema_name,
            array_agg(e.enumlabel::text ORDER BY e.enumsortorder) AS enum_values
        FROM pg_catalog.pg_type t
        JOIN pg_catalog.pg_enum e ON t.oid = e.enumtypid
        JOIN pg_catalog.pg_namespace n ON t.typnamespace = n.oid
        WHERE n.nspname = ANY(%s)
        GROUP BY t.typname, n.nspname
        ORDER BY n.nspname, t.typname
        """
        return tuple(
            pgc.EnumType(
                name=row["enum_name"],
                schema=row["schema_name"],
                values=tuple(parse_pg_array(row["enum_values"])),
            )
            for row in self._execute_query(query, (schemas,))
        )

    def _load_composite_types(self, schemas: list[str]) -> tuple[pgc.CompositeType, ...]:
        query = """
        SELECT
            t.typname AS type_name,
            n.nspname AS schema_name,
            a.attname AS attribute_name,
            a.attnum AS attribute_number,
            pg_catalog.format_type(a.atttypid, a.atttypmod) AS data_type
        FROM pg_catalog.pg_type t
        JOIN pg_catalog.pg_namespace n ON t.typnamespace = n.oid
        JOIN pg_catalog.pg_class c ON t.typrelid = c.oid
        JOIN pg_catalog.pg_attribute a ON c.oid = a.attrelid
        WHERE t.typtype = 'c'
            AND c.relkind = 'c'
            AND n.nspname = ANY(%s)
            AND a.attnum > 0
            AND NOT a.attisdropped
        ORDER BY n.nspname, t.typname, a.attnum
        """
        attributes: dict[tuple[str, str], list[pgc.CompositeAttribute]] = {}
        for row in self._execute_query(query, (schemas,)):
            attributes.setdefault((row["schema_name"], row["type_name"]), []).append(
                pgc.CompositeAttribute(
                    name=row["attribute_name"],
                    data_type=row["data_type"],
                    position=row["attribute_number"],
                )
            )
        return tuple(
            pgc.CompositeType(name=name, schema=schema, attributes=tuple(members))
            for (schema, name), members in attributes.items()
        )

    def _load_range_types(self, schemas: list[str]) -> tuple[pgc.RangeType, ...]:
        query = """
        SELECT
            t.typname AS range_name,
            n.nspname AS schema_name,
            pg_catalog.format_type(r.rngsubtype, NULL) AS subtype
        FROM pg_catalog.pg_type t
        JOIN pg_catalog.pg_namespace n ON t.typnamespace = n.oid
        JOIN pg_catalog.pg_range r ON t.oid = r.rngtypid
        WHERE n.nspname = ANY(%s)
        ORDER BY n.nspname, t.typname
        """
        return tuple(
            pgc.RangeType(
                name=row["range_name"], schema=row["schema_name"], subtype=row["subtype"]
            )
            for row in self._execute_query(query, (schemas,))
        )

    def _load_domains(self, schemas: list[str]) -> tuple[pgc.DomainType, ...]:
        domains_query = """
        SELECT
            t.typname AS domain_name,
            n.nspname AS schema_name,
            pg_catalog.format_type(t.typbasetype, t.typtypmod) AS data_type,
            t.typnotnull AS is_not_null,
            t.typdefault AS domain_default,
            information_schema._pg_char_max_length(t.typbasetype, t.typtypmod)
                AS character_maximum_length,
            information_schema._pg_numeric_precision(t.typbasetype, t.typtypmod)
                AS numeric_precision,
            information_schema._pg_numeric_scale(t.typbasetype, t.typtypmod)
                AS numeric_scale
        FROM pg_catalog.pg_type t
        JOIN pg_catalog.pg_namespace n ON t.typnamespace = n.oid
        WHERE t.typtype = 'd'
            AND n.nspname = ANY(%s)
        ORDER BY n.nspname, t.typname
        """
        constraints_query = """
        SELECT
            t.typname AS domain_name,
            n.nspname AS schema_name,
            c.conname AS constraint_name,
            pg_catalog.pg_get_constraintdef(c.oid) AS check_clause
        FROM pg_catalog.pg_constraint c
        JOIN pg_catalog.pg_type t ON c.contypid = t.oid
        JOIN pg_catalog.pg_namespace n ON t.typnamespace = n.oid
        WHERE c.contype = 'c'
            AND n.nspname = ANY(%s)
        ORDER BY n.nspname, t.typname, c.conname
        """
        domain_rows = self._execute_query(domains_query, (schemas,))
        checks: dict[tuple[str, str], list[pgc.CheckConstraint]] = {}
        for row in self._execute_query(constraints_query, (schemas,)):
            checks.setdefault((row["schema_name"], row["domain_name"]), []).append(
                pgc.CheckConstraint(name=row["constraint_name"], clause=row["check_clause"])
            )

        return tuple(
            pgc.DomainType(
                name=row["domain_name"],
                schema=row["schema_name"],
                data_type=row["data_type"],
                character_maximum_length=row["character_maximum_length"],
                numeric_precision=row["numeric_precision"],
                numeric_scale=row["numeric_scale"],
                is_nullable=not row["is_not_null"],
                default=row["domain_default"],
                check_constraints=tuple(
                    checks.get((row["schema_name"], row["domain_name"]), ())
                ),
            )
            for row in domain_rows
        )

    # %% ---- DBAPI -------------------------------------------------------------------
    def _execute_query(
        self,
        query: str,
        params: tuple[Any, ...] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a query and return results as a list of dictionaries.

        Args:
            query: SQL query string with parameter placeholders.
            params: Optional tuple of parameter values.

        Returns:
            List of dictionaries where keys are column names from the query.

        Raises:
            LoaderError: If the driver raises while executing the query.
        """
        logger.debug("Running catalog query: %s", " ".join(query.split())[:80])
        cursor = self._connection.cursor()
        try:
            try:
                cursor.execute(query, params)
            except Exception as exc:
                raise LoaderError(
                    f"Catalog query failed: {exc}",
                    suggestions=["Check that the connected role can read pg_catalog"],
                ) from exc
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()
