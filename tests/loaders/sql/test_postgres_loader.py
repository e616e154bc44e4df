"""Tests for PostgresCatalogLoader."""

from __future__ import annotations

from typing import Any

import pytest

from pg2zod.converters import to_zod
from pg2zod.exceptions import LoaderConfigError, LoaderError
from pg2zod.loaders import PostgresCatalogLoader, PostgresLoaderConfig, from_postgres
from pg2zod.loaders.sql.postgres_loader import parse_pg_array


# ---- Fixtures ----------------------------------------------------------------


class MockCursor:
    """Mock DBAPI cursor answering catalog queries with canned rows."""

    # Checked in order; the first marker found in the query text wins.
    QUERY_MARKERS = [
        ("c.contypid", "domain_constraints"),
        ("t.typtype = 'd'", "domains"),
        ("t.typtype = 'c'", "composite_types"),
        ("pg_catalog.pg_range", "range_types"),
        ("pg_catalog.pg_enum", "enums"),
        ("FROM information_schema.parameters", "parameters"),
        ("FROM information_schema.routines", "routines"),
        ("FROM information_schema.views", "views"),
        ("con.contype = 'f'", "foreign_keys"),
        ("con.contype = 'c'", "check_constraints"),
        ("'PRIMARY KEY'", "primary_keys"),
        ("'UNIQUE'", "unique_constraints"),
        ("FROM information_schema.columns", "columns"),
    ]

    def __init__(self, connection: MockConnection):
        self._connection = connection
        self._rows: list[tuple[Any, ...]] = []
        self._description: list[tuple[str, ...]] | None = None
        self.closed = False

    def execute(self, query: str, params: tuple[Any, ...] | None = None) -> None:
        kind = next(
            (name for marker, name in self.QUERY_MARKERS if marker in query), "unknown"
        )
        self._connection.calls.append((kind, params))
        if kind in self._connection.fail_on:
            raise RuntimeError(f"permission denied for {kind}")

        rows = self._connection.results.get(kind, [])
        columns = list(rows[0].keys()) if rows else []
        self._description = [(column,) for column in columns]
        self._rows = [tuple(row[column] for column in columns) for row in rows]

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows

    def close(self) -> None:
        self.closed = True

    @property
    def description(self) -> list[tuple[str, ...]] | None:
        return self._description


class MockConnection:
    """Mock DBAPI connection recording every query it serves."""

    def __init__(
        self,
        results: dict[str, list[dict[str, Any]]],
        *,
        fail_on: tuple[str, ...] = (),
    ):
        self.results = results
        self.fail_on = fail_on
        self.calls: list[tuple[str, Any]] = []
        self.cursors: list[MockCursor] = []

    def cursor(self) -> MockCursor:
        cursor = MockCursor(self)
        self.cursors.append(cursor)
        return cursor

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


def column(table: str, name: str, data_type: str, udt_name: str, **extra: Any) -> dict[str, Any]:
    row = {
        "table_schema": "public",
        "table_name": table,
        "table_type": "BASE TABLE",
        "column_name": name,
        "data_type": data_type,
        "udt_name": udt_name,
        "udt_schema": "pg_catalog",
        "is_nullable": "YES",
        "column_default": None,
        "character_maximum_length": None,
        "numeric_precision": None,
        "numeric_scale": None,
        "datetime_precision": None,
        "domain_name": None,
        "domain_schema": None,
        "array_dimensions": 0,
    }
    row.update(extra)
    return row


@pytest.fixture
def results() -> dict[str, list[dict[str, Any]]]:
    return {
        "columns": [
            column(
                "users",
                "id",
                "integer",
                "int4",
                is_nullable="NO",
                column_default="nextval('users_id_seq'::regclass)",
                numeric_precision=32,
                numeric_scale=0,
            ),
            column(
                "users",
                "email",
                "character varying",
                "varchar",
                is_nullable="NO",
                character_maximum_length=255,
            ),
            column(
                "users",
                "role",
                "USER-DEFINED",
                "user_role",
                udt_schema="public",
                is_nullable="NO",
            ),
            column("users", "tags", "ARRAY", "_text", array_dimensions=1),
            column("users", "scores", "ARRAY", "_int4", array_dimensions=None),
            column(
                "users",
                "contact",
                "character varying",
                "varchar",
                domain_name="email",
                domain_schema="public",
            ),
            column("profiles", "user_id", "integer", "int4", is_nullable="NO"),
            column("profiles", "bio", "text", "text"),
            column("active_users", "id", "integer", "int4", table_type="VIEW"),
        ],
        "check_constraints": [
            {
                "table_schema": "public",
                "table_name": "users",
                "constraint_name": "users_email_check",
                "check_clause": "CHECK (((email)::text ~* '^.+@.+$'::text))",
                "columns": "{email}",
            },
            {
                "table_schema": "public",
                "table_name": "users",
                "constraint_name": "users_id_email_check",
                "check_clause": "CHECK (((id > 0) OR (email IS NULL)))",
                "columns": ["id", "email"],
            },
        ],
        "primary_keys": [
            {"table_schema": "public", "table_name": "users", "column_name": "id"},
            {"table_schema": "public", "table_name": "profiles", "column_name": "user_id"},
        ],
        "unique_constraints": [
            {
                "table_schema": "public",
                "table_name": "users",
                "constraint_name": "users_email_key",
                "columns": ["email"],
            }
        ],
        "foreign_keys": [
            {
                "table_schema": "public",
                "table_name": "profiles",
                "constraint_name": "profiles_user_id_fkey",
                "referenced_table": "users",
                "columns": ["user_id"],
                "referenced_columns": ["id"],
            }
        ],
        "views": [
            {
                "view_name": "active_users",
                "schema_name": "public",
                "view_definition": " SELECT users.id FROM users;",
            }
        ],
        "routines": [
            {
                "specific_name": "get_user_16400",
                "routine_name": "get_user",
                "schema_name": "public",
                "routine_type": "FUNCTION",
                "security_type": "DEFINER",
                "return_type": "USER-DEFINED",
                "return_udt_name": "users",
                "returns_set": True,
            },
            {
                "specific_name": "count_users_16401",
                "routine_name": "count_users",
                "schema_name": "public",
                "routine_type": "FUNCTION",
                "security_type": "DEFINER",
                "return_type": "integer",
                "return_udt_name": "int4",
                "returns_set": False,
            },
        ],
        "parameters": [
            {
                "specific_name": "get_user_16400",
                "parameter_name": "user_id",
                "parameter_mode": "IN",
                "ordinal_position": 1,
                "data_type": "integer",
                "udt_name": "int4",
            },
            {
                "specific_name": "count_users_16401",
                "parameter_name": None,
                "parameter_mode": "IN",
                "ordinal_position": 1,
                "data_type": "boolean",
                "udt_name": "bool",
            },
        ],
        "enums": [
            {
                "enum_name": "user_role",
                "schema_name": "public",
                "enum_values": '{admin,"power user"}',
            }
        ],
        "composite_types": [
            {
                "type_name": "address",
                "schema_name": "public",
                "attribute_name": "street",
                "attribute_number": 1,
                "data_type": "text",
            },
            {
                "type_name": "address",
                "schema_name": "public",
                "attribute_name": "zip",
                "attribute_number": 2,
                "data_type": "character varying(10)",
            },
        ],
        "range_types": [
            {"range_name": "floatrange", "schema_name": "public", "subtype": "double precision"}
        ],
        "domains": [
            {
                "domain_name": "email",
                "schema_name": "public",
                "data_type": "character varying(255)",
                "is_not_null": True,
                "domain_default": None,
                "character_maximum_length": 255,
                "numeric_precision": None,
                "numeric_scale": None,
            }
        ],
        "domain_constraints": [
            {
                "domain_name": "email",
                "schema_name": "public",
                "constraint_name": "email_check",
                "check_clause": "CHECK (((VALUE)::text ~ '^[^@]+@[^@]+$'::text))",
            }
        ],
    }


@pytest.fixture
def connection(results) -> MockConnection:
    return MockConnection(results)


# ---- Relations ---------------------------------------------------------------


class TestRelations:
    def test_tables_and_columns(self, connection):
        catalog = PostgresCatalogLoader(connection).load()

        assert [table.name for table in catalog.tables] == ["users", "profiles"]
        users = catalog.find_table("users")
        assert [c.name for c in users.columns] == [
            "id",
            "email",
            "role",
            "tags",
            "scores",
            "contact",
        ]

        id_column, email, role, tags, scores, contact = users.columns
        assert id_column.is_nullable is False
        assert id_column.default == "nextval('users_id_seq'::regclass)"
        assert email.character_maximum_length == 255
        assert role.category == "user-defined"
        assert role.udt_schema == "public"
        assert tags.is_array is True
        assert tags.array_dimensions == 1
        assert scores.array_dimensions == 1
        assert contact.domain_name == "email"

    def test_check_constraint_scoping(self, connection):
        users = PostgresCatalogLoader(connection).load().find_table("users")

        assert [c.name for c in users.constraints_for("email")] == ["users_email_check"]
        table_level = [c for c in users.check_constraints if c.column_name is None]
        assert [c.name for c in table_level] == ["users_id_email_check"]

    def test_keys_and_relationships(self, connection):
        catalog = PostgresCatalogLoader(connection).load()
        users = catalog.find_table("users")
        profiles = catalog.find_table("profiles")

        assert users.primary_keys == ("id",)
        assert users.unique_constraints[0].columns == ("email",)
        relationship = profiles.relationships[0]
        assert relationship.foreign_key_name == "profiles_user_id_fkey"
        assert relationship.columns == ("user_id",)
        assert relationship.referenced_relation == "users"
        assert relationship.referenced_columns == ("id",)
        assert relationship.is_one_to_one is True

    def test_many_to_one_relationship(self, results):
        results["primary_keys"] = []
        catalog = PostgresCatalogLoader(MockConnection(results)).load()
        assert catalog.find_table("profiles").relationships[0].is_one_to_one is False

    def test_views(self, connection):
        catalog = PostgresCatalogLoader(connection).load()

        assert len(catalog.views) == 1
        view = catalog.views[0]
        assert view.name == "active_users"
        assert [c.name for c in view.columns] == ["id"]
        assert view.definition == " SELECT users.id FROM users;"


# ---- Routines and types ------------------------------------------------------


class TestRoutines:
    def test_parameters_and_returns(self, connection):
        catalog = PostgresCatalogLoader(connection).load()
        get_user, count_users = catalog.routines

        assert get_user.security_type == "DEFINER"
        assert get_user.returns_set is True
        assert get_user.return_udt_name == "users"
        assert [p.name for p in get_user.parameters] == ["user_id"]
        assert get_user.parameters[0].is_nullable is False

        assert count_users.return_udt_name == "integer"
        assert count_users.parameters[0].name == "arg1"


class TestUserDefinedTypes:
    def test_enums(self, connection):
        catalog = PostgresCatalogLoader(connection).load()
        assert catalog.find_enum("user_role").values == ("admin", "power user")

    def test_composite_types(self, connection):
        composite = PostgresCatalogLoader(connection).load().find_composite("address")
        assert [(a.name, a.data_type, a.position) for a in composite.attributes] == [
            ("street", "text", 1),
            ("zip", "character varying(10)", 2),
        ]

    def test_range_types(self, connection):
        range_type = PostgresCatalogLoader(connection).load().find_range("floatrange")
        assert range_type.subtype == "double precision"

    def test_domains(self, connection):
        domain = PostgresCatalogLoader(connection).load().find_domain("email")
        assert domain.is_nullable is False
        assert domain.character_maximum_length == 255
        assert [c.name for c in domain.check_constraints] == ["email_check"]


# ---- Query execution ---------------------------------------------------------


class TestQueryExecution:
    def test_schemas_are_passed_as_one_array(self, connection):
        PostgresCatalogLoader(connection).load(schemas=("public", "auth"))
        assert connection.calls
        assert all(params == (["public", "auth"],) for _, params in connection.calls)

    def test_every_cursor_is_closed(self, connection):
        PostgresCatalogLoader(connection).load()
        assert connection.cursors
        assert all(cursor.closed for cursor in connection.cursors)

    def test_query_failure_raises_loader_error(self, results):
        connection = MockConnection(results, fail_on=("enums",))
        with pytest.raises(LoaderError, match="Catalog query failed: permission denied"):
            PostgresCatalogLoader(connection).load()
        assert connection.cursors[-1].closed is True

    def test_empty_schema_list_raises(self, connection):
        with pytest.raises(LoaderConfigError, match="At least one schema"):
            PostgresCatalogLoader(connection).load(schemas=())
        assert connection.calls == []


# ---- Configuration -----------------------------------------------------------


class TestLoaderConfig:
    def test_skip_views(self, connection):
        config = PostgresLoaderConfig(include_views=False)
        catalog = PostgresCatalogLoader(connection, config).load()
        assert catalog.views == ()
        assert "views" not in connection.kinds

    def test_skip_routines(self, connection):
        config = PostgresLoaderConfig(include_routines=False)
        catalog = PostgresCatalogLoader(connection, config).load()
        assert catalog.routines == ()
        assert "routines" not in connection.kinds
        assert "parameters" not in connection.kinds

    def test_table_selection(self, connection):
        config = PostgresLoaderConfig(tables={"users"})
        catalog = PostgresCatalogLoader(connection, config).load()
        assert [table.name for table in catalog.tables] == ["users"]
        assert isinstance(config.tables, frozenset)

    def test_table_exclusion(self, connection):
        config = PostgresLoaderConfig(exclude_tables={"users"})
        catalog = PostgresCatalogLoader(connection, config).load()
        assert [table.name for table in catalog.tables] == ["profiles"]

    def test_empty_table_selection_raises(self):
        with pytest.raises(LoaderConfigError, match="non-empty set"):
            PostgresLoaderConfig(tables=frozenset())

    def test_overlapping_selection_raises(self):
        with pytest.raises(LoaderConfigError, match="both included and excluded: users"):
            PostgresLoaderConfig(tables={"users"}, exclude_tables={"users"})


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        (["a", "b"], ["a", "b"]),
        ("{}", []),
        ("{a,b}", ["a", "b"]),
        ('{admin,"power user"}', ["admin", "power user"]),
        ('{"a,b",c}', ["a,b", "c"]),
        ('{"say \\"hi\\""}', ['say "hi"']),
        ("plain", ["plain"]),
    ],
)
def test_parse_pg_array(value, expected):
    assert parse_pg_array(value) == expected


# ---- End to end --------------------------------------------------------------


def test_introspected_catalog_converts_to_zod(connection):
    catalog = from_postgres(connection, schemas=["public"])
    output = to_zod(catalog, include_comments=False)

    assert "export const PublicUserRoleSchema = z.enum(['admin', 'power user']);" in output
    assert (
        "export const PublicEmailSchema = z.string().max(255).regex(/^[^@]+@[^@]+$/);"
        in output
    )
    assert "  email: z.string().max(255).regex(/^.+@.+$/i),\n" in output
    assert "  contact: PublicEmailSchema.nullable(),\n" in output
    assert "  tags: z.array(z.string()).nullable(),\n" in output
    assert "export const PublicGetUserReturnSchema = z.array(PublicUsersSchema);" in output
    assert "export const PublicCountUsersReturnSchema = z.number().int();" in output
    assert 'foreignKeyName: "profiles_user_id_fkey"' in output
