"""Deserialize dictionaries into `TypeCatalog` instances.

The accepted document mirrors the catalog structures one to one. Every
top-level key is optional:

```yaml
enums:
  - name: user_role
    values: [admin, user]
domains:
  - name: email
    data_type: text
    check_constraints: ["VALUE ~ '^[^@]+@[^@]+$'"]
tables:
  - name: users
    schema: public
    primary_keys: [id]
    columns:
      - {name: id, type: integer, is_nullable: false}
      - {name: role, data_type: USER-DEFINED, udt_name: user_role}
      - {name: age, type: integer, check_constraints: ["age >= 0"]}
```

Columns, attributes and parameters accept either the `information_schema`
fields (`data_type`, `udt_name`, ...) or a `type` shorthand holding the
`format_type()` rendering, e.g. `character varying(100)` or `text[]`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import fields, replace
from typing import Any, cast

from .. import catalog as pgc
from ..exceptions import CatalogError, CatalogParsingError, CatalogReferenceError

DEFAULT_SCHEMA = "public"

_DESCRIPTOR_KEYS = frozenset(f.name for f in fields(pgc.TypeDescriptor))
_TYPE_SHORTHAND_EXCLUSIVE = frozenset(
    {"data_type", "udt_name", "udt_schema", "array_dimensions", "is_array"}
)


# %% ---- Catalog deserializer --------------------------------------------------------
class CatalogDeserializer:
    """Builds and validates a `TypeCatalog` from a dictionary.

    Structural problems (unknown keys, missing keys, wrong value shapes)
    raise `CatalogParsingError` naming the offending entry. Constraints that
    reference a column the table does not define raise
    `CatalogReferenceError`.
    """

    def __init__(self, *, default_schema: str = DEFAULT_SCHEMA) -> None:
        self.default_schema = default_schema

    def deserialize(self, data: Mapping[str, Any]) -> pgc.TypeCatalog:
        """Build the `TypeCatalog` from provided data."""
        if not isinstance(data, Mapping):
            raise CatalogParsingError("Catalog definition must be a mapping.")
        self._validate_keys(
            data,
            allowed_keys={
                "tables",
                "views",
                "routines",
                "enums",
                "composite_types",
                "range_types",
                "domains",
            },
            context="catalog definition",
        )
        return pgc.TypeCatalog(
            enums=self._parse_all(data.get("enums"), self._parse_enum, "enums"),
            domains=self._parse_all(data.get("domains"), self._parse_domain, "domains"),
            composite_types=self._parse_all(
                data.get("composite_types"), self._parse_composite, "composite_types"
            ),
            range_types=self._parse_all(
                data.get("range_types"), self._parse_range, "range_types"
            ),
            tables=self._parse_all(data.get("tables"), self._parse_table, "tables"),
            views=self._parse_all(data.get("views"), self._parse_view, "views"),
            routines=self._parse_all(
                data.get("routines"), self._parse_routine, "routines"
            ),
        )

    def _parse_all(self, raw: Any, parse, context: str) -> tuple:
        if raw is None:
            return ()
        entries = self._ensure_mapping_sequence(raw, context=context)
        parsed = []
        for entry in entries:
            try:
                parsed.append(parse(entry))
            except (CatalogParsingError, CatalogReferenceError):
                raise
            except CatalogError as exc:
                raise CatalogParsingError(
                    f"Invalid entry '{entry.get('name')}' in {context}: {exc}"
                ) from exc
        return tuple(parsed)

    # %% ---- Types -------------------------------------------------------------------
    def _parse_enum(self, entry: dict[str, Any]) -> pgc.EnumType:
        name, schema = self._identity(entry, context="enum")
        context = f"enum '{name}'"
        self._validate_keys(
            entry,
            allowed_keys={"name", "schema", "values"},
            required_keys={"name", "values"},
            context=context,
        )
        return pgc.EnumType(
            name=name,
            schema=schema,
            values=self._string_tuple(entry["values"], context=f"'values' of {context}"),
        )

    def _parse_domain(self, entry: dict[str, Any]) -> pgc.DomainType:
        name, schema = self._identity(entry, context="domain")
        context = f"domain '{name}'"
        self._validate_keys(
            entry,
            allowed_keys={
                "name",
                "schema",
                "data_type",
                "character_maximum_length",
                "numeric_precision",
                "numeric_scale",
                "is_nullable",
                "default",
                "check_constraints",
            },
            required_keys={"name", "data_type"},
            context=context,
        )
        return pgc.DomainType(
            name=name,
            schema=schema,
            data_type=self._string(entry["data_type"], context=f"'data_type' of {context}"),
            character_maximum_length=self._optional_int(
                entry, "character_maximum_length", context=context
            ),
            numeric_precision=self._optional_int(entry, "numeric_precision", context=context),
            numeric_scale=self._optional_int(entry, "numeric_scale", context=context),
            is_nullable=self._bool(entry, "is_nullable", default=True, context=context),
            default=entry.get("default"),
            check_constraints=self._parse_checks(
                entry.get("check_constraints"), owner=name, context=context
            ),
        )

    def _parse_composite(self, entry: dict[str, Any]) -> pgc.CompositeType:
        name, schema = self._identity(entry, context="composite type")
        context = f"composite type '{name}'"
        self._validate_keys(
            entry,
            allowed_keys={"name", "schema", "attributes"},
            required_keys={"name", "attributes"},
            context=context,
        )
        attributes = []
        raw_attributes = self._ensure_mapping_sequence(
            entry["attributes"], context=f"attributes of {context}"
        )
        for position, attribute in enumerate(raw_attributes, start=1):
            self._validate_keys(
                attribute,
                allowed_keys={"name", "type", "data_type", "position"},
                required_keys={"name"},
                context=f"attribute of {context}",
            )
            type_text = attribute.get("type", attribute.get("data_type"))
            if not isinstance(type_text, str) or not type_text.strip():
                raise CatalogParsingError(
                    f"Attribute '{attribute['name']}' of {context} needs a 'type'."
                )
            attributes.append(
                pgc.CompositeAttribute(
                    name=self._string(attribute["name"], context=f"attribute of {context}"),
                    data_type=type_text,
                    position=int(attribute.get("position", position)),
                )
            )
        return pgc.CompositeType(name=name, schema=schema, attributes=tuple(attributes))

    def _parse_range(self, entry: dict[str, Any]) -> pgc.RangeType:
        name, schema = self._identity(entry, context="range type")
        context = f"range type '{name}'"
        self._validate_keys(
            entry,
            allowed_keys={"name", "schema", "subtype"},
            required_keys={"name", "subtype"},
            context=context,
        )
        return pgc.RangeType(
            name=name,
            schema=schema,
            subtype=self._string(entry["subtype"], context=f"'subtype' of {context}"),
        )

    # %% ---- Relations ---------------------------------------------------------------
    def _parse_table(self, entry: dict[str, Any]) -> pgc.Table:
        name, schema = self._identity(entry, context="table")
        context = f"table '{schema}.{name}'"
        self._validate_keys(
            entry,
            allowed_keys={
                "name",
                "schema",
                "columns",
                "check_constraints",
                "primary_keys",
                "unique_constraints",
                "relationships",
            },
            required_keys={"name", "columns"},
            context=context,
        )
        columns, column_checks = self._parse_columns(
            entry["columns"], owner=name, context=context
        )
        column_names = {column.name for column in columns}

        checks = column_checks + self._parse_checks(
            entry.get("check_constraints"), owner=name, context=context
        )
        for check in checks:
            if check.column_name is not None:
                self._require_columns(
                    (check.column_name,), column_names, context=f"constraint '{check.name}'"
                )

        primary_keys = self._string_tuple(
            entry.get("primary_keys", ()), context=f"'primary_keys' of {context}"
        )
        self._require_columns(primary_keys, column_names, context=f"primary key of {context}")

        uniques = []
        for unique in self._ensure_mapping_sequence(
            entry.get("unique_constraints", ()), context=f"unique constraints of {context}"
        ):
            self._validate_keys(
                unique,
                allowed_keys={"name", "columns"},
                required_keys={"name", "columns"},
                context=f"unique constraint of {context}",
            )
            unique_columns = self._string_tuple(
                unique["columns"], context=f"unique constraint '{unique['name']}'"
            )
            self._require_columns(
                unique_columns, column_names, context=f"unique constraint '{unique['name']}'"
            )
            uniques.append(pgc.UniqueConstraint(name=unique["name"], columns=unique_columns))

        relationships = []
        for relationship in self._ensure_mapping_sequence(
            entry.get("relationships", ()), context=f"relationships of {context}"
        ):
            self._validate_keys(
                relationship,
                allowed_keys={
                    "foreign_key_name",
                    "columns",
                    "referenced_relation",
                    "referenced_columns",
                    "is_one_to_one",
                },
                required_keys={
                    "foreign_key_name",
                    "columns",
                    "referenced_relation",
                    "referenced_columns",
                },
                context=f"relationship of {context}",
            )
            fk_context = f"foreign key '{relationship['foreign_key_name']}'"
            fk_columns = self._string_tuple(relationship["columns"], context=fk_context)
            self._require_columns(fk_columns, column_names, context=fk_context)
            relationships.append(
                pgc.Relationship(
                    foreign_key_name=relationship["foreign_key_name"],
                    columns=fk_columns,
                    referenced_relation=self._string(
                        relationship["referenced_relation"], context=fk_context
                    ),
                    referenced_columns=self._string_tuple(
                        relationship["referenced_columns"], context=fk_context
                    ),
                    is_one_to_one=self._bool(
                        relationship, "is_one_to_one", default=False, context=fk_context
                    ),
                )
            )

        return pgc.Table(
            name=name,
            schema=schema,
            columns=columns,
            check_constraints=checks,
            primary_keys=primary_keys,
            unique_constraints=tuple(uniques),
            relationships=tuple(relationships),
        )

    def _parse_view(self, entry: dict[str, Any]) -> pgc.View:
        name, schema = self._identity(entry, context="view")
        context = f"view '{schema}.{name}'"
        self._validate_keys(
            entry,
            allowed_keys={"name", "schema", "columns", "definition"},
            required_keys={"name", "columns"},
            context=context,
        )
        columns, checks = self._parse_columns(entry["columns"], owner=name, context=context)
        if checks:
            raise CatalogParsingError(f"Columns of {context} cannot carry check constraints.")
        return pgc.View(
            name=name, schema=schema, columns=columns, definition=entry.get("definition")
        )

    def _parse_routine(self, entry: dict[str, Any]) -> pgc.Routine:
        name, schema = self._identity(entry, context="routine")
        context = f"routine '{schema}.{name}'"
        self._validate_keys(
            entry,
            allowed_keys={
                "name",
                "schema",
                "kind",
                "security_type",
                "parameters",
                "return_type",
                "return_udt_name",
                "returns_set",
            },
            required_keys={"name"},
            context=context,
        )
        kind = str(entry.get("kind", "FUNCTION")).upper()
        if kind not in ("FUNCTION", "PROCEDURE"):
            raise CatalogParsingError(f"'kind' of {context} must be FUNCTION or PROCEDURE.")
        security_type = str(entry.get("security_type", "INVOKER")).upper()
        if security_type not in ("DEFINER", "INVOKER"):
            raise CatalogParsingError(
                f"'security_type' of {context} must be DEFINER or INVOKER."
            )

        parameters = []
        raw_parameters = self._ensure_mapping_sequence(
            entry.get("parameters", ()), context=f"parameters of {context}"
        )
        for position, parameter in enumerate(raw_parameters, start=1):
            parameters.append(self._parse_parameter(parameter, position, context=context))

        return_type = entry.get("return_type")
        return_udt_name = entry.get("return_udt_name")
        if return_type is not None and return_udt_name is None:
            # A rendered type such as `integer[]` expands to information_schema form.
            descriptor = pgc.TypeDescriptor.from_format_type("return_value", return_type)
            return_type, return_udt_name = descriptor.data_type, descriptor.udt_name

        return pgc.Routine(
            name=name,
            schema=schema,
            kind=cast(pgc.RoutineKind, kind),
            security_type=cast(pgc.SecurityType, security_type),
            parameters=tuple(parameters),
            return_type=return_type,
            return_udt_name=return_udt_name,
            returns_set=self._bool(entry, "returns_set", default=False, context=context),
        )

    def _parse_parameter(
        self, parameter: dict[str, Any], position: int, *, context: str
    ) -> pgc.RoutineParameter:
        self._validate_keys(
            parameter,
            allowed_keys={
                "name",
                "type",
                "data_type",
                "udt_name",
                "mode",
                "position",
                "is_nullable",
            },
            context=f"parameter of {context}",
        )
        name = parameter.get("name") or f"arg{position}"
        mode = str(parameter.get("mode", "IN")).upper()
        if mode not in ("IN", "OUT", "INOUT", "VARIADIC"):
            raise CatalogParsingError(
                f"Invalid mode '{mode}' for parameter '{name}' of {context}."
            )

        if "type" in parameter:
            if "data_type" in parameter or "udt_name" in parameter:
                raise CatalogParsingError(
                    f"Parameter '{name}' of {context} mixes 'type' with "
                    "'data_type' or 'udt_name'."
                )
            descriptor = pgc.TypeDescriptor.from_format_type(name, parameter["type"])
            data_type, udt_name = descriptor.data_type, descriptor.udt_name
        elif "data_type" in parameter:
            data_type = parameter["data_type"]
            udt_name = parameter.get("udt_name", "")
        else:
            raise CatalogParsingError(f"Parameter '{name}' of {context} needs a 'type'.")

        return pgc.RoutineParameter(
            name=name,
            data_type=data_type,
            udt_name=udt_name,
            mode=cast(pgc.ParameterMode, mode),
            position=int(parameter.get("position", position)),
            is_nullable=self._bool(parameter, "is_nullable", default=False, context=context),
        )

    # %% ---- Columns & constraints ---------------------------------------------------
    def _parse_columns(
        self, raw_columns: Any, *, owner: str, context: str
    ) -> tuple[tuple[pgc.TypeDescriptor, ...], tuple[pgc.CheckConstraint, ...]]:
        columns: list[pgc.TypeDescriptor] = []
        checks: list[pgc.CheckConstraint] = []
        for column_def in self._ensure_mapping_sequence(
            raw_columns, context=f"columns of {context}"
        ):
            column, column_checks = self._parse_column(
                column_def, owner=owner, context=context
            )
            columns.append(column)
            checks.extend(column_checks)
        return tuple(columns), tuple(checks)

    def _parse_column(
        self, column_def: dict[str, Any], *, owner: str, context: str
    ) -> tuple[pgc.TypeDescriptor, tuple[pgc.CheckConstraint, ...]]:
        self._validate_keys(
            column_def,
            allowed_keys=set(_DESCRIPTOR_KEYS) | {"type", "check_constraints"},
            required_keys={"name"},
            context=f"column of {context}",
        )
        name = self._string(column_def["name"], context=f"column of {context}")
        column_context = f"column '{name}' of {context}"
        values = {
            key: value
            for key, value in column_def.items()
            if key not in ("type", "check_constraints")
        }

        if "type" in column_def:
            mixed = sorted(_TYPE_SHORTHAND_EXCLUSIVE & values.keys())
            if mixed:
                raise CatalogParsingError(
                    f"{column_context} mixes 'type' with: {', '.join(mixed)}."
                )
            parsed = pgc.TypeDescriptor.from_format_type(
                name,
                self._string(column_def["type"], context=column_context),
                is_nullable=self._bool(
                    column_def, "is_nullable", default=True, context=column_context
                ),
            )
            overrides = {
                key: value
                for key, value in values.items()
                if value is not None and key != "name"
            }
            column = replace(parsed, **overrides)
        elif "data_type" in column_def:
            column = pgc.TypeDescriptor(**values)
        else:
            raise CatalogParsingError(f"{column_context} needs a 'type' or 'data_type'.")

        checks = tuple(
            replace(check, column_name=name)
            for check in self._parse_checks(
                column_def.get("check_constraints"),
                owner=f"{owner}_{name}",
                context=column_context,
            )
        )
        return column, checks

    def _parse_checks(
        self, raw: Any, *, owner: str, context: str
    ) -> tuple[pgc.CheckConstraint, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
            raise CatalogParsingError(f"'check_constraints' of {context} must be a sequence.")
        checks = []
        for index, item in enumerate(raw, start=1):
            if isinstance(item, str):
                checks.append(pgc.CheckConstraint(name=f"{owner}_check{index}", clause=item))
                continue
            if not isinstance(item, Mapping):
                raise CatalogParsingError(
                    f"Check constraint at index {index - 1} of {context} must be a "
                    "string or a mapping."
                )
            self._validate_keys(
                item,
                allowed_keys={"name", "clause", "column"},
                required_keys={"clause"},
                context=f"check constraint of {context}",
            )
            checks.append(
                pgc.CheckConstraint(
                    name=item.get("name") or f"{owner}_check{index}",
                    clause=self._string(
                        item["clause"], context=f"check constraint of {context}"
                    ),
                    column_name=item.get("column"),
                )
            )
        return tuple(checks)

    # %% ---- Helpers -----------------------------------------------------------------
    def _identity(self, entry: Mapping[str, Any], *, context: str) -> tuple[str, str]:
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise CatalogParsingError(f"The 'name' of a {context} must be a non-empty string.")
        schema = entry.get("schema", self.default_schema)
        if not isinstance(schema, str) or not schema:
            raise CatalogParsingError(f"The 'schema' of {context} '{name}' must be a string.")
        return name, schema

    def _require_columns(
        self, columns: Sequence[str], known: set[str], *, context: str
    ) -> None:
        missing = [column for column in columns if column not in known]
        if missing:
            raise CatalogReferenceError(
                f"Undefined column(s) referenced in {context}: {', '.join(missing)}."
            )

    def _validate_keys(
        self,
        obj: Mapping[str, Any],
        *,
        allowed_keys: set[str],
        required_keys: set[str] | None = None,
        context: str,
    ) -> None:
        """Validate keys of an object against allowed/required sets."""
        unknown = set(obj.keys()) - allowed_keys
        if unknown:
            unknown_sorted = ", ".join(sorted(str(key) for key in unknown))
            raise CatalogParsingError(f"Unknown key(s) in {context}: {unknown_sorted}.")
        if required_keys:
            missing = required_keys - set(obj.keys())
            if missing:
                missing_sorted = ", ".join(sorted(missing))
                raise CatalogParsingError(
                    f"Missing required key(s) in {context}: {missing_sorted}."
                )

    def _ensure_mapping_sequence(self, value: Any, *, context: str) -> list[dict[str, Any]]:
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            raise CatalogParsingError(f"{context} must be a sequence of mappings.")
        normalized: list[dict[str, Any]] = []
        for index, item in enumerate(value):
            if not isinstance(item, Mapping):
                raise CatalogParsingError(
                    f"Entry at index {index} in {context} must be a mapping."
                )
            normalized.append(dict(cast(Mapping[str, Any], item)))
        return normalized

    @staticmethod
    def _string(value: Any, *, context: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise CatalogParsingError(f"Expected a non-empty string for {context}.")
        return value

    @staticmethod
    def _string_tuple(value: Any, *, context: str) -> tuple[str, ...]:
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            raise CatalogParsingError(f"{context} must be a list of strings.")
        if not all(isinstance(item, str) for item in value):
            raise CatalogParsingError(f"{context} must be a list of strings.")
        return tuple(value)

    @staticmethod
    def _bool(entry: Mapping[str, Any], key: str, *, default: bool, context: str) -> bool:
        value = entry.get(key, default)
        if not isinstance(value, bool):
            raise CatalogParsingError(f"'{key}' of {context} must be a boolean.")
        return value

    @staticmethod
    def _optional_int(entry: Mapping[str, Any], key: str, *, context: str) -> int | None:
        value = entry.get(key)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise CatalogParsingError(f"'{key}' of {context} must be an integer.")
        return value
