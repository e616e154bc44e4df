"""Identifier casing helpers for generated TypeScript names."""

from __future__ import annotations


def to_pascal_case(name: str) -> str:
    """Convert a snake_case identifier to PascalCase.

    Example:
        >>> to_pascal_case("user_role")
        'UserRole'
    """
    return "".join(word[:1].upper() + word[1:].lower() for word in name.split("_"))


def to_camel_case(name: str) -> str:
    """Convert a snake_case identifier to camelCase.

    Example:
        >>> to_camel_case("created_at")
        'createdAt'
    """
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def qualified_name(schema: str, name: str, suffix: str = "") -> str:
    """Return the schema-prefixed PascalCase base name of a generated entity."""
    return f"{to_pascal_case(schema)}{to_pascal_case(name)}{suffix}"


def schema_const_name(schema: str, name: str, suffix: str = "") -> str:
    """Return the exported `...Schema` constant name of a generated entity."""
    return f"{qualified_name(schema, name, suffix)}Schema"
