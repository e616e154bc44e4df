"""Entry points for loading a `TypeCatalog` from various sources.

This module provides simple functions for loading a `TypeCatalog` from common
formats:

- `from_dict`: Load from a dictionary.
- `from_yaml_string`: Load from YAML content provided as a string.
- `from_yaml_path`: Load from a filesystem path to a YAML file.
- `from_yaml_stream`: Load from a file-like stream (text or binary).
- `from_yaml`: Convenience loader that accepts a path (`str` or
  `pathlib.Path`) or a file-like stream. It does not accept arbitrary
  content strings.
- `from_postgres`: Introspect a live database through a DBAPI connection.

All functions return a validated immutable `TypeCatalog` instance.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any, cast

from ..catalog import TypeCatalog
from .base import BaseLoader, DictLoader
from .sql import PostgresCatalogLoader, PostgresLoaderConfig
from .yaml_loader import YamlLoader

__all__ = [
    "from_dict",
    "from_yaml_string",
    "from_yaml_path",
    "from_yaml_stream",
    "from_yaml",
    "from_postgres",
    "BaseLoader",
    "DictLoader",
    "YamlLoader",
    "PostgresCatalogLoader",
    "PostgresLoaderConfig",
]


def from_dict(data: dict[str, Any]) -> TypeCatalog:
    """Load a `TypeCatalog` from a dictionary.

    Args:
        data: The dictionary representation of the catalog.

    Returns:
        A validated immutable `TypeCatalog` instance.

    Example:
        >>> data = {
        ...     "enums": [{"name": "user_role", "values": ["admin", "user"]}],
        ...     "tables": [
        ...         {
        ...             "name": "users",
        ...             "columns": [
        ...                 {"name": "id", "type": "integer", "is_nullable": False},
        ...                 {"name": "email", "type": "text"},
        ...             ],
        ...         }
        ...     ],
        ... }
        >>> catalog = from_dict(data)
        >>> [column.name for column in catalog.tables[0].columns]
        ['id', 'email']
    """
    return DictLoader().load(data)


def from_yaml_string(content: str) -> TypeCatalog:
    """Load a catalog from YAML string content.

    Args:
        content: YAML content as a string.

    Returns:
        A validated immutable `TypeCatalog` instance.

    Example:
        >>> content = \"""
        ... tables:
        ...   - name: users
        ...     columns:
        ...       - name: id
        ...         type: integer
        ... \"""
        >>> catalog = from_yaml_string(content)
        >>> catalog.tables[0].name
        'users'
    """
    return YamlLoader(content).load()


def from_yaml_path(path: str | Path, *, encoding: str = "utf-8") -> TypeCatalog:
    """Load a catalog from a YAML file path.

    Args:
        path: Filesystem path to a YAML file.
        encoding: Text encoding used to read the file.

    Returns:
        A validated immutable `TypeCatalog` instance.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    text = Path(path).read_text(encoding=encoding)
    return YamlLoader(text).load()


def from_yaml_stream(
    stream: IO[str] | IO[bytes], *, encoding: str = "utf-8"
) -> TypeCatalog:
    """Load a catalog from a file-like stream.

    The stream is not closed by this function.

    Args:
        stream: File-like object opened in text or binary mode.
        encoding: Used only if `stream` is binary.

    Returns:
        A validated immutable `TypeCatalog` instance.
    """
    raw = stream.read()
    text = raw.decode(encoding) if isinstance(raw, (bytes, bytearray)) else raw
    return YamlLoader(text).load()


def from_yaml(
    source: str | Path | IO[str] | IO[bytes], *, encoding: str = "utf-8"
) -> TypeCatalog:
    """Load a catalog from a path or a file-like stream.

    This convenience loader avoids ambiguity by not accepting arbitrary content
    strings. Pass content strings to `from_yaml_string` instead.

    Args:
        source: A filesystem path (`str` or `pathlib.Path`) or a file-like
            object opened in text or binary mode.
        encoding: Text encoding used when reading files or decoding binary
            streams.

    Returns:
        A validated immutable `TypeCatalog` instance.
    """
    if hasattr(source, "read"):
        return from_yaml_stream(cast(IO[str] | IO[bytes], source), encoding=encoding)
    return from_yaml_path(cast(str | Path, source), encoding=encoding)


def from_postgres(
    connection: Any,
    *,
    schemas: Iterable[str] = ("public",),
    include_views: bool = True,
    include_routines: bool = True,
    tables: Iterable[str] | None = None,
    exclude_tables: Iterable[str] | None = None,
) -> TypeCatalog:
    """Introspect a PostgreSQL database into a `TypeCatalog`.

    Args:
        connection: A DBAPI-compatible PostgreSQL connection.
        schemas: Schema names to introspect. Defaults to `("public",)`.
        include_views: Whether to load views.
        include_routines: Whether to load functions and procedures.
        tables: If provided, only these tables are loaded.
        exclude_tables: Tables to skip.

    Returns:
        A validated immutable `TypeCatalog` instance.
    """
    config = PostgresLoaderConfig(
        include_views=include_views,
        include_routines=include_routines,
        tables=frozenset(tables) if tables is not None else None,
        exclude_tables=frozenset(exclude_tables or ()),
    )
    return PostgresCatalogLoader(connection, config).load(schemas=schemas)
