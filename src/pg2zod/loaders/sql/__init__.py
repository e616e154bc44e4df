"""SQL database loaders for `TypeCatalog`.

This submodule provides loaders that build a catalog by querying a database's
own catalog tables (information_schema, pg_catalog).

Available loaders:
- `PostgresCatalogLoader`: Introspect PostgreSQL schemas.
"""

from .postgres_loader import PostgresCatalogLoader, PostgresLoaderConfig

__all__ = [
    "PostgresCatalogLoader",
    "PostgresLoaderConfig",
]
