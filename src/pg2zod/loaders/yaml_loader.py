"""Loads a `TypeCatalog` from a YAML source."""

from __future__ import annotations

from typing import TYPE_CHECKING

import yaml

from ..exceptions import CatalogParsingError
from .base import BaseLoader, DictLoader

if TYPE_CHECKING:
    from ..catalog import TypeCatalog


class YamlLoader(BaseLoader):
    """Loads a `TypeCatalog` from a YAML string."""

    def __init__(self, content: str, *, default_schema: str = "public"):
        """Initializes the loader with YAML content.

        Args:
            content: The YAML string content.
            default_schema: Namespace assumed for entries without a `schema`.
        """
        self._content = content
        self._default_schema = default_schema

    def load(self) -> TypeCatalog:
        """Parses the YAML content and builds the catalog.

        Returns:
            A `TypeCatalog` instance.

        Raises:
            CatalogParsingError: If the YAML content is invalid or does not
                                 parse to a dictionary.
        """
        try:
            data = yaml.safe_load(self._content)
        except yaml.YAMLError as exc:
            raise CatalogParsingError(f"Invalid YAML content: {exc}") from exc
        if not isinstance(data, dict):
            raise CatalogParsingError("Loaded YAML content did not parse to a dictionary.")
        return DictLoader(default_schema=self._default_schema).load(data)
