"""Base loaders for `TypeCatalog` instances."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..serializers import CatalogDeserializer

if TYPE_CHECKING:
    from ..catalog import TypeCatalog


class BaseLoader(ABC):
    """Abstract base class for all loaders.

    Subclasses must implement the `load` method, which is responsible for
    reading input from a given source and returning a `TypeCatalog` instance.
    """

    @abstractmethod
    def load(self, *args: Any, **kwargs: Any) -> TypeCatalog:
        """Load a `TypeCatalog` from a source.

        Returns:
            A validated immutable `TypeCatalog` instance.
        """
        ...


class DictLoader(BaseLoader):
    """Loads a `TypeCatalog` from a Python dictionary."""

    def __init__(self, *, default_schema: str = "public") -> None:
        self._deserializer = CatalogDeserializer(default_schema=default_schema)

    def load(self, data: dict[str, Any]) -> TypeCatalog:
        """Builds the catalog from the dictionary.

        Args:
            data: The dictionary representation of the catalog.

        Returns:
            A `TypeCatalog` instance.
        """
        return self._deserializer.deserialize(data)
