"""Serializer utilities for converting between dicts and catalog models."""

from .catalog_deserializer import CatalogDeserializer

__all__ = ["CatalogDeserializer"]
