"""Custom pg2zod exceptions and warnings."""

from __future__ import annotations

import warnings


class Pg2ZodError(Exception):
    """Base exception for all pg2zod-related errors.

    This is the root exception that all other pg2zod exceptions inherit from.
    It provides enhanced error reporting with suggestions for resolution.

    Attributes:
        suggestions: List of suggested fixes or actions.

    Example:
        >>> raise Pg2ZodError(
        ...     "No mapping for type 'hstore' in column 'attrs'",
        ...     suggestions=["Add a custom type mapping for 'hstore'"]
        ... )
    """

    def __init__(
        self,
        message: str,
        suggestions: list[str] | None = None,
    ):
        """Initialize a Pg2ZodError.

        Args:
            message: The error message.
            suggestions: Optional list of suggestions to fix the error.
        """
        super().__init__(message)
        self.suggestions = suggestions or []

    def __str__(self) -> str:
        result = super().__str__()

        if self.suggestions:
            suggestions_text = "; ".join(self.suggestions)
            result += f" | {suggestions_text}"

        return result


# Catalog Exceptions
class CatalogError(Pg2ZodError):
    """Type catalog definition errors.

    Raised when there are issues with the structure or consistency of the
    type catalog handed to the resolver.
    """


class CatalogParsingError(CatalogError):
    """Errors while building a catalog from a dictionary or YAML document.

    Raised when the input format is invalid, required keys are missing,
    or values have the wrong shape.
    """


class CatalogReferenceError(CatalogError):
    """A catalog entry references a type that the catalog does not define."""


# Converter Exceptions
class ConverterError(Pg2ZodError):
    """Base for errors raised while producing Zod schemas."""


class ConverterConfigError(ConverterError):
    """Invalid converter configuration."""


class UnsupportedFeatureError(ConverterError):
    """Feature not supported by the Zod converter.

    Raised when the converter runs in "raise" mode and encounters something
    it can only represent approximately.
    """


class UnmappedTypeError(UnsupportedFeatureError):
    """A column type has no Zod mapping and strict mode is enabled.

    Attributes:
        column_name: Column, attribute or parameter holding the type.
        type_name: The PostgreSQL type name that could not be mapped.
    """

    def __init__(
        self,
        message: str,
        *,
        column_name: str,
        type_name: str,
        suggestions: list[str] | None = None,
    ):
        super().__init__(message, suggestions)
        self.column_name = column_name
        self.type_name = type_name


# Loader Exceptions
class LoaderError(Pg2ZodError):
    """Errors raised while introspecting a database or reading a catalog."""


class LoaderConfigError(LoaderError):
    """Invalid loader configuration."""


# Warnings
class ValidationWarning(UserWarning):
    """Warning category emitted when output is degraded in coerce mode."""


def validation_warning(
    message: str,
    *,
    filename: str | None = None,
    module: str | None = None,
) -> None:
    """Emit a `ValidationWarning` attributed to the calling module.

    Args:
        message: Human-readable warning text.
        filename: Optional filename reported with the warning.
        module: Optional module name reported with the warning.
    """
    warnings.warn_explicit(
        message,
        category=ValidationWarning,
        filename=filename or "pg2zod",
        lineno=0,
        module=module,
    )
