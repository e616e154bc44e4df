"""Base converter interface for catalog transformations.

This module defines the abstract base class for pg2zod converters. Converters
turn a `TypeCatalog` into generated source, and share the handling of
conversion mode, custom type mappings and unmapped types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Literal

from ..catalog import TypeCatalog
from ..diagnostics import WarningSink
from ..exceptions import ConverterConfigError, UnmappedTypeError
from ..resolver import ResolvedValidator

Mode = Literal["raise", "coerce"]


@dataclass(frozen=True)
class BaseConverterConfig:
    """Base configuration for all pg2zod converters.

    Args:
        mode: Conversion mode. "raise" fails on the first column whose type
            has no mapping and on catalog references that cannot be resolved.
            "coerce" emits `z.unknown()` for such columns and records a
            warning. Defaults to "coerce".
        custom_type_mappings: Mapping of PostgreSQL type name to a Zod
            expression that replaces the default mapping for that type, e.g.
            `{"hstore": "z.record(z.string(), z.string().nullable())"}`.
            Defaults to empty mapping.
    """

    mode: Mode = "coerce"
    custom_type_mappings: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if self.mode not in {"raise", "coerce"}:
            raise ConverterConfigError("mode must be one of 'raise' or 'coerce'.")

        object.__setattr__(
            self, "custom_type_mappings", MappingProxyType(dict(self.custom_type_mappings))
        )
        invalid = sorted(
            name
            for name, expression in self.custom_type_mappings.items()
            if not isinstance(expression, str) or not expression.strip()
        )
        if invalid:
            raise ConverterConfigError(
                "custom_type_mappings values must be non-empty Zod expressions. "
                f"Invalid entries: {invalid}"
            )


class BaseConverter(ABC):
    """Abstract base class for catalog converters."""

    def __init__(self, config: BaseConverterConfig | None = None) -> None:
        """Initialize the BaseConverter.

        Args:
            config: Configuration object. If None, uses default BaseConverterConfig.
        """
        self.config = config or BaseConverterConfig()
        self._current_entity: str | None = None

    @abstractmethod
    def convert(self, catalog: TypeCatalog, *, mode: Mode | None = None) -> Any:
        """Convert a TypeCatalog to the target format."""
        ...

    def _report_unknowns(self, validator: ResolvedValidator, warnings: WarningSink) -> None:
        """Record a warning for every unmapped type in `validator`.

        Raises:
            UnmappedTypeError: In "raise" mode, for the first unmapped type.
        """
        for unknown in validator.iter_unknowns():
            message = unknown.message
            if self._current_entity:
                message += f" of {self._current_entity}"
            if self.config.mode == "raise":
                raise UnmappedTypeError(
                    message,
                    column_name=unknown.column_name,
                    type_name=unknown.type_name,
                    suggestions=[
                        f"Add a custom type mapping for '{unknown.type_name}'",
                        "Use mode='coerce' to emit z.unknown() instead",
                    ],
                )
            warnings.add(message, module=__name__)

    @contextmanager
    def conversion_context(
        self,
        *,
        mode: Mode | None = None,
        entity: str | None = None,
    ) -> Generator[None, None, None]:
        """Temporarily set conversion mode and entity context.

        Args:
            mode: Optional override for the current conversion mode.
            entity: Optional qualified entity name used in warnings.
        """
        previous_config = self.config
        previous_entity = self._current_entity

        try:
            if mode is not None:
                if mode not in ("raise", "coerce"):
                    raise ConverterConfigError("mode must be one of 'raise' or 'coerce'.")
                self.config = replace(self.config, mode=mode)
            if entity is not None:
                self._current_entity = entity
            yield
        finally:
            self.config = previous_config
            self._current_entity = previous_entity
