"""Warning collection scoped to a single generation run."""

from __future__ import annotations

from collections.abc import Iterator

from .exceptions import validation_warning


class WarningSink:
    """Append-only collector for the warnings of one generation run.

    Each converter call owns a fresh sink, so no warning outlives the run
    that produced it. Every recorded message is also emitted as a
    `ValidationWarning` so callers using the `warnings` machinery see it.

    Example:
        >>> sink = WarningSink()
        >>> sink.add("Unknown type: hstore (udt: hstore) in column attrs")
        >>> len(sink)
        1
    """

    def __init__(self, *, emit: bool = True) -> None:
        self._messages: list[str] = []
        self._emit = emit

    def add(self, message: str, *, module: str | None = None) -> None:
        self._messages.append(message)
        if self._emit:
            validation_warning(message, filename=module or __name__, module=module)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
