"""Zod expression model.

Validator expressions are built as a small tree of immutable nodes and
serialized once, at the end, with `ZodType.to_source()`. Refinements such as
bounds or patterns are applied by replacing nodes (`dataclasses.replace`)
rather than by editing rendered text.

Only three node types carry refinements: `ZodNumber` (`.int()`, `.min()`,
`.max()`), `ZodBigInt` (integer-literal bounds such as `.min(0n)`) and
`ZodString` (an ordered list of appended checks). Every other node only
carries annotations.

Example:
    >>> from pg2zod.zod import ZodArray, ZodNullable, ZodString
    >>> node = ZodNullable(ZodArray(ZodString(checks=(("max", "50"),)), depth=2))
    >>> node.to_source()
    'z.array(z.array(z.string().max(50))).nullable()'
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field

from .exceptions import ConverterError


def string_literal(value: str) -> str:
    """Render `value` as a single-quoted TypeScript string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def regex_literal(pattern: str) -> str:
    """Render `pattern` as a TypeScript regular expression literal.

    Forward slashes that are not already escaped are escaped so the literal
    is not terminated early.
    """
    out: list[str] = []
    escaped = False
    for char in pattern:
        if char == "/" and not escaped:
            out.append("\\/")
        else:
            out.append(char)
        escaped = char == "\\" and not escaped
    return f"/{''.join(out)}/"


def comment(text: str) -> str:
    """Render `text` as an inline block comment."""
    return f"/* {text.replace('*/', '* /')} */"


@dataclass(frozen=True)
class ZodType(ABC):
    """Abstract base class for all Zod expression nodes.

    Args:
        notes: Inert annotations rendered as trailing block comments. They
            never change validation behavior.
    """

    notes: tuple[str, ...] = field(default=(), kw_only=True)

    @abstractmethod
    def render(self) -> str:
        """Render the expression without annotations."""

    def children(self) -> tuple[ZodType, ...]:
        return ()

    def iter_notes(self) -> Iterator[str]:
        for child in self.children():
            yield from child.iter_notes()
        yield from self.notes

    def to_source(self) -> str:
        """Render the expression followed by every annotation in the tree."""
        source = self.render()
        for note in self.iter_notes():
            source += f" {comment(note)}"
        return source

    def __str__(self) -> str:
        return self.to_source()


# %% ---- Refinable primitives --------------------------------------------------------
@dataclass(frozen=True)
class ZodNumber(ZodType):
    """`z.number()`, optionally restricted to integers and bounded.

    Bounds are kept as rendered literal text so values read from the catalog
    are emitted exactly as written.
    """

    integer: bool = False
    minimum: str | None = None
    maximum: str | None = None
    positive: bool = False

    def render(self) -> str:
        result = "z.number()"
        if self.integer:
            result += ".int()"
        if self.positive:
            result += ".positive()"
        if self.minimum is not None:
            result += f".min({self.minimum})"
        if self.maximum is not None:
            result += f".max({self.maximum})"
        return result


@dataclass(frozen=True)
class ZodBigInt(ZodType):
    minimum: str | None = None
    maximum: str | None = None

    def render(self) -> str:
        result = "z.bigint()"
        if self.minimum is not None:
            result += f".min({self.minimum}n)"
        if self.maximum is not None:
            result += f".max({self.maximum}n)"
        return result


@dataclass(frozen=True)
class ZodString(ZodType):
    """`z.string()` followed by checks in the order they were appended.

    Args:
        checks: `(method, argument)` pairs, e.g. `("max", "255")` or
            `("regex", "/^[01]+$/")`.
    """

    checks: tuple[tuple[str, str], ...] = ()

    def with_check(self, method: str, argument: str) -> ZodString:
        return ZodString(checks=self.checks + ((method, argument),), notes=self.notes)

    def render(self) -> str:
        return "z.string()" + "".join(f".{m}({a})" for m, a in self.checks)


@dataclass(frozen=True)
class ZodEnum(ZodType):
    values: tuple[str, ...]

    def __post_init__(self):
        if not self.values:
            raise ConverterError("z.enum() requires at least one value.")

    def render(self) -> str:
        return f"z.enum([{', '.join(string_literal(v) for v in self.values)}])"


# %% ---- Opaque expressions ----------------------------------------------------------
@dataclass(frozen=True)
class ZodExpression(ZodType):
    """A complete expression taken verbatim, e.g. `z.uuid()` or a user override."""

    source: str

    def render(self) -> str:
        return self.source


@dataclass(frozen=True)
class ZodReference(ZodType):
    """A reference to another generated schema constant by name."""

    name: str

    def render(self) -> str:
        return self.name


# %% ---- Containers ------------------------------------------------------------------
@dataclass(frozen=True)
class ZodArray(ZodType):
    """`z.array()` nested `depth` times around a single element."""

    element: ZodType
    depth: int = 1

    def __post_init__(self):
        if self.depth < 1:
            raise ConverterError(f"Array depth must be at least 1, not {self.depth}.")

    def children(self) -> tuple[ZodType, ...]:
        return (self.element,)

    def render(self) -> str:
        result = self.element.render()
        for _ in range(self.depth):
            result = f"z.array({result})"
        return result


@dataclass(frozen=True)
class ZodTuple(ZodType):
    items: tuple[ZodType, ...]

    def children(self) -> tuple[ZodType, ...]:
        return self.items

    def render(self) -> str:
        return f"z.tuple([{', '.join(item.render() for item in self.items)}])"


@dataclass(frozen=True)
class ZodObject(ZodType):
    fields: tuple[tuple[str, ZodType], ...]

    def children(self) -> tuple[ZodType, ...]:
        return tuple(value for _, value in self.fields)

    def render(self) -> str:
        body = ", ".join(f"{key}: {value.render()}" for key, value in self.fields)
        return f"z.object({{ {body} }})"


@dataclass(frozen=True)
class ZodUnion(ZodType):
    options: tuple[ZodType, ...]

    def children(self) -> tuple[ZodType, ...]:
        return self.options

    def render(self) -> str:
        return f"z.union([{', '.join(option.render() for option in self.options)}])"


# %% ---- Modifiers -------------------------------------------------------------------
@dataclass(frozen=True)
class ZodNullable(ZodType):
    inner: ZodType

    def children(self) -> tuple[ZodType, ...]:
        return (self.inner,)

    def render(self) -> str:
        return f"{self.inner.render()}.nullable()"


@dataclass(frozen=True)
class ZodOptional(ZodType):
    inner: ZodType

    def children(self) -> tuple[ZodType, ...]:
        return (self.inner,)

    def render(self) -> str:
        return f"{self.inner.render()}.optional()"


def nullable(node: ZodType, is_nullable: bool = True) -> ZodType:
    """Wrap `node` in `.nullable()` unless it already is or `is_nullable` is False."""
    if not is_nullable or isinstance(node, ZodNullable):
        return node
    return ZodNullable(node)
