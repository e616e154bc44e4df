"""Fold parsed predicates onto resolved validators.

Predicates refine the innermost scalar of a resolved validator, in the order
the clauses were supplied. Array and nullable wrappers are rebuilt around
the refined node afterwards, so a bound on an `integer[]` column bounds each
element and the column stays nullable.

Rules per predicate kind:

- `Bound`: sets `.min()` / `.max()` on number and bigint validators. A later
  bound on the same side replaces an earlier one. Strict bounds on integer
  validators use the next integer; on floating-point validators they are
  nudged by machine epsilon.
- `Enumeration`: replaces a string validator with `z.enum([...])`.
- `Pattern`: appends `.regex()` to a string validator.
- `LengthBound`: appends `.min()` / `.max()` to a string validator.
- `Unparsed`: appends a `/* CHECK: ... */` annotation.

A predicate that does not apply to the validator is kept as a
`/* CHECK: ... */` annotation rather than dropped.
"""

from __future__ import annotations

import math
import sys
from collections.abc import Iterable
from dataclasses import replace
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from functools import singledispatch
from typing import Literal

from .constraints import (
    Bound,
    BoundValue,
    Enumeration,
    LengthBound,
    ParsedPredicate,
    Pattern,
    Unparsed,
)
from .resolver import ArrayOf, ResolvedValidator
from .zod import (
    ZodArray,
    ZodBigInt,
    ZodEnum,
    ZodNumber,
    ZodString,
    ZodType,
    nullable,
    regex_literal,
)

Side = Literal["minimum", "maximum"]

# Identical to JavaScript's Number.EPSILON.
EPSILON = sys.float_info.epsilon


def format_number(value: float) -> str:
    """Format a float the way JavaScript prints numbers.

    Example:
        >>> format_number(0 + EPSILON)
        '2.220446049250313e-16'
        >>> format_number(100.0)
        '100'
    """
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent_text = text.split("e")
    exponent = int(exponent_text)
    if -7 < exponent < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"


def integer_bound(bound: BoundValue, side: Side) -> str:
    """Return the tightest integer literal satisfying `bound` on `side`."""
    value = Decimal(bound.text)
    if side == "minimum":
        if bound.strict:
            result = value.to_integral_value(rounding=ROUND_FLOOR) + 1
        else:
            result = value.to_integral_value(rounding=ROUND_CEILING)
    elif bound.strict:
        result = value.to_integral_value(rounding=ROUND_CEILING) - 1
    else:
        result = value.to_integral_value(rounding=ROUND_FLOOR)
    return str(int(result))


def float_bound(bound: BoundValue, side: Side) -> str:
    if not bound.strict:
        return bound.text
    value = bound.value + EPSILON if side == "minimum" else bound.value - EPSILON
    if not math.isfinite(value):
        # JavaScript reads an out-of-range literal as Infinity.
        return bound.text
    return format_number(value)


def annotate(node: ZodType, predicate: ParsedPredicate) -> ZodType:
    """Attach the predicate's clause to `node` as an inert `CHECK:` annotation."""
    return replace(node, notes=node.notes + (f"CHECK: {predicate.clause}",))


# %% ---- Predicate application -------------------------------------------------------
@singledispatch
def apply_predicate(predicate: ParsedPredicate, node: ZodType) -> ZodType:
    """Apply one predicate to a scalar node and return the refined node."""
    return annotate(node, predicate)


@apply_predicate.register
def _(predicate: Bound, node: ZodType) -> ZodType:
    if isinstance(node, ZodNumber):
        format_bound = integer_bound if node.integer else float_bound
    elif isinstance(node, ZodBigInt):
        format_bound = integer_bound
    else:
        return annotate(node, predicate)

    changes: dict[str, str] = {}
    if predicate.minimum is not None:
        changes["minimum"] = format_bound(predicate.minimum, "minimum")
    if predicate.maximum is not None:
        changes["maximum"] = format_bound(predicate.maximum, "maximum")
    return replace(node, **changes)


@apply_predicate.register
def _(predicate: Enumeration, node: ZodType) -> ZodType:
    if not isinstance(node, ZodString) or not predicate.values:
        return annotate(node, predicate)
    return ZodEnum(predicate.values, notes=node.notes)


@apply_predicate.register
def _(predicate: Pattern, node: ZodType) -> ZodType:
    if not isinstance(node, ZodString):
        return annotate(node, predicate)
    literal = regex_literal(predicate.regex)
    if predicate.case_insensitive:
        literal += "i"
    return node.with_check("regex", literal)


@apply_predicate.register
def _(predicate: LengthBound, node: ZodType) -> ZodType:
    if not isinstance(node, ZodString):
        return annotate(node, predicate)
    if predicate.minimum is not None:
        node = node.with_check("min", integer_bound(predicate.minimum, "minimum"))
    if predicate.maximum is not None:
        node = node.with_check("max", integer_bound(predicate.maximum, "maximum"))
    return node


@apply_predicate.register
def _(predicate: Unparsed, node: ZodType) -> ZodType:
    return annotate(node, predicate)


# %% ---- Composition -----------------------------------------------------------------
def compose_schema(
    validator: ResolvedValidator, predicates: Iterable[ParsedPredicate]
) -> ZodType:
    """Fold `predicates` onto `validator` and return the resulting Zod node.

    An empty predicate sequence returns `validator.to_zod()` unchanged.
    """
    predicates = list(predicates)
    if not predicates:
        return validator.to_zod()

    target = validator.element if isinstance(validator, ArrayOf) else validator
    node = target.base_zod()
    for predicate in predicates:
        node = apply_predicate(predicate, node)

    if isinstance(validator, ArrayOf):
        node = ZodArray(nullable(node, target.nullable), depth=validator.depth)
    return nullable(node, validator.nullable)


def compose(validator: ResolvedValidator, predicates: Iterable[ParsedPredicate]) -> str:
    """Fold `predicates` onto `validator` and serialize the result."""
    return compose_schema(validator, predicates).to_source()
