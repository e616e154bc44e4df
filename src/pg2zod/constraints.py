"""Parse CHECK constraint clauses into structured predicates.

Clauses are matched against an ordered list of `PredicateRule` objects and
the first rule that recognizes a clause produces its predicate. A clause that
no rule recognizes becomes `Unparsed`, so it can still be surfaced as an
annotation in the generated output.

Matching is pattern based and best effort. It understands the shapes
PostgreSQL stores check clauses in (`((price > (0)::numeric))`,
`((status)::text = ANY ((ARRAY['a'::character varying])::text[]))`) as well
as the hand-written forms (`price > 0`, `status IN ('a', 'b')`). Keywords and
column names match case-insensitively; literal values keep their case.

Example:
    >>> parse_predicate("price", "price > 0")
    Bound(clause='price > 0', minimum=BoundValue(text='0', strict=True), maximum=None)
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

# The implicit subject of domain CHECK constraints.
DOMAIN_VALUE = "value"

_CHECK_KEYWORD = re.compile(r"^\s*check\s*(?=\()", re.IGNORECASE)
_CAST = r"(?:\s*::\s*\"?[\w ]+\"?(?:\[\])?)"


# %% ---- Predicates ------------------------------------------------------------------
@dataclass(frozen=True)
class BoundValue:
    """A numeric bound as written in the clause.

    Args:
        text: Normalized literal text, e.g. `"0"`, `"-5"`, `"99.5"`.
        strict: True for `>` / `<`, where the bound itself is excluded.
    """

    text: str
    strict: bool = False

    @property
    def value(self) -> float:
        return float(self.text)

    @property
    def is_integral(self) -> bool:
        return self.value.is_integer()


@dataclass(frozen=True)
class ParsedPredicate(ABC):
    """Base class for predicates derived from a single clause.

    Args:
        clause: The clause text the predicate was parsed from.
    """

    clause: str = field(default="", kw_only=True)


@dataclass(frozen=True)
class Bound(ParsedPredicate):
    minimum: BoundValue | None = None
    maximum: BoundValue | None = None


@dataclass(frozen=True)
class Enumeration(ParsedPredicate):
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class Pattern(ParsedPredicate):
    regex: str = ""
    case_insensitive: bool = False


@dataclass(frozen=True)
class LengthBound(ParsedPredicate):
    minimum: BoundValue | None = None
    maximum: BoundValue | None = None


@dataclass(frozen=True)
class Unparsed(ParsedPredicate):
    raw: str = ""


# %% ---- Pattern building blocks -----------------------------------------------------
def _column(column: str) -> str:
    name = re.escape(column)
    # Bare or parenthesized column, optionally cast, never a function argument.
    return rf"(?<![\w.\"])(?:\(\s*\"?{name}\"?\s*\)|\"?{name}\"?)(?![\w\"]){_CAST}?"


def _number(group: str) -> str:
    return (
        rf"\(*\s*'?(?P<{group}>-?\s*(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?)'?\s*\)*{_CAST}?"
    )


def _bound_value(match: re.Match[str], group: str, *, strict: bool = False) -> BoundValue:
    return BoundValue(text=re.sub(r"\s+", "", match.group(group)), strict=strict)


def _quoted_list(terminator: str) -> str:
    """Match list text up to `terminator`, skipping over quoted literals."""
    return rf"(?:'(?:[^']|'')*'|[^'{re.escape(terminator)}])*"


_LIST_ITEM = re.compile(
    rf"'(?P<quoted>(?:[^']|'')*)'{_CAST}?|(?P<bare>[^,\s'][^,']*)", re.IGNORECASE
)


def _list_values(text: str) -> tuple[str, ...]:
    values: list[str] = []
    for match in _LIST_ITEM.finditer(text):
        quoted = match.group("quoted")
        if quoted is not None:
            values.append(quoted.replace("''", "'"))
            continue
        bare = match.group("bare").split("::", 1)[0].strip().strip("()").strip()
        if bare:
            values.append(bare)
    return tuple(values)


# %% ---- Rules -----------------------------------------------------------------------
class PredicateRule(ABC):
    """A single clause shape and the predicate it produces."""

    @abstractmethod
    def pattern(self, column: str) -> str:
        """Return the regular expression recognizing this shape for `column`."""

    @abstractmethod
    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        """Build the predicate for a match, or None to let later rules try."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the recognized shape."""

    def parse(self, column: str, clause: str) -> ParsedPredicate | None:
        match = re.search(self.pattern(column), clause, re.IGNORECASE)
        if match is None:
            return None
        return self.build(match, clause)


class ComparisonRule(PredicateRule):
    """`col >= N`, `col > N`, `col <= N` or `col < N`.

    Args:
        operator: One of `>=`, `>`, `<=`, `<`.
    """

    _OPERATORS = {
        ">=": (r">=", "minimum", False),
        ">": (r">(?!=)", "minimum", True),
        "<=": (r"<=", "maximum", False),
        "<": (r"<(?![=>])", "maximum", True),
    }

    def __init__(self, operator: str):
        if operator not in self._OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {operator!r}")
        self.operator = operator
        self._regex, self._side, self._strict = self._OPERATORS[operator]

    def pattern(self, column: str) -> str:
        return rf"{_column(column)}\s*{self._regex}\s*{_number('value')}"

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        value = _bound_value(match, "value", strict=self._strict)
        return Bound(clause=clause, **{self._side: value})

    @property
    def description(self) -> str:
        return f"column {self.operator} literal"


class ConjunctiveRangeRule(PredicateRule):
    """`(col >= a) AND (col <= b)`, the form PostgreSQL stores BETWEEN in.

    The upper comparison may also come first: `(col <= b) AND (col >= a)`.
    """

    def pattern(self, column: str) -> str:
        subject = _column(column)

        def lower(group: str) -> str:
            return rf"{subject}\s*(?P<{group}_op>>=|>)\s*{_number(group)}"

        def upper(group: str) -> str:
            return rf"{subject}\s*(?P<{group}_op><=|<(?!>))\s*{_number(group)}"

        conjunction = r"\s*\)*\s*and\s*\(*\s*"
        return (
            rf"(?:{lower('lower')}{conjunction}{upper('upper')}"
            rf"|{upper('upper_first')}{conjunction}{lower('lower_last')})"
        )

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        lower, upper = ("lower", "upper")
        if match.group("lower") is None:
            lower, upper = ("lower_last", "upper_first")
        return Bound(
            clause=clause,
            minimum=_bound_value(match, lower, strict=match.group(f"{lower}_op") == ">"),
            maximum=_bound_value(match, upper, strict=match.group(f"{upper}_op") == "<"),
        )

    @property
    def description(self) -> str:
        return "column >= literal AND column <= literal"


class BetweenRule(PredicateRule):
    def pattern(self, column: str) -> str:
        return (
            rf"{_column(column)}\s+between\s+(?:symmetric\s+)?{_number('lower')}"
            rf"\s+and\s+{_number('upper')}"
        )

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        return Bound(
            clause=clause,
            minimum=_bound_value(match, "lower"),
            maximum=_bound_value(match, "upper"),
        )

    @property
    def description(self) -> str:
        return "column BETWEEN literal AND literal"


class InListRule(PredicateRule):
    def pattern(self, column: str) -> str:
        return rf"{_column(column)}\s+in\s*\((?P<values>{_quoted_list(')')})\)"

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        values = _list_values(match.group("values"))
        if not values:
            return None
        return Enumeration(clause=clause, values=values)

    @property
    def description(self) -> str:
        return "column IN (literal, ...)"


class AnyArrayRule(PredicateRule):
    def pattern(self, column: str) -> str:
        return (
            rf"{_column(column)}\s*=\s*any\s*\(\s*\(?\s*array\s*"
            rf"\[(?P<values>{_quoted_list(']')})\]"
        )

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        values = _list_values(match.group("values"))
        if not values:
            return None
        return Enumeration(clause=clause, values=values)

    @property
    def description(self) -> str:
        return "column = ANY (ARRAY[literal, ...])"


class PatternMatchRule(PredicateRule):
    """`col ~ 'regex'`; `~*` is the case-insensitive variant."""

    def pattern(self, column: str) -> str:
        return rf"{_column(column)}\s*(?P<op>~\*?)\s*'(?P<regex>(?:[^']|'')*)'"

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        return Pattern(
            clause=clause,
            regex=match.group("regex").replace("''", "'"),
            case_insensitive=match.group("op") == "~*",
        )

    @property
    def description(self) -> str:
        return "column ~ 'pattern'"


class LengthRule(PredicateRule):
    """`length(col) <op> N`, also `char_length` and `character_length`."""

    def pattern(self, column: str) -> str:
        return (
            rf"(?<![\w.])(?:char_|character_)?length\s*\(\s*{_column(column)}\s*\)\s*"
            rf"(?P<op>>=|<=|<>|!=|>|<|=)\s*\(*\s*'?(?P<value>\d+)'?\s*\)*"
        )

    def build(self, match: re.Match[str], clause: str) -> ParsedPredicate | None:
        operator = match.group("op")
        text = match.group("value")
        if operator in (">=", ">"):
            return LengthBound(clause=clause, minimum=BoundValue(text, strict=operator == ">"))
        if operator in ("<=", "<"):
            return LengthBound(clause=clause, maximum=BoundValue(text, strict=operator == "<"))
        if operator == "=":
            return LengthBound(clause=clause, minimum=BoundValue(text), maximum=BoundValue(text))
        return None

    @property
    def description(self) -> str:
        return "length(column) <op> literal"


DEFAULT_RULES: tuple[PredicateRule, ...] = (
    ConjunctiveRangeRule(),
    ComparisonRule(">="),
    ComparisonRule(">"),
    ComparisonRule("<="),
    ComparisonRule("<"),
    BetweenRule(),
    InListRule(),
    AnyArrayRule(),
    PatternMatchRule(),
    LengthRule(),
)


# %% ---- Entry points ----------------------------------------------------------------
def parse_predicate(
    column_name: str,
    clause: str,
    rules: Sequence[PredicateRule] = DEFAULT_RULES,
) -> ParsedPredicate:
    """Parse one clause; never raises for clauses it does not understand."""
    text = _CHECK_KEYWORD.sub("", clause).strip()
    for rule in rules:
        predicate = rule.parse(column_name, text)
        if predicate is not None:
            return predicate
    return Unparsed(clause=text, raw=text)


def parse_predicates(
    column_name: str,
    clauses: Iterable[str],
    rules: Sequence[PredicateRule] = DEFAULT_RULES,
) -> list[ParsedPredicate]:
    """Parse each clause independently, one predicate per clause, in order."""
    return [parse_predicate(column_name, clause, rules) for clause in clauses]
