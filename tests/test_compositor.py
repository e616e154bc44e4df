import pytest

from pg2zod.compositor import (
    EPSILON,
    compose,
    compose_schema,
    float_bound,
    format_number,
    integer_bound,
)
from pg2zod.constraints import (
    Bound,
    BoundValue,
    Enumeration,
    LengthBound,
    Pattern,
    Unparsed,
    parse_predicate,
)
from pg2zod.resolver import ArrayOf, Builtin, Reference
from pg2zod.zod import ZodBigInt, ZodNumber, ZodString

def integer(nullable: bool = False) -> Builtin:
    return Builtin(ZodNumber(integer=True), nullable=nullable)

# %% Number formatting
class TestNumberFormatting:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (100.0, "100"),
            (-3.0, "-3"),
            (0.5, "0.5"),
            (1e-7, "1e-7"),
            (1.5e-5, "0.000015"),
            (1e21, "1e+21"),
            (0 + EPSILON, "2.220446049250313e-16"),
            (1 - EPSILON, "0.9999999999999998"),
        ],
    )
    def test_format_number(self, value, expected):
        assert format_number(value) == expected

    @pytest.mark.parametrize(
        "bound, side, expected",
        [
            (BoundValue("0", strict=True), "minimum", "1"),
            (BoundValue("0"), "minimum", "0"),
            (BoundValue("0.5"), "minimum", "1"),
            (BoundValue("0.5", strict=True), "minimum", "1"),
            (BoundValue("100", strict=True), "maximum", "99"),
            (BoundValue("99.5"), "maximum", "99"),
            (BoundValue("99.5", strict=True), "maximum", "99"),
            (BoundValue("-5", strict=True), "minimum", "-4"),
        ],
    )
    def test_integer_bound(self, bound, side, expected):
        assert integer_bound(bound, side) == expected

    def test_float_bound_keeps_inclusive_text(self):
        assert float_bound(BoundValue("99.50"), "maximum") == "99.50"

    @pytest.mark.parametrize(
        "bound, side",
        [
            (BoundValue("1e400", strict=True), "minimum"),
            (BoundValue("-1e400", strict=True), "maximum"),
        ],
    )
    def test_float_bound_out_of_range_keeps_text(self, bound, side):
        assert float_bound(bound, side) == bound.text

# %% Bounds
class TestBounds:
    def test_inclusive_integer_bounds(self):
        result = compose(integer(), [parse_predicate("age", "((age >= 0) AND (age <= 150))")])
        assert result == "z.number().int().min(0).max(150)"

    def test_strict_integer_bounds(self):
        result = compose(
            integer(), [parse_predicate("n", "n > 0"), parse_predicate("n", "n < 100")]
        )
        assert result == "z.number().int().min(1).max(99)"

    def test_strict_float_bounds(self):
        price = Builtin(ZodNumber())
        assert compose(price, [parse_predicate("price", "price > 0")]) == (
            "z.number().min(2.220446049250313e-16)"
        )
        assert compose(price, [parse_predicate("ratio", "ratio < 1")]) == (
            "z.number().max(0.9999999999999998)"
        )

    def test_strict_float_bound_beyond_double_range(self):
        price = Builtin(ZodNumber())
        assert compose(price, [parse_predicate("x", "x > 1e400")]) == "z.number().min(1e400)"

    def test_bigint_bounds(self):
        validator = Builtin(ZodBigInt())
        assert compose(validator, [parse_predicate("id", "id > 0")]) == "z.bigint().min(1n)"

    def test_later_bound_wins_per_side(self):
        predicates = [
            Bound(clause="a", minimum=BoundValue("0")),
            Bound(clause="b", maximum=BoundValue("10")),
            Bound(clause="c", minimum=BoundValue("5")),
        ]
        assert compose(integer(), predicates) == "z.number().int().min(5).max(10)"

    def test_nullable_wrapper_is_outermost(self):
        result = compose(integer(nullable=True), [parse_predicate("n", "n >= 0")])
        assert result == "z.number().int().min(0).nullable()"

    def test_bound_on_string_is_annotation(self):
        result = compose(Builtin(ZodString()), [Bound(clause="x > 0", minimum=BoundValue("0"))])
        assert result == "z.string() /* CHECK: x > 0 */"

# %% String refinements
class TestStringRefinements:
    def test_enumeration_replaces_string(self):
        validator = Builtin(ZodString(checks=(("max", "20"),)), nullable=True)
        predicate = parse_predicate("status", "status IN ('a', 'b')")
        assert compose(validator, [predicate]) == "z.enum(['a', 'b']).nullable()"

    def test_pattern_appends_regex(self):
        validator = Builtin(ZodString(checks=(("max", "255"),)))
        predicate = parse_predicate("code", "code ~ '^[a-z/]+$'")
        assert compose(validator, [predicate]) == "z.string().max(255).regex(/^[a-z\\/]+$/)"

    def test_case_insensitive_pattern(self):
        predicate = Pattern(clause="c ~* 'x'", regex="^x$", case_insensitive=True)
        assert compose(Builtin(ZodString()), [predicate]) == "z.string().regex(/^x$/i)"

    def test_length_bounds(self):
        predicates = [
            LengthBound(clause="a", minimum=BoundValue("2", strict=True)),
            LengthBound(clause="b", maximum=BoundValue("10")),
        ]
        assert compose(Builtin(ZodString()), predicates) == "z.string().min(3).max(10)"

    def test_enumeration_on_number_is_annotation(self):
        predicate = Enumeration(clause="n IN (1, 2)", values=("1", "2"))
        assert compose(integer(), [predicate]) == "z.number().int() /* CHECK: n IN (1, 2) */"

# %% Wrappers and fallbacks
class TestComposition:
    def test_no_predicates(self):
        validator = integer(nullable=True)
        assert compose_schema(validator, []) == validator.to_zod()

    def test_unparsed_is_annotation(self):
        predicate = Unparsed(clause="a < b", raw="a < b")
        assert compose(integer(), [predicate]) == "z.number().int() /* CHECK: a < b */"

    def test_reference_keeps_annotation(self):
        validator = Reference(kind="enum", schema="public", name="mood", nullable=True)
        predicate = Pattern(clause="mood ~ 'a'", regex="a")
        assert compose(validator, [predicate]) == (
            "PublicMoodSchema.nullable() /* CHECK: mood ~ 'a' */"
        )

    def test_array_elements_are_refined(self):
        validator = ArrayOf(element=integer(), depth=2, nullable=True)
        result = compose(validator, [parse_predicate("scores", "scores >= 0")])
        assert result == "z.array(z.array(z.number().int().min(0))).nullable()"
