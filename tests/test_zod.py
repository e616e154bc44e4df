import pytest

from pg2zod.exceptions import ConverterError
from pg2zod.zod import (
    ZodArray,
    ZodBigInt,
    ZodEnum,
    ZodExpression,
    ZodNullable,
    ZodNumber,
    ZodObject,
    ZodOptional,
    ZodReference,
    ZodString,
    ZodTuple,
    ZodUnion,
    comment,
    nullable,
    regex_literal,
    string_literal,
)


# %% Literals
class TestLiterals:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("admin", "'admin'"),
            ("it's", "'it\\'s'"),
            ("a\\b", "'a\\\\b'"),
            ("line\nbreak", "'line\\nbreak'"),
        ],
    )
    def test_string_literal(self, value, expected):
        assert string_literal(value) == expected

    @pytest.mark.parametrize(
        "pattern, expected",
        [
            ("^[a-z]+$", "/^[a-z]+$/"),
            ("a/b", "/a\\/b/"),
            ("a\\/b", "/a\\/b/"),
            ("\\\\/", "/\\\\\\//"),
        ],
    )
    def test_regex_literal_escapes_slashes(self, pattern, expected):
        assert regex_literal(pattern) == expected

    def test_comment_cannot_close_early(self):
        assert comment("a */ b") == "/* a * / b */"


# %% Nodes
class TestNodes:
    def test_number(self):
        node = ZodNumber(integer=True, minimum="0", maximum="100")
        assert node.to_source() == "z.number().int().min(0).max(100)"

    def test_positive_number(self):
        assert ZodNumber(integer=True, positive=True).to_source() == "z.number().int().positive()"

    def test_bigint_bounds_use_suffix(self):
        assert ZodBigInt(minimum="1").to_source() == "z.bigint().min(1n)"

    def test_string_checks_keep_order(self):
        node = ZodString().with_check("max", "10").with_check("regex", "/^a/")
        assert node.to_source() == "z.string().max(10).regex(/^a/)"

    def test_with_check_keeps_notes(self):
        node = ZodString(notes=("XML",)).with_check("min", "1")
        assert node.to_source() == "z.string().min(1) /* XML */"

    def test_enum(self):
        assert ZodEnum(("a", "b")).to_source() == "z.enum(['a', 'b'])"

    def test_empty_enum_raises(self):
        with pytest.raises(ConverterError, match="at least one value"):
            ZodEnum(())

    def test_array_depth(self):
        assert ZodArray(ZodString(), depth=3).to_source() == (
            "z.array(z.array(z.array(z.string())))"
        )

    def test_array_depth_must_be_positive(self):
        with pytest.raises(ConverterError, match="at least 1"):
            ZodArray(ZodString(), depth=0)

    def test_containers(self):
        assert ZodTuple((ZodNumber(), ZodNumber())).to_source() == (
            "z.tuple([z.number(), z.number()])"
        )
        assert ZodObject((("a", ZodNumber()),)).to_source() == "z.object({ a: z.number() })"
        assert ZodUnion((ZodExpression("z.ipv4()"), ZodExpression("z.ipv6()"))).to_source() == (
            "z.union([z.ipv4(), z.ipv6()])"
        )

    def test_modifiers(self):
        assert ZodNullable(ZodReference("PublicMoodSchema")).to_source() == (
            "PublicMoodSchema.nullable()"
        )
        assert ZodOptional(ZodNumber()).to_source() == "z.number().optional()"

    def test_notes_render_after_expression(self):
        node = ZodNullable(ZodArray(ZodString(notes=("inner",)), notes=("outer",)))
        assert node.to_source() == "z.array(z.string()).nullable() /* inner */ /* outer */"
        assert str(node) == node.to_source()


class TestNullable:
    def test_wraps_once(self):
        node = nullable(nullable(ZodString()))
        assert node.to_source() == "z.string().nullable()"

    def test_not_nullable_returns_node(self):
        node = ZodString()
        assert nullable(node, False) is node
