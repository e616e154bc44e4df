"""Builtin PostgreSQL type to Zod expression table.

Keys are lower-cased type names as they appear either in
`information_schema.columns.data_type` (`character varying`) or in
`udt_name` (`varchar`). Values build a fresh Zod node for one descriptor, so
length, precision and bit-width facts of the column can shape the result.

Documented approximations:

- `numeric`/`decimal` precision and scale are recorded as an annotation,
  not enforced as a bound.
- `macaddr8`, `money`, `time with time zone`, bit strings and `pg_lsn` have
  no dedicated Zod primitive and are pattern-constrained strings.
- Range types are `[lower, upper]` tuples whose bounds are each nullable,
  since either side of a range may be unbounded.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType

from .catalog import TypeDescriptor
from .zod import (
    ZodArray,
    ZodBigInt,
    ZodExpression,
    ZodNumber,
    ZodObject,
    ZodString,
    ZodTuple,
    ZodType,
    ZodUnion,
    nullable,
)

BuiltinFactory = Callable[[TypeDescriptor], ZodType]


def _fixed(source: str) -> BuiltinFactory:
    def factory(_: TypeDescriptor) -> ZodType:
        return ZodExpression(source)

    return factory


def _integer(_: TypeDescriptor) -> ZodType:
    return ZodNumber(integer=True)


def _bigint(_: TypeDescriptor) -> ZodType:
    return ZodBigInt()


def _float(_: TypeDescriptor) -> ZodType:
    return ZodNumber()


def _numeric(descriptor: TypeDescriptor) -> ZodType:
    if descriptor.numeric_precision is not None and descriptor.numeric_scale is not None:
        return ZodNumber(
            notes=(
                f"precision: {descriptor.numeric_precision}, "
                f"scale: {descriptor.numeric_scale}",
            )
        )
    return ZodNumber()


def _pattern(pattern: str) -> BuiltinFactory:
    def factory(_: TypeDescriptor) -> ZodType:
        return ZodString(checks=(("regex", pattern),))

    return factory


def _annotated_string(note: str) -> BuiltinFactory:
    def factory(_: TypeDescriptor) -> ZodType:
        return ZodString(notes=(note,))

    return factory


def _varchar(descriptor: TypeDescriptor) -> ZodType:
    if descriptor.character_maximum_length:
        return ZodString(checks=(("max", str(descriptor.character_maximum_length)),))
    return ZodString()


def _char(descriptor: TypeDescriptor) -> ZodType:
    # Fixed-width values are blank-padded to exactly the declared length.
    if descriptor.character_maximum_length:
        return ZodString(checks=(("length", str(descriptor.character_maximum_length)),))
    return ZodString()


def _name(_: TypeDescriptor) -> ZodType:
    return ZodString(checks=(("max", "63"),))


def _text(_: TypeDescriptor) -> ZodType:
    return ZodString()


def _bit(descriptor: TypeDescriptor) -> ZodType:
    if descriptor.character_maximum_length:
        return ZodString(
            checks=(("regex", f"/^[01]{{{descriptor.character_maximum_length}}}$/"),)
        )
    return ZodString(checks=(("regex", "/^[01]+$/"),))


def _varbit(descriptor: TypeDescriptor) -> ZodType:
    if descriptor.character_maximum_length:
        return ZodString(
            checks=(("regex", f"/^[01]{{0,{descriptor.character_maximum_length}}}$/"),)
        )
    return ZodString(checks=(("regex", "/^[01]*$/"),))


def _point() -> ZodType:
    return ZodTuple((ZodNumber(), ZodNumber()))


def _geometric(kind: str) -> BuiltinFactory:
    def factory(_: TypeDescriptor) -> ZodType:
        if kind == "point":
            return _point()
        if kind == "line":
            return ZodObject((("a", ZodNumber()), ("b", ZodNumber()), ("c", ZodNumber())))
        if kind in ("lseg", "box"):
            return ZodTuple((_point(), _point()))
        if kind in ("path", "polygon"):
            return ZodArray(_point())
        return ZodObject((("center", _point()), ("radius", ZodNumber())))

    return factory


def _range(bound: Callable[[], ZodType]) -> BuiltinFactory:
    def factory(_: TypeDescriptor) -> ZodType:
        return ZodTuple((nullable(bound()), nullable(bound())))

    return factory


_TIMETZ_PATTERN = r"/^\d{2}:\d{2}:\d{2}(\.\d+)?[+-]\d{2}:\d{2}$/"
_MACADDR8_PATTERN = r"/^([0-9A-Fa-f]{2}[:-]){7}([0-9A-Fa-f]{2})$/"
_MONEY_PATTERN = r"/^\$?[0-9,]+(\.\d{2})?$/"
_PG_LSN_PATTERN = r"/^[0-9A-F]+\/[0-9A-F]+$/"

_OID_ALIASES = (
    "regproc",
    "regprocedure",
    "regoper",
    "regoperator",
    "regclass",
    "regtype",
    "regrole",
    "regnamespace",
    "regconfig",
    "regdictionary",
)

_BUILTIN_TYPES: dict[str, BuiltinFactory] = {
    # Numeric
    "smallint": _integer,
    "integer": _integer,
    "int": _integer,
    "int2": _integer,
    "int4": _integer,
    "smallserial": _integer,
    "serial": _integer,
    "serial2": _integer,
    "serial4": _integer,
    "bigint": _bigint,
    "int8": _bigint,
    "bigserial": _bigint,
    "serial8": _bigint,
    "decimal": _numeric,
    "numeric": _numeric,
    "real": _float,
    "float4": _float,
    "double precision": _float,
    "float8": _float,
    "money": _pattern(_MONEY_PATTERN),
    # Character
    "character varying": _varchar,
    "varchar": _varchar,
    "character": _char,
    "char": _char,
    "bpchar": _char,
    "text": _text,
    "citext": _text,
    "name": _name,
    # Boolean
    "boolean": _fixed("z.boolean()"),
    "bool": _fixed("z.boolean()"),
    # Date/time
    "timestamp": _fixed("z.date()"),
    "timestamp without time zone": _fixed("z.date()"),
    "timestamp with time zone": _fixed("z.date()"),
    "timestamptz": _fixed("z.date()"),
    "date": _fixed("z.date()"),
    "time": _fixed("z.iso.time()"),
    "time without time zone": _fixed("z.iso.time()"),
    "time with time zone": _pattern(_TIMETZ_PATTERN),
    "timetz": _pattern(_TIMETZ_PATTERN),
    "interval": _fixed("z.iso.duration()"),
    # Identifiers and documents
    "uuid": _fixed("z.uuid()"),
    "json": _fixed("z.record(z.string(), z.unknown())"),
    "jsonb": _fixed("z.record(z.string(), z.unknown())"),
    "xml": _annotated_string("XML"),
    # Network
    "inet": lambda _: ZodUnion((ZodExpression("z.ipv4()"), ZodExpression("z.ipv6()"))),
    "cidr": lambda _: ZodUnion((ZodExpression("z.cidrv4()"), ZodExpression("z.cidrv6()"))),
    "macaddr": _fixed("z.mac()"),
    "macaddr8": _pattern(_MACADDR8_PATTERN),
    # Bit strings
    "bit": _bit,
    "bit varying": _varbit,
    "varbit": _varbit,
    # Geometric
    "point": _geometric("point"),
    "line": _geometric("line"),
    "lseg": _geometric("lseg"),
    "box": _geometric("box"),
    "path": _geometric("path"),
    "polygon": _geometric("polygon"),
    "circle": _geometric("circle"),
    # Text search
    "tsvector": _annotated_string("tsvector"),
    "tsquery": _annotated_string("tsquery"),
    # Binary
    "bytea": _fixed("z.instanceof(Buffer)"),
    # System
    "oid": lambda _: ZodNumber(integer=True, positive=True),
    "pg_lsn": _pattern(_PG_LSN_PATTERN),
    # Builtin ranges
    "int4range": _range(lambda: ZodNumber(integer=True)),
    "int8range": _range(ZodBigInt),
    "numrange": _range(ZodNumber),
    "daterange": _range(lambda: ZodExpression("z.date()")),
    "tsrange": _range(lambda: ZodExpression("z.date()")),
    "tstzrange": _range(lambda: ZodExpression("z.date()")),
}
_BUILTIN_TYPES.update(
    {alias: _annotated_string("PostgreSQL OID reference") for alias in _OID_ALIASES}
)

BUILTIN_TYPES: Mapping[str, BuiltinFactory] = MappingProxyType(_BUILTIN_TYPES)


def lookup_builtin(type_name: str) -> BuiltinFactory | None:
    """Return the factory registered for `type_name`, ignoring case."""
    return BUILTIN_TYPES.get(type_name.strip().lower())
