"""Tests for converting and binding single values."""

from dataclasses import dataclass
from enum import IntEnum
from typing import NewType, Optional

import pytest

from formbind import (
    ConversionError,
    FormTypeError,
    Int8,
    Int16,
    Int32,
    Int64,
    Ref,
    UnsupportedFieldTypeError,
    build_catalog,
    form_field,
)
from formbind.binder import bind, convert, parse_bool, parse_int, walk_chain
from formbind.types import PrimitiveType, TypeRegistry

UserId = NewType("UserId", int)


class Slug(str):
    pass


class Level(IntEnum):
    LOW = 1
    HIGH = 2


class Picky(str):
    def unmarshal_form_field(self, raw: str) -> "Picky":
        if not raw.isalpha():
            raise ValueError("letters only")
        return Picky(raw)


@dataclass
class Counter:
    count: int = 0

    def unmarshal_form_field(self, raw: str) -> None:
        self.count += len(raw)


@dataclass
class Lookup:
    key: str = ""

    def unmarshal_form_field(self, raw: str) -> None:
        self.key = {"a": "alpha"}[raw]


@dataclass
class Named:
    user: UserId = form_field("user", default=UserId(0))
    slug: Slug = form_field("slug", default=Slug())
    level: Level = form_field("level", default=Level.LOW)
    tiny: Int8 = form_field("tiny", default=Int8(0))
    picky: Picky = form_field("picky", default=Picky())
    counter: Optional[Counter] = form_field("counter", default=None)
    size: Optional[Ref[Ref[float]]] = form_field("size", default=None)


class TestParseBool:
    """Tests for the boolean literal set."""

    @pytest.mark.parametrize("raw", ["true", "TRUE", "True", "1"])
    def test_true_literals(self, raw):
        assert parse_bool(raw) is True
        assert parse_bool(raw, strict=True) is True

    @pytest.mark.parametrize("raw", ["false", "FALSE", "False", "0"])
    def test_false_literals(self, raw):
        assert parse_bool(raw) is False
        assert parse_bool(raw, strict=True) is False

    @pytest.mark.parametrize("raw", ["", "yes", "no", "f", "fAlSe", "2"])
    def test_other_literals(self, raw):
        assert parse_bool(raw) is True
        with pytest.raises(ValueError):
            parse_bool(raw, strict=True)


class TestParseInt:
    """Tests for base-10 integer parsing."""

    @pytest.mark.parametrize("raw,expected", [("4", 4), ("-4", -4), ("+4", 4), ("007", 7)])
    def test_valid(self, raw, expected):
        assert parse_int(raw) == expected

    @pytest.mark.parametrize("raw", ["", " 4", "4 ", "1_000", "0x10", "4.0", "٣", "--4"])
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            parse_int(raw)

    def test_width_bounds(self):
        assert parse_int("-128", PrimitiveType.INT8) == -128
        assert parse_int("127", PrimitiveType.INT8) == 127
        with pytest.raises(ValueError):
            parse_int("128", PrimitiveType.INT8)
        with pytest.raises(ValueError):
            parse_int("-32769", PrimitiveType.INT16)
        assert parse_int("2147483647", PrimitiveType.INT32) == 2**31 - 1

    def test_plain_int_is_64_bit(self):
        assert parse_int("9223372036854775807") == 2**63 - 1
        with pytest.raises(ValueError):
            parse_int("9223372036854775808")


class TestConvert:
    """Tests for convert()."""

    @pytest.mark.parametrize(
        "annotation,raw,expected",
        [
            (str, "text", "text"),
            (bool, "0", False),
            (int, "-12", -12),
            (Int8, "-8", -8),
            (Int16, "300", 300),
            (Int32, "70000", 70000),
            (Int64, "-70000", -70000),
            (UserId, "42", 42),
        ],
    )
    def test_primitives(self, annotation, raw, expected):
        type_def = TypeRegistry().describe(annotation)
        assert convert("f", type_def, None, raw) == expected

    def test_named_string(self):
        value = convert("slug", TypeRegistry().describe(Slug), None, "a-b")
        assert value == "a-b"
        assert type(value) is Slug

    def test_int_enum(self):
        type_def = TypeRegistry().describe(Level)
        assert convert("level", type_def, None, "2") is Level.HIGH
        with pytest.raises(ConversionError):
            convert("level", type_def, None, "3")

    def test_hook_error_becomes_conversion_error(self):
        type_def = TypeRegistry().describe(Picky)
        with pytest.raises(ConversionError) as exc_info:
            convert("picky", type_def, Picky(), "abc1")
        assert exc_info.value.name == "picky"
        assert exc_info.value.raw == "abc1"
        assert "letters only" in str(exc_info.value)

    def test_named_hook_type(self):
        type_def = TypeRegistry().describe(NewType("PickyName", Picky))
        assert type_def.is_custom
        value = convert("picky", type_def, None, "abc")
        assert value == "abc"
        assert type(value) is Picky

    def test_hook_lookup_error_becomes_conversion_error(self):
        type_def = TypeRegistry().describe(Lookup)
        assert convert("code", type_def, None, "a") == Lookup("alpha")
        with pytest.raises(ConversionError) as exc_info:
            convert("code", type_def, None, "b")
        assert exc_info.value.name == "code"
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_unsupported(self):
        with pytest.raises(UnsupportedFieldTypeError):
            convert("f", TypeRegistry().describe(float), None, "1.5")


class TestWalkChain:
    """Tests for walking Ref chains."""

    def test_no_indirection(self):
        record = Named()
        type_def = TypeRegistry().describe(int)
        assert walk_chain(record, "user", type_def) == (record, "user", type_def)

    def test_allocates_every_level(self):
        registry = TypeRegistry()

        @dataclass
        class Holder:
            slot: Optional[Ref[Ref[Ref[int]]]] = None

        holder = Holder()
        owner, attribute, base = walk_chain(holder, "slot", registry.describe(Ref[Ref[Ref[int]]]))
        assert holder.slot == Ref(Ref(Ref(None)))
        assert owner is holder.slot.value.value
        assert attribute == "value"
        assert base is registry.describe(int)

    def test_reuses_existing_links(self):
        outer = Ref(None)

        @dataclass
        class Holder:
            slot: Optional[Ref[Ref[int]]] = None

        holder = Holder(slot=outer)
        owner, _, _ = walk_chain(holder, "slot", TypeRegistry().describe(Ref[Ref[int]]))
        assert holder.slot is outer
        assert owner is outer.value


class TestBind:
    """Tests for bind()."""

    def _descriptor(self, name):
        return next(d for d in build_catalog(Named) if d.name == name)

    def test_bind_named_types(self):
        record = Named()
        bind(record, self._descriptor("user"), "7")
        bind(record, self._descriptor("slug"), "post")
        bind(record, self._descriptor("tiny"), "-100")
        assert record.user == 7
        assert type(record.slug) is Slug
        assert record.tiny == -100

    def test_width_overflow(self):
        record = Named()
        with pytest.raises(ConversionError):
            bind(record, self._descriptor("tiny"), "200")
        assert record.tiny == 0

    def test_hook_allocates_unset_value(self):
        record = Named()
        bind(record, self._descriptor("counter"), "abcd")
        assert record.counter == Counter(4)
        bind(record, self._descriptor("counter"), "ab")
        assert record.counter == Counter(6)

    def test_unsupported_does_not_allocate(self):
        record = Named()
        with pytest.raises(UnsupportedFieldTypeError):
            bind(record, self._descriptor("size"), "1.5")
        assert record.size is None

    def test_frozen_owner(self):
        @dataclass(frozen=True)
        class Locked:
            a: int = form_field("a", default=0)

        with pytest.raises(FormTypeError):
            bind(Locked(), build_catalog(Locked)[0], "1")
