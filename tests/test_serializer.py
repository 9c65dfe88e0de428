from __future__ import annotations

import math

import pytest

from bcui.serializer import (
    FULL_WIDTH,
    PAD_CHAR,
    PROTOCOL_HEADER,
    PROTOCOL_HEADER_LENGTH,
    FieldType,
    FloatValue,
    IntValue,
    ReservedBytes,
    SerializationError,
    encode_fields,
    field_plan,
    payload_size,
    reserve_bytes,
    serialize_props,
    slice_fields,
    utf8_byte_length,
    utf8_truncate,
)


def test_header_is_nine_ascii_bytes() -> None:
    assert PROTOCOL_HEADER == "bcuiv0001"
    assert PROTOCOL_HEADER_LENGTH == len(PROTOCOL_HEADER.encode("ascii"))


def test_string_field_layout() -> None:
    payload, total = serialize_props({"label": "x"})

    assert payload == PROTOCOL_HEADER + "s:x" + PAD_CHAR * 31 + "0"
    assert total == 9 + 35
    assert utf8_byte_length(payload) == total


def test_boolean_integer_and_float_fields() -> None:
    fields = encode_fields({"on": True, "off": False, "n": -42, "f": 250.5})

    assert [f.text for f in fields] == [
        "b:true;0",
        "b:false1",
        "i:-42" + PAD_CHAR * 13 + "2",
        "f:250.5" + PAD_CHAR * 19 + "3",
    ]


def test_integral_float_becomes_integer_unless_pinned() -> None:
    assert encode_fields({"a": 3.0})[0].type is FieldType.integer
    assert encode_fields({"a": FloatValue(3.0)})[0].type is FieldType.float
    assert encode_fields({"a": FloatValue(3.0)})[0].core == "3.0"
    assert encode_fields({"a": IntValue(7)})[0].type is FieldType.integer


def test_length_depends_only_on_type_sequence() -> None:
    short, short_total = serialize_props({"a": "", "b": 0, "c": 0.5, "d": False})
    long, long_total = serialize_props({"a": "x" * 100, "b": -123456789012345678901, "c": math.pi, "d": True})

    expected = PROTOCOL_HEADER_LENGTH + sum(FULL_WIDTH[t] for t in (FieldType.string, FieldType.integer, FieldType.float, FieldType.boolean))
    assert short_total == long_total == expected
    assert utf8_byte_length(short) == utf8_byte_length(long) == expected


def test_identical_values_get_distinct_field_text() -> None:
    first, second = encode_fields({"a": "same", "b": "same"})

    assert first.value == second.value
    assert first.text != second.text
    payload, _ = serialize_props({"a": "same", "b": "same"})
    # Removing one field's text must leave the other intact.
    assert second.text in payload.replace(first.text, "")


@pytest.mark.parametrize(
    "char,byte_width",
    [("é", 2), ("中", 3), ("😀", 4)],
)
def test_string_truncation_never_splits_a_code_point(char: str, byte_width: int) -> None:
    fits = "a" * (32 - byte_width) + char
    overflows = "a" * (33 - byte_width) + char

    assert encode_fields({"s": fits})[0].core == fits

    field = encode_fields({"s": overflows})[0]
    assert field.core == "a" * (33 - byte_width)
    assert utf8_byte_length(field.value) == 32
    assert field.byte_length == FULL_WIDTH[FieldType.string]


def test_utf8_truncate_counts_lone_surrogates_as_three_bytes() -> None:
    assert utf8_byte_length("\ud800") == 3
    assert utf8_truncate("ab\ud800", 4) == "ab"


def test_unsupported_values_fail_fast() -> None:
    with pytest.raises(SerializationError, match="unsupported type for property 'bad'"):
        serialize_props({"bad": None})
    with pytest.raises(SerializationError):
        serialize_props({"bad": [1, 2]})


def test_more_than_64_fields_is_rejected() -> None:
    _, total = serialize_props({f"k{i}": True for i in range(64)})
    assert total == 9 + 64 * 8

    with pytest.raises(SerializationError, match="field marker count"):
        serialize_props({f"k{i}": True for i in range(65)})


@pytest.mark.parametrize("bad", [-1, 0, 1.5, math.nan, math.inf, -math.inf, True, "3"])
def test_reserve_bytes_rejects_invalid_sizes(bad: object) -> None:
    with pytest.raises(SerializationError):
        reserve_bytes(bad)  # type: ignore[arg-type]


def test_reserved_field_is_padding_plus_marker() -> None:
    assert reserve_bytes(3.0) == ReservedBytes(3)

    payload, total = serialize_props({"flag": True, "_r": reserve_bytes(4)})
    assert payload == PROTOCOL_HEADER + "b:true;0" + ";;;1"
    assert total == 9 + 8 + 4


def test_slice_fields_recovers_values_from_widths_alone() -> None:
    props = {"type": "panel", "_r": reserve_bytes(10), "w": FloatValue(1.25), "n": 12, "ok": True, "name": "héllo"}
    payload, total = serialize_props(props)
    plan = field_plan(props)

    assert payload_size(plan) == total
    fields = slice_fields(payload, plan)
    assert [f.core for f in fields] == ["panel", "", "1.25", "12", "true", "héllo"]
    assert [f.marker for f in fields] == list("012345")


def test_slice_fields_rejects_foreign_header() -> None:
    with pytest.raises(SerializationError, match="header"):
        slice_fields("nope" + "x" * 40, [FieldType.string])
