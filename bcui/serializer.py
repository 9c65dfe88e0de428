from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

# Every full field substring must be unique even when two padded values are
# identical: the decoder splits the payload by substring removal, which strips
# ALL occurrences. A per-index trailing marker keeps later fields intact.
FIELD_MARKERS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"

PAD_CHAR = ";"

# 'v' + 4 digits. Bump on any backward-incompatible layout change.
VERSION = "v0001"
PROTOCOL_HEADER = f"bcui{VERSION}"
PROTOCOL_HEADER_LENGTH = 9


class FieldType(StrEnum):
    string = "s"
    boolean = "b"
    integer = "i"
    float = "f"
    reserved = "r"


# Payload widths in bytes. Wire contract: append new fields, never resize.
TYPE_WIDTH: dict[FieldType, int] = {
    FieldType.string: 32,
    FieldType.boolean: 5,
    FieldType.integer: 16,
    FieldType.float: 24,
    FieldType.reserved: 0,
}

PREFIX_WIDTH = 2
MARKER_WIDTH = 1

FULL_WIDTH: dict[FieldType, int] = {
    t: (PREFIX_WIDTH + w + MARKER_WIDTH if t is not FieldType.reserved else 0) for t, w in TYPE_WIDTH.items()
}


class SerializationError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ReservedBytes:
    """Placeholder for `bytes` bytes of future protocol room (marker included)."""

    bytes: int


@dataclass(frozen=True, slots=True)
class IntValue:
    value: int


@dataclass(frozen=True, slots=True)
class FloatValue:
    value: float


SerializablePrimitive = str | bool | int | float | IntValue | FloatValue | ReservedBytes
SerializableProps = Mapping[str, SerializablePrimitive]

# A plan entry is a field type, or the ReservedBytes object itself (its size varies).
PlanEntry = FieldType | ReservedBytes


@dataclass(frozen=True, slots=True)
class Field:
    type: FieldType
    value: str
    marker: str

    @property
    def text(self) -> str:
        if self.type is FieldType.reserved:
            return self.value + self.marker
        return f"{self.type.value}:{self.value}{self.marker}"

    @property
    def byte_length(self) -> int:
        return utf8_byte_length(self.text)

    @property
    def core(self) -> str:
        """Semantic value with padding stripped."""

        return self.value.rstrip(PAD_CHAR)


def _char_bytes(ch: str) -> int:
    # surrogatepass: a lone surrogate counts as 3 bytes instead of raising
    return len(ch.encode("utf-8", "surrogatepass"))


def utf8_byte_length(s: str) -> int:
    return len(s.encode("utf-8", "surrogatepass"))


def utf8_truncate(s: str, max_bytes: int) -> str:
    """Cut `s` to at most `max_bytes` UTF-8 bytes without splitting a code point."""

    total = 0
    out: list[str] = []
    for ch in s:
        n = _char_bytes(ch)
        if total + n > max_bytes:
            break
        total += n
        out.append(ch)
    return "".join(out)


def pad_to_byte_length(s: str, length: int) -> str:
    if utf8_byte_length(s) > length:
        s = utf8_truncate(s, length)
    return s + PAD_CHAR * (length - utf8_byte_length(s))


def field_marker(index: int) -> str:
    if index < 0 or index >= len(FIELD_MARKERS):
        raise SerializationError(f"serialize(): exceeded supported field marker count ({len(FIELD_MARKERS)})")
    return FIELD_MARKERS[index]


def _is_integral(n: float) -> bool:
    return math.isfinite(n) and float(n).is_integer()


def reserve_bytes(n: int | float) -> ReservedBytes:
    """Reserve `n` bytes of payload for future use."""

    if isinstance(n, bool) or not isinstance(n, (int, float)):
        raise SerializationError(f"Reserved bytes must be a positive integer, got {n!r}")
    if isinstance(n, float) and not _is_integral(n):
        raise SerializationError(f"Reserved bytes must be a positive integer, got {n!r}")
    if n <= 0:
        raise SerializationError(f"Reserved bytes must be a positive integer, got {n!r}")
    return ReservedBytes(bytes=int(n))


def as_float(value: int | float) -> FloatValue:
    return FloatValue(float(value))


def as_int(value: int | float) -> IntValue:
    return IntValue(int(value))


def _render_int(value: int | float) -> str:
    return str(int(value))


def _render_float(value: float) -> str:
    # repr() is the shortest text that round-trips.
    return repr(float(value))


def classify(key: str, value: object) -> tuple[FieldType, str]:
    """Return the field type and unpadded text for one property value."""

    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return FieldType.boolean, "true" if value else "false"
    if isinstance(value, IntValue):
        return FieldType.integer, _render_int(value.value)
    if isinstance(value, FloatValue):
        return FieldType.float, _render_float(value.value)
    if isinstance(value, int):
        return FieldType.integer, _render_int(value)
    if isinstance(value, float):
        if _is_integral(value):
            return FieldType.integer, _render_int(value)
        return FieldType.float, _render_float(value)
    if isinstance(value, str):
        return FieldType.string, value
    if isinstance(value, ReservedBytes):
        return FieldType.reserved, ""
    raise SerializationError(
        f"serialize(): unsupported type for property {key!r}: {type(value).__name__} (value: {value!r})"
    )


def encode_field(key: str, value: SerializablePrimitive, index: int) -> Field:
    field_type, raw = classify(key, value)
    marker = field_marker(index)
    if field_type is FieldType.reserved:
        assert isinstance(value, ReservedBytes)
        return Field(type=field_type, value=PAD_CHAR * (value.bytes - 1), marker=marker)
    return Field(type=field_type, value=pad_to_byte_length(raw, TYPE_WIDTH[field_type]), marker=marker)


def encode_fields(props: SerializableProps) -> list[Field]:
    return [encode_field(key, value, i) for i, (key, value) in enumerate(props.items())]


def serialize_props(props: SerializableProps) -> tuple[str, int]:
    """Serialize an ordered mapping of primitives into a payload.

    Keys are not transmitted; only order and value types matter. Returns the
    payload (prefixed with `PROTOCOL_HEADER`) and its length in UTF-8 bytes.
    """

    fields = encode_fields(props)
    payload = PROTOCOL_HEADER + "".join(f.text for f in fields)
    total = utf8_byte_length(PROTOCOL_HEADER) + sum(f.byte_length for f in fields)
    return payload, total


def field_plan(props: SerializableProps) -> list[PlanEntry]:
    plan: list[PlanEntry] = []
    for key, value in props.items():
        if isinstance(value, ReservedBytes):
            plan.append(value)
        else:
            plan.append(classify(key, value)[0])
    return plan


def _entry_width(entry: PlanEntry) -> int:
    if isinstance(entry, ReservedBytes):
        return entry.bytes
    return FULL_WIDTH[entry]


def payload_size(plan: Sequence[PlanEntry]) -> int:
    return PROTOCOL_HEADER_LENGTH + sum(_entry_width(e) for e in plan)


def slice_fields(payload: str, plan: Sequence[PlanEntry]) -> list[Field]:
    """Split a payload back into fields using only the plan's fixed widths.

    This is the offset arithmetic the external decoder performs; trailing data
    beyond the plan is ignored.
    """

    raw = payload.encode("utf-8", "surrogatepass")
    header = raw[:PROTOCOL_HEADER_LENGTH].decode("ascii", "replace")
    if header != PROTOCOL_HEADER:
        raise SerializationError(f"Unexpected payload header: {header!r}")

    offset = PROTOCOL_HEADER_LENGTH
    out: list[Field] = []
    for entry in plan:
        width = _entry_width(entry)
        chunk = raw[offset : offset + width]
        if len(chunk) != width:
            raise SerializationError(f"Payload too short for field {len(out)}")
        text = chunk.decode("utf-8", "surrogatepass")
        if isinstance(entry, ReservedBytes):
            out.append(Field(type=FieldType.reserved, value=text[:-1], marker=text[-1]))
        else:
            out.append(Field(type=entry, value=text[PREFIX_WIDTH:-MARKER_WIDTH], marker=text[-1]))
        offset += width
    return out
