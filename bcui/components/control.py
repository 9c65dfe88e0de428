from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from bcui.serializer import FloatValue, IntValue, as_float, as_int, reserve_bytes

# Reserved blocks sized so the header plus the canonical block is exactly 512 bytes.
CONTROL_RESERVED_BYTES = 64
LAYOUT_RESERVED_BYTES = 245
CONTROL_BLOCK_BYTES = 512

# Canonical names in wire order. Reserved slots are inserted by with_control().
CONTROL_KEYS: tuple[str, ...] = ("type", "visible", "enabled", "layer")
LAYOUT_KEYS: tuple[str, ...] = (
    "width",
    "height",
    "x",
    "y",
    "inherit_max_sibling_width",
    "inherit_max_sibling_height",
)

# Accept the camelCase spellings some callers use.
_ALIASES: dict[str, str] = {
    "inheritMaxSiblingWidth": "inherit_max_sibling_width",
    "inheritMaxSiblingHeight": "inherit_max_sibling_height",
}

_RESERVED_KEYS = ("__reserved_control", "__reserved_layout")

# Caller props under these names never reach the composed mapping.
_CANONICAL = frozenset(CONTROL_KEYS + LAYOUT_KEYS + _RESERVED_KEYS)


def _as_bool(props: Mapping[str, Any], key: str, default: bool) -> bool:
    value = props.get(key)
    return default if value is None else bool(value)


def _as_layer(value: Any) -> IntValue:
    if value is None:
        return as_int(0)
    if isinstance(value, IntValue):
        return value
    return as_int(math.floor(value))


def _as_dimension(value: Any) -> FloatValue:
    if value is None:
        return as_float(0.0)
    if isinstance(value, FloatValue):
        return value
    return as_float(value)


def with_control(props: Mapping[str, Any]) -> dict[str, Any]:
    """Compose component props into the canonical, stable-ordered layout.

    Wire order (after the `bcuiv0001` header):

        0  type                        string
        1  visible                     boolean (default true)
        2  enabled                     boolean (default true)
        3  layer                       integer (default 0)
        4  <reserved 64>
        5  width                       float (default 0.0)
        6  height                      float
        7  x                           float
        8  y                           float
        9  inherit_max_sibling_width   boolean (default false)
        10 inherit_max_sibling_height  boolean (default false)
        11 <reserved 245>

    Component-specific keys follow in the caller's insertion order. Layout
    values are pinned to float fields and layer to an integer field so the
    canonical block never changes width; only append after it.
    """

    normalized: dict[str, Any] = {_ALIASES.get(k, k): v for k, v in props.items()}

    composed: dict[str, Any] = {
        "type": str(normalized.get("type") or ""),
        "visible": _as_bool(normalized, "visible", True),
        "enabled": _as_bool(normalized, "enabled", True),
        "layer": _as_layer(normalized.get("layer")),
        "__reserved_control": reserve_bytes(CONTROL_RESERVED_BYTES),
        "width": _as_dimension(normalized.get("width")),
        "height": _as_dimension(normalized.get("height")),
        "x": _as_dimension(normalized.get("x")),
        "y": _as_dimension(normalized.get("y")),
        "inherit_max_sibling_width": _as_bool(normalized, "inherit_max_sibling_width", False),
        "inherit_max_sibling_height": _as_bool(normalized, "inherit_max_sibling_height", False),
        "__reserved_layout": reserve_bytes(LAYOUT_RESERVED_BYTES),
    }

    for key, value in normalized.items():
        if key in _CANONICAL:
            continue
        composed[key] = value

    return composed


