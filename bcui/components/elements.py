from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from bcui.components.control import with_control
from bcui.serializer import TYPE_WIDTH, FieldType, FloatValue, IntValue, SerializationError, serialize_props, utf8_byte_length

logger = logging.getLogger(__name__)

PANEL = "panel"
TEXT = "text"
BUTTON = "button"
IMAGE = "image"
INPUT = "input"
FRAGMENT = "fragment"
# Expanded away by the tree builder, never serialized.
SUSPENSE = "suspense"

INTRINSIC_TYPES = frozenset({PANEL, TEXT, BUTTON, IMAGE, INPUT, FRAGMENT})

# Keys that never reach the wire encoder.
_STRUCTURAL_KEYS = frozenset({"children", "key"})


class Sink(Protocol):
    def label(self, payload: str) -> None:  # pragma: no cover
        ...

    def button(self, payload: str, on_press: Callable[[], Any]) -> int:  # pragma: no cover
        ...


@dataclass(frozen=True, slots=True, eq=False)
class Element:
    """One node of a component tree.

    `type` is an intrinsic name, a function component or a context. Intrinsic
    nodes are the only ones that can be serialized; the rest are expanded away
    before a dialog is built.
    """

    type: Any
    props: Mapping[str, Any] = field(default_factory=dict)
    key: str | None = None

    @property
    def children(self) -> tuple[Element, ...]:
        return tuple(self.props.get("children", ()))

    @property
    def is_intrinsic(self) -> bool:
        return isinstance(self.type, str) and self.type in INTRINSIC_TYPES

    def replace_children(self, children: Iterable[Element]) -> Element:
        props = dict(self.props)
        props["children"] = tuple(children)
        return Element(type=self.type, props=props, key=self.key)

    def serialize(self, sink: Sink) -> None:
        """Write this node's payload, then its children, into `sink`."""

        writer = WRITERS.get(self.type) if isinstance(self.type, str) else None
        if writer is None:
            raise TypeError(f"Cannot serialize unexpanded element of type {self.type!r}")
        writer(self, sink)


def normalize_children(children: Iterable[Any]) -> tuple[Element, ...]:
    """Flatten nested iterables, drop None/bool holes and wrap scalars in Text."""

    out: list[Element] = []
    for child in children:
        if child is None or isinstance(child, bool):
            continue
        if isinstance(child, Element):
            out.append(child)
        elif isinstance(child, (str, int, float)):
            out.append(Text(str(child)))
        elif isinstance(child, Iterable):
            out.extend(normalize_children(child))
        else:
            raise TypeError(f"Invalid child: {child!r}")
    return tuple(out)


def h(type_: Any, props: Mapping[str, Any] | None = None, *children: Any, key: str | None = None) -> Element:
    """Element factory in the spirit of `createElement(type, props, ...children)`."""

    merged = dict(props or {})
    if key is None:
        key = merged.pop("key", None)
    else:
        merged.pop("key", None)
    if children:
        merged["children"] = normalize_children(children)
    elif "children" in merged:
        raw = merged["children"]
        merged["children"] = normalize_children(raw if isinstance(raw, (list, tuple)) else (raw,))
    return Element(type=type_, props=merged, key=None if key is None else str(key))


def Panel(*children: Any, key: str | None = None, **props: Any) -> Element:
    return h(PANEL, props, *children, key=key)


def Text(value: Any = "", *, key: str | None = None, **props: Any) -> Element:
    return h(TEXT, {"value": "" if value is None else str(value), **props}, key=key)


def Button(*children: Any, on_press: Callable[[], Any] | None = None, key: str | None = None, **props: Any) -> Element:
    return h(BUTTON, {"on_press": on_press, **props}, *children, key=key)


def Image(texture: str = "", *, key: str | None = None, **props: Any) -> Element:
    return h(IMAGE, {"texture": texture, **props}, key=key)


def Input(
    value: str = "",
    *,
    placeholder: str = "",
    max_length: int | None = None,
    key: str | None = None,
    **props: Any,
) -> Element:
    """Display-only text box; the dialog host has no free-text response channel."""

    return h(INPUT, {"value": value, "placeholder": placeholder, "max_length": max_length, **props}, key=key)


def Fragment(*children: Any, key: str | None = None, **props: Any) -> Element:
    return h(FRAGMENT, props, *children, key=key)


def wire_props(props: Mapping[str, Any], *, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Props with callbacks, children and unset values stripped."""

    skip = _STRUCTURAL_KEYS | frozenset(exclude)
    return {k: v for k, v in props.items() if k not in skip and v is not None and not callable(v)}


def _encode(kind: str, props: dict[str, Any]) -> str:
    payload, total = serialize_props(with_control(props))
    logger.debug("Serializing %s: bytes=%d", kind, total)
    return payload


def _serialize_children(element: Element, sink: Sink) -> None:
    for child in element.children:
        child.serialize(sink)


def _write_panel(element: Element, sink: Sink) -> None:
    sink.label(_encode(PANEL, {**wire_props(element.props), "type": PANEL}))
    _serialize_children(element, sink)


def _write_fragment(element: Element, sink: Sink) -> None:
    props = {
        **wire_props(element.props),
        "type": FRAGMENT,
        "x": 0.0,
        "y": 0.0,
        "width": 0.0,
        "height": 0.0,
    }
    sink.label(_encode(FRAGMENT, props))
    _serialize_children(element, sink)


def _write_text(element: Element, sink: Sink) -> None:
    rest = wire_props(element.props, exclude=("value", "shadow", "font_size", "font_scale_factor", "font_type", "text_alignment"))
    p = element.props
    props = {
        "type": TEXT,
        "shadow": bool(p.get("shadow", False)),
        "font_size": str(p.get("font_size") or "normal"),
        "font_scale_factor": FloatValue(float(p.get("font_scale_factor") or 1.0)),
        "font_type": str(p.get("font_type") or "default"),
        "text_alignment": str(p.get("text_alignment") or "left"),
        "text": str(p.get("value") or ""),
        **rest,
    }
    sink.label(_encode(TEXT, props))


def _write_image(element: Element, sink: Sink) -> None:
    p = element.props
    texture = str(p.get("texture") or "")
    if utf8_byte_length(texture) > TYPE_WIDTH[FieldType.string]:
        raise SerializationError(
            f"Image texture path exceeds {TYPE_WIDTH[FieldType.string]} bytes. "
            f"Length: {utf8_byte_length(texture)}. Path: {texture!r}"
        )

    nineslice = p.get("nineslice_size") or 0
    if isinstance(nineslice, (int, float)):
        nineslice = (nineslice,) * 4
    if len(nineslice) != 4:
        raise SerializationError(f"nineslice_size needs 1 or 4 values, got {nineslice!r}")
    uv = p.get("uv") or (0, 0)
    uv_size = p.get("uv_size") or (1, 1)

    rest = wire_props(p, exclude=("texture", "uv", "uv_size", "nineslice_size", "tiled", "keep_ratio", "bilinear"))
    props = {
        "type": IMAGE,
        "texture": texture,
        "uv_x": FloatValue(float(uv[0])),
        "uv_y": FloatValue(float(uv[1])),
        "uv_size_x": FloatValue(float(uv_size[0])),
        "uv_size_y": FloatValue(float(uv_size[1])),
        **{f"nineslice_size_{i}": IntValue(int(v)) for i, v in enumerate(nineslice)},
        "tiled": bool(p.get("tiled", False)),
        "keep_ratio": bool(p.get("keep_ratio", False)),
        "bilinear": bool(p.get("bilinear", False)),
        **rest,
    }
    sink.label(_encode(IMAGE, props))


def _write_input(element: Element, sink: Sink) -> None:
    p = element.props
    rest = wire_props(p, exclude=("value", "placeholder", "max_length", "multiline"))
    props = {
        "type": INPUT,
        "value": str(p.get("value") or ""),
        "placeholder": str(p.get("placeholder") or ""),
        "max_length": IntValue(int(p.get("max_length") or 0)),
        "multiline": bool(p.get("multiline", False)),
        **rest,
    }
    sink.label(_encode(INPUT, props))


def _noop() -> None:
    return None


def _write_button(element: Element, sink: Sink) -> None:
    on_press = element.props.get("on_press") or _noop
    sink.button(_encode(BUTTON, {**wire_props(element.props), "type": BUTTON}), on_press)
    _serialize_children(element, sink)


WRITERS: dict[str, Callable[[Element, Sink], None]] = {
    PANEL: _write_panel,
    TEXT: _write_text,
    BUTTON: _write_button,
    IMAGE: _write_image,
    INPUT: _write_input,
    FRAGMENT: _write_fragment,
}
