from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bcui.components.elements import SUSPENSE, Element, normalize_children
from bcui.core.context import is_provider
from bcui.core.fiber import ComponentInstance, FiberRegistry
from bcui.host.base import Dialog, Player
from bcui.serializer import PROTOCOL_HEADER

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SerializationContext:
    """Button index -> callback for one render/response round trip."""

    button_callbacks: dict[int, Callable[[], Any]] = field(default_factory=dict)
    button_index: int = 0

    def register(self, callback: Callable[[], Any]) -> int:
        index = self.button_index
        self.button_callbacks[index] = callback
        self.button_index += 1
        return index


class DialogSink:
    """Writes serialized nodes into a host dialog, registering button callbacks."""

    def __init__(self, dialog: Dialog, context: SerializationContext) -> None:
        self.dialog = dialog
        self.context = context

    def label(self, payload: str) -> None:
        self.dialog.add_label(payload)

    def button(self, payload: str, on_press: Callable[[], Any]) -> int:
        index = self.context.register(on_press)
        self.dialog.add_button(payload)
        return index


@dataclass(slots=True)
class BuiltTree:
    root: ComponentInstance
    element: Element
    # Every instance rendered in this pass, in render order.
    rendered: list[ComponentInstance]


class TreeBuilder:
    """Expands function components and context providers into intrinsic elements.

    Each function component gets its own instance under the parent's id, so
    its hook slots survive across renders of the same tree.
    """

    def __init__(self, registry: FiberRegistry, *, player: Player, reschedule: Callable[[], None], reopen: Callable[[], None]) -> None:
        self.registry = registry
        self.player = player
        self.reschedule = reschedule
        self.reopen = reopen
        self.rendered: list[ComponentInstance] = []

    def _prepare(self, instance: ComponentInstance) -> None:
        instance.player = self.player
        instance.reschedule = self.reschedule
        instance.reopen = self.reopen
        instance.dirty = False
        self.rendered.append(instance)

    def render_instance(self, instance: ComponentInstance) -> Element:
        self._prepare(instance)
        self.registry.push_instance(instance)
        try:
            output = instance.component(**instance.props)
            resolved = self.expand_node(output, instance)
        finally:
            self.registry.pop_instance()
        instance.mounted = True
        return resolved

    def expand_node(self, node: Any, owner: ComponentInstance) -> Element:
        if isinstance(node, Element):
            return self.expand(node, owner)
        children = normalize_children(node if isinstance(node, (list, tuple)) else (node,))
        return Element(type="fragment", props={"children": tuple(self.expand(c, owner) for c in children)})

    def expand(self, element: Element, owner: ComponentInstance) -> Element:
        if is_provider(element):
            context = element.type
            self.registry.push_context(context, element.props.get("value"))
            try:
                children = tuple(self.expand(c, owner) for c in element.children)
            finally:
                self.registry.pop_context(context)
            if len(children) == 1:
                return children[0]
            return Element(type="fragment", props={"children": children}, key=element.key)

        if element.type == SUSPENSE:
            return self._expand_boundary(element, owner)

        if callable(element.type):
            return self._expand_component(element, owner)

        if not element.is_intrinsic:
            raise TypeError(f"Unknown element type {element.type!r}")

        if not element.children:
            return element
        return element.replace_children(self.expand(c, owner) for c in element.children)

    def _expand_boundary(self, element: Element, owner: ComponentInstance) -> Element:
        # Children always render so their instances and effects stay alive while hidden.
        content = self.expand(element.props["content"], owner)
        if element.props.get("show_fallback"):
            return self.expand_node(element.props.get("fallback"), owner)
        return content

    def _expand_component(self, element: Element, owner: ComponentInstance) -> Element:
        component = element.type
        position = owner.child_counter
        owner.child_counter += 1
        local = element.key if element.key is not None else f"{position}.{getattr(component, '__name__', 'anonymous')}"
        child_id = f"{owner.id}/{local}"

        props = dict(element.props)
        if not props.get("children"):
            props.pop("children", None)
        instance = self.registry.get_or_create_instance(child_id, component, props, parent_id=owner.id)
        return self.render_instance(instance)


def build_tree(
    registry: FiberRegistry,
    root: ComponentInstance,
    *,
    player: Player,
    reschedule: Callable[[], None],
    reopen: Callable[[], None],
) -> BuiltTree:
    builder = TreeBuilder(registry, player=player, reschedule=reschedule, reopen=reopen)
    element = builder.render_instance(root)

    seen = {i.id for i in builder.rendered}
    for stale in registry.descendants(root.id):
        if stale.id not in seen and stale.id in registry:
            logger.debug("Unmounting %s", stale.id)
            registry.delete_tree(stale.id)

    return BuiltTree(root=root, element=element, rendered=builder.rendered)


def serialize_tree(element: Element, dialog: Dialog) -> SerializationContext:
    """Fill `dialog` with the tree's payloads and return its button callbacks."""

    context = SerializationContext()
    dialog.set_title(PROTOCOL_HEADER)
    element.serialize(DialogSink(dialog, context))
    return context
