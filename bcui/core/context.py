from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from bcui.components.elements import Element, normalize_children

T = TypeVar("T")


@dataclass(eq=False, slots=True)
class Context(Generic[T]):
    """A value that flows down the tree without prop drilling.

    Instances hash by identity; each one keys its own provider stack in the
    fiber registry.
    """

    default: T
    name: str = "Context"

    def provider(self, value: T, *children: Any, key: str | None = None) -> Element:
        return Element(type=self, props={"value": value, "children": normalize_children(children)}, key=key)

    def __repr__(self) -> str:
        return f"Context({self.name})"


def create_context(default: T, *, name: str = "Context") -> Context[T]:
    return Context(default=default, name=name)


def is_provider(element: Element) -> bool:
    return isinstance(element.type, Context)


# Provided by Suspense boundaries; the value is the boundary's instance.
SuspenseContext: Context[Any] = create_context(None, name="Suspense")
