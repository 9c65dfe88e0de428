from __future__ import annotations

from typing import Any

import pytest

from bcui.components.elements import Element, Text, h
from bcui.components.suspense import Suspense
from bcui.core.fiber import FiberRegistry, activate
from bcui.core.hooks import execute_effects, use_suspended_state
from bcui.core.tree import build_tree


def _texts(element: Element) -> list[str]:
    out: list[str] = []
    if element.type == "text":
        out.append(element.props["value"])
    for child in element.children:
        out.extend(_texts(child))
    return out


class _Harness:
    def __init__(self, registry: FiberRegistry, player, component) -> None:
        self.registry = registry
        self.player = player
        self.reopens: list[int] = []
        self.root = registry.get_or_create_instance("p1:App", component)

    def build(self) -> list[str]:
        with activate(self.registry):
            built = build_tree(
                self.registry,
                self.root,
                player=self.player,
                reschedule=lambda: None,
                reopen=lambda: self.reopens.append(1),
            )
            for instance in built.rendered:
                execute_effects(instance)
        return _texts(built.element)


@pytest.fixture()
def loader_app():
    setters: list[Any] = []

    def Loader():
        data, set_data = use_suspended_state(None)
        setters.append(set_data)
        return Text(data or "empty")

    def App():
        return h(Suspense, {"fallback": Text("Loading")}, h(Loader))

    return App, setters


def test_fallback_shows_after_the_first_check_until_resolution(registry, player, loader_app) -> None:
    App, setters = loader_app
    harness = _Harness(registry, player, App)

    assert harness.build() == ["empty"]
    assert harness.build() == ["Loading"]
    # Children stay mounted behind the fallback.
    assert registry.get_instance("p1:App/0.Suspense/0.Loader") is not None

    setters[-1]("data")
    assert harness.reopens == [1]
    assert harness.build() == ["data"]


def test_initialize_fires_once_and_only_for_non_default_values(registry, player, loader_app) -> None:
    App, setters = loader_app
    harness = _Harness(registry, player, App)
    harness.build()
    harness.build()

    setters[-1](None)
    assert harness.reopens == []

    setters[-1]("data")
    setters[-1]("more")
    assert harness.reopens == [1]
    assert harness.build() == ["more"]


def test_boundary_without_suspended_children_keeps_its_fallback(registry, player) -> None:
    def Plain():
        return Text("ready")

    def App():
        return h(Suspense, {"fallback": Text("Loading")}, h(Plain))

    harness = _Harness(registry, player, App)
    assert harness.build() == ["ready"]
    assert harness.build() == ["Loading"]


def test_suspended_state_outside_a_boundary_is_plain_state(registry, player) -> None:
    setters: list[Any] = []

    def Lone():
        data, set_data = use_suspended_state("x")
        setters.append(set_data)
        return Text(data)

    harness = _Harness(registry, player, Lone)
    assert harness.build() == ["x"]
    setters[-1]("y")
    assert harness.reopens == []
    assert harness.build() == ["y"]


def test_unmounting_the_boundary_unregisters_its_callback(registry, player, loader_app) -> None:
    App, _ = loader_app
    harness = _Harness(registry, player, App)
    harness.build()

    boundary = registry.get_instance("p1:App/0.Suspense")
    assert boundary.on_suspended_state_initialize is not None

    registry.delete_tree("p1:App")
    assert boundary.on_suspended_state_initialize is None


def test_updater_functions_are_resolved_before_checking_the_default(registry, player, loader_app) -> None:
    App, setters = loader_app
    harness = _Harness(registry, player, App)
    harness.build()
    harness.build()

    setters[-1](lambda _old: None)
    assert harness.reopens == []
    assert harness.build() == ["Loading"]

    setters[-1](lambda old: (old or "") + "loaded")
    assert harness.reopens == [1]
    assert harness.build() == ["loaded"]
