from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from bcui.config import RuntimeSettings
from bcui.host.memory import InMemoryDialogHost, InMemoryPlayer, ShownDialog
from bcui.host.scheduler import AsyncioTickScheduler
from bcui.render import Presenter
from bcui.websocket_hub import hub

logger = logging.getLogger(__name__)


class AppLoadError(RuntimeError):
    pass


def load_app(spec: str) -> tuple[str, Callable[..., Any]]:
    """Resolve `name=package.module:attr` (or `package.module:attr`, named after attr)."""

    name, sep, target = spec.partition("=")
    if not sep:
        name, target = "", spec
    module_name, colon, attr = target.strip().partition(":")
    if not colon or not module_name or not attr:
        raise AppLoadError(f"Invalid app spec {spec!r}; expected name=module:attr")
    try:
        module = importlib.import_module(module_name)
        component = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise AppLoadError(f"Cannot load app {spec!r}: {e}") from e
    if not callable(component):
        raise AppLoadError(f"App {spec!r} is not callable")
    return (name.strip() or attr), component


@dataclass(slots=True)
class DevRuntime:
    """Everything the development server needs on its event loop."""

    settings: RuntimeSettings
    host: InMemoryDialogHost
    scheduler: AsyncioTickScheduler
    presenter: Presenter
    apps: dict[str, Callable[..., Any]] = field(default_factory=dict)
    players: dict[str, InMemoryPlayer] = field(default_factory=dict)

    def register_app(self, name: str, component: Callable[..., Any]) -> None:
        self.apps[name] = component

    def player(self, player_id: str) -> InMemoryPlayer:
        player = self.players.get(player_id)
        if player is None:
            player = self.players[player_id] = InMemoryPlayer(id=player_id)
        return player

    def last_sequence(self, player_id: str) -> int:
        history = self.host.history(player_id)
        return history[-1].sequence if history else 0


def _broadcast_shown(shown: ShownDialog) -> Any:
    return hub.broadcast(
        shown.player_id,
        {
            "type": "dialog_shown",
            "player_id": shown.player_id,
            "sequence": shown.sequence,
            "title": shown.title,
            "labels": shown.labels,
            "buttons": shown.buttons,
        },
    )


def create_runtime(settings: RuntimeSettings, *, apps: Iterable[str] | None = None) -> DevRuntime:
    """Wire host, scheduler and presenter. Must run on the server's event loop."""

    host = InMemoryDialogHost()
    host.add_listener(_broadcast_shown)
    scheduler = AsyncioTickScheduler(tick_seconds=settings.tick_seconds)
    runtime = DevRuntime(
        settings=settings,
        host=host,
        scheduler=scheduler,
        presenter=Presenter(host=host, scheduler=scheduler, settings=settings),
    )
    for spec in settings.apps if apps is None else apps:
        name, component = load_app(spec)
        runtime.register_app(name, component)
        logger.info("Registered app %s", name)
    return runtime
