from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

from pydantic import BaseModel


class InputPermissionCategory(StrEnum):
    camera = "camera"
    movement = "movement"


class DialogResponse(BaseModel):
    """What the host reports once a shown dialog closes.

    `cancelled` with no `selection` means the player dismissed the dialog.
    """

    cancelled: bool = False
    selection: int | None = None


class InputPermissions(Protocol):
    def is_enabled(self, category: InputPermissionCategory) -> bool:  # pragma: no cover
        ...

    def set_enabled(self, category: InputPermissionCategory, enabled: bool) -> None:  # pragma: no cover
        ...


class Player(Protocol):
    id: str
    name: str
    input_permissions: InputPermissions


class Dialog(Protocol):
    def set_title(self, text: str) -> None:  # pragma: no cover
        ...

    def add_label(self, text: str) -> None:  # pragma: no cover
        ...

    def add_button(self, text: str) -> int:  # pragma: no cover
        ...

    def show(self, player: Player) -> Awaitable[DialogResponse]:  # pragma: no cover
        ...


class DialogHost(Protocol):
    def create_dialog(self) -> Dialog:  # pragma: no cover
        ...

    def close_dialogs(self, player: Player) -> None:  # pragma: no cover
        ...


class TickScheduler(Protocol):
    """Deferred callbacks in host ticks. Handles are opaque."""

    def run_deferred(self, callback: Callable[[], Any], delay_ticks: int) -> Any:  # pragma: no cover
        ...

    def cancel(self, handle: Any) -> None:  # pragma: no cover
        ...

    def run_next_tick(self, callback: Callable[[], Any]) -> Any:  # pragma: no cover
        ...
