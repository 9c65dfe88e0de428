from __future__ import annotations

import asyncio
import itertools
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bcui.host.base import DialogResponse, InputPermissionCategory, Player

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InMemoryInputPermissions:
    enabled: dict[InputPermissionCategory, bool] = field(
        default_factory=lambda: {c: True for c in InputPermissionCategory}
    )

    def is_enabled(self, category: InputPermissionCategory) -> bool:
        return self.enabled.get(category, True)

    def set_enabled(self, category: InputPermissionCategory, enabled: bool) -> None:
        self.enabled[category] = enabled


@dataclass(slots=True)
class InMemoryPlayer:
    id: str
    name: str = ""
    input_permissions: InMemoryInputPermissions = field(default_factory=InMemoryInputPermissions)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id


@dataclass(slots=True)
class ShownDialog:
    """A dialog as the player sees it: the title plus labels and buttons in order."""

    player_id: str
    sequence: int
    title: str
    labels: list[str]
    buttons: list[str]
    future: asyncio.Future[DialogResponse] = field(repr=False)

    @property
    def is_open(self) -> bool:
        return not self.future.done()


class InMemoryDialog:
    def __init__(self, host: InMemoryDialogHost) -> None:
        self._host = host
        self.title = ""
        self.labels: list[str] = []
        self.buttons: list[str] = []

    def set_title(self, text: str) -> None:
        self.title = text

    def add_label(self, text: str) -> None:
        self.labels.append(text)

    def add_button(self, text: str) -> int:
        self.buttons.append(text)
        return len(self.buttons) - 1

    async def show(self, player: Player) -> DialogResponse:
        shown = self._host._open(player, self)
        return await shown.future


ShownListener = Callable[[ShownDialog], Any]


class InMemoryDialogHost:
    """Reference host that keeps shown dialogs in memory.

    Responses are fed in with `respond()`, `dismiss()` or `reject()`. Used by
    the tests and by the development server.
    """

    def __init__(self) -> None:
        self._seq = itertools.count(1)
        self._open_by_player: dict[str, ShownDialog] = {}
        self._history: dict[str, list[ShownDialog]] = defaultdict(list)
        self._changed = asyncio.Condition()
        self._listeners: list[ShownListener] = []
        self._tasks: set[asyncio.Future[Any]] = set()

    def add_listener(self, listener: ShownListener) -> None:
        self._listeners.append(listener)

    def create_dialog(self) -> InMemoryDialog:
        return InMemoryDialog(self)

    def close_dialogs(self, player: Player) -> None:
        shown = self._open_by_player.get(player.id)
        if shown is not None and shown.is_open:
            self._resolve(player.id, DialogResponse(cancelled=True))

    def _open(self, player: Player, dialog: InMemoryDialog) -> ShownDialog:
        previous = self._open_by_player.get(player.id)
        if previous is not None and previous.is_open:
            # A host shows one dialog per player; the newer one replaces it.
            previous.future.set_result(DialogResponse(cancelled=True))

        shown = ShownDialog(
            player_id=player.id,
            sequence=next(self._seq),
            title=dialog.title,
            labels=list(dialog.labels),
            buttons=list(dialog.buttons),
            future=asyncio.get_running_loop().create_future(),
        )
        self._open_by_player[player.id] = shown
        self._history[player.id].append(shown)
        logger.debug("Dialog %s shown to %s (%d labels, %d buttons)", shown.sequence, player.id, len(shown.labels), len(shown.buttons))

        for listener in self._listeners:
            result = listener(shown)
            if asyncio.iscoroutine(result):
                self._track(asyncio.ensure_future(result))

        self._track(asyncio.ensure_future(self._notify()))
        return shown

    def _track(self, task: asyncio.Future[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Dialog listener failed", exc_info=error)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def _notify(self) -> None:
        async with self._changed:
            self._changed.notify_all()

    def current(self, player_id: str) -> ShownDialog | None:
        shown = self._open_by_player.get(player_id)
        if shown is None or not shown.is_open:
            return None
        return shown

    def history(self, player_id: str) -> list[ShownDialog]:
        return list(self._history.get(player_id, []))

    def _resolve(self, player_id: str, response: DialogResponse) -> ShownDialog:
        shown = self.current(player_id)
        if shown is None:
            raise KeyError(f"No open dialog for player {player_id}")
        shown.future.set_result(response)
        return shown

    def respond(self, player_id: str, selection: int) -> ShownDialog:
        shown = self.current(player_id)
        if shown is not None and not 0 <= selection < len(shown.buttons):
            raise ValueError(f"Selection {selection} out of range (dialog has {len(shown.buttons)} buttons)")
        return self._resolve(player_id, DialogResponse(cancelled=False, selection=selection))

    def dismiss(self, player_id: str) -> ShownDialog:
        return self._resolve(player_id, DialogResponse(cancelled=True))

    def reject(self, player_id: str, error: BaseException) -> ShownDialog:
        shown = self.current(player_id)
        if shown is None:
            raise KeyError(f"No open dialog for player {player_id}")
        shown.future.set_exception(error)
        return shown

    async def wait_for_dialog(self, player_id: str, *, after: int = 0, timeout: float | None = 5.0) -> ShownDialog:
        """Wait until a dialog with a sequence number above `after` is open for the player."""

        def _ready() -> bool:
            shown = self.current(player_id)
            return shown is not None and shown.sequence > after

        async with self._changed:
            await asyncio.wait_for(self._changed.wait_for(_ready), timeout=timeout)
        shown = self.current(player_id)
        assert shown is not None
        return shown


@dataclass(order=True, slots=True)
class _Timer:
    due: int
    seq: int
    callback: Callable[[], Any] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualTickScheduler:
    """Tick scheduler driven by explicit `advance()` calls."""

    def __init__(self) -> None:
        self.tick = 0
        self._seq = itertools.count()
        self._timers: list[_Timer] = []

    def run_deferred(self, callback: Callable[[], Any], delay_ticks: int) -> _Timer:
        timer = _Timer(due=self.tick + max(0, int(delay_ticks)), seq=next(self._seq), callback=callback)
        self._timers.append(timer)
        return timer

    def run_next_tick(self, callback: Callable[[], Any]) -> _Timer:
        return self.run_deferred(callback, 1)

    def cancel(self, handle: _Timer) -> None:
        handle.cancelled = True

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, ticks: int = 1) -> int:
        """Move time forward, running due callbacks in order. Returns how many ran."""

        ran = 0
        for _ in range(ticks):
            self.tick += 1
            due = sorted(t for t in self._timers if t.due <= self.tick)
            self._timers = [t for t in self._timers if t.due > self.tick]
            for timer in due:
                if timer.cancelled:
                    continue
                timer.callback()
                ran += 1
        return ran
