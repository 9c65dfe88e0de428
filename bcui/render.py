from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from bcui.components.elements import Element
from bcui.config import RuntimeSettings
from bcui.core.fiber import ComponentInstance, FiberRegistry, activate
from bcui.core.hooks import execute_effects
from bcui.core.lifecycle import PresentationFSM, PresentationPhase
from bcui.core.tree import BuiltTree, SerializationContext, build_tree, serialize_tree
from bcui.host.base import DialogHost, DialogResponse, Player, TickScheduler
from bcui.input_lock import InputLockRegistry

logger = logging.getLogger(__name__)

# Renders repeated within one cycle while effects keep changing state.
MAX_RENDER_PASSES = 25


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Per-render options.

    - `key`: instance key; defaults to the component's name.
    - `live_updates`: state changes while the dialog is open close and reopen it.
    - `props`: keyword arguments for the root component.
    """

    key: str | None = None
    live_updates: bool = False
    props: Mapping[str, Any] | None = None


@dataclass(slots=True)
class _Session:
    player: Player
    component: Callable[..., Any]
    options: RenderOptions


def _static_root(element: Element) -> Callable[[], Element]:
    def static() -> Element:
        return element

    static.__name__ = element.type if isinstance(element.type, str) else "static"
    return static


class Presenter:
    """Renders root components into host dialogs and drives their response loop.

    One root per `<player id>:<key>`. Button presses run their callback and
    render again on the next tick; dismissal restores input and deletes the
    instance tree.
    """

    def __init__(
        self,
        *,
        host: DialogHost,
        scheduler: TickScheduler,
        registry: FiberRegistry | None = None,
        input_locks: InputLockRegistry | None = None,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self.host = host
        self.scheduler = scheduler
        self.settings = settings or RuntimeSettings()
        self.registry = registry or FiberRegistry(scheduler=scheduler, max_instances=self.settings.max_instances)
        self.input_locks = input_locks or InputLockRegistry()
        self._sessions: dict[str, _Session] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @staticmethod
    def instance_id(player: Player, component: Callable[..., Any], key: str | None = None) -> str:
        return f"{player.id}:{key or getattr(component, '__name__', 'anonymous')}"

    def phase(self, root_id: str) -> PresentationPhase:
        root = self.registry.get_instance(root_id)
        if root is None or root.lifecycle is None:
            return PresentationPhase.unmounted
        return root.lifecycle.phase

    def sessions(self) -> dict[str, Player]:
        return {root_id: s.player for root_id, s in self._sessions.items()}

    async def render(
        self,
        player: Player,
        component: Callable[..., Any] | Element,
        options: RenderOptions | None = None,
    ) -> str:
        """Show `component` to `player` and handle the first response.

        Returns the root instance id. Later cycles run in background tasks.
        Whatever the host's `show()` raises propagates here after teardown.
        """

        options = options or RenderOptions()
        fn = _static_root(component) if isinstance(component, Element) else component
        root_id = self.instance_id(player, fn, options.key)

        existing = self.registry.get_instance(root_id)
        if existing is not None and existing.lifecycle is not None and existing.lifecycle.phase is not PresentationPhase.unmounted:
            logger.warning("Dialog for %s is already in flight (%s); render request dropped", root_id, existing.lifecycle.phase)
            return root_id

        root = self.registry.get_or_create_instance(root_id, fn, dict(options.props or {}))
        root.lifecycle = PresentationFSM(root_id)
        self._sessions[root_id] = _Session(player=player, component=fn, options=options)

        logger.info("First render of %s, locking input", root_id)
        self.input_locks.lock(player)

        await self._cycle(root_id)
        return root_id

    def open(
        self,
        player: Player,
        component: Callable[..., Any] | Element,
        options: RenderOptions | None = None,
    ) -> asyncio.Task[str]:
        """Like `render()`, but returns immediately with the task driving it."""

        return self._track(asyncio.get_running_loop().create_task(self.render(player, component, options)))

    async def aclose(self) -> None:
        """Cancel background cycles and tear every open root down."""

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for root_id, session in list(self._sessions.items()):
            self.host.close_dialogs(session.player)
            self._teardown(root_id)

    # Cycle

    async def _cycle(self, root_id: str) -> None:
        root = self.registry.get_instance(root_id)
        session = self._sessions.get(root_id)
        if root is None or session is None:
            logger.debug("Skipping render of %s: instance is gone", root_id)
            if session is not None:
                self._teardown(root_id)
            return

        fsm: PresentationFSM = root.lifecycle
        self.registry.cancel_render(root_id)
        root.reopen_requested = False

        try:
            fsm.mount()
            built = self._build(root, session)
            dialog = self.host.create_dialog()
            context = serialize_tree(built.element, dialog)
        except Exception:
            logger.exception("Render of %s failed", root_id)
            self._teardown(root_id)
            raise

        fsm.present()
        try:
            response = await dialog.show(session.player)
        except Exception:
            logger.warning("Host rejected dialog for %s, tearing down", root_id)
            self._teardown(root_id)
            raise

        await self._handle_response(root_id, response, context)

    def _build(self, root: ComponentInstance, session: _Session) -> BuiltTree:
        with activate(self.registry):
            for _ in range(MAX_RENDER_PASSES):
                built = build_tree(
                    self.registry,
                    root,
                    player=session.player,
                    reschedule=self._rescheduler(root.id),
                    reopen=self._reopener(root.id),
                )
                for instance in built.rendered:
                    execute_effects(instance)
                if not root.dirty and not any(i.dirty for i in built.rendered):
                    return built
                logger.debug("State changed during effects of %s, rendering again", root.id)
        logger.warning("%s kept changing state during effects; showing the last render", root.id)
        return built

    async def _handle_response(self, root_id: str, response: DialogResponse, context: SerializationContext) -> None:
        root = self.registry.get_instance(root_id)
        if root is None:
            logger.info("%s was evicted while its dialog was open", root_id)
            self._teardown(root_id)
            return

        fsm: PresentationFSM = root.lifecycle

        if response.cancelled or response.selection is None:
            if root.reopen_requested:
                fsm.reopen()
                self._render_next_tick(root_id)
                return
            logger.info("Dialog dismissed for %s, cleaning up", root_id)
            fsm.dismiss()
            self._teardown(root_id)
            return

        fsm.select()
        callback = context.button_callbacks.get(response.selection)
        if callback is None:
            logger.warning("No callback registered for selection %s of %s", response.selection, root_id)
        else:
            logger.debug("Button %s pressed for %s", response.selection, root_id)
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Button callback failed for %s, re-rendering anyway", root_id)

        if root.exit_requested:
            logger.info("Exit requested by %s", root_id)
            fsm.dismiss()
            self._teardown(root_id)
            return

        fsm.settle()
        self._render_next_tick(root_id)

    def _teardown(self, root_id: str) -> None:
        session = self._sessions.pop(root_id, None)
        self.registry.cancel_render(root_id)
        self.registry.delete_tree(root_id)
        if session is None:
            return
        if any(s.player.id == session.player.id for s in self._sessions.values()):
            return
        self.input_locks.unlock(session.player)

    # Scheduling

    def _track(self, task: asyncio.Task[Any]) -> asyncio.Task[Any]:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background render cycle failed", exc_info=error)

    def _render_next_tick(self, root_id: str) -> None:
        loop = asyncio.get_running_loop()

        def start() -> None:
            self._track(loop.create_task(self._cycle(root_id)))

        self.scheduler.run_next_tick(start)

    def _rescheduler(self, root_id: str) -> Callable[[], None]:
        def reschedule() -> None:
            root = self.registry.get_instance(root_id)
            session = self._sessions.get(root_id)
            if root is None or session is None:
                return
            root.dirty = True
            if session.options.live_updates and root.lifecycle.is_awaiting_response:
                self.registry.schedule_render(root_id, self._reopener(root_id), self.settings.render_delay_ticks)

        return reschedule

    def _reopener(self, root_id: str) -> Callable[[], None]:
        def reopen() -> None:
            root = self.registry.get_instance(root_id)
            session = self._sessions.get(root_id)
            if root is None or session is None:
                return
            if root.lifecycle.is_awaiting_response:
                root.reopen_requested = True
                self.host.close_dialogs(session.player)
            else:
                root.dirty = True

        return reopen
