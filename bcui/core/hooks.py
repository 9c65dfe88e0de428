from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar

from bcui.core.context import Context, SuspenseContext
from bcui.core.fiber import (
    ComponentInstance,
    EffectHook,
    HookError,
    ReducerHook,
    Ref,
    RefHook,
    StateHook,
    active_registry,
    current_instance,
    deps_changed,
    is_same,
)
from bcui.host.base import Player

logger = logging.getLogger(__name__)

T = TypeVar("T")
H = TypeVar("H", StateHook, EffectHook, ReducerHook, RefHook)


def _slot(instance: ComponentInstance, kind: type[H], factory: Callable[[], H]) -> tuple[H, bool]:
    """Claim the next positional hook slot, creating it on first render."""

    index = instance.hook_index
    instance.hook_index += 1

    if index < len(instance.hooks):
        hook = instance.hooks[index]
        if not isinstance(hook, kind):
            raise HookError(
                f"Hook #{index} of {instance.id} is a {type(hook).__name__}, expected {kind.__name__}. "
                "Hooks must be called in the same order on every render."
            )
        return hook, False

    hook = factory()
    instance.hooks.append(hook)
    return hook, True


def use_state(initial: Any) -> tuple[Any, Callable[[Any], None]]:
    instance = current_instance("use_state")

    def _create() -> StateHook:
        return StateHook(value=initial() if callable(initial) else initial)

    hook, created = _slot(instance, StateHook, _create)
    if created:

        def set_state(update: Any) -> None:
            value = update(hook.value) if callable(update) else update
            if is_same(value, hook.value):
                return
            hook.value = value
            instance.request_render()

        hook.setter = set_state

    assert hook.setter is not None
    return hook.value, hook.setter


def use_effect(create: Callable[[], Any], deps: Sequence[Any] | None = None) -> None:
    """Register `create` to run after the tree is built.

    It runs on the first render and again whenever `deps` changes; omit
    `deps` to run on every render. A callable returned by `create` is the
    cleanup, run before the next run and when the instance is deleted.
    """

    instance = current_instance("use_effect")
    hook, _ = _slot(instance, EffectHook, EffectHook)
    hook.create = create
    hook.deps = list(deps) if deps is not None else None
    hook.pending = not hook.has_run or deps_changed(hook.prev_deps, hook.deps)


def execute_effects(instance: ComponentInstance) -> int:
    """Run the instance's due effects in registration order. Returns how many ran."""

    ran = 0
    for hook in instance.hooks:
        if not isinstance(hook, EffectHook) or not hook.pending or hook.create is None:
            continue
        hook.pending = False
        if hook.cleanup is not None:
            cleanup, hook.cleanup = hook.cleanup, None
            cleanup()
        result = hook.create()
        hook.cleanup = result if callable(result) else None
        hook.prev_deps = hook.deps
        hook.has_run = True
        ran += 1
    return ran


def use_reducer(
    reducer: Callable[[Any, Any], Any],
    initial_arg: Any,
    init: Callable[[Any], Any] | None = None,
) -> tuple[Any, Callable[[Any], None]]:
    instance = current_instance("use_reducer")

    def _create() -> ReducerHook:
        return ReducerHook(state=init(initial_arg) if init is not None else initial_arg, reducer=reducer)

    hook, created = _slot(instance, ReducerHook, _create)
    # Always dispatch through the reducer from the latest render.
    hook.reducer = reducer
    if created:

        def dispatch(action: Any) -> None:
            state = hook.reducer(hook.state, action)
            if is_same(state, hook.state):
                return
            hook.state = state
            instance.request_render()

        hook.dispatch = dispatch

    assert hook.dispatch is not None
    return hook.state, hook.dispatch


def use_ref(initial: Any = None) -> Ref:
    instance = current_instance("use_ref")
    hook, _ = _slot(instance, RefHook, lambda: RefHook(ref=Ref(initial)))
    return hook.ref


def use_context(context: Context[T]) -> T:
    registry = active_registry()
    if registry is None:
        return context.default
    return registry.read_context(context)


def use_suspended_state(default: Any) -> tuple[Any, Callable[[Any], None]]:
    """State that resolves the nearest Suspense boundary the first time it leaves `default`."""

    instance = current_instance("use_suspended_state")
    boundary: ComponentInstance | None = use_context(SuspenseContext)
    slot = instance.hook_index
    value, set_value = use_state(default)

    def set_suspended(new_value: Any) -> None:
        already_fired = slot in instance.suspended_slots_fired
        hook = instance.hooks[slot]
        if callable(new_value) and isinstance(hook, StateHook):
            new_value = new_value(hook.value)
        if already_fired and isinstance(hook, StateHook) and is_same(new_value, hook.value):
            return

        set_value(new_value)

        if is_same(new_value, default) or already_fired:
            return
        callback = boundary.on_suspended_state_initialize if boundary is not None else None
        if callback is not None:
            instance.suspended_slots_fired.add(slot)
            callback()

    return value, set_suspended


def use_player() -> Player:
    instance = current_instance("use_player")
    if instance.player is None:
        raise HookError(f"No player attached to {instance.id}")
    return instance.player


def use_exit() -> Callable[[], None]:
    """Return a function that closes the UI after the current callback instead of re-rendering."""

    instance = current_instance("use_exit")
    registry = active_registry()
    root = registry.get_instance(instance.root_id) if registry is not None else None
    target = root or instance

    def exit_ui() -> None:
        target.exit_requested = True

    return exit_ui


class EventSignal(Protocol):
    def subscribe(self, callback: Callable[[Any], Any], *args: Any) -> Any:  # pragma: no cover
        ...

    def unsubscribe(self, callback: Any) -> None:  # pragma: no cover
        ...


def use_event(
    signal: EventSignal,
    callback: Callable[[Any], Any],
    options: Any = None,
    deps: Sequence[Any] | None = None,
) -> None:
    """Subscribe to `signal` while mounted; resubscribe when `deps` change."""

    latest = use_ref(callback)
    latest.current = callback

    def _subscribe() -> Callable[[], None]:
        def handler(event: Any) -> None:
            latest.current(event)

        args = () if options is None else (options,)
        token = signal.subscribe(handler, *args)
        logger.debug("Subscribed to %r", signal)
        return lambda: signal.unsubscribe(token if token is not None else handler)

    use_effect(_subscribe, [signal, *(deps or ())])


def use_refresh() -> tuple[Callable[[], None], Callable[[], None]]:
    """Return `(refresh, force_refresh)`.

    `refresh` marks the UI dirty so the next response renders it again.
    `force_refresh` closes the open dialog and reopens it right away.
    """

    instance = current_instance("use_refresh")

    def refresh() -> None:
        instance.dirty = True

    def force_refresh() -> None:
        logger.warning("Forcing a reopen of %s; the player's dialog will close and reopen", instance.id)
        if instance.reopen is not None:
            instance.reopen()

    return refresh, force_refresh
