from __future__ import annotations

import logging
import math
from collections import OrderedDict
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bcui.core.context import Context
    from bcui.host.base import Player, TickScheduler

logger = logging.getLogger(__name__)

DEFAULT_RENDER_DELAY_TICKS = 5


class HookError(RuntimeError):
    pass


# Scalars compared by value; everything else by identity.
_VALUE_TYPES = (bool, int, float, str, bytes, type(None))


def is_same(a: Any, b: Any) -> bool:
    """Identity test with value semantics for immutable scalars.

    NaN equals NaN and 0.0 differs from -0.0, so a setter called with the
    value already stored never counts as a change.
    """

    if a is b:
        return True
    if type(a) is not type(b) or not isinstance(a, _VALUE_TYPES):
        return False
    if isinstance(a, float):
        if math.isnan(a) and math.isnan(b):
            return True
        if a == 0.0 and b == 0.0:
            return math.copysign(1.0, a) == math.copysign(1.0, b)
    return a == b


def deps_changed(prev: Sequence[Any] | None, deps: Sequence[Any] | None) -> bool:
    if prev is None or deps is None:
        return True
    if len(prev) != len(deps):
        return True
    return any(not is_same(a, b) for a, b in zip(prev, deps))


@dataclass(slots=True)
class Ref:
    current: Any = None


@dataclass(slots=True)
class StateHook:
    value: Any
    setter: Callable[[Any], None] | None = None


@dataclass(slots=True)
class EffectHook:
    create: Callable[[], Any] | None = None
    deps: list[Any] | None = None
    prev_deps: list[Any] | None = None
    cleanup: Callable[[], Any] | None = None
    has_run: bool = False
    pending: bool = False


@dataclass(slots=True)
class ReducerHook:
    state: Any
    reducer: Callable[[Any, Any], Any]
    dispatch: Callable[[Any], None] | None = None


@dataclass(slots=True)
class RefHook:
    ref: Ref


Hook = StateHook | EffectHook | ReducerHook | RefHook


@dataclass(slots=True)
class SuspensionState:
    is_suspended: bool = True
    has_checked: bool = False


@dataclass(slots=True, eq=False)
class ComponentInstance:
    """Persistent state for one component identity."""

    id: str
    component: Callable[..., Any]
    props: dict[str, Any] = field(default_factory=dict)
    parent_id: str | None = None
    root_id: str = ""
    hooks: list[Hook] = field(default_factory=list)
    hook_index: int = 0
    mounted: bool = False
    dirty: bool = False
    player: Player | None = None

    # Wired by the presenter on every render; nested instances share their root's.
    reschedule: Callable[[], None] | None = None
    reopen: Callable[[], None] | None = None

    suspension: SuspensionState | None = None
    on_suspended_state_initialize: Callable[[], None] | None = None
    suspended_slots_fired: set[int] = field(default_factory=set)

    exit_requested: bool = False
    reopen_requested: bool = False
    child_counter: int = 0
    lifecycle: Any = None

    def __post_init__(self) -> None:
        if not self.root_id:
            self.root_id = self.id

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def request_render(self) -> None:
        self.dirty = True
        if self.reschedule is not None:
            self.reschedule()


class FiberRegistry:
    """Owns every live component instance plus the render and context stacks.

    Passed explicitly to the presenter; hooks reach it through `activate()`.
    """

    def __init__(self, *, scheduler: TickScheduler, max_instances: int | None = None) -> None:
        if max_instances is not None and max_instances <= 0:
            raise ValueError("max_instances must be positive")
        self.scheduler = scheduler
        self.max_instances = max_instances
        self._instances: OrderedDict[str, ComponentInstance] = OrderedDict()
        self._stack: list[ComponentInstance] = []
        self._contexts: dict[Context[Any], list[Any]] = {}
        self._scheduled: dict[str, Any] = {}

    # Instances

    def get_or_create_instance(
        self,
        instance_id: str,
        component: Callable[..., Any],
        props: dict[str, Any] | None = None,
        *,
        parent_id: str | None = None,
    ) -> ComponentInstance:
        instance = self._instances.get(instance_id)
        if instance is not None:
            instance.component = component
            instance.props = dict(props or {})
            self._touch(instance)
            return instance

        parent = self._instances.get(parent_id) if parent_id is not None else None
        instance = ComponentInstance(
            id=instance_id,
            component=component,
            props=dict(props or {}),
            parent_id=parent_id,
            root_id=parent.root_id if parent is not None else (parent_id or instance_id),
        )
        self._instances[instance_id] = instance
        logger.debug("Created instance %s", instance_id)
        if parent_id is None:
            self._evict_if_needed(keep=instance_id)
        return instance

    def get_instance(self, instance_id: str) -> ComponentInstance | None:
        return self._instances.get(instance_id)

    def all_instances(self) -> list[ComponentInstance]:
        return list(self._instances.values())

    def roots(self) -> list[ComponentInstance]:
        return [i for i in self._instances.values() if i.is_root]

    def descendants(self, instance_id: str) -> list[ComponentInstance]:
        """Every instance below `instance_id`, following parent links, parents first.

        Ids are never parsed, so keys may contain any character.
        """

        children: dict[str, list[ComponentInstance]] = {}
        for instance in self._instances.values():
            if instance.parent_id is not None:
                children.setdefault(instance.parent_id, []).append(instance)

        found: list[ComponentInstance] = []
        frontier = [instance_id]
        while frontier:
            level = [c for parent in frontier for c in children.get(parent, ())]
            found.extend(level)
            frontier = [c.id for c in level]
        return found

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._instances

    def delete_instance(self, instance_id: str) -> bool:
        """Run every stored effect cleanup, then forget the instance.

        A failing cleanup is logged and the rest still run. Returns False when
        the id is unknown.
        """

        instance = self._instances.get(instance_id)
        if instance is None:
            return False

        for hook in instance.hooks:
            if not isinstance(hook, EffectHook) or hook.cleanup is None:
                continue
            cleanup, hook.cleanup = hook.cleanup, None
            try:
                cleanup()
            except Exception:
                logger.exception("Effect cleanup failed for %s", instance_id)

        self.cancel_render(instance_id)
        instance.mounted = False
        del self._instances[instance_id]
        logger.debug("Deleted instance %s", instance_id)
        return True

    def delete_tree(self, root_id: str) -> int:
        """Delete a root and all its descendants, deepest first."""

        ids = [i.id for i in reversed(self.descendants(root_id))]
        ids.append(root_id)
        return sum(1 for i in ids if self.delete_instance(i))

    def clear_all(self) -> None:
        for root in self.roots():
            self.delete_tree(root.id)
        for instance_id in list(self._instances):
            self.delete_instance(instance_id)
        self._stack.clear()
        self._contexts.clear()

    def _touch(self, instance: ComponentInstance) -> None:
        self._instances.move_to_end(instance.id)

    def _evict_if_needed(self, *, keep: str) -> None:
        if self.max_instances is None:
            return
        roots = [r for r in self.roots() if r.id != keep]
        while len(roots) + 1 > self.max_instances:
            victim = roots.pop(0)
            logger.info("Evicting least recently used instance tree %s", victim.id)
            self.delete_tree(victim.id)

    # Render stack

    def push_instance(self, instance: ComponentInstance) -> None:
        instance.hook_index = 0
        instance.child_counter = 0
        self._stack.append(instance)

    def pop_instance(self) -> ComponentInstance | None:
        return self._stack.pop() if self._stack else None

    def current_instance(self) -> ComponentInstance | None:
        return self._stack[-1] if self._stack else None

    # Deferred renders

    def schedule_render(
        self,
        instance_id: str,
        callback: Callable[[], Any],
        delay_ticks: int = DEFAULT_RENDER_DELAY_TICKS,
    ) -> bool:
        """Schedule `callback` once per identity; a second request while one is pending is dropped."""

        if instance_id in self._scheduled:
            logger.debug("Render already scheduled for %s, ignoring", instance_id)
            return False

        def _run() -> None:
            self._scheduled.pop(instance_id, None)
            callback()

        self._scheduled[instance_id] = self.scheduler.run_deferred(_run, delay_ticks)
        return True

    def cancel_render(self, instance_id: str) -> bool:
        handle = self._scheduled.pop(instance_id, None)
        if handle is None:
            return False
        self.scheduler.cancel(handle)
        return True

    def has_scheduled_render(self, instance_id: str) -> bool:
        return instance_id in self._scheduled

    # Context stacks

    def push_context(self, context: Context[Any], value: Any) -> None:
        self._contexts.setdefault(context, []).append(value)

    def pop_context(self, context: Context[Any]) -> None:
        stack = self._contexts.get(context)
        if not stack:
            return
        stack.pop()
        if not stack:
            del self._contexts[context]

    def read_context(self, context: Context[Any]) -> Any:
        stack = self._contexts.get(context)
        if not stack:
            return context.default
        return stack[-1]


_active_registry: ContextVar[FiberRegistry | None] = ContextVar("bcui_active_registry", default=None)


@contextmanager
def activate(registry: FiberRegistry) -> Iterator[FiberRegistry]:
    """Make `registry` the one hooks talk to for the duration of the block."""

    token = _active_registry.set(registry)
    try:
        yield registry
    finally:
        _active_registry.reset(token)


def active_registry() -> FiberRegistry | None:
    return _active_registry.get()


def current_instance(hook_name: str) -> ComponentInstance:
    registry = _active_registry.get()
    instance = registry.current_instance() if registry is not None else None
    if instance is None:
        raise HookError(
            f"{hook_name} can only be called from within a component. "
            "Make sure you are calling it at the top level of your component function."
        )
    return instance
