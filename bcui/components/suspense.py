from __future__ import annotations

import logging
from typing import Any

from bcui.components.elements import SUSPENSE, Element, normalize_children
from bcui.core.context import SuspenseContext
from bcui.core.fiber import SuspensionState, current_instance
from bcui.core.hooks import use_effect

logger = logging.getLogger(__name__)


def Suspense(*, children: Any = (), fallback: Any = None) -> Element:
    """Show `fallback` until a descendant's suspended state first resolves.

    Descendants opt in with `use_suspended_state()`. The first render shows
    the children; from the next one on, the fallback stays up until some
    descendant resolves, so only wrap children that do suspend.

        def Profile():
            data, set_data = use_suspended_state(None)
            use_effect(lambda: load_profile(set_data), [])
            return Text(data["name"] if data else "")

        h(Suspense, {"fallback": Text("Loading...")}, h(Profile))
    """

    instance = current_instance("Suspense")
    if instance.suspension is None:
        instance.suspension = SuspensionState()
    state = instance.suspension

    def on_child_initialize() -> None:
        logger.info("Suspended state initialized under %s, reopening", instance.id)
        state.is_suspended = False
        if instance.reopen is not None:
            instance.reopen()

    def register() -> Any:
        instance.on_suspended_state_initialize = on_child_initialize
        state.has_checked = True

        def unregister() -> None:
            instance.on_suspended_state_initialize = None

        return unregister

    use_effect(register, [])

    content = SuspenseContext.provider(instance, *normalize_children((children,)))
    return Element(
        type=SUSPENSE,
        props={
            "content": content,
            "fallback": fallback,
            "show_fallback": state.is_suspended and state.has_checked,
        },
    )
