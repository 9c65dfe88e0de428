from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class PresentationPhase(StrEnum):
    unmounted = "unmounted"
    mounted = "mounted"
    awaiting_response = "awaiting_response"
    callback_running = "callback_running"
    rerendering = "rerendering"
    cancelled = "cancelled"


class PresentationFSM(StateMachine):
    """Render/present cycle of one root component.

    - first render: unmounted -> mounted -> awaiting_response
    - button press: awaiting_response -> callback_running -> rerendering -> mounted
    - dismissal or exit: awaiting_response/callback_running -> cancelled (terminal)
    - suspense resolution or live update: awaiting_response -> rerendering
    """

    unmounted = State(PresentationPhase.unmounted.value, value=PresentationPhase.unmounted.value, initial=True)
    mounted = State(PresentationPhase.mounted.value, value=PresentationPhase.mounted.value)
    awaiting_response = State(
        PresentationPhase.awaiting_response.value,
        value=PresentationPhase.awaiting_response.value,
    )
    callback_running = State(
        PresentationPhase.callback_running.value,
        value=PresentationPhase.callback_running.value,
    )
    rerendering = State(PresentationPhase.rerendering.value, value=PresentationPhase.rerendering.value)
    cancelled = State(PresentationPhase.cancelled.value, value=PresentationPhase.cancelled.value, final=True)

    mount = unmounted.to(mounted) | rerendering.to(mounted)
    present = mounted.to(awaiting_response)
    select = awaiting_response.to(callback_running)
    settle = callback_running.to(rerendering)
    reopen = awaiting_response.to(rerendering)
    dismiss = awaiting_response.to(cancelled) | callback_running.to(cancelled)

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__()

    @property
    def phase(self) -> PresentationPhase:
        return PresentationPhase(str(self.current_state.value))

    @property
    def is_awaiting_response(self) -> bool:
        return self.phase is PresentationPhase.awaiting_response
