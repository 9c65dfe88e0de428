from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from bcui.core.lifecycle import PresentationFSM, PresentationPhase


def test_press_cycle_returns_to_mounted() -> None:
    fsm = PresentationFSM("p1:App")
    assert fsm.phase is PresentationPhase.unmounted

    fsm.mount()
    fsm.present()
    assert fsm.is_awaiting_response

    fsm.select()
    assert fsm.phase is PresentationPhase.callback_running
    fsm.settle()
    assert fsm.phase is PresentationPhase.rerendering
    fsm.mount()
    assert fsm.phase is PresentationPhase.mounted


def test_reopen_skips_the_callback() -> None:
    fsm = PresentationFSM("p1:App")
    fsm.mount()
    fsm.present()

    fsm.reopen()

    assert fsm.phase is PresentationPhase.rerendering


@pytest.mark.parametrize("before_dismiss", [(), ("select",)])
def test_dismiss_is_terminal(before_dismiss: tuple[str, ...]) -> None:
    fsm = PresentationFSM("p1:App")
    fsm.mount()
    fsm.present()
    for event in before_dismiss:
        getattr(fsm, event)()

    fsm.dismiss()

    assert fsm.phase is PresentationPhase.cancelled
    with pytest.raises(TransitionNotAllowed):
        fsm.mount()


def test_cannot_present_twice() -> None:
    fsm = PresentationFSM("p1:App")
    fsm.mount()
    fsm.present()

    with pytest.raises(TransitionNotAllowed):
        fsm.present()
    with pytest.raises(TransitionNotAllowed):
        fsm.settle()
