"""Unit tests for the transfer lifecycle state machine"""

import pytest

from remit_gateway.domain import state_machine
from remit_gateway.domain.exceptions import InvalidStateError
from remit_gateway.domain.models import TransferStatus

S = TransferStatus


def test_happy_path_is_allowed(make_transfer):
    transfer = make_transfer()
    path = [
        S.COMPLIANCE_CHECK,
        S.AWAITING_PAYMENT,
        S.PAYMENT_CONFIRMED,
        S.PROCESSING,
        S.SENT_TO_PARTNER,
        S.COMPLETED,
    ]
    for target in path:
        state_machine.transition(transfer, target)

    assert transfer.status == S.COMPLETED
    assert [c.to_status for c in transfer.status_history] == path
    assert transfer.status_history[0].from_status == S.INITIATED


def test_every_status_has_a_table_entry():
    assert set(state_machine.TRANSITIONS) == set(TransferStatus)


@pytest.mark.parametrize("terminal", [S.COMPLETED, S.FAILED, S.REFUNDED])
def test_terminal_states_have_no_exits(terminal):
    for target in TransferStatus:
        assert not state_machine.can_transition(terminal, target)


def test_cancelled_only_moves_to_refunded():
    assert state_machine.TRANSITIONS[S.CANCELLED] == frozenset({S.REFUNDED})


def test_illegal_move_raises_and_leaves_transfer_untouched(make_transfer):
    transfer = make_transfer(S.PROCESSING)

    with pytest.raises(InvalidStateError):
        state_machine.transition(transfer, S.CANCELLED)

    assert transfer.status == S.PROCESSING
    assert transfer.status_history == []


@pytest.mark.parametrize("status", [S.INITIATED, S.COMPLIANCE_CHECK, S.AWAITING_PAYMENT])
def test_pre_payment_states_are_cancellable(status):
    assert status in state_machine.CANCELLABLE_STATES
    assert state_machine.can_transition(status, S.CANCELLED)


def test_sent_to_partner_cannot_fail():
    assert not state_machine.can_transition(S.SENT_TO_PARTNER, S.FAILED)


def test_annotate_allowed_on_terminal_transfer(make_transfer):
    transfer = make_transfer(S.COMPLETED)

    change = state_machine.annotate(transfer, "customer called to confirm receipt")

    assert transfer.status == S.COMPLETED
    assert change.from_status == change.to_status == S.COMPLETED
    assert transfer.status_history[-1].note == "customer called to confirm receipt"
