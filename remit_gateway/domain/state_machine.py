"""Transfer lifecycle state machine.

Every status change goes through ``transition``, which consults the
explicit ``TRANSITIONS`` table. Anything not in the table is rejected with
``InvalidStateError`` and leaves the transfer untouched.

    initiated -> compliance_check -> awaiting_payment -> payment_confirmed
              -> processing -> sent_to_partner -> completed

Side branches: cancellation from the three pre-payment states, failure from
awaiting_payment (rejected payment), payment_confirmed and processing, and
cancelled -> refunded once funds had been captured.
"""

from typing import Dict, FrozenSet, Optional

from remit_gateway.domain.exceptions import InvalidStateError
from remit_gateway.domain.models import StatusChange, Transfer, TransferStatus
from remit_gateway.utils.date_utils import utcnow

S = TransferStatus

TRANSITIONS: Dict[TransferStatus, FrozenSet[TransferStatus]] = {
    S.INITIATED: frozenset({S.COMPLIANCE_CHECK, S.CANCELLED}),
    S.COMPLIANCE_CHECK: frozenset({S.AWAITING_PAYMENT, S.CANCELLED}),
    S.AWAITING_PAYMENT: frozenset({S.PAYMENT_CONFIRMED, S.CANCELLED, S.FAILED}),
    # payment_confirmed -> cancelled only compensates a lost cancellation race
    S.PAYMENT_CONFIRMED: frozenset({S.PROCESSING, S.FAILED, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SENT_TO_PARTNER, S.FAILED}),
    S.SENT_TO_PARTNER: frozenset({S.COMPLETED}),
    S.CANCELLED: frozenset({S.REFUNDED}),
    S.COMPLETED: frozenset(),
    S.FAILED: frozenset(),
    S.REFUNDED: frozenset(),
}

CANCELLABLE_STATES: FrozenSet[TransferStatus] = frozenset({S.INITIATED, S.COMPLIANCE_CHECK, S.AWAITING_PAYMENT})


def _check_table() -> None:
    missing = set(TransferStatus) - set(TRANSITIONS)
    if missing:
        raise RuntimeError(f"Transition table missing states: {sorted(s.value for s in missing)}")
    for source, targets in TRANSITIONS.items():
        if source in targets:
            raise RuntimeError(f"Self-transition declared for {source.value}")


_check_table()


def can_transition(current: TransferStatus, target: TransferStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(transfer: Transfer, target: TransferStatus, note: Optional[str] = None) -> StatusChange:
    """
    Move a transfer to ``target`` and record the change in its history.

    Raises:
        InvalidStateError: If the move is not in the transition table
    """
    current = transfer.status
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Transfer {transfer.id} cannot move from {current.value} to {target.value}"
        )

    now = utcnow()
    change = StatusChange(from_status=current, to_status=target, at=now, note=note)
    transfer.status = target
    transfer.updated_at = now
    transfer.status_history.append(change)
    return change


def annotate(transfer: Transfer, note: str) -> StatusChange:
    """Audit annotation; permitted in every state, including terminal ones"""
    now = utcnow()
    change = StatusChange(from_status=transfer.status, to_status=transfer.status, at=now, note=note)
    transfer.status_history.append(change)
    return change
