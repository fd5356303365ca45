"""
Cancellation racing a payment confirmation from another worker.

The store below lets a competing writer land between the orchestrator's
read and its compare-and-swap, the way a second process would.
"""

from decimal import Decimal

import pytest

from remit_gateway.domain import state_machine
from remit_gateway.domain.models import TransferStatus
from remit_gateway.infrastructure.database.memory import InMemoryTransferRepository

S = TransferStatus


class RacingRepository(InMemoryTransferRepository):
    """Applies a competing transition just before the next save into `trigger`"""

    def __init__(self):
        super().__init__()
        self.trigger = None
        self.competing = None

    def save(self, transfer, expected_status):
        if self.trigger is not None and transfer.status == self.trigger:
            self.trigger, competing = None, self.competing
            winner = self.get(transfer.id)
            competing(winner)
            super().save(winner, expected_status)
        super().save(transfer, expected_status)


@pytest.fixture
def repository() -> RacingRepository:
    return RacingRepository()


async def test_cancel_losing_to_payment_is_refunded(orchestrator, repository, ug_ke_request, gateway):
    transfer = await orchestrator.initiate_transfer(ug_ke_request)

    repository.trigger = S.CANCELLED
    repository.competing = lambda t: state_machine.transition(t, S.PAYMENT_CONFIRMED)

    result = await orchestrator.cancel_transfer(transfer.id, "Customer request")

    assert result.status == S.REFUNDED
    assert result.refund_amount == Decimal("107500")
    assert result.refund_date is not None
    assert result.cancellation_reason == "Customer request"

    stored = repository.get(transfer.id)
    assert stored.status == S.REFUNDED
    assert [c.to_status for c in stored.status_history][-3:] == [S.PAYMENT_CONFIRMED, S.CANCELLED, S.REFUNDED]
    assert gateway.sent == []


async def test_payment_losing_to_cancel_is_refunded(orchestrator, repository, ug_ke_request, gateway):
    transfer = await orchestrator.initiate_transfer(ug_ke_request)

    def cancel(t):
        t.cancellation_reason = "Cancelled at the counter"
        state_machine.transition(t, S.CANCELLED)

    repository.trigger = S.PAYMENT_CONFIRMED
    repository.competing = cancel

    result = await orchestrator.process_payment(transfer.id, {"reference": "MM-001"})

    assert result.status == S.REFUNDED
    assert result.refund_amount == result.total_cost
    assert result.cancellation_reason == "Cancelled at the counter"
    assert repository.get(transfer.id).status == S.REFUNDED
    assert gateway.sent == []
