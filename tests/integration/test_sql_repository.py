"""Integration tests for the SQLAlchemy transfer store (SQLite)"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from remit_gateway.domain import state_machine
from remit_gateway.domain.exceptions import DuplicateTransferError, StaleTransferError, TransferNotFoundError
from remit_gateway.domain.models import CheckStatus, CheckType, ComplianceCheck, TransferStatus

S = TransferStatus


def test_round_trip(sql_repository, make_transfer):
    transfer = make_transfer()
    sql_repository.add(transfer)

    loaded = sql_repository.get(transfer.id)

    assert loaded.tracking_number == transfer.tracking_number
    assert loaded.recipient.phone_number == "+254712345678"
    assert str(loaded.send_amount) == "100000"
    assert str(loaded.fee) == "7500"
    assert str(loaded.exchange_rate) == "0.0348648649"
    assert str(loaded.receive_amount) == "3225.00"
    assert str(loaded.total_cost) == "107500"
    assert loaded.created_at == transfer.created_at
    assert loaded.created_at.tzinfo is not None
    assert loaded.status == S.INITIATED


def test_amounts_keep_currency_precision(sql_repository, make_transfer):
    sql_repository.add(make_transfer(receive_amount=Decimal("3225.50")))

    loaded = sql_repository.get("xb_test")

    # KES has two decimal places, UGX none
    assert str(loaded.receive_amount) == "3225.50"
    assert str(loaded.send_amount) == "100000"


def test_refund_amount_keeps_currency_precision(sql_repository, make_transfer):
    transfer = make_transfer(S.CANCELLED)
    sql_repository.add(transfer)
    transfer.refund_amount = transfer.total_cost
    transfer.refund_date = datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc)
    state_machine.transition(transfer, S.REFUNDED)
    sql_repository.save(transfer, S.CANCELLED)

    assert str(sql_repository.get(transfer.id).refund_amount) == "107500"


def test_duplicate_tracking_number_rejected(sql_repository, make_transfer):
    sql_repository.add(make_transfer(id="xb_1", tracking_number="RMT00000001ABCD"))

    with pytest.raises(DuplicateTransferError):
        sql_repository.add(make_transfer(id="xb_2", tracking_number="RMT00000001ABCD"))

    assert sql_repository.get("xb_2") is None
    sql_repository.add(make_transfer(id="xb_3", tracking_number="RMT00000002ABCD"))


def test_missing_transfer(sql_repository):
    assert sql_repository.get("xb_missing") is None


def test_save_is_compare_and_swap(sql_repository, make_transfer):
    transfer = make_transfer()
    sql_repository.add(transfer)

    state_machine.transition(transfer, S.COMPLIANCE_CHECK)
    sql_repository.save(transfer, S.INITIATED)

    stale = sql_repository.get(transfer.id)
    state_machine.transition(stale, S.AWAITING_PAYMENT)
    sql_repository.save(stale, S.COMPLIANCE_CHECK)

    # Second writer still believes the transfer is in compliance_check
    state_machine.transition(transfer, S.CANCELLED)
    with pytest.raises(StaleTransferError):
        sql_repository.save(transfer, S.COMPLIANCE_CHECK)

    assert sql_repository.get(transfer.id).status == S.AWAITING_PAYMENT


def test_save_unknown_transfer(sql_repository, make_transfer):
    with pytest.raises(TransferNotFoundError):
        sql_repository.save(make_transfer(), S.INITIATED)


def test_checks_and_history_appended(sql_repository, make_transfer):
    transfer = make_transfer()
    sql_repository.add(transfer)
    checked_at = datetime(2026, 1, 15, 12, 1, tzinfo=timezone.utc)

    state_machine.transition(transfer, S.COMPLIANCE_CHECK)
    transfer.compliance_checks.extend(
        [
            ComplianceCheck(CheckType.AML, CheckStatus.PASSED, 12.5, (), checked_at),
            ComplianceCheck(CheckType.SANCTIONS, CheckStatus.MANUAL_REVIEW, 100.0, ("check_timeout",), checked_at, "timeout"),
        ]
    )
    sql_repository.save(transfer, S.INITIATED)
    state_machine.annotate(transfer, "escalated to compliance team")
    sql_repository.save(transfer, S.COMPLIANCE_CHECK)

    loaded = sql_repository.get(transfer.id)

    assert [c.check_type for c in loaded.compliance_checks] == [CheckType.AML, CheckType.SANCTIONS]
    assert loaded.compliance_checks[1].flags == ("check_timeout",)
    assert loaded.compliance_checks[1].detail == "timeout"
    assert loaded.status_history[-1].note == "escalated to compliance team"
    assert loaded.status_history[0].to_status == S.COMPLIANCE_CHECK


def test_list_created_between(sql_repository, make_transfer):
    base = datetime(2026, 1, 15, tzinfo=timezone.utc)
    for i in range(3):
        sql_repository.add(make_transfer(id=f"xb_{i}", created_at=base + timedelta(days=i)))

    found = sql_repository.list_created_between(base, base + timedelta(days=1))

    assert [t.id for t in found] == ["xb_0", "xb_1"]


def test_sum_sent_since_skips_failed_and_cancelled(sql_repository, make_transfer):
    base = datetime(2026, 1, 15, tzinfo=timezone.utc)
    sql_repository.add(make_transfer(id="xb_1", created_at=base, send_amount=Decimal("100000")))
    sql_repository.add(make_transfer(id="xb_2", created_at=base, send_amount=Decimal("250000")))
    sql_repository.add(make_transfer(S.FAILED, id="xb_3", created_at=base, send_amount=Decimal("900000")))
    sql_repository.add(make_transfer(S.CANCELLED, id="xb_4", created_at=base, send_amount=Decimal("900000")))
    sql_repository.add(make_transfer(id="xb_5", created_at=base - timedelta(days=1), send_amount=Decimal("900000")))
    sql_repository.add(make_transfer(id="xb_6", created_at=base, sender_id="someone_else"))

    total = sql_repository.sum_sent_since("sender_001", "mobile_money_ug_ke", base)

    assert total == Decimal("350000")


def test_sum_with_no_transfers_is_zero(sql_repository):
    assert sql_repository.sum_sent_since("nobody", "mobile_money_ug_ke", datetime(2026, 1, 1, tzinfo=timezone.utc)) == 0
