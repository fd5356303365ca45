"""Data access layer for remittance transfers"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from remit_gateway.domain.catalog import CurrencyRegistry
from remit_gateway.domain.exceptions import DuplicateTransferError, StaleTransferError, TransferNotFoundError
from remit_gateway.domain.fees import quantize_amount, quantize_rate
from remit_gateway.domain.models import (
    CheckStatus,
    CheckType,
    ComplianceCheck,
    ComplianceLevel,
    Currency,
    RecipientInfo,
    StatusChange,
    Transfer,
    TransferStatus,
)
from remit_gateway.infrastructure.database.models import ComplianceCheckRecord, TransferRecord
from remit_gateway.utils.date_utils import ensure_utc

# Statuses that never moved money; excluded from rolling limit usage
NON_COUNTING_STATUSES = (
    TransferStatus.FAILED.value,
    TransferStatus.CANCELLED.value,
    TransferStatus.REFUNDED.value,
)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _amount(value: Any, currency: Currency) -> Optional[Decimal]:
    """Numeric columns carry a fixed scale; restore the currency's own precision"""
    value = _as_decimal(value)
    return quantize_amount(value, currency.decimal_places) if value is not None else None


def _history_to_json(history: List[StatusChange]) -> List[Dict[str, Any]]:
    return [
        {
            "from_status": change.from_status.value if change.from_status else None,
            "to_status": change.to_status.value if change.to_status else None,
            "at": change.at.isoformat(),
            "note": change.note,
        }
        for change in history
    ]


def _history_from_json(items: List[Dict[str, Any]]) -> List[StatusChange]:
    return [
        StatusChange(
            from_status=TransferStatus(item["from_status"]) if item.get("from_status") else None,
            to_status=TransferStatus(item["to_status"]) if item.get("to_status") else None,
            at=ensure_utc(datetime.fromisoformat(item["at"])),
            note=item.get("note"),
        )
        for item in items or []
    ]


def _mutable_columns(transfer: Transfer) -> Dict[str, Any]:
    """Columns that may change after creation"""
    return {
        "status": transfer.status.value,
        "actual_delivery": transfer.actual_delivery,
        "partner_id": transfer.partner_id,
        "partner_reference": transfer.partner_reference,
        "cancellation_reason": transfer.cancellation_reason,
        "failure_reason": transfer.failure_reason,
        "refund_amount": transfer.refund_amount,
        "refund_date": transfer.refund_date,
        "status_history": _history_to_json(transfer.status_history),
        "updated_at": transfer.updated_at,
    }


def _check_record(transfer_id: str, position: int, check: ComplianceCheck) -> ComplianceCheckRecord:
    return ComplianceCheckRecord(
        transfer_id=transfer_id,
        position=position,
        check_type=check.check_type.value,
        status=check.status.value,
        risk_score=check.risk_score,
        flags=list(check.flags),
        detail=check.detail,
        checked_at=check.checked_at,
    )


def to_record(transfer: Transfer) -> TransferRecord:
    record = TransferRecord(
        id=transfer.id,
        tracking_number=transfer.tracking_number,
        sender_id=transfer.sender_id,
        recipient={
            "name": transfer.recipient.name,
            "phone_number": transfer.recipient.phone_number,
            "account_number": transfer.recipient.account_number,
            "swift_code": transfer.recipient.swift_code,
            "address": transfer.recipient.address,
        },
        origin_country=transfer.origin_country,
        destination_country=transfer.destination_country,
        origin_currency=transfer.origin_currency,
        destination_currency=transfer.destination_currency,
        send_amount=transfer.send_amount,
        fee=transfer.fee,
        exchange_rate=transfer.exchange_rate,
        receive_amount=transfer.receive_amount,
        total_cost=transfer.total_cost,
        payment_method=transfer.payment_method,
        delivery_method=transfer.delivery_method,
        compliance_level=transfer.compliance_level.value,
        estimated_delivery=transfer.estimated_delivery,
        purpose=transfer.purpose,
        source_of_funds=transfer.source_of_funds,
        beneficiary_relationship=transfer.beneficiary_relationship,
        created_at=transfer.created_at,
        **_mutable_columns(transfer),
    )
    record.checks = [_check_record(transfer.id, i, c) for i, c in enumerate(transfer.compliance_checks)]
    return record


def to_domain(record: TransferRecord, currencies: CurrencyRegistry) -> Transfer:
    origin = currencies.get(record.origin_currency)
    destination = currencies.get(record.destination_currency)
    return Transfer(
        id=record.id,
        tracking_number=record.tracking_number,
        sender_id=record.sender_id,
        recipient=RecipientInfo(**record.recipient),
        origin_country=record.origin_country,
        destination_country=record.destination_country,
        origin_currency=record.origin_currency,
        destination_currency=record.destination_currency,
        send_amount=_amount(record.send_amount, origin),
        fee=_amount(record.fee, origin),
        exchange_rate=quantize_rate(_as_decimal(record.exchange_rate)),
        receive_amount=_amount(record.receive_amount, destination),
        total_cost=_amount(record.total_cost, origin),
        payment_method=record.payment_method,
        delivery_method=record.delivery_method,
        compliance_level=ComplianceLevel(record.compliance_level),
        status=TransferStatus(record.status),
        estimated_delivery=ensure_utc(record.estimated_delivery),
        purpose=record.purpose,
        source_of_funds=record.source_of_funds,
        beneficiary_relationship=record.beneficiary_relationship,
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
        compliance_checks=[
            ComplianceCheck(
                check_type=CheckType(c.check_type),
                status=CheckStatus(c.status),
                risk_score=c.risk_score,
                flags=tuple(c.flags or ()),
                checked_at=ensure_utc(c.checked_at),
                detail=c.detail,
            )
            for c in record.checks
        ],
        status_history=_history_from_json(record.status_history),
        actual_delivery=ensure_utc(record.actual_delivery),
        partner_id=record.partner_id,
        partner_reference=record.partner_reference,
        cancellation_reason=record.cancellation_reason,
        failure_reason=record.failure_reason,
        refund_amount=_amount(record.refund_amount, origin),
        refund_date=ensure_utc(record.refund_date),
    )


class SqlTransferRepository:
    """
    Transfer store backed by SQLAlchemy; one short session per call.

    Amounts are read back at the precision of their currency in `currencies`.
    """

    def __init__(self, session_factory: sessionmaker, currencies: CurrencyRegistry):
        self.session_factory = session_factory
        self.currencies = currencies

    def add(self, transfer: Transfer) -> None:
        """
        Persist a new transfer with its checks.

        Raises:
            DuplicateTransferError: Id or tracking number already stored
        """
        with self.session_factory() as db:
            db.add(to_record(transfer))
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateTransferError(
                    f"Transfer {transfer.id} / {transfer.tracking_number} already exists"
                ) from e

    def get(self, transfer_id: str) -> Optional[Transfer]:
        with self.session_factory() as db:
            record = db.query(TransferRecord).filter(TransferRecord.id == transfer_id).first()
            return to_domain(record, self.currencies) if record else None

    def save(self, transfer: Transfer, expected_status: TransferStatus) -> None:
        """
        Compare-and-swap update keyed on the stored status.

        New compliance checks are appended; existing ones are never rewritten.

        Raises:
            TransferNotFoundError: If the transfer does not exist
            StaleTransferError: If the stored status is not expected_status
        """
        with self.session_factory() as db:
            updated = (
                db.query(TransferRecord)
                .filter(TransferRecord.id == transfer.id, TransferRecord.status == expected_status.value)
                .update(_mutable_columns(transfer), synchronize_session=False)
            )
            if updated == 0:
                db.rollback()
                current = db.query(TransferRecord.status).filter(TransferRecord.id == transfer.id).first()
                if current is None:
                    raise TransferNotFoundError(f"Transfer {transfer.id} not found")
                raise StaleTransferError(
                    f"Transfer {transfer.id} is {current.status}, expected {expected_status.value}"
                )

            stored_checks = (
                db.query(func.count(ComplianceCheckRecord.id))
                .filter(ComplianceCheckRecord.transfer_id == transfer.id)
                .scalar()
            )
            for position, check in enumerate(transfer.compliance_checks[stored_checks:], start=stored_checks):
                db.add(_check_record(transfer.id, position, check))

            db.commit()

    def list_created_between(self, start: datetime, end: datetime) -> List[Transfer]:
        with self.session_factory() as db:
            records = (
                db.query(TransferRecord)
                .filter(TransferRecord.created_at >= start, TransferRecord.created_at <= end)
                .order_by(TransferRecord.created_at.asc())
                .all()
            )
            return [to_domain(r, self.currencies) for r in records]

    def sum_sent_since(self, sender_id: str, payment_method: str, since: datetime) -> Decimal:
        with self.session_factory() as db:
            total = (
                db.query(func.coalesce(func.sum(TransferRecord.send_amount), 0))
                .filter(
                    TransferRecord.sender_id == sender_id,
                    TransferRecord.payment_method == payment_method,
                    TransferRecord.created_at >= since,
                    TransferRecord.status.notin_(NON_COUNTING_STATUSES),
                )
                .scalar()
            )
            return _as_decimal(total)
