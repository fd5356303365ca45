"""Transfer orchestrator - drives each transfer through its lifecycle.

Every operation on a transfer runs under that transfer's lock, and every
persisted status change is a compare-and-swap against the status the
operation started from. The lock serializes callers inside this process;
the compare-and-swap catches writers in other processes.
"""

import asyncio
import logging
import secrets
import string
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from remit_gateway.domain import state_machine
from remit_gateway.domain.catalog import CorridorCatalog, CurrencyRegistry
from remit_gateway.domain.compliance import requires_manual_review
from remit_gateway.domain.exceptions import (
    DuplicateTransferError,
    InvalidStateError,
    PartnerGatewayError,
    PartnerNotFoundError,
    PartnerTimeoutError,
    PaymentVerificationError,
    StaleTransferError,
    TransferNotFoundError,
    ValidationError,
)
from remit_gateway.domain.fees import compute_quote, validate_amount, validate_method_limits
from remit_gateway.domain.models import (
    Currency,
    ExchangeRate,
    PaymentCorridor,
    PaymentMethod,
    RemittanceReport,
    StatusChange,
    Transfer,
    TransferPartner,
    TransferRequest,
    TransferStatus,
)
from remit_gateway.domain.partners import PartnerDirectory
from remit_gateway.domain.ports import PartnerGateway, PaymentVerifier, TransferRepository
from remit_gateway.domain.reporting import generate_report
from remit_gateway.infrastructure.observability.logging import log_status_change, log_transfer_event
from remit_gateway.infrastructure.observability.metrics import (
    manual_review_counter,
    partner_failure_counter,
    record_transition,
    transfer_initiated_counter,
)
from remit_gateway.services.compliance import CompliancePipeline
from remit_gateway.services.locks import TransferLocks
from remit_gateway.services.rates import ExchangeRateCache
from remit_gateway.utils.date_utils import add_minutes, start_of_day, start_of_month, utcnow

logger = logging.getLogger(__name__)

S = TransferStatus

# Inserts tried before a tracking number collision is reported
IDENTIFIER_ATTEMPTS = 3

# Names used in PaymentMethod.required_info -> RecipientInfo attributes
RECIPIENT_FIELDS = {
    "recipient_name": "name",
    "phone_number": "phone_number",
    "bank_account": "account_number",
    "swift_code": "swift_code",
    "recipient_address": "address",
}


def generate_transfer_id() -> str:
    return f"xb_{uuid.uuid4().hex}"


def generate_tracking_number() -> str:
    """RMT + last 8 digits of the epoch millis + 4 random alphanumerics"""
    millis = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"RMT{millis}{suffix}"


class TransferOrchestrator:
    """Owns the transfer state machine and its collaborators"""

    def __init__(
        self,
        transfers: TransferRepository,
        currencies: CurrencyRegistry,
        corridors: CorridorCatalog,
        partners: PartnerDirectory,
        rates: ExchangeRateCache,
        compliance: CompliancePipeline,
        verifier: PaymentVerifier,
        gateway: PartnerGateway,
        payment_timeout_seconds: float = 10.0,
        partner_timeout_seconds: float = 15.0,
        manual_review_threshold: float = 70,
    ):
        self.transfers = transfers
        self.currencies = currencies
        self.corridors = corridors
        self.partners = partners
        self.rates = rates
        self.compliance = compliance
        self.verifier = verifier
        self.gateway = gateway
        self.payment_timeout_seconds = payment_timeout_seconds
        self.partner_timeout_seconds = partner_timeout_seconds
        self.manual_review_threshold = manual_review_threshold
        self.locks = TransferLocks()

    # ------------------------------------------------------------------
    # Initiation and compliance
    # ------------------------------------------------------------------

    async def initiate_transfer(self, request: TransferRequest) -> Transfer:
        """
        Price, record and screen a new transfer.

        Flow:
        1. Validate request, corridor, amount bounds, method and recipient
        2. Resolve the exchange rate and freeze the quote
        3. Persist as initiated
        4. Run compliance checks; advance to awaiting_payment unless held

        Nothing is persisted if any step before 3 fails.

        Raises:
            ValidationError: Malformed request
            CorridorUnavailableError: Corridor missing or inactive
            AmountOutOfBoundsError: Corridor or method limits violated
            RateProviderError: No usable rate for the pair
        """
        self._validate_request(request)

        corridor = self.corridors.resolve(request.origin_country, request.destination_country)
        self._check_currency_pair(corridor, request)
        origin = self.currencies.get(corridor.origin_currency)
        destination = self.currencies.get(corridor.destination_currency)

        amount = Decimal(request.send_amount)
        if amount != round(amount, origin.decimal_places):
            raise ValidationError(f"{origin.code} amounts allow at most {origin.decimal_places} decimal places")

        validate_amount(corridor, amount)
        method = self._resolve_method(corridor, request)
        if method is not None:
            self._check_recipient(method, request)

        # Limit usage is read and the new transfer stored under one sender lock
        async with self.locks.hold(f"sender:{request.sender_id}"):
            if method is not None:
                now = utcnow()
                validate_method_limits(
                    method,
                    amount,
                    sent_today=self.transfers.sum_sent_since(request.sender_id, method.id, start_of_day(now)),
                    sent_this_month=self.transfers.sum_sent_since(request.sender_id, method.id, start_of_month(now)),
                )

            rate = await self.rates.get_rate(corridor.origin_currency, corridor.destination_currency)
            transfer = self._build_transfer(request, corridor, method, rate, origin, destination)
            self._store_new(transfer)

        transfer_initiated_counter.labels(corridor=corridor.id).inc()
        record_transition(S.INITIATED.value)
        log_status_change(transfer.id, transfer.tracking_number, None, S.INITIATED.value)

        async with self.locks.hold(transfer.id):
            await self._screen(transfer)

        return transfer

    def _store_new(self, transfer: Transfer) -> None:
        """Insert a new transfer, drawing fresh identifiers if the generated ones collide"""
        for attempt in range(1, IDENTIFIER_ATTEMPTS + 1):
            try:
                self.transfers.add(transfer)
                return
            except DuplicateTransferError:
                if attempt == IDENTIFIER_ATTEMPTS:
                    raise
                log_transfer_event(
                    "Generated identifiers already taken, regenerating",
                    transfer.id,
                    "initiate",
                    level=logging.WARNING,
                    tracking_number=transfer.tracking_number,
                    attempt=attempt,
                )
                transfer.id = generate_transfer_id()
                transfer.tracking_number = generate_tracking_number()

    def _build_transfer(
        self,
        request: TransferRequest,
        corridor: PaymentCorridor,
        method: Optional[PaymentMethod],
        rate: ExchangeRate,
        origin: Currency,
        destination: Currency,
    ) -> Transfer:
        quote = compute_quote(Decimal(request.send_amount), corridor, rate, origin, destination)
        now = utcnow()

        return Transfer(
            id=generate_transfer_id(),
            tracking_number=generate_tracking_number(),
            sender_id=request.sender_id,
            recipient=request.recipient,
            origin_country=corridor.origin_country,
            destination_country=corridor.destination_country,
            origin_currency=corridor.origin_currency,
            destination_currency=corridor.destination_currency,
            send_amount=quote.send_amount,
            fee=quote.fee,
            exchange_rate=quote.exchange_rate,
            receive_amount=quote.receive_amount,
            total_cost=quote.total_cost,
            payment_method=method.id if method else request.payment_method,
            delivery_method=request.delivery_method,
            compliance_level=corridor.compliance_level,
            status=S.INITIATED,
            estimated_delivery=add_minutes(now, corridor.estimated_delivery_minutes),
            purpose=request.purpose,
            source_of_funds=request.source_of_funds,
            beneficiary_relationship=request.beneficiary_relationship,
            created_at=now,
            updated_at=now,
            status_history=[StatusChange(from_status=None, to_status=S.INITIATED, at=now, note=f"rate source {rate.source}")],
        )

    async def _screen(self, transfer: Transfer) -> None:
        self._move(transfer, S.COMPLIANCE_CHECK)

        checks = await self.compliance.run_checks(transfer)
        transfer.compliance_checks.extend(checks)

        if requires_manual_review(checks, self.manual_review_threshold):
            # Resting state: persist the checks, no transition
            transfer.updated_at = utcnow()
            self.transfers.save(transfer, S.COMPLIANCE_CHECK)
            manual_review_counter.labels(corridor=transfer.corridor_id).inc()
            log_transfer_event(
                "Transfer held for manual compliance review",
                transfer.id,
                "manual_review",
                level=logging.WARNING,
                checks=[c.check_type.value for c in checks if c.risk_score > self.manual_review_threshold or c.flags],
            )
            return

        self._move(transfer, S.AWAITING_PAYMENT, note="compliance checks passed")

    # ------------------------------------------------------------------
    # Payment and dispatch
    # ------------------------------------------------------------------

    async def process_payment(self, transfer_id: str, proof: Dict[str, Any]) -> Transfer:
        """
        Verify the sender's payment and hand the transfer to a partner.

        A rejected payment fails the transfer. A verifier that cannot answer
        leaves the transfer in awaiting_payment so the caller can retry.

        Raises:
            TransferNotFoundError: Unknown transfer
            InvalidStateError: Transfer is not awaiting payment
            PaymentVerificationError: Verifier unreachable or timed out
        """
        async with self.locks.hold(transfer_id):
            transfer = self._load(transfer_id)
            if transfer.status != S.AWAITING_PAYMENT:
                raise InvalidStateError(
                    f"Transfer {transfer_id} is {transfer.status.value}, not ready for payment"
                )

            try:
                verified = await asyncio.wait_for(
                    self.verifier.verify(transfer, proof),
                    timeout=self.payment_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise PaymentVerificationError(
                    f"Payment verifier gave no answer within {self.payment_timeout_seconds}s"
                ) from e

            if not verified:
                transfer.failure_reason = "Payment verification failed"
                self._move(transfer, S.FAILED, note=transfer.failure_reason)
                return transfer

            try:
                self._move(transfer, S.PAYMENT_CONFIRMED)
            except StaleTransferError:
                return self._refund_if_cancelled(transfer_id)

            await self._dispatch(transfer)
            return transfer

    def _refund_if_cancelled(self, transfer_id: str) -> Transfer:
        """Payment landed on a transfer cancelled concurrently: give it back"""
        current = self._load(transfer_id)
        if current.status != S.CANCELLED:
            raise InvalidStateError(f"Transfer {transfer_id} changed to {current.status.value} during payment")
        self._refund(current, note="payment confirmed after cancellation")
        return current

    async def _dispatch(self, transfer: Transfer) -> None:
        try:
            self._move(transfer, S.PROCESSING)
        except StaleTransferError:
            # Cancelled concurrently; the canceller issues the refund
            log_transfer_event(
                "Dispatch skipped, transfer changed concurrently",
                transfer.id,
                "dispatch",
                level=logging.WARNING,
            )
            return

        partner = self.partners.select(transfer)
        if partner is None:
            partner_failure_counter.labels(partner="none", reason="no_partner").inc()
            transfer.failure_reason = f"No eligible partner for corridor {transfer.corridor_id}"
            self._move(transfer, S.FAILED, note=transfer.failure_reason)
            return

        transfer.partner_id = partner.id
        self._persist(transfer)
        await self._send(partner, transfer)

    async def _send(self, partner: TransferPartner, transfer: Transfer) -> None:
        try:
            result = await asyncio.wait_for(
                self.gateway.send(partner, transfer),
                timeout=self.partner_timeout_seconds,
            )
        except (asyncio.TimeoutError, PartnerTimeoutError):
            # Outcome unknown: stay in processing, reconciled on the next status read
            partner_failure_counter.labels(partner=partner.id, reason="timeout").inc()
            state_machine.annotate(transfer, f"dispatch to {partner.id} timed out; retryable")
            self._persist(transfer)
            log_transfer_event(
                "Partner dispatch timed out",
                transfer.id,
                "dispatch",
                level=logging.WARNING,
                partner_id=partner.id,
            )
            return
        except PartnerGatewayError as e:
            partner_failure_counter.labels(partner=partner.id, reason="error").inc()
            transfer.failure_reason = f"Partner {partner.id} unavailable: {e}"
            self._move(transfer, S.FAILED, note=transfer.failure_reason)
            return

        if not result.success:
            partner_failure_counter.labels(partner=partner.id, reason="rejected").inc()
            transfer.failure_reason = result.message or f"Partner {partner.id} rejected transfer"
            self._move(transfer, S.FAILED, note=transfer.failure_reason)
            return

        transfer.partner_reference = result.partner_reference
        self._move(transfer, S.SENT_TO_PARTNER, note=f"accepted by {partner.id}")

    async def retry_dispatch(self, transfer_id: str) -> Transfer:
        """
        Resend a transfer whose dispatch timed out. The transfer id is sent
        as the partner's idempotency key, so a duplicate send is harmless.

        Raises:
            InvalidStateError: Transfer is not in processing
        """
        async with self.locks.hold(transfer_id):
            transfer = self._load(transfer_id)
            if transfer.status != S.PROCESSING:
                raise InvalidStateError(f"Transfer {transfer_id} is {transfer.status.value}, nothing to retry")

            partner = self._assigned_partner(transfer) or self.partners.select(transfer)
            if partner is None:
                transfer.failure_reason = f"No eligible partner for corridor {transfer.corridor_id}"
                self._move(transfer, S.FAILED, note=transfer.failure_reason)
                return transfer

            if transfer.partner_id != partner.id:
                transfer.partner_id = partner.id
                self._persist(transfer)

            await self._send(partner, transfer)
            return transfer

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def get_transfer_status(self, transfer_id: str) -> Transfer:
        """
        Current state of a transfer, polling the partner first when the
        outcome lies with them (sent_to_partner, or processing after a
        timed-out dispatch).
        """
        async with self.locks.hold(transfer_id):
            transfer = self._load(transfer_id)
            if transfer.status == S.SENT_TO_PARTNER or (transfer.status == S.PROCESSING and transfer.partner_id):
                await self._reconcile(transfer)
            return transfer

    async def _reconcile(self, transfer: Transfer) -> None:
        partner = self._assigned_partner(transfer)
        if partner is None:
            return

        try:
            update = await asyncio.wait_for(
                self.gateway.poll(partner, transfer),
                timeout=self.partner_timeout_seconds,
            )
        except (asyncio.TimeoutError, PartnerTimeoutError):
            log_transfer_event("Partner poll timed out", transfer.id, "poll", level=logging.WARNING, partner_id=partner.id)
            return
        except PartnerGatewayError as e:
            if transfer.status == S.PROCESSING:
                transfer.failure_reason = f"Partner {partner.id} unavailable: {e}"
                self._move(transfer, S.FAILED, note=transfer.failure_reason)
            else:
                log_transfer_event(f"Partner poll failed: {e}", transfer.id, "poll", level=logging.WARNING)
            return

        if transfer.status == S.PROCESSING:
            if update.status == "failed":
                transfer.failure_reason = update.message or f"Partner {partner.id} reported failure"
                self._move(transfer, S.FAILED, note=transfer.failure_reason)
                return
            if update.status not in ("pending", "completed"):
                # Partner never received it; retry_dispatch resends
                return
            transfer.partner_reference = update.partner_reference or transfer.partner_reference
            self._move(transfer, S.SENT_TO_PARTNER, note="reconciled after dispatch timeout")

        if transfer.status == S.SENT_TO_PARTNER and update.status == "completed":
            transfer.actual_delivery = update.delivered_at or utcnow()
            self._move(transfer, S.COMPLETED, note=f"delivered by {partner.id}")

    # ------------------------------------------------------------------
    # Cancellation and refunds
    # ------------------------------------------------------------------

    async def cancel_transfer(self, transfer_id: str, reason: str) -> Transfer:
        """
        Cancel a transfer that has not been paid yet.

        If a payment confirmation from another worker wins the race, the
        cancellation still goes through and the captured funds are refunded.

        Raises:
            InvalidStateError: Transfer is past awaiting_payment
        """
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        async with self.locks.hold(transfer_id):
            transfer = self._load(transfer_id)
            if transfer.status not in state_machine.CANCELLABLE_STATES:
                raise InvalidStateError(
                    f"Transfer {transfer_id} cannot be cancelled at this stage ({transfer.status.value})"
                )

            transfer.cancellation_reason = reason
            try:
                self._move(transfer, S.CANCELLED, note=reason)
            except StaleTransferError:
                return self._cancel_confirmed_payment(transfer_id, reason)
            return transfer

    def _cancel_confirmed_payment(self, transfer_id: str, reason: str) -> Transfer:
        current = self._load(transfer_id)
        if current.status != S.PAYMENT_CONFIRMED:
            raise InvalidStateError(
                f"Transfer {transfer_id} cannot be cancelled at this stage ({current.status.value})"
            )
        current.cancellation_reason = reason
        self._move(current, S.CANCELLED, note=reason)
        self._refund(current, note="funds captured before cancellation")
        return current

    def _refund(self, transfer: Transfer, note: str) -> None:
        transfer.refund_amount = transfer.total_cost
        transfer.refund_date = utcnow()
        self._move(transfer, S.REFUNDED, note=note)

    # ------------------------------------------------------------------
    # Audit, lookups and reporting
    # ------------------------------------------------------------------

    async def annotate(self, transfer_id: str, note: str) -> Transfer:
        """Append an audit note; allowed in every state, terminal included"""
        if not note or not note.strip():
            raise ValidationError("Annotation note is required")
        async with self.locks.hold(transfer_id):
            transfer = self._load(transfer_id)
            state_machine.annotate(transfer, note)
            self._persist(transfer)
            return transfer

    def get_transfer(self, transfer_id: str) -> Transfer:
        return self._load(transfer_id)

    def list_corridors(self) -> List[PaymentCorridor]:
        return self.corridors.list_active()

    def list_currencies(self) -> List[Currency]:
        return self.currencies.list_all()

    def list_partners(self) -> List[TransferPartner]:
        return self.partners.list_active()

    async def get_rate(self, from_currency: str, to_currency: str) -> ExchangeRate:
        self.currencies.get(from_currency)
        self.currencies.get(to_currency)
        return await self.rates.get_rate(from_currency, to_currency)

    def generate_report(self, start: datetime, end: datetime) -> RemittanceReport:
        if start > end:
            raise ValidationError("Report start must not be after end")
        return generate_report(self.transfers.list_created_between(start, end), start, end)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, transfer_id: str) -> Transfer:
        transfer = self.transfers.get(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")
        return transfer

    def _move(self, transfer: Transfer, target: TransferStatus, note: Optional[str] = None) -> None:
        """Transition and persist with compare-and-swap on the prior status"""
        previous = transfer.status
        state_machine.transition(transfer, target, note)
        self.transfers.save(transfer, previous)
        record_transition(target.value)
        log_status_change(transfer.id, transfer.tracking_number, previous.value, target.value, note)

    def _persist(self, transfer: Transfer) -> None:
        """Save non-status changes; the status itself is the CAS key"""
        transfer.updated_at = utcnow()
        self.transfers.save(transfer, transfer.status)

    def _assigned_partner(self, transfer: Transfer) -> Optional[TransferPartner]:
        if not transfer.partner_id:
            return None
        try:
            return self.partners.get(transfer.partner_id)
        except PartnerNotFoundError:
            log_transfer_event(
                f"Assigned partner {transfer.partner_id} no longer in directory",
                transfer.id,
                "partner_lookup",
                level=logging.WARNING,
            )
            return None

    def _validate_request(self, request: TransferRequest) -> None:
        if not request.sender_id or not request.sender_id.strip():
            raise ValidationError("sender_id is required")
        if request.recipient is None or not request.recipient.name:
            raise ValidationError("recipient name is required")
        if not request.origin_country or not request.destination_country:
            raise ValidationError("origin and destination countries are required")
        try:
            amount = Decimal(request.send_amount)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise ValidationError(f"send_amount is not a number: {request.send_amount!r}") from e
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("send_amount must be a positive amount")

    @staticmethod
    def _check_currency_pair(corridor: PaymentCorridor, request: TransferRequest) -> None:
        if request.origin_currency and request.origin_currency != corridor.origin_currency:
            raise ValidationError(
                f"Corridor {corridor.id} sends {corridor.origin_currency}, not {request.origin_currency}"
            )
        if request.destination_currency and request.destination_currency != corridor.destination_currency:
            raise ValidationError(
                f"Corridor {corridor.id} pays out {corridor.destination_currency}, not {request.destination_currency}"
            )

    @staticmethod
    def _resolve_method(corridor: PaymentCorridor, request: TransferRequest) -> Optional[PaymentMethod]:
        if not corridor.supported_methods:
            return None
        method = corridor.find_method(request.payment_method)
        if method is None or not method.is_available:
            raise ValidationError(f"Payment method {request.payment_method} not available on corridor {corridor.id}")
        return method

    @staticmethod
    def _check_recipient(method: PaymentMethod, request: TransferRequest) -> None:
        missing = [
            name
            for name in method.required_info
            if not getattr(request.recipient, RECIPIENT_FIELDS.get(name, name), None)
        ]
        if missing:
            raise ValidationError(f"Recipient is missing required fields for {method.id}: {', '.join(missing)}")
