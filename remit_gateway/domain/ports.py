"""Interfaces of the collaborators the core depends on"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from remit_gateway.domain.models import (
    CheckType,
    DispatchResult,
    PartnerStatusUpdate,
    RateQuote,
    ScreeningVerdict,
    Transfer,
    TransferPartner,
    TransferStatus,
)


class RateProvider(Protocol):
    async def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        """Raises RateProviderError on failure"""
        ...


class ComplianceScreener(Protocol):
    async def screen(self, check_type: CheckType, transfer: Transfer) -> ScreeningVerdict:
        ...


class PaymentVerifier(Protocol):
    async def verify(self, transfer: Transfer, proof: Dict[str, Any]) -> bool:
        """False for a rejected payment; raises PaymentVerificationError if unreachable"""
        ...


class PartnerGateway(Protocol):
    async def send(self, partner: TransferPartner, transfer: Transfer) -> DispatchResult:
        ...

    async def poll(self, partner: TransferPartner, transfer: Transfer) -> PartnerStatusUpdate:
        ...


class TransferRepository(Protocol):
    """Keyed transfer store; ``save`` is a compare-and-swap on status"""

    def add(self, transfer: Transfer) -> None:
        ...

    def get(self, transfer_id: str) -> Optional[Transfer]:
        ...

    def save(self, transfer: Transfer, expected_status: TransferStatus) -> None:
        """Raises StaleTransferError if the stored status != expected_status"""
        ...

    def list_created_between(self, start: datetime, end: datetime) -> List[Transfer]:
        ...

    def sum_sent_since(self, sender_id: str, payment_method: str, since: datetime) -> Decimal:
        """Volume of the sender's non-failed transfers on a method since ``since``"""
        ...
