"""Settlement partner directory and selection"""

import dataclasses
import threading
from typing import Dict, Iterable, List, Optional

from remit_gateway.domain.exceptions import PartnerNotFoundError, ValidationError
from remit_gateway.domain.models import Transfer, TransferPartner


def is_eligible(partner: TransferPartner, transfer: Transfer) -> bool:
    """Active and covering both legs: both countries and both currencies"""
    return (
        partner.is_active
        and transfer.origin_country in partner.countries
        and transfer.destination_country in partner.countries
        and transfer.origin_currency in partner.currencies
        and transfer.destination_currency in partner.currencies
    )


def select_partner(partners: Iterable[TransferPartner], transfer: Transfer) -> Optional[TransferPartner]:
    """
    Pick the eligible partner maximizing trust_score * success_rate.

    Ties keep the earliest partner in iteration order, so the result is
    deterministic for an insertion-ordered directory.
    """
    best: Optional[TransferPartner] = None
    for partner in partners:
        if not is_eligible(partner, transfer):
            continue
        if best is None or partner.ranking_score > best.ranking_score:
            best = partner
    return best


class PartnerDirectory:
    """Insertion-ordered partner table owned by the service"""

    def __init__(self, partners: Iterable[TransferPartner] = ()):
        self._lock = threading.RLock()
        self._partners: Dict[str, TransferPartner] = {}
        self.reload(partners)

    def reload(self, partners: Iterable[TransferPartner]) -> None:
        table = {p.id: p for p in partners}
        with self._lock:
            self._partners = table

    def get(self, partner_id: str) -> TransferPartner:
        with self._lock:
            partner = self._partners.get(partner_id)
        if partner is None:
            raise PartnerNotFoundError(f"Partner {partner_id} not found")
        return partner

    def list_all(self) -> List[TransferPartner]:
        with self._lock:
            return list(self._partners.values())

    def list_active(self) -> List[TransferPartner]:
        return [p for p in self.list_all() if p.is_active]

    def select(self, transfer: Transfer) -> Optional[TransferPartner]:
        return select_partner(self.list_all(), transfer)

    def update_success_rate(self, partner_id: str, success_rate: float) -> TransferPartner:
        """Out-of-band performance update; replaces the entry in place"""
        if not 0 <= success_rate <= 100:
            raise ValidationError("success_rate must be between 0 and 100")
        with self._lock:
            partner = self.get(partner_id)
            updated = dataclasses.replace(partner, success_rate=success_rate)
            self._partners[partner_id] = updated
        return updated
