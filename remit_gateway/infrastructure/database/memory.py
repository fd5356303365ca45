"""In-process transfer store for local runs and tests"""

import copy
import threading
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from remit_gateway.domain.exceptions import DuplicateTransferError, StaleTransferError, TransferNotFoundError
from remit_gateway.domain.models import Transfer, TransferStatus
from remit_gateway.infrastructure.database.repositories import NON_COUNTING_STATUSES


class InMemoryTransferRepository:
    """
    Same contract as SqlTransferRepository. Transfers are copied in and out
    so that unsaved changes never leak into the store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._transfers: Dict[str, Transfer] = {}

    def add(self, transfer: Transfer) -> None:
        with self._lock:
            if transfer.id in self._transfers or any(
                t.tracking_number == transfer.tracking_number for t in self._transfers.values()
            ):
                raise DuplicateTransferError(f"Transfer {transfer.id} / {transfer.tracking_number} already exists")
            self._transfers[transfer.id] = copy.deepcopy(transfer)

    def get(self, transfer_id: str) -> Optional[Transfer]:
        with self._lock:
            stored = self._transfers.get(transfer_id)
            return copy.deepcopy(stored) if stored else None

    def save(self, transfer: Transfer, expected_status: TransferStatus) -> None:
        with self._lock:
            stored = self._transfers.get(transfer.id)
            if stored is None:
                raise TransferNotFoundError(f"Transfer {transfer.id} not found")
            if stored.status != expected_status:
                raise StaleTransferError(
                    f"Transfer {transfer.id} is {stored.status.value}, expected {expected_status.value}"
                )
            self._transfers[transfer.id] = copy.deepcopy(transfer)

    def list_created_between(self, start: datetime, end: datetime) -> List[Transfer]:
        with self._lock:
            matches = [t for t in self._transfers.values() if start <= t.created_at <= end]
        return [copy.deepcopy(t) for t in sorted(matches, key=lambda t: t.created_at)]

    def sum_sent_since(self, sender_id: str, payment_method: str, since: datetime) -> Decimal:
        with self._lock:
            return sum(
                (
                    t.send_amount
                    for t in self._transfers.values()
                    if t.sender_id == sender_id
                    and t.payment_method == payment_method
                    and t.created_at >= since
                    and t.status.value not in NON_COUNTING_STATUSES
                ),
                Decimal(0),
            )
