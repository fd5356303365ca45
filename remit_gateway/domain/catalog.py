"""Currency registry and corridor catalog.

Both tables are loaded from configuration, read-mostly, and replaced
wholesale by ``reload``. Readers always see either the old or the new table.
"""

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from remit_gateway.domain.exceptions import CorridorUnavailableError, NotFoundError
from remit_gateway.domain.models import Currency, PaymentCorridor


class CurrencyRegistry:
    """Supported currencies keyed by ISO code"""

    def __init__(self, currencies: Iterable[Currency] = ()):
        self._lock = threading.RLock()
        self._currencies: Dict[str, Currency] = {}
        self.reload(currencies)

    def reload(self, currencies: Iterable[Currency]) -> None:
        table = {c.code: c for c in currencies}
        with self._lock:
            self._currencies = table

    def get(self, code: str) -> Currency:
        with self._lock:
            currency = self._currencies.get(code)
        if currency is None:
            raise NotFoundError(f"Currency {code} is not supported")
        return currency

    def codes(self) -> List[str]:
        with self._lock:
            return list(self._currencies)

    def list_all(self) -> List[Currency]:
        with self._lock:
            return list(self._currencies.values())

    def pairs(self) -> List[Tuple[str, str]]:
        """Every ordered pair of distinct registered currencies"""
        codes = self.codes()
        return [(a, b) for a in codes for b in codes if a != b]


class CorridorCatalog:
    """Enabled (origin, destination) lanes"""

    def __init__(self, corridors: Iterable[PaymentCorridor] = ()):
        self._lock = threading.RLock()
        self._corridors: Dict[Tuple[str, str], PaymentCorridor] = {}
        self.reload(corridors)

    def reload(self, corridors: Iterable[PaymentCorridor]) -> None:
        table = {(c.origin_country, c.destination_country): c for c in corridors}
        with self._lock:
            self._corridors = table

    def find(self, origin_country: str, destination_country: str) -> Optional[PaymentCorridor]:
        with self._lock:
            return self._corridors.get((origin_country, destination_country))

    def resolve(self, origin_country: str, destination_country: str) -> PaymentCorridor:
        """
        Look up an active corridor.

        Raises:
            CorridorUnavailableError: If the corridor is missing or inactive
        """
        corridor = self.find(origin_country, destination_country)
        if corridor is None or not corridor.is_active:
            raise CorridorUnavailableError(
                f"Transfer corridor {origin_country}-{destination_country} not available"
            )
        return corridor

    def list_active(self) -> List[PaymentCorridor]:
        with self._lock:
            return [c for c in self._corridors.values() if c.is_active]
