"""Exchange rate providers"""

from decimal import Decimal
from typing import Dict

import httpx

from remit_gateway.config import settings
from remit_gateway.domain.catalog import CurrencyRegistry
from remit_gateway.domain.exceptions import RateProviderError
from remit_gateway.domain.models import RateQuote


class HttpRateProvider:
    """Client for the external FX rate API"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.rate_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        """
        Fetch the current rate for one ordered pair.

        Raises:
            RateProviderError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/rates",
                    params={"from": from_currency, "to": to_currency},
                )
                response.raise_for_status()
                data = response.json()

                inverse = data.get("inverse_rate")
                return RateQuote(
                    rate=Decimal(str(data["rate"])),
                    inverse_rate=Decimal(str(inverse)) if inverse is not None else None,
                    source=data.get("source", "unknown"),
                    spread=Decimal(str(data.get("spread", 0))),
                    is_live=bool(data.get("is_live", True)),
                )

            except httpx.TimeoutException as e:
                raise RateProviderError(f"Rate API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise RateProviderError(f"Rate API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise RateProviderError(f"Rate API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, ArithmeticError) as e:
                raise RateProviderError(f"Invalid rate data from provider: {e}") from e


class StaticRateProvider:
    """Cross rates derived from each currency's units-per-USD reference rate"""

    def __init__(self, units_per_usd: Dict[str, Decimal], source: str = "reference", spread: Decimal = Decimal("0.01")):
        self.units_per_usd = units_per_usd
        self.source = source
        self.spread = spread

    @classmethod
    def from_registry(cls, currencies: CurrencyRegistry) -> "StaticRateProvider":
        return cls({c.code: c.reference_rate for c in currencies.list_all()})

    async def fetch_rate(self, from_currency: str, to_currency: str) -> RateQuote:
        try:
            from_units = self.units_per_usd[from_currency]
            to_units = self.units_per_usd[to_currency]
        except KeyError as e:
            raise RateProviderError(f"No reference rate for {e.args[0]}") from e

        if from_units <= 0 or to_units <= 0:
            raise RateProviderError(f"Non-positive reference rate for {from_currency}-{to_currency}")

        return RateQuote(
            rate=to_units / from_units,
            inverse_rate=from_units / to_units,
            source=self.source,
            spread=self.spread,
            is_live=False,
        )

