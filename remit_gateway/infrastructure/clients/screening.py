"""Compliance screening provider HTTP client"""

from typing import Any, Dict

import httpx

from remit_gateway.config import settings
from remit_gateway.domain.exceptions import ScreeningError
from remit_gateway.domain.models import CheckStatus, CheckType, ScreeningVerdict, Transfer


def screening_payload(transfer: Transfer) -> Dict[str, Any]:
    return {
        "transfer_id": transfer.id,
        "sender_id": transfer.sender_id,
        "recipient_name": transfer.recipient.name,
        "origin_country": transfer.origin_country,
        "destination_country": transfer.destination_country,
        "send_amount": str(transfer.send_amount),
        "currency": transfer.origin_currency,
        "compliance_level": transfer.compliance_level.value,
        "purpose": transfer.purpose,
        "source_of_funds": transfer.source_of_funds,
    }


class HttpScreeningClient:
    """Client for the external AML / sanctions / PEP / tax screening API"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.screening_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def screen(self, check_type: CheckType, transfer: Transfer) -> ScreeningVerdict:
        """
        Request a scored verdict for one check.

        Raises:
            ScreeningError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/screening/{check_type.value}",
                    json=screening_payload(transfer),
                )
                response.raise_for_status()
                data = response.json()

                return ScreeningVerdict(
                    status=CheckStatus(data["status"]),
                    risk_score=float(data["risk_score"]),
                    flags=tuple(data.get("flags", [])),
                    detail=data.get("detail"),
                )

            except httpx.TimeoutException as e:
                raise ScreeningError(f"Screening API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ScreeningError(f"Screening API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ScreeningError(f"Screening API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise ScreeningError(f"Invalid screening verdict: {e}") from e
