"""Payment verifier HTTP client"""

from typing import Any, Dict

import httpx

from remit_gateway.config import settings
from remit_gateway.domain.exceptions import PaymentVerificationError
from remit_gateway.domain.models import Transfer


class HttpPaymentVerifier:
    """Confirms that the sender's pay-in actually arrived"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.payment_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def verify(self, transfer: Transfer, proof: Dict[str, Any]) -> bool:
        """
        Returns:
            True if the payment is confirmed, False if it was rejected

        Raises:
            PaymentVerificationError: If the verifier cannot give an answer
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/payments/verify",
                    json={
                        "transfer_id": transfer.id,
                        "tracking_number": transfer.tracking_number,
                        "amount": str(transfer.total_cost),
                        "currency": transfer.origin_currency,
                        "payment_method": transfer.payment_method,
                        "proof": proof,
                    },
                )
                response.raise_for_status()
                return bool(response.json()["verified"])

            except httpx.TimeoutException as e:
                raise PaymentVerificationError(f"Payment verifier timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PaymentVerificationError(f"Payment verifier error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PaymentVerificationError(f"Payment verifier unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PaymentVerificationError(f"Invalid verifier response: {e}") from e
