"""Settlement partner gateway HTTP client"""

from datetime import datetime

import httpx

from remit_gateway.config import settings
from remit_gateway.domain.exceptions import PartnerGatewayError, PartnerTimeoutError
from remit_gateway.domain.models import DispatchResult, PartnerStatusUpdate, Transfer, TransferPartner
from remit_gateway.infrastructure.observability.metrics import partner_dispatch_latency_histogram
from remit_gateway.utils.date_utils import ensure_utc


class HttpPartnerGateway:
    """Client for partner payout APIs, routed by partner id"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.partner_api_base
        self.timeout = timeout or settings.partner_timeout_seconds

    async def send(self, partner: TransferPartner, transfer: Transfer) -> DispatchResult:
        """
        Hand a paid transfer to a partner for final-mile delivery.

        A 4xx response is a rejection (success=False). Timeouts raise
        PartnerTimeoutError since the partner may still have accepted it.

        Raises:
            PartnerTimeoutError: On timeout
            PartnerGatewayError: On 5xx, network failure, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with partner_dispatch_latency_histogram.time():
                    response = await client.post(
                        f"{self.base_url}/partners/{partner.id}/transfers",
                        json={
                            "transfer_id": transfer.id,
                            "tracking_number": transfer.tracking_number,
                            "destination_country": transfer.destination_country,
                            "currency": transfer.destination_currency,
                            "amount": str(transfer.receive_amount),
                            "delivery_method": transfer.delivery_method,
                            "recipient": {
                                "name": transfer.recipient.name,
                                "phone_number": transfer.recipient.phone_number,
                                "account_number": transfer.recipient.account_number,
                                "swift_code": transfer.recipient.swift_code,
                                "address": transfer.recipient.address,
                            },
                        },
                    )

                if 400 <= response.status_code < 500:
                    return DispatchResult(success=False, message=f"Partner rejected transfer: {response.text}")
                response.raise_for_status()
                data = response.json()

                return DispatchResult(
                    success=bool(data["success"]),
                    partner_reference=data.get("partner_reference"),
                    message=data.get("message"),
                )

            except httpx.TimeoutException as e:
                raise PartnerTimeoutError(f"Partner {partner.id} timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PartnerGatewayError(f"Partner {partner.id} error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PartnerGatewayError(f"Partner {partner.id} unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PartnerGatewayError(f"Invalid response from partner {partner.id}: {e}") from e

    async def poll(self, partner: TransferPartner, transfer: Transfer) -> PartnerStatusUpdate:
        """Fetch the partner's view of a dispatched transfer"""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}/partners/{partner.id}/transfers/{transfer.id}")
                if response.status_code == 404:
                    return PartnerStatusUpdate(status="not_found")
                response.raise_for_status()
                data = response.json()

                delivered_at = data.get("delivered_at")
                return PartnerStatusUpdate(
                    status=data["status"],
                    partner_reference=data.get("partner_reference"),
                    delivered_at=ensure_utc(datetime.fromisoformat(delivered_at)) if delivered_at else None,
                    message=data.get("message"),
                )

            except httpx.TimeoutException as e:
                raise PartnerTimeoutError(f"Partner {partner.id} poll timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PartnerGatewayError(f"Partner {partner.id} poll error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PartnerGatewayError(f"Partner {partner.id} unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PartnerGatewayError(f"Invalid status from partner {partner.id}: {e}") from e
