"""HTTP client for the external payment gateway.

Only two calls are made: open a payment (returns the redirect the customer
follows) and request a refund to the original payment method. Confirmation of
both arrives later through the payment webhook.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from config.settings import settings
from src.ps_common.errors import ExternalServiceUnavailableError

logger = logging.getLogger(__name__)

_SERVICE = "payment_gateway"


@dataclass(frozen=True)
class PaymentRedirect:
    redirect_url: str
    transaction_ref: str | None = None


class PaymentGatewayProtocol(Protocol):
    async def create_payment(
        self, order_id: str, amount: int, description: str
    ) -> PaymentRedirect: ...

    async def request_refund(self, order_id: str, amount: int, refund_id: str) -> None: ...


class HttpPaymentGateway:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (settings.PAYMENT_GATEWAY_URL if base_url is None else base_url).rstrip("/")
        self._timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self._transport = transport

    async def _post(self, path: str, body: dict, headers: dict[str, str] | None = None) -> dict:
        if not self._base_url:
            raise ExternalServiceUnavailableError(_SERVICE, "not configured")
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(path, json=body, headers=headers)
                resp.raise_for_status()
                data = resp.json() if resp.content else {}
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.error("Payment gateway %s failed: %s", path, exc)
            raise ExternalServiceUnavailableError(_SERVICE, str(exc)) from exc
        if not isinstance(data, dict):
            raise ExternalServiceUnavailableError(_SERVICE, "response is not a JSON object")
        return data

    async def create_payment(
        self, order_id: str, amount: int, description: str
    ) -> PaymentRedirect:
        data = await self._post(
            "/payments",
            {
                "order_id": order_id,
                "amount": amount,
                "currency": settings.CURRENCY,
                "description": description,
            },
        )
        redirect_url = data.get("redirect_url")
        if not redirect_url:
            raise ExternalServiceUnavailableError(_SERVICE, "response without redirect_url")
        return PaymentRedirect(redirect_url=redirect_url, transaction_ref=data.get("transaction_ref"))

    async def request_refund(self, order_id: str, amount: int, refund_id: str) -> None:
        # Idempotency-Key lets a retried settlement re-send the same refund safely
        await self._post(
            "/refunds",
            {"order_id": order_id, "amount": amount, "currency": settings.CURRENCY},
            headers={"Idempotency-Key": refund_id},
        )
