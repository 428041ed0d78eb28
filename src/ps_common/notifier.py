"""Fire-and-forget notifications to the shop's notification webhook.

The webhook fans out to email / in-app notifications. A failure here never
fails the business operation that triggered it: it is logged and dropped.
"""

import logging
from typing import Any, Protocol

import httpx

from config.settings import settings
from src.ps_common.datetime_utils import utc_now
from src.ps_common.enums import NotificationKind

logger = logging.getLogger(__name__)


class NotifierProtocol(Protocol):
    async def notify(
        self, kind: NotificationKind, user_id: str, order_id: str, payload: dict[str, Any]
    ) -> None: ...


class WebhookNotifier:
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = settings.NOTIFY_WEBHOOK_URL if url is None else url
        self._timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self._transport = transport

    async def notify(
        self, kind: NotificationKind, user_id: str, order_id: str, payload: dict[str, Any]
    ) -> None:
        if not self._url:
            logger.debug("Notification %s for order %s skipped: no webhook configured", kind.value, order_id)
            return
        body = {
            "kind": kind.value,
            "user_id": user_id,
            "order_id": order_id,
            "payload": payload,
            "sent_at": utc_now().isoformat(),
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=body)
                resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "Notification %s for order %s not delivered: %s", kind.value, order_id, exc
            )
