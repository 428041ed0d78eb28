"""HTTP client for the support/order API, used by the sync session.

Unwraps the ``ApiResponse`` envelope. Transport failures and non-zero codes
become ExternalServiceUnavailableError / AppError so callers handle one family.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.ps_common.errors import AppError, ExternalServiceUnavailableError
from src.ps_sync.snapshot import ConversationSnapshot, MessageSnapshot, OrderSnapshot

logger = logging.getLogger(__name__)

_SERVICE = "support_api"


class SupportApiClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout or settings.EXTERNAL_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SupportApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalServiceUnavailableError(_SERVICE, str(exc)) from exc
        logger.debug("%s %s -> %d", method, path, resp.status_code)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ExternalServiceUnavailableError(_SERVICE, f"HTTP {resp.status_code}") from exc
        code = payload.get("code", 0) if isinstance(payload, dict) else 0
        if resp.is_error or code != 0:
            message = payload.get("message", resp.reason_phrase) if isinstance(payload, dict) else ""
            raise AppError(code or resp.status_code, message, resp.status_code)
        return payload.get("data")

    async def list_conversations(self) -> list[ConversationSnapshot]:
        data = await self._request("GET", "/conversations")
        return [ConversationSnapshot.from_api(c) for c in data]

    async def list_messages(
        self, conversation_id: str
    ) -> tuple[ConversationSnapshot, list[MessageSnapshot]]:
        data = await self._request("GET", f"/conversations/{conversation_id}/messages")
        return (
            ConversationSnapshot.from_api(data["conversation"]),
            [MessageSnapshot.from_api(m) for m in data["messages"]],
        )

    async def list_orders(self, limit: int = 100) -> list[OrderSnapshot]:
        data = await self._request("GET", "/orders", params={"limit": limit})
        return [OrderSnapshot.from_api(o) for o in data["items"]]

    async def send_message(
        self, conversation_id: str, body: str, attachments: list[dict[str, Any]] | None = None
    ) -> MessageSnapshot:
        data = await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            json={"body": body, "attachments": attachments or []},
        )
        return MessageSnapshot.from_api(data)

    async def mark_read(self, conversation_id: str) -> ConversationSnapshot:
        data = await self._request("POST", f"/conversations/{conversation_id}/read")
        return ConversationSnapshot.from_api(data)

    async def set_typing(self, conversation_id: str, is_typing: bool) -> None:
        await self._request(
            "POST", f"/conversations/{conversation_id}/typing", json={"is_typing": is_typing}
        )
