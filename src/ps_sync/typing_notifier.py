"""Debounced typing signal.

The first keystroke sends ``true``; further keystrokes only re-send it once the
heartbeat interval has passed, keeping the server flag fresh inside its
staleness window. After ``idle_timeout`` seconds without keystrokes an explicit
``false`` is sent.
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from src.ps_common.errors import AppError

logger = logging.getLogger(__name__)


class TypingNotifier:
    def __init__(
        self,
        send: Callable[[bool], Awaitable[None]],
        idle_timeout: float = 2.0,
        heartbeat: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._send = send
        self._idle_timeout = idle_timeout
        self._heartbeat = heartbeat
        self._clock = clock
        self._active = False
        self._last_sent = 0.0
        self._idle_task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._active

    async def keystroke(self) -> None:
        now = self._clock()
        if not self._active or now - self._last_sent >= self._heartbeat:
            await self._emit(True)
        self._rearm()

    async def stop(self) -> None:
        """Send ``false`` now (message sent, conversation left)."""
        self._cancel_idle()
        if self._active:
            await self._emit(False)

    def _rearm(self) -> None:
        self._cancel_idle()
        self._idle_task = asyncio.create_task(self._expire())

    def _cancel_idle(self) -> None:
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        self._idle_task = None

    async def _expire(self) -> None:
        await asyncio.sleep(self._idle_timeout)
        if self._active:
            await self._emit(False)

    async def _emit(self, is_typing: bool) -> None:
        self._active = is_typing
        self._last_sent = self._clock()
        try:
            await self._send(is_typing)
        except AppError as exc:
            # The server flag expires on its own, so a lost signal is harmless
            logger.warning("Typing signal %s not delivered: %s", is_typing, exc.message)
