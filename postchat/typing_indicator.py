from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .commands import CommandSurface

logger = logging.getLogger(__name__)

TYPING_IDLE_TIMEOUT = 2.0  # seconds


class TypingIndicator:
    """Debounce keystrokes of one chat input into typing start/stop events.

    The first keystroke of a burst emits ``typing_start``.  Every keystroke
    re-arms an idle timer; when it expires ``typing_stop`` is emitted.
    """

    def __init__(
        self,
        commands: CommandSurface,
        chat_id: str,
        idle_timeout: float = TYPING_IDLE_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.commands = commands
        self.chat_id = chat_id
        self.idle_timeout = idle_timeout
        self.is_typing = False
        self._sleep = sleep or asyncio.sleep
        self._timer: asyncio.Task | None = None

    async def keystroke(self) -> None:
        if not self.is_typing:
            self.is_typing = True
            await self.commands.start_typing(self.chat_id)
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._expire())

    async def stop(self) -> None:
        """End the burst now, e.g. right after a message was sent."""
        self._cancel_timer()
        if self.is_typing:
            self.is_typing = False
            await self.commands.stop_typing(self.chat_id)

    def close(self) -> None:
        self._cancel_timer()
        self.is_typing = False

    async def _expire(self) -> None:
        await self._sleep(self.idle_timeout)
        self._timer = None
        self.is_typing = False
        logger.debug("chat.typing idle chat=%s", self.chat_id)
        await self.commands.stop_typing(self.chat_id)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
