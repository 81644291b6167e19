from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from .connection import ConnectionManager
from .models import Attachment, MessageType
from .store import ChatStore

logger = logging.getLogger(__name__)


def _attachment_payload(item: Attachment | Mapping[str, Any]) -> dict:
    if isinstance(item, Attachment):
        return item.model_dump(by_alias=True, exclude_none=True)
    return dict(item)


class CommandSurface:
    """Outbound chat actions.

    Every command is dropped silently while the socket is not connected and
    reports whether it was sent.  Sent messages are not appended locally; they
    appear once the server echoes them back as ``new_message``.
    """

    def __init__(self, connection: ConnectionManager, store: ChatStore) -> None:
        self.connection = connection
        self.store = store

    async def join_chat(self, chat_id: str) -> bool:
        if not await self.connection.emit("join_chat", {"chatId": chat_id}):
            return False
        self.store.set_active_chat(chat_id)
        self.store.reset_unread(chat_id)
        return True

    async def leave_chat(self, chat_id: str) -> bool:
        if not await self.connection.emit("leave_chat", {"chatId": chat_id}):
            return False
        if self.store.active_chat == chat_id:
            self.store.clear_active_chat()
        return True

    async def send_message(
        self,
        chat_id: str,
        content: str,
        type: str = MessageType.TEXT.value,
        reply_to: Any = None,
        attachments: Iterable[Attachment | Mapping[str, Any]] | None = None,
    ) -> bool:
        """Send a message; blank content is allowed only with attachments."""
        files: List[dict] = [_attachment_payload(a) for a in attachments or []]
        text = (content or "").strip()
        if not text and not files:
            logger.debug("chat.command skip empty message chat=%s", chat_id)
            return False
        return await self.connection.emit(
            "send_message",
            {
                "chatId": chat_id,
                "content": text,
                "type": type,
                "replyTo": reply_to,
                "attachments": files,
            },
        )

    async def start_typing(self, chat_id: str) -> bool:
        return await self.connection.emit("typing_start", {"chatId": chat_id})

    async def stop_typing(self, chat_id: str) -> bool:
        return await self.connection.emit("typing_stop", {"chatId": chat_id})

    async def mark_as_read(self, chat_id: str, message_ids: Iterable[str]) -> bool:
        ids = list(message_ids)
        if not await self.connection.emit(
            "mark_as_read", {"chatId": chat_id, "messageIds": ids}
        ):
            return False
        self.store.reset_unread(chat_id)
        return True
