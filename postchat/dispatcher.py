from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict

from .payloads import (
    PayloadError,
    normalize_message,
    normalize_messages,
    normalize_online_users,
    normalize_read_receipt,
    normalize_status_change,
    normalize_typing,
)
from .store import ChatStore

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventDispatcher:
    """Apply inbound socket events to a :class:`ChatStore`.

    Every handler is wrapped so that a malformed payload is logged and dropped
    instead of propagating into the socket reader.
    """

    EVENTS = (
        "new_message",
        "chat_history",
        "user_typing",
        "user_stopped_typing",
        "online_users",
        "user_status_changed",
        "messages_read",
        "file_upload_progress",
        "new_notification",
        "error",
    )

    def __init__(self, store: ChatStore, current_user_id: str | None = None) -> None:
        self.store = store
        self.current_user_id = current_user_id

    def handlers(self) -> Dict[str, Handler]:
        return {name: self._wrap(name, getattr(self, f"on_{name}")) for name in self.EVENTS}

    def bind(self, socket: Any) -> None:
        for name, handler in self.handlers().items():
            socket.on(name, handler)

    def dispatch(self, event: str, data: Any = None) -> None:
        """Route ``event`` to its handler; unknown events are ignored."""
        if event not in self.EVENTS:
            logger.debug("chat.event ignored event=%s", event)
            return
        self._wrap(event, getattr(self, f"on_{event}"))(data)

    def _wrap(self, name: str, fn: Handler) -> Handler:
        @functools.wraps(fn)
        def handler(data: Any = None) -> None:
            try:
                fn(data)
            except PayloadError as exc:
                logger.warning("chat.event malformed event=%s error=%s", name, exc)
            except Exception:
                logger.exception("chat.event handler failed event=%s", name)

        return handler

    # ---- messages ----

    def on_new_message(self, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("chatId"):
            raise PayloadError("new_message without chatId")
        chat_id = str(data["chatId"])
        message = normalize_message(data.get("message") or {}, chat_id)
        self.store.append_message(chat_id, message)
        if (
            self.store.active_chat != chat_id
            and message.sender_id != self.current_user_id
        ):
            self.store.increment_unread(chat_id)
        self.store.patch_chat_activity(chat_id, message)
        logger.debug(
            "chat.event new_message chat=%s id=%s unread=%s",
            chat_id,
            message.id,
            self.store.get_unread_count(chat_id),
        )

    def on_chat_history(self, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("chatId"):
            raise PayloadError("chat_history without chatId")
        chat_id = str(data["chatId"])
        messages = normalize_messages(data.get("messages") or [], chat_id)
        self.store.replace_messages(chat_id, messages)
        logger.debug("chat.event chat_history chat=%s count=%s", chat_id, len(messages))

    def on_messages_read(self, data: Any) -> None:
        receipt = normalize_read_receipt(data)
        changed = self.store.mark_messages_read(
            receipt.chat_id, receipt.message_ids, receipt.read_by
        )
        logger.debug(
            "chat.event messages_read chat=%s reader=%s changed=%s",
            receipt.chat_id,
            receipt.read_by,
            changed,
        )

    # ---- typing ----

    def on_user_typing(self, data: Any) -> None:
        update = normalize_typing(data)
        self.store.set_typing(update.chat_id, update.user_id, update.user_name)

    def on_user_stopped_typing(self, data: Any) -> None:
        update = normalize_typing(data)
        self.store.clear_typing(update.chat_id, update.user_id)

    # ---- presence ----

    def on_online_users(self, data: Any) -> None:
        users = normalize_online_users(data)
        self.store.set_online_users(users)
        logger.debug("chat.event online_users count=%s", len(users))

    def on_user_status_changed(self, data: Any) -> None:
        change = normalize_status_change(data)
        if not self.store.patch_user_status(change.user_id, change.status):
            logger.debug("chat.event status for unknown user=%s", change.user_id)

    # ---- misc ----

    def on_file_upload_progress(self, data: Any) -> None:
        logger.info("chat.event file_upload_progress data=%s", data)

    def on_new_notification(self, data: Any) -> None:
        self.store.add_notification(data)

    def on_error(self, data: Any) -> None:
        # Application level socket errors never change connection state.
        logger.error("chat.socket error data=%s", data)
