from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from .models import Chat, Message, OnlineUser, utcnow

logger = logging.getLogger(__name__)

ONLINE = "online"


class ChatStore:
    """In-memory view of chats, messages and presence for one session.

    The dispatcher and the command surface are the only writers.  UI code
    reads through the ``get_*``/``is_*`` accessors, which never hand out
    ``None`` for a collection.
    """

    def __init__(self) -> None:
        self.chats: List[Chat] = []
        self.active_chat: str | None = None
        self.messages: Dict[str, List[Message]] = {}
        self.online_users: List[OnlineUser] = []
        self.typing_users: Dict[str, Dict[str, str]] = {}
        self.unread_counts: Dict[str, int] = {}
        self.notifications: List[Any] = []

    # ---- accessors ----

    def get_chat(self, chat_id: str) -> Chat | None:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    def get_chat_messages(self, chat_id: str) -> List[Message]:
        return self.messages.get(chat_id, [])

    def get_sorted_messages(self, chat_id: str) -> List[Message]:
        """Messages of ``chat_id`` in render order (oldest first).

        Arrival order is not trusted; the sort is stable so messages with equal
        timestamps keep the order they were received in.
        """
        return sorted(self.get_chat_messages(chat_id), key=lambda m: m.created_at)

    def get_typing_users_text(self, chat_id: str) -> str:
        users = list(self.typing_users.get(chat_id, {}).values())
        if not users:
            return ""
        if len(users) == 1:
            return f"{users[0]} is typing..."
        if len(users) == 2:
            return f"{users[0]} and {users[1]} are typing..."
        return f"{users[0]} and {len(users) - 1} others are typing..."

    def is_user_online(self, user_id: str) -> bool:
        return any(
            u.user_id == user_id and u.status == ONLINE for u in self.online_users
        )

    def get_unread_count(self, chat_id: str) -> int:
        return self.unread_counts.get(chat_id, 0)

    def get_total_unread_count(self) -> int:
        return sum(self.unread_counts.values())

    def get_unread_message_ids(self, chat_id: str, user_id: str) -> List[str]:
        return [
            m.id for m in self.get_chat_messages(chat_id) if not m.is_read_by(user_id)
        ]

    # ---- chats ----

    def set_chats(self, chats: Iterable[Chat]) -> None:
        self.chats = list(chats)

    def patch_chat_activity(self, chat_id: str, message: Message) -> None:
        """Update the last message snapshot of a chat without reordering."""
        chat = self.get_chat(chat_id)
        if chat is None:
            return
        chat.last_message = message
        chat.last_activity = utcnow()

    def set_active_chat(self, chat_id: str) -> None:
        self.active_chat = chat_id

    def clear_active_chat(self) -> None:
        self.active_chat = None

    # ---- messages ----

    def append_message(self, chat_id: str, message: Message) -> None:
        self.messages.setdefault(chat_id, []).append(message)

    def replace_messages(self, chat_id: str, messages: Iterable[Message]) -> None:
        self.messages[chat_id] = list(messages)

    def mark_messages_read(
        self, chat_id: str, message_ids: Iterable[str], reader_id: str
    ) -> int:
        """Add ``reader_id`` to the read-by list of the given messages.

        Returns the number of messages that changed.  A reader already on a
        message's list is not added again.
        """
        wanted = set(message_ids)
        changed = 0
        for message in self.messages.get(chat_id, []):
            if message.id in wanted and reader_id not in message.read_by:
                message.read_by.append(reader_id)
                changed += 1
        return changed

    # ---- typing ----

    def set_typing(self, chat_id: str, user_id: str, user_name: str) -> None:
        self.typing_users.setdefault(chat_id, {})[user_id] = user_name

    def clear_typing(self, chat_id: str, user_id: str) -> None:
        self.typing_users.get(chat_id, {}).pop(user_id, None)

    # ---- presence ----

    def set_online_users(self, users: Iterable[OnlineUser]) -> None:
        self.online_users = list(users)

    def patch_user_status(self, user_id: str, status: str) -> bool:
        found = False
        for user in self.online_users:
            if user.user_id == user_id:
                user.status = status
                found = True
        return found

    # ---- unread ----

    def increment_unread(self, chat_id: str) -> None:
        self.unread_counts[chat_id] = self.unread_counts.get(chat_id, 0) + 1

    def reset_unread(self, chat_id: str) -> None:
        self.unread_counts[chat_id] = 0

    # ---- notifications ----

    def add_notification(self, notification: Any) -> None:
        self.notifications.insert(0, notification)

    # ---- lifecycle ----

    def clear_session(self) -> None:
        """Drop socket-scoped state after a disconnect."""
        self.messages.clear()
        self.online_users = []
        self.typing_users.clear()
        logger.debug("chat.store cleared session state")

    def reset(self) -> None:
        """Forget everything, used when the user logs out."""
        self.clear_session()
        self.chats = []
        self.active_chat = None
        self.unread_counts.clear()
        self.notifications = []
