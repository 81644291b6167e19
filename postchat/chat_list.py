from __future__ import annotations

"""Helpers for presenting the chat list.

These are pure functions over the store's data: filtering by search text and
tab, role based visibility, ordering and participant naming.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Sequence

from .models import Chat, Message, MessageType, Participant

UNKNOWN_USER = "Unknown User"
NO_MESSAGES = "No messages yet"
FILTERS = ("all", "unread", "order", "support")
BADGE_LIMIT = 99
PREVIEW_LENGTH = 25

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _matches_query(chat: Chat, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    if any(needle in p.display_name.lower() for p in chat.participants):
        return True
    last = chat.last_message
    return bool(last and needle in last.content.lower())


def filter_chats(
    chats: Iterable[Chat],
    query: str = "",
    selected_filter: str = "all",
    unread_counts: Mapping[str, int] | None = None,
) -> List[Chat]:
    unread_counts = unread_counts or {}
    result = []
    for chat in chats:
        if not _matches_query(chat, query):
            continue
        if selected_filter == "unread" and unread_counts.get(chat.id, 0) <= 0:
            continue
        if selected_filter in ("order", "support") and chat.type != selected_filter:
            continue
        result.append(chat)
    return result


def _activity(chat: Chat) -> datetime:
    if chat.last_message is not None:
        return chat.last_message.created_at
    if chat.last_activity is not None:
        return chat.last_activity
    return _EPOCH


def sort_chats(
    chats: Iterable[Chat], unread_counts: Mapping[str, int] | None = None
) -> List[Chat]:
    """Chats with unread messages first, then newest last message first.

    Chats without a last message fall back to ``last_activity``.
    """
    unread_counts = unread_counts or {}
    return sorted(
        chats,
        key=lambda c: (unread_counts.get(c.id, 0) <= 0, -_activity(c).timestamp()),
    )


def chats_for_role(chats: Iterable[Chat], role: str | None) -> List[Chat]:
    chats = list(chats)
    if role in ("publisher", "advertiser"):
        return [
            c
            for c in chats
            if c.type == "order" or any(p.role == role for p in c.participants)
        ]
    return chats


def find_participant(chat: Chat | None, user_id: str) -> Participant | None:
    if chat is None:
        return None
    for participant in chat.participants:
        if participant.user_id == user_id:
            return participant
    return None


def other_participant_name(chat: Chat | None, user_id: str) -> str:
    """Title for a chat as seen by ``user_id``."""
    if chat is None or not chat.participants:
        return "Chat"
    for participant in chat.participants:
        if participant.user_id != user_id:
            return participant.display_name or "User"
    me = find_participant(chat, user_id)
    if me is not None:
        return me.display_name or "User"
    return "Chat"


def participant_name(
    chat: Chat | None, user_id: str, messages: Sequence[Message] = ()
) -> str:
    participant = find_participant(chat, user_id)
    if participant is not None and participant.display_name:
        return participant.display_name
    for message in messages:
        if message.sender_id == user_id and message.sender_name:
            return message.sender_name
    return UNKNOWN_USER


def last_message_preview(message: Message | None) -> str:
    if message is None:
        return NO_MESSAGES
    if message.type == MessageType.FILE.value:
        name = message.attachments[0].filename if message.attachments else ""
        return f"\N{PAPERCLIP} {name or 'File'}"
    if message.type == "image":
        return "\N{CAMERA} Image"
    content = message.content or ""
    if len(content) > PREVIEW_LENGTH:
        return f"{content[:PREVIEW_LENGTH]}..."
    return content


def format_unread_badge(count: int) -> str:
    if count <= 0:
        return ""
    if count > BADGE_LIMIT:
        return f"{BADGE_LIMIT}+"
    return str(count)
