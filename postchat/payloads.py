from __future__ import annotations

"""Normalization of inbound socket and REST payloads.

Server payloads are not guaranteed to be complete.  Each payload shape has a
single function here which fills in defaults and converts the raw ``dict`` into
the pydantic models from :mod:`postchat.models`.  Explicit values always win
over the defaults; a value counts as explicit when it is present and not
``None``.
"""

import logging
import time
from datetime import datetime
from typing import Any, Iterable, List, Mapping

from pydantic import TypeAdapter, ValidationError

from .models import (
    Attachment,
    Chat,
    Message,
    OnlineUser,
    ReadReceipt,
    TypingUpdate,
    utcnow,
)

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "Unknown User"
DEFAULT_ATTACHMENT_NAME = "Attachment"

_timestamp = TypeAdapter(datetime)


class PayloadError(ValueError):
    """Raised when a payload cannot be normalized at all."""


def _require_mapping(raw: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise PayloadError(f"{kind} payload must be an object, got {type(raw).__name__}")
    return raw


def _fallback_id() -> str:
    return str(int(time.time() * 1000))


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return _timestamp.validate_python(value)
    except ValidationError:
        logger.debug("chat.payload unparseable timestamp value=%r", value)
        return None


def normalize_attachment(raw: Any) -> Attachment | None:
    """Return an :class:`Attachment`, or ``None`` when ``raw`` is unusable.

    ``fileName`` is accepted for ``filename`` and a missing name becomes
    :data:`DEFAULT_ATTACHMENT_NAME`.  An unparseable size is dropped.
    """
    if not isinstance(raw, Mapping):
        return None
    data = dict(raw)
    data["filename"] = (
        data.get("filename") or data.pop("fileName", None) or DEFAULT_ATTACHMENT_NAME
    )
    try:
        return Attachment.model_validate(data)
    except ValidationError:
        data.pop("fileSize", None)
    try:
        return Attachment.model_validate(data)
    except ValidationError as exc:
        logger.warning("chat.payload skip attachment error=%s", exc)
        return None


def normalize_message(raw: Any, chat_id: str | None = None) -> Message:
    """Return a :class:`Message` built from ``raw`` with defaults applied."""
    data = dict(_require_mapping(raw, "message"))
    defaults = {
        "_id": _fallback_id(),
        "senderId": data.get("senderId") or data.get("sender") or "",
        "senderName": UNKNOWN_SENDER,
        "content": "",
    }
    if chat_id is not None:
        defaults["chatId"] = chat_id
    for key, value in defaults.items():
        if data.get(key) is None:
            data[key] = value
    data["createdAt"] = _parse_timestamp(data.get("createdAt")) or utcnow()
    if isinstance(data["senderId"], Mapping):
        data["senderId"] = data["senderId"].get("_id") or ""
    if data.get("isRead") is None:
        data.pop("isRead", None)
    attachments = data.pop("attachments", None)
    if isinstance(attachments, list):
        data["attachments"] = [
            a for a in map(normalize_attachment, attachments) if a is not None
        ]
    try:
        return Message.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"invalid message: {exc}") from exc


def normalize_messages(raw: Any, chat_id: str | None = None) -> List[Message]:
    """Normalize a list of messages, skipping entries that cannot be parsed."""
    if not isinstance(raw, Iterable) or isinstance(raw, (str, bytes, Mapping)):
        raise PayloadError("messages payload must be a list")
    messages: List[Message] = []
    for item in raw:
        try:
            messages.append(normalize_message(item, chat_id))
        except PayloadError as exc:
            logger.warning("chat.payload skip message chat=%s error=%s", chat_id, exc)
    return messages


def normalize_chat(raw: Any) -> Chat:
    data = dict(_require_mapping(raw, "chat"))
    if not data.get("_id") and not data.get("id"):
        raise PayloadError("chat payload missing _id")
    chat_id = str(data.get("_id") or data.get("id"))
    data["_id"] = chat_id
    data.pop("id", None)
    last = data.get("lastMessage")
    if isinstance(last, Mapping):
        data["lastMessage"] = normalize_message(last, chat_id)
    elif last is not None:
        data.pop("lastMessage")
    participants = data.pop("participants", None)
    if isinstance(participants, list):
        # deleted users come back with a null userId
        data["participants"] = [
            p
            for p in participants
            if isinstance(p, Mapping) and p.get("userId") is not None
        ]
    if "lastActivity" in data:
        data["lastActivity"] = _parse_timestamp(data["lastActivity"])
    try:
        return Chat.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"invalid chat {chat_id}: {exc}") from exc


def normalize_chats(raw: Any) -> List[Chat]:
    if not isinstance(raw, list):
        raise PayloadError("chat list payload must be a list")
    chats: List[Chat] = []
    for item in raw:
        try:
            chats.append(normalize_chat(item))
        except PayloadError as exc:
            logger.warning("chat.payload skip chat error=%s", exc)
    return chats


def normalize_online_users(raw: Any) -> List[OnlineUser]:
    if not isinstance(raw, list):
        raise PayloadError("online users payload must be a list")
    users: List[OnlineUser] = []
    for item in raw:
        if not isinstance(item, Mapping) or item.get("userId") is None:
            continue
        try:
            users.append(OnlineUser.model_validate(item))
        except ValidationError as exc:
            logger.warning("chat.payload skip online user error=%s", exc)
    return users


def normalize_status_change(raw: Any) -> OnlineUser:
    data = _require_mapping(raw, "status change")
    try:
        return OnlineUser.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"invalid status change: {exc}") from exc


def normalize_typing(raw: Any) -> TypingUpdate:
    data = _require_mapping(raw, "typing")
    try:
        return TypingUpdate.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"invalid typing update: {exc}") from exc


def normalize_read_receipt(raw: Any) -> ReadReceipt:
    data = dict(_require_mapping(raw, "read receipt"))
    if data.get("messageIds") is None:
        data["messageIds"] = []
    try:
        return ReadReceipt.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"invalid read receipt: {exc}") from exc
