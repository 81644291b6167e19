from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, extra="allow", coerce_numbers_to_str=True
    )


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ChatType(str, Enum):
    ORDER = "order"
    SUPPORT = "support"


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"


# ---- Messages ----


class Attachment(CamelModel):
    filename: str
    file_type: Optional[str] = Field(default=None, alias="fileType")
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    url: Optional[str] = None


class Message(CamelModel):
    """A chat message as mirrored from the server.

    ``read_by`` is the read-by list; on the wire it travels as ``isRead``.
    """

    id: str = Field(alias="_id")
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    sender_id: str = Field(default="", alias="senderId")
    sender_name: str = Field(default="Unknown User", alias="senderName")
    content: str = ""
    type: str = MessageType.TEXT.value
    reply_to: Optional[Any] = Field(default=None, alias="replyTo")
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    read_by: List[str] = Field(default_factory=list, alias="isRead")

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_read_by(self, user_id: str) -> bool:
        return user_id in self.read_by


# ---- Chats ----


class Participant(CamelModel):
    """Chat participant.

    The server sends ``userId`` either as a bare id or as a populated user
    document with ``_id``/``firstName``/``lastName``; both are flattened here.
    """

    user_id: str = Field(alias="userId")
    role: Optional[str] = None
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")

    @model_validator(mode="before")
    @classmethod
    def _flatten_user(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        user = data.get("userId")
        if isinstance(user, dict):
            data = dict(data)
            data["userId"] = str(user.get("_id") or user.get("id") or "")
            data["firstName"] = data.get("firstName") or user.get("firstName") or ""
            data["lastName"] = data.get("lastName") or user.get("lastName") or ""
        elif user is not None:
            data = dict(data)
            data["userId"] = str(user)
        return data

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Chat(CamelModel):
    id: str = Field(alias="_id")
    type: str = ChatType.ORDER.value
    participants: List[Participant] = Field(default_factory=list)
    last_message: Optional[Message] = Field(default=None, alias="lastMessage")
    last_activity: Optional[datetime] = Field(default=None, alias="lastActivity")

    @field_validator("last_activity")
    @classmethod
    def _last_activity_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


# ---- Session ----


class SessionUser(CamelModel):
    """The authenticated user the chat session belongs to."""

    id: str = Field(alias="_id")
    role: Optional[str] = None
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ---- Presence ----


class OnlineUser(CamelModel):
    user_id: str = Field(alias="userId")
    status: str = "offline"


class TypingUpdate(CamelModel):
    chat_id: str = Field(alias="chatId")
    user_id: str = Field(alias="userId")
    user_name: str = Field(default="", alias="userName")


class ReadReceipt(CamelModel):
    chat_id: str = Field(alias="chatId")
    message_ids: List[str] = Field(default_factory=list, alias="messageIds")
    read_by: str = Field(alias="readBy")
