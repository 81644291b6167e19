from __future__ import annotations

"""Session level composition of the chat client.

:class:`ChatService` is created once per application and handed to whatever
needs chat state.  It owns the store, the dispatcher, the connection and the
command surface and binds their lifetime to the authenticated session:
:meth:`ChatService.update_session` connects when both a user and a token are
present and tears everything down when either goes away.
"""

import logging
from typing import Any, Callable, List, Mapping

from pydantic import ValidationError

from .commands import CommandSurface
from .config import ClientConfig
from .connection import ConnectionManager, SocketFactory, Sleep
from .dispatcher import EventDispatcher
from .models import Chat, ConnectionState, Message, SessionUser
from .payloads import PayloadError, normalize_chats
from .rest import ChatApi, ChatApiError
from .store import ChatStore
from .typing_indicator import TypingIndicator

logger = logging.getLogger(__name__)

ApiFactory = Callable[[str, str], Any]


class ChatService:
    def __init__(
        self,
        config: ClientConfig,
        api_factory: ApiFactory | None = None,
        socket_factory: SocketFactory | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.config = config
        self.user: SessionUser | None = None
        self.store = ChatStore()
        self.dispatcher = EventDispatcher(self.store)
        self.connection = ConnectionManager(
            config, token="", socket_factory=socket_factory, sleep=sleep
        )
        self.connection.bind(self.dispatcher.handlers())
        self.connection.add_teardown(self.store.clear_session)
        self.commands = CommandSurface(self.connection, self.store)
        self._api_factory = api_factory or ChatApi

    @property
    def is_connected(self) -> bool:
        return self.connection.connected

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    # ---- lifecycle ----

    async def update_session(
        self, user: SessionUser | Mapping[str, Any] | None, token: str | None
    ) -> None:
        """Re-evaluate the session binding after the user or token changed."""
        session_user = self._coerce_user(user)
        if session_user is None or not token:
            if self.user is not None or self.connection.state is not ConnectionState.DISCONNECTED:
                logger.info("chat.session ended")
            await self.close()
            return

        user_changed = self.user is None or self.user.id != session_user.id
        token_changed = token != self.connection.token
        if user_changed or token_changed:
            await self.connection.disconnect()
            if user_changed:
                self.store.reset()
            logger.info(
                "chat.session start user=%s role=%s", session_user.id, session_user.role
            )

        self.user = session_user
        self.dispatcher.current_user_id = session_user.id
        self.connection.token = token
        await self.connection.connect()
        if user_changed or token_changed:
            await self.load_chats()

    async def close(self) -> None:
        await self.connection.disconnect()
        self.store.reset()
        self.user = None
        self.dispatcher.current_user_id = None
        self.connection.token = ""

    async def load_chats(self) -> List[Chat]:
        """Fetch the chat list over REST; failures leave an empty list."""
        if self.user is None:
            self.store.set_chats([])
            return []
        api = self._api_factory(self.config.api_base_url, self.connection.token)
        try:
            if self.user.is_admin:
                raw = await api.list_all_chats()
            else:
                raw = await api.list_chats()
            chats = normalize_chats(raw)
        except (ChatApiError, PayloadError) as exc:
            logger.error("chat.session load chats failed error=%s", exc)
            chats = []
        self.store.set_chats(chats)
        logger.info("chat.session loaded chats count=%s", len(chats))
        return chats

    # ---- helpers for UI consumers ----

    def typing_indicator(self, chat_id: str) -> TypingIndicator:
        return TypingIndicator(self.commands, chat_id)

    async def open_chat(self, chat_id: str) -> bool:
        """Join ``chat_id`` and acknowledge everything unread in it."""
        if not await self.commands.join_chat(chat_id):
            return False
        await self.mark_chat_read(chat_id)
        return True

    async def mark_chat_read(self, chat_id: str) -> bool:
        if self.user is None:
            return False
        ids = self.store.get_unread_message_ids(chat_id, self.user.id)
        if not ids:
            return False
        return await self.commands.mark_as_read(chat_id, ids)

    def get_chat_messages(self, chat_id: str) -> List[Message]:
        return self.store.get_chat_messages(chat_id)

    def get_sorted_messages(self, chat_id: str) -> List[Message]:
        return self.store.get_sorted_messages(chat_id)

    def get_typing_users_text(self, chat_id: str) -> str:
        return self.store.get_typing_users_text(chat_id)

    def is_user_online(self, user_id: str) -> bool:
        return self.store.is_user_online(user_id)

    def get_total_unread_count(self) -> int:
        return self.store.get_total_unread_count()

    @staticmethod
    def _coerce_user(user: SessionUser | Mapping[str, Any] | None) -> SessionUser | None:
        if user is None or isinstance(user, SessionUser):
            return user
        try:
            return SessionUser.model_validate(user)
        except ValidationError as exc:
            logger.warning("chat.session invalid user error=%s", exc)
            return None
