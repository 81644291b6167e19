import asyncio

from postchat.config import ClientConfig
from postchat.models import ConnectionState
from postchat.rest import ChatApiError
from postchat.service import ChatService


class StubApi:
    instances = []

    def __init__(self, base_url, token, chats=None, fail=False):
        self.base_url = base_url
        self.token = token
        self.chats = chats if chats is not None else [{"_id": "c1"}, {"_id": "c2"}]
        self.fail = fail
        self.calls = []
        StubApi.instances.append(self)

    async def list_chats(self):
        self.calls.append("list_chats")
        if self.fail:
            raise ChatApiError("boom", 500)
        return self.chats

    async def list_all_chats(self, params=None):
        self.calls.append("list_all_chats")
        if self.fail:
            raise ChatApiError("boom", 500)
        return self.chats + [{"_id": "c3"}]


def _service(socket_factory, **api_kwargs):
    StubApi.instances = []

    def factory(base_url, token):
        return StubApi(base_url, token, **api_kwargs)

    cfg = ClientConfig(api_base_url="http://chat.test/api/v1")
    return ChatService(cfg, api_factory=factory, socket_factory=socket_factory)


USER = {"_id": "me", "role": "publisher"}


def test_session_connects_and_loads_chats(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")

        assert service.is_connected
        assert socket_factory.last.connect_calls[0][1] == {"token": "tok"}
        assert [c.id for c in service.store.chats] == ["c1", "c2"]
        api = StubApi.instances[-1]
        assert (api.base_url, api.token, api.calls) == (
            "http://chat.test/api/v1",
            "tok",
            ["list_chats"],
        )

    asyncio.run(_run())


def test_admin_loads_every_chat(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session({"_id": "root", "role": "admin"}, "tok")

        assert StubApi.instances[-1].calls == ["list_all_chats"]
        assert [c.id for c in service.store.chats] == ["c1", "c2", "c3"]

    asyncio.run(_run())


def test_chat_list_failure_leaves_empty_list(socket_factory):
    async def _run():
        service = _service(socket_factory, fail=True)
        await service.update_session(USER, "tok")

        assert service.store.chats == []
        assert service.is_connected

    asyncio.run(_run())


def test_unchanged_session_is_left_alone(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        await service.update_session(USER, "tok")

        assert len(socket_factory.sockets) == 1
        assert len(StubApi.instances) == 1

    asyncio.run(_run())


def test_token_change_reconnects_with_new_token(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        first = socket_factory.last
        service.store.increment_unread("c1")

        await service.update_session(USER, "tok2")

        assert first.disconnect_calls == 1
        assert len(socket_factory.sockets) == 2
        assert socket_factory.last.connect_calls[0][1] == {"token": "tok2"}
        assert service.is_connected
        # same user, so unread state survives the token refresh
        assert service.store.get_unread_count("c1") == 1

    asyncio.run(_run())


def test_user_change_resets_store(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        service.store.increment_unread("c1")

        await service.update_session({"_id": "someone-else"}, "tok")

        assert service.get_total_unread_count() == 0
        assert service.dispatcher.current_user_id == "someone-else"

    asyncio.run(_run())


def test_logout_tears_everything_down(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        await socket_factory.last.trigger(
            "new_message", {"chatId": "c1", "message": {"_id": "m1", "senderId": "u2"}}
        )
        assert service.get_chat_messages("c1")

        await service.update_session(None, None)

        assert service.state is ConnectionState.DISCONNECTED
        assert service.user is None
        assert service.get_chat_messages("c1") == []
        assert service.store.chats == []
        assert not service.connection.reconnect_pending

    asyncio.run(_run())


def test_socket_teardown_clears_session_state(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        sock = socket_factory.last
        await sock.trigger("online_users", [{"userId": "u2", "status": "online"}])
        await sock.trigger("user_typing", {"chatId": "c1", "userId": "u2", "userName": "Bo"})
        assert service.is_user_online("u2")

        await service.connection.disconnect()

        assert not service.is_user_online("u2")
        assert service.get_typing_users_text("c1") == ""
        assert [c.id for c in service.store.chats] == ["c1", "c2"]

    asyncio.run(_run())


def test_events_update_unread_for_current_user(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        sock = socket_factory.last

        await sock.trigger("new_message", {"chatId": "c2", "message": {"_id": "a", "senderId": "u2"}})
        await sock.trigger("new_message", {"chatId": "c2", "message": {"_id": "b", "senderId": "me"}})

        assert service.store.get_unread_count("c2") == 1
        assert service.store.get_chat("c2").last_message.id == "b"

    asyncio.run(_run())


def test_open_chat_joins_and_marks_unread(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")
        sock = socket_factory.last
        await sock.trigger(
            "chat_history",
            {
                "chatId": "c1",
                "messages": [
                    {"_id": "m1", "senderId": "u2", "isRead": ["me"]},
                    {"_id": "m2", "senderId": "u2"},
                ],
            },
        )

        assert await service.open_chat("c1")

        sent = [e for e in sock.emitted if e[0] != "get_online_users"]
        assert sent == [
            ("join_chat", {"chatId": "c1"}),
            ("mark_as_read", {"chatId": "c1", "messageIds": ["m2"]}),
        ]
        assert service.store.active_chat == "c1"

    asyncio.run(_run())


def test_typing_indicator_is_bound_to_chat(socket_factory):
    async def _run():
        service = _service(socket_factory)
        await service.update_session(USER, "tok")

        indicator = service.typing_indicator("c9")
        await indicator.keystroke()
        await indicator.stop()

        sent = [e for e in socket_factory.last.emitted if e[0] != "get_online_users"]
        assert sent == [
            ("typing_start", {"chatId": "c9"}),
            ("typing_stop", {"chatId": "c9"}),
        ]

    asyncio.run(_run())
