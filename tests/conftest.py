import asyncio

import pytest


class StubSocket:
    """Stands in for ``socketio.AsyncClient``.

    ``connect`` fires the same events the real client does: ``connect`` on
    success, ``connect_error`` followed by an exception on failure.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.handlers = {}
        self.emitted = []
        self.connect_calls = []
        self.connected = False
        self.disconnect_calls = 0

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, wait_timeout=None):
        self.connect_calls.append((url, auth, wait_timeout))
        if self.fail:
            await self.trigger("connect_error", "refused")
            raise ConnectionError("refused")
        self.connected = True
        await self.trigger("connect")

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False
        await self.trigger("disconnect", "client disconnect")

    async def trigger(self, event, *args):
        handler = self.handlers.get(event)
        if handler is None:
            return None
        result = handler(*args)
        if asyncio.iscoroutine(result):
            result = await result
        return result


class StubSocketFactory:
    """Hands out :class:`StubSocket` objects, failing per the ``plan``.

    ``plan`` lists the ``fail`` flag of each socket in creation order; once it
    is exhausted ``default_fail`` is used.
    """

    def __init__(self, plan=(), default_fail: bool = False):
        self.plan = list(plan)
        self.default_fail = default_fail
        self.sockets = []

    def __call__(self, cfg):
        fail = self.plan.pop(0) if self.plan else self.default_fail
        sock = StubSocket(fail=fail)
        self.sockets.append(sock)
        return sock

    @property
    def last(self):
        return self.sockets[-1]


class RecordingSleep:
    """Records requested delays and returns immediately."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class BlockingSleep:
    """Records requested delays and never returns."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.Event().wait()


@pytest.fixture
def socket_factory():
    return StubSocketFactory()


@pytest.fixture
def failing_socket_factory():
    return StubSocketFactory(default_fail=True)


@pytest.fixture
def make_socket_factory():
    return StubSocketFactory


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def blocking_sleep():
    return BlockingSleep()
