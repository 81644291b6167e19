from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping

import socketio

from .config import ClientConfig, resolve_socket_url
from .models import ConnectionState

logger = logging.getLogger(__name__)

# Disconnect reasons reported when the server closed the session on purpose.
# The first is the Socket.IO JS spelling, the second python-socketio's.
SERVER_DISCONNECT_REASONS = frozenset({"io server disconnect", "server disconnect"})

SocketFactory = Callable[[ClientConfig], Any]
Sleep = Callable[[float], Awaitable[None]]


def default_socket_factory(cfg: ClientConfig) -> socketio.AsyncClient:
    return socketio.AsyncClient(
        reconnection=True,
        reconnection_attempts=cfg.reconnect.builtin_attempts,
        reconnection_delay=cfg.reconnect.builtin_delay,
        reconnection_delay_max=cfg.reconnect.builtin_delay_max,
    )


def backoff_delay(attempt: int, base: float = 1.0, maximum: float = 10.0) -> float:
    """Delay before manual reconnect number ``attempt`` (starting at 0)."""
    return min(base * (2 ** attempt), maximum)


class ConnectionManager:
    """Own the single Socket.IO connection of an authenticated session.

    The client library reconnects on its own after transport failures.  On
    top of that a manual path with exponential backoff covers failed
    handshakes and server initiated disconnects.  At most one manual
    reconnect task is outstanding at any time and :meth:`disconnect` cancels
    it.
    """

    def __init__(
        self,
        config: ClientConfig,
        token: str,
        socket_factory: SocketFactory | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.config = config
        self.token = token
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self._socket_factory = socket_factory or default_socket_factory
        self._sleep = sleep or asyncio.sleep
        self._socket: Any = None
        self._reconnect_task: asyncio.Task | None = None
        self._handlers: Dict[str, Callable[..., Any]] = {}
        self._teardown_callbacks: List[Callable[[], None]] = []

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def bind(self, handlers: Mapping[str, Callable[..., Any]]) -> None:
        """Attach inbound event handlers to the current and all future sockets."""
        self._handlers.update(handlers)
        if self._socket is not None:
            for name, handler in handlers.items():
                self._socket.on(name, handler)

    def add_teardown(self, callback: Callable[[], None]) -> None:
        self._teardown_callbacks.append(callback)

    # ---- lifecycle ----

    async def connect(self) -> None:
        if self.state is not ConnectionState.DISCONNECTED:
            return
        if self._socket is not None:
            await self._close_socket()

        self.state = ConnectionState.CONNECTING
        url = resolve_socket_url(self.config)
        try:
            sock = self._socket_factory(self.config)
        except Exception:
            self.state = ConnectionState.DISCONNECTED
            logger.exception("chat.socket could not create client url=%s", url)
            return
        self._socket = sock
        self._register(sock)
        logger.info("chat.socket connecting url=%s", url)
        try:
            await sock.connect(
                url,
                auth={"token": self.token},
                wait_timeout=self.config.reconnect.handshake_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._socket is not sock:
                return
            logger.warning("chat.socket connect failed url=%s error=%s", url, exc)
            await self._on_connect_error(sock, str(exc))
            return

        if self._socket is not sock:
            # torn down while the handshake was in flight
            await self._safe_disconnect(sock)
            return
        if self.state is ConnectionState.CONNECTING:
            await self._on_connect(sock)

    async def disconnect(self) -> None:
        self._cancel_reconnect()
        self.reconnect_attempts = 0
        self.state = ConnectionState.DISCONNECTED
        await self._close_socket()
        for callback in self._teardown_callbacks:
            callback()
        logger.info("chat.socket closed")

    async def emit(self, event: str, data: Any = None) -> bool:
        """Send ``event`` if connected; otherwise drop it and return ``False``."""
        sock = self._socket
        if not self.connected or sock is None:
            logger.debug("chat.socket drop event=%s state=%s", event, self.state.value)
            return False
        try:
            if data is None:
                await sock.emit(event)
            else:
                await sock.emit(event, data)
        except Exception as exc:
            logger.warning("chat.socket emit failed event=%s error=%s", event, exc)
            return False
        return True

    # ---- socket events ----

    def _register(self, sock: Any) -> None:
        async def on_connect() -> None:
            await self._on_connect(sock)

        async def on_disconnect(reason: Any = None) -> None:
            await self._on_disconnect(sock, reason)

        async def on_connect_error(data: Any = None) -> None:
            await self._on_connect_error(sock, data)

        sock.on("connect", on_connect)
        sock.on("disconnect", on_disconnect)
        sock.on("connect_error", on_connect_error)
        for name, handler in self._handlers.items():
            sock.on(name, handler)

    async def _on_connect(self, sock: Any) -> None:
        if sock is not self._socket or self.state is ConnectionState.CONNECTED:
            return
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        self._cancel_reconnect()
        logger.info("chat.socket connected")
        await self.emit("get_online_users")

    async def _on_disconnect(self, sock: Any, reason: Any) -> None:
        if sock is not self._socket:
            return
        self.state = ConnectionState.DISCONNECTED
        logger.info("chat.socket disconnected reason=%s", reason)
        if reason in SERVER_DISCONNECT_REASONS:
            self._schedule_reconnect()

    async def _on_connect_error(self, sock: Any, data: Any) -> None:
        if sock is not self._socket:
            return
        self.state = ConnectionState.DISCONNECTED
        logger.error("chat.socket connect_error data=%s", data)
        self._schedule_reconnect()

    # ---- manual reconnect ----

    def _schedule_reconnect(self) -> None:
        if self.reconnect_pending:
            return
        rc = self.config.reconnect
        if self.reconnect_attempts >= rc.manual_attempts:
            logger.warning(
                "chat.socket reconnect give up attempts=%s", self.reconnect_attempts
            )
            return
        delay = backoff_delay(
            self.reconnect_attempts, rc.manual_base_delay, rc.manual_max_delay
        )
        self.reconnect_attempts += 1
        logger.info(
            "chat.socket reconnect scheduled attempt=%s/%s delay=%.1f",
            self.reconnect_attempts,
            rc.manual_attempts,
            delay,
        )
        loop = asyncio.get_running_loop()
        self._reconnect_task = loop.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        logger.info(
            "chat.socket reconnecting attempt=%s/%s",
            self.reconnect_attempts,
            self.config.reconnect.manual_attempts,
        )
        await self.connect()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            await self._safe_disconnect(sock)

    async def _safe_disconnect(self, sock: Any) -> None:
        try:
            await sock.disconnect()
        except Exception as exc:
            logger.warning("chat.socket close failed error=%s", exc)
