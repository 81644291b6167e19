import argparse
import asyncio
import logging

import structlog

from .config import load_config, resolve_socket_url
from .logging import setup_logging


logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Marketplace chat client")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    listen = subparsers.add_parser("listen", help="Connect and log chat activity")
    listen.add_argument("--token", required=True, help="Bearer token of the session")
    listen.add_argument("--user-id", required=True, help="Id of the authenticated user")
    listen.add_argument("--role", default=None, help="Role of the user (admin sees all chats)")
    listen.add_argument("--chat", action="append", default=[], help="Chat id to join")

    subparsers.add_parser("check-config", help="Show the resolved endpoints")

    args = parser.parse_args(argv)

    setup_logging(debug=args.debug, json=args.json_logs)

    if args.command == "listen":
        try:
            asyncio.run(_listen(args.token, args.user_id, args.role, args.chat))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
    elif args.command == "check-config":
        _check_config()


async def _listen(token: str, user_id: str, role, chat_ids) -> None:
    """Run a session until cancelled, logging a summary every few seconds."""
    from .service import ChatService

    log = structlog.get_logger()
    service = ChatService(load_config())
    await service.update_session({"_id": user_id, "role": role}, token)
    try:
        for chat_id in chat_ids:
            await service.open_chat(chat_id)
        while True:
            await asyncio.sleep(5)
            log.info(
                "chat.status",
                state=service.state.value,
                chats=len(service.store.chats),
                unread=service.get_total_unread_count(),
                online=len(service.store.online_users),
            )
    finally:
        await service.close()


def _check_config() -> None:
    cfg = load_config()
    logger.info("API base URL: %s", cfg.api_base_url)
    logger.info("Socket URL: %s", resolve_socket_url(cfg))
    logger.info("Log level: %s", cfg.log_level)


if __name__ == "__main__":  # pragma: no cover
    main()
