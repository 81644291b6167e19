from __future__ import annotations

import logging
from typing import Any, Dict, List

import aiohttp

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0  # seconds


class ChatApiError(Exception):
    """A chat list request failed at the HTTP level."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ChatApi:
    """REST calls used to bulk-load the chat list.

    Responses follow the backend envelope ``{"ok": bool, "data": [...]}``.
    """

    def __init__(self, base_url: str, token: str) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def list_chats(self) -> List[Dict[str, Any]]:
        """Chats the current user participates in."""
        return await self._get_list("/chat")

    async def list_all_chats(self, params: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        """Every chat on the platform; admin accounts only."""
        return await self._get_list("/admin/chats", params)

    async def _get_list(
        self, path: str, params: Dict[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
            ) as session:
                async with session.get(url, headers=self.headers, params=params) as resp:
                    if resp.status != 200:
                        raise ChatApiError(f"GET {path} returned HTTP {resp.status}", resp.status)
                    body = await resp.json()
        except ChatApiError:
            raise
        except Exception as exc:
            raise ChatApiError(f"GET {path} failed: {exc}") from exc

        if not isinstance(body, dict) or not body.get("ok"):
            logger.warning("chat.http %s not ok body=%s", path, body)
            return []
        data = body.get("data")
        if not isinstance(data, list):
            return []
        return data
