"""
Telegram Bot API gateway.

Every call goes through `_call`, which applies the configured timeout and maps
network errors, non-2xx responses and `{"ok": false}` bodies to TransportFailure.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from suins_buddy.errors import TransportFailure
from suins_buddy.settings import settings
from suins_buddy.telegram.keyboard import InlineKeyboard

PARSE_MODE = "HTML"


class TelegramClient:
    def __init__(self, token: str, http: Optional[httpx.AsyncClient] = None):
        self._base = f"{settings.TELEGRAM_API_BASE}/bot{token}"
        self._http = http or httpx.AsyncClient(timeout=settings.TELEGRAM_TIMEOUT_SEC)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        kwargs: Dict[str, Any] = {"json": payload}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = await self._http.post(f"{self._base}/{method}", **kwargs)
        except httpx.HTTPError as e:
            raise TransportFailure(method, f"{type(e).__name__}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not (200 <= resp.status_code < 300) or not data.get("ok"):
            reason = str(data.get("description") or resp.text or "")[:300]
            raise TransportFailure(method, reason, status_code=resp.status_code)
        return data.get("result")

    async def send_message(
        self,
        chat_id: str,
        text: str,
        keyboard: Optional[InlineKeyboard] = None,
        parse_mode: Optional[str] = PARSE_MODE,
    ) -> None:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "link_preview_options": {"is_disabled": True},
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if keyboard is not None and len(keyboard):
            payload["reply_markup"] = keyboard.to_markup()
        await self._call("sendMessage", payload)

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def set_my_commands(self, commands: List[Dict[str, str]]) -> None:
        await self._call("setMyCommands", {"commands": commands})

    async def set_webhook(self, url: str, secret_token: str = "") -> None:
        payload: Dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message", "message_reaction", "callback_query"],
        }
        if secret_token:
            payload["secret_token"] = secret_token
        await self._call("setWebhook", payload)

    async def delete_webhook(self) -> None:
        await self._call("deleteWebhook", {"drop_pending_updates": False})

    async def get_updates(self, offset: Optional[int], timeout_sec: int) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {
            "timeout": int(timeout_sec),
            "allowed_updates": ["message", "message_reaction", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        # Long poll: the HTTP timeout must outlast the server-side wait.
        result = await self._call("getUpdates", payload, timeout=float(timeout_sec) + float(settings.TELEGRAM_TIMEOUT_SEC))
        return list(result or [])


_client: Optional[TelegramClient] = None


def get_telegram() -> TelegramClient:
    global _client
    if _client is None:
        _client = TelegramClient(settings.NS_BOT_TOKEN)
    return _client


async def close_telegram() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
