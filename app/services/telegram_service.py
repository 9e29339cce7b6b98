from typing import Any, List, Optional

import httpx

from app.logging_config import get_logger
from app.services.errors import TelegramAPIError

logger = get_logger("telegram_service")


class TelegramService:
    """Async client for the few Bot API methods the relay needs."""

    BASE_URL = "https://api.telegram.org/bot{token}"

    def __init__(self, bot_token: str, client: Optional[httpx.AsyncClient] = None, timeout_seconds: float = 30.0):
        self.bot_token = bot_token
        self.base_url = self.BASE_URL.format(token=bot_token)
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def _post(self, url: str, data: dict, timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=data, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, json=data)

    async def _make_request(self, method: str, data: Optional[dict] = None, timeout: Optional[float] = None) -> Any:
        """Call a Bot API method and return its ``result``.

        Raises TelegramAPIError on transport errors and on ``ok: false`` replies.
        """
        url = f"{self.base_url}/{method}"
        try:
            response = await self._post(url, data or {}, timeout or self.timeout_seconds)
            body = response.json()
        except Exception as e:
            raise TelegramAPIError(method, str(e)) from e

        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description", "unknown error") if isinstance(body, dict) else str(body)
            error_code = body.get("error_code") if isinstance(body, dict) else None
            raise TelegramAPIError(method, description, error_code)
        return body.get("result")

    async def send_message(self, chat_id: int, text: str) -> dict:
        """Send plain text to a chat."""
        return await self._make_request("sendMessage", {"chat_id": chat_id, "text": text})

    async def get_updates(self, offset: int = 0, timeout: int = 30) -> List[dict]:
        """Long-poll for updates with ``update_id >= offset``."""
        result = await self._make_request(
            "getUpdates",
            {"offset": offset, "timeout": timeout},
            timeout=timeout + self.timeout_seconds,
        )
        return result or []

    async def delete_webhook(self) -> bool:
        return bool(await self._make_request("deleteWebhook"))

    async def set_webhook(self, url: str) -> bool:
        logger.info(f"Setting Telegram webhook -> {url}")
        return bool(await self._make_request("setWebhook", {"url": url}))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
