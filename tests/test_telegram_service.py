import json

import httpx
import pytest

from app.services.errors import DispatchError, TelegramAPIError
from app.services.telegram_service import TelegramService


def _service(handler) -> TelegramService:
    return TelegramService("123:abc", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestTelegramService:
    @pytest.mark.asyncio
    async def test_send_message_posts_plain_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 9}})

        result = await _service(handler).send_message(42, "hi there")

        assert result == {"message_id": 9}
        assert seen["path"] == "/bot123:abc/sendMessage"
        assert seen["body"] == {"chat_id": 42, "text": "hi there"}

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403, json={"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"}
            )

        with pytest.raises(TelegramAPIError) as exc_info:
            await _service(handler).send_message(42, "hi")

        assert exc_info.value.error_code == 403
        assert isinstance(exc_info.value, DispatchError)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(TelegramAPIError):
            await _service(handler).send_message(42, "hi")

    @pytest.mark.asyncio
    async def test_get_updates_passes_offset(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": [{"update_id": 7}]})

        updates = await _service(handler).get_updates(offset=7, timeout=0)

        assert updates == [{"update_id": 7}]
        assert seen["body"] == {"offset": 7, "timeout": 0}

    @pytest.mark.asyncio
    async def test_webhook_management(self):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.url.path.rsplit("/", 1)[-1])
            return httpx.Response(200, json={"ok": True, "result": True})

        service = _service(handler)
        assert await service.set_webhook("https://relay.example.com/bot/update") is True
        assert await service.delete_webhook() is True
        assert methods == ["setWebhook", "deleteWebhook"]
