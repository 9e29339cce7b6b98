from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_orchestrator
from app.main import app
from app.schemas.telegram import ChatType, TelegramChat, TelegramMessage, TelegramUpdate, decode_unix_datetime
from app.services.orchestrator import HandleOutcome
from app.services.result import Result


class TestTelegramSchemas:
    def test_chat_type_is_case_insensitive(self):
        assert TelegramChat(id=1, type="PRIVATE").type is ChatType.PRIVATE
        assert TelegramChat(id=1, type="SuperGroup").type is ChatType.SUPERGROUP

    def test_integer_date_is_epoch_seconds(self):
        msg = TelegramMessage(chat={"id": 1}, date=1702000000)
        assert msg.date == datetime(2023, 12, 8, 1, 46, 40, tzinfo=timezone.utc)

    def test_non_integer_date_uses_generic_parse(self):
        msg = TelegramMessage(chat={"id": 1}, date="2024-05-01T10:30:00+00:00")
        assert msg.date == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)

    def test_decode_leaves_non_integers_alone(self):
        assert decode_unix_datetime("2024-05-01") == "2024-05-01"
        assert decode_unix_datetime(True) is True
        assert decode_unix_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_from_field_maps_to_from_user(self):
        update = TelegramUpdate.model_validate(
            {
                "update_id": 123456789,
                "message": {
                    "message_id": 100,
                    "date": 1702000000,
                    "chat": {"id": 42, "type": "private", "username": "alice"},
                    "from": {"id": 42, "is_bot": False, "first_name": "Alice"},
                    "text": "hola",
                    "edit_date": 1702000100,
                },
            }
        )
        assert update.message.from_user.first_name == "Alice"
        assert update.message.edit_date == datetime.fromtimestamp(1702000100, tz=timezone.utc)


def _outcome(delivered: bool = True) -> HandleOutcome:
    dispatch = Result.success(42) if delivered else Result.failure("Forbidden", "dispatch_error")
    return HandleOutcome(chat_id=42, sender_handle="alice", answer="hi there", dispatch=dispatch)


@pytest.fixture
def orchestrator():
    orchestrator = Mock()
    orchestrator.handle = AsyncMock(return_value=_outcome())
    return orchestrator


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


TEXT_UPDATE = {"update_id": 1, "message": {"message_id": 1, "date": 1702000000, "text": "hello", "chat": {"id": 42, "username": "alice"}}}


class TestPushReceiver:
    def test_text_update_runs_pipeline(self, client, orchestrator):
        response = client.post("/bot/update", json=TEXT_UPDATE)

        assert response.status_code == 200
        assert response.json()["success"] is True
        orchestrator.handle.assert_awaited_once()
        msg = orchestrator.handle.await_args.args[0]
        assert msg.chat_id == 42
        assert msg.sender_handle == "alice"
        assert msg.text == "hello"

    def test_update_without_text_is_acknowledged(self, client, orchestrator):
        response = client.post(
            "/bot/update",
            json={"update_id": 2, "message": {"chat": {"id": 42}, "sticker": {"file_id": "x"}}},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "No text in message"}
        orchestrator.handle.assert_not_awaited()

    def test_malformed_update_is_acknowledged(self, client, orchestrator):
        response = client.post("/bot/update", json={"message": {"text": "hi", "chat": {}}})

        assert response.status_code == 200
        assert response.json()["success"] is True
        orchestrator.handle.assert_not_awaited()

    def test_out_of_range_date_is_acknowledged(self, client, orchestrator):
        response = client.post(
            "/bot/update",
            json={"update_id": 3, "message": {"date": 10**20, "text": "hi", "chat": {"id": 42}}},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Malformed update"}
        orchestrator.handle.assert_not_awaited()

    def test_invalid_json_is_acknowledged(self, client, orchestrator):
        response = client.post(
            "/bot/update", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        orchestrator.handle.assert_not_awaited()

    def test_pipeline_exception_still_answers_200(self, client, orchestrator):
        orchestrator.handle.side_effect = RuntimeError("boom")

        response = client.post("/bot/update", json=TEXT_UPDATE)

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_dispatch_failure_still_answers_200(self, client, orchestrator):
        orchestrator.handle.return_value = _outcome(delivered=False)

        response = client.post("/bot/update", json=TEXT_UPDATE)

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Reply not delivered"}

    def test_ocr_route_uses_same_pipeline(self, client, orchestrator):
        response = client.post("/api/mensajes/guardar-ocr", json=TEXT_UPDATE)

        assert response.status_code == 200
        orchestrator.handle.assert_awaited_once()
