"""Tests for the HTTP API and Telegram webhook routes (FastAPI TestClient, mocked components)."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from conftest import make_signal
from signalbot.api.app import create_app
from signalbot.commands.dispatcher import Command
from signalbot.config import ScheduleSettings
from signalbot.exceptions import DeliveryError, UpstreamFetchError, UpstreamInferenceError
from signalbot.scheduler.scheduler import TriggerScheduler


@pytest.fixture
def orchestrator() -> MagicMock:
    orchestrator = MagicMock()

    async def generate(symbol: str):
        return make_signal(symbol=symbol)

    orchestrator.generate_signal = AsyncMock(side_effect=generate)
    orchestrator.start_batch = MagicMock(return_value=True)
    orchestrator.configured_symbols = MagicMock(return_value=["BBCA.JK", "BBRI.JK", "ANTM.JK"])
    return orchestrator


@pytest.fixture
def dispatcher() -> AsyncMock:
    dispatcher = AsyncMock()
    dispatcher.dispatch = AsyncMock(return_value=Command.HELP)
    return dispatcher


@pytest.fixture
def telegram() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(mock_settings, orchestrator, dispatcher, telegram) -> TestClient:
    app = create_app()
    app.state.settings = mock_settings
    app.state.orchestrator = orchestrator
    app.state.dispatcher = dispatcher
    app.state.telegram = telegram
    app.state.scheduler = TriggerScheduler(
        orchestrator,
        mock_settings.schedule,
        clock=lambda tz: datetime(2025, 1, 6, 7, 0, tzinfo=ZoneInfo("Asia/Jakarta")).astimezone(tz),
    )
    return TestClient(app)


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert body["error"] is None


class TestSignal:
    def test_get_default_symbol(self, client: TestClient, orchestrator) -> None:
        response = client.get("/api/v1/signal")

        assert response.status_code == 200
        orchestrator.generate_signal.assert_awaited_once_with("INDY.JK")
        data = response.json()["data"]
        assert data["symbol"] == "INDY.JK"
        assert data["signal"] == "BUY"
        assert data["buy_price"] == "1000"
        assert data["stop_loss"] == "950"
        assert data["confidence"] == 80

    def test_get_with_symbol(self, client: TestClient, orchestrator) -> None:
        client.get("/api/v1/signal", params={"symbol": "antm"})
        orchestrator.generate_signal.assert_awaited_once_with("ANTM.JK")

    def test_post_symbol(self, client: TestClient, orchestrator) -> None:
        response = client.post("/api/v1/signal", json={"stock_symbol": "bbri"})

        assert response.status_code == 200
        orchestrator.generate_signal.assert_awaited_once_with("BBRI.JK")

    def test_post_empty_body_uses_default(self, client: TestClient, orchestrator) -> None:
        response = client.post("/api/v1/signal")

        assert response.status_code == 200
        orchestrator.generate_signal.assert_awaited_once_with("INDY.JK")

    def test_post_invalid_body(self, client: TestClient, orchestrator) -> None:
        response = client.post(
            "/api/v1/signal", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        orchestrator.generate_signal.assert_not_awaited()

    @pytest.mark.parametrize(
        "error",
        [UpstreamFetchError("no data returned"), UpstreamInferenceError("no JSON found")],
    )
    def test_upstream_error_is_500(self, client: TestClient, orchestrator, error) -> None:
        orchestrator.generate_signal.side_effect = error

        response = client.get("/api/v1/signal", params={"symbol": "NOPE"})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == str(error)


class TestBatchRoutes:
    def test_signal_all_starts_per_symbol_batch(self, client: TestClient, orchestrator) -> None:
        response = client.get("/api/v1/signal-all")

        assert response.status_code == 200
        assert response.json()["data"] == {"status": "started", "total_symbols": 3}
        orchestrator.start_batch.assert_called_once_with(deliver_each=True, announce=False)

    def test_signal_all_summary_starts_summary_batch(
        self, client: TestClient, orchestrator
    ) -> None:
        response = client.get("/api/v1/signal-all-summary")

        assert response.status_code == 200
        orchestrator.start_batch.assert_called_once_with(deliver_each=False, announce=True)

    def test_busy_is_409(self, client: TestClient, orchestrator) -> None:
        orchestrator.start_batch.return_value = False

        response = client.get("/api/v1/signal-all-summary")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_stocks(self, client: TestClient) -> None:
        data = client.get("/api/v1/stocks").json()["data"]
        assert data == {"total": 3, "symbols": ["BBCA.JK", "BBRI.JK", "ANTM.JK"]}


class TestCronStatus:
    def test_configured(self, client: TestClient) -> None:
        data = client.get("/api/v1/cron-status").json()["data"]

        assert data["timezone"] == "Asia/Jakarta"
        assert data["configured_times"] == ["08:30", "14:45"]
        assert data["enabled"] is False  # scheduler not started in this app

    def test_disabled_without_times(self, client: TestClient, orchestrator) -> None:
        client.app.state.scheduler = TriggerScheduler(orchestrator, ScheduleSettings(times=[]))

        data = client.get("/api/v1/cron-status").json()["data"]

        assert data["enabled"] is False
        assert "configured_times" not in data


class TestTelegramWebhook:
    def test_message_is_dispatched(self, client: TestClient, dispatcher) -> None:
        update = {
            "update_id": 1,
            "message": {
                "message_id": 7,
                "from": {"id": 42, "is_bot": False, "first_name": "Ana"},
                "chat": {"id": 42, "type": "private"},
                "date": 1736128800,
                "text": "/help",
            },
        }

        response = client.post("/webhook/telegram", json=update)

        assert response.status_code == 200
        assert response.json()["message"] == "Webhook processed successfully"
        dispatcher.dispatch.assert_awaited_once_with("42", "/help")

    def test_update_without_message(self, client: TestClient, dispatcher) -> None:
        response = client.post("/webhook/telegram", json={"update_id": 2})

        assert response.status_code == 200
        assert response.json()["message"] == "No message in webhook"
        dispatcher.dispatch.assert_not_awaited()

    def test_invalid_payload(self, client: TestClient, dispatcher) -> None:
        response = client.post(
            "/webhook/telegram", content=b"{", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        dispatcher.dispatch.assert_not_awaited()


class TestWebhookManagement:
    def test_setup_with_body(self, client: TestClient, telegram) -> None:
        response = client.post(
            "/api/v1/webhook/setup", json={"webhook_url": "https://bot.test/webhook/telegram"}
        )

        assert response.status_code == 200
        telegram.setup_webhook.assert_awaited_once_with("https://bot.test/webhook/telegram")

    def test_setup_without_url(self, client: TestClient, telegram) -> None:
        response = client.post("/api/v1/webhook/setup", json={})

        assert response.status_code == 400
        telegram.setup_webhook.assert_not_awaited()

    def test_setup_failure(self, client: TestClient, telegram) -> None:
        telegram.setup_webhook.side_effect = DeliveryError("unauthorized")

        response = client.post(
            "/api/v1/webhook/setup", json={"webhook_url": "https://bot.test/webhook/telegram"}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "unauthorized"

    def test_delete(self, client: TestClient, telegram) -> None:
        response = client.delete("/api/v1/webhook")

        assert response.status_code == 200
        telegram.delete_webhook.assert_awaited_once()
