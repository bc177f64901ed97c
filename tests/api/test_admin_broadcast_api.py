"""
HTTP tests for the admin broadcast and health endpoints.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from app.api import admin_broadcast, app

TOKEN = "test-admin-token"


@pytest.fixture
def client():
    admin_broadcast.setup(MagicMock())
    with patch("app.api.admin_broadcast.database") as mock_db:
        mock_db.DB_READY = True
        yield TestClient(app)
    admin_broadcast.setup(None)


@pytest.fixture
def run_broadcast():
    result = {"success_count": 2, "failed_count": 1, "deleted_count": 1, "total": 3, "duration_seconds": 0.1}
    with patch("app.api.admin_broadcast.broadcast_service.run_broadcast", new=AsyncMock(return_value=result)) as mock:
        yield mock


class TestAdminBroadcast:
    def test_missing_token_forbidden(self, client, run_broadcast):
        response = client.post("/admin/broadcast", json={"text": "hi"})

        assert response.status_code == 403
        run_broadcast.assert_not_awaited()

    def test_wrong_token_forbidden(self, client, run_broadcast):
        response = client.post("/admin/broadcast", json={"text": "hi"}, headers={"X-Admin-Token": "nope"})

        assert response.status_code == 403

    def test_success_returns_counts(self, client, run_broadcast):
        response = client.post("/admin/broadcast", json={"text": "hi"}, headers={"X-Admin-Token": TOKEN})

        assert response.status_code == 200
        assert response.json() == {"success_count": 2, "failed_count": 1}
        run_broadcast.assert_awaited_once()
        assert run_broadcast.await_args.args[1] == "hi"

    def test_blank_text_rejected(self, client, run_broadcast):
        response = client.post("/admin/broadcast", json={"text": "   "}, headers={"X-Admin-Token": TOKEN})

        assert response.status_code == 422
        run_broadcast.assert_not_awaited()

    def test_disabled_without_configured_token(self, client, run_broadcast):
        with patch("app.api.admin_broadcast.config") as mock_config:
            mock_config.ADMIN_API_TOKEN = ""
            response = client.post("/admin/broadcast", json={"text": "hi"}, headers={"X-Admin-Token": TOKEN})

        assert response.status_code == 503

    def test_db_not_ready(self, client, run_broadcast):
        with patch("app.api.admin_broadcast.database") as mock_db:
            mock_db.DB_READY = False
            response = client.post("/admin/broadcast", json={"text": "hi"}, headers={"X-Admin-Token": TOKEN})

        assert response.status_code == 503

    def test_broadcast_failure_is_500(self, client):
        with patch(
            "app.api.admin_broadcast.broadcast_service.run_broadcast",
            new=AsyncMock(side_effect=RuntimeError("db down")),
        ):
            response = client.post("/admin/broadcast", json={"text": "hi"}, headers={"X-Admin-Token": TOKEN})

        assert response.status_code == 500


class TestHealth:
    def test_reports_db_state(self):
        with patch("app.api.database") as mock_db:
            mock_db.DB_READY = False
            response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "db_ready": False}


class TestTelegramWebhook:
    def test_wrong_secret_forbidden(self):
        with patch("app.api.telegram_webhook.config") as mock_config:
            mock_config.WEBHOOK_SECRET = "s3cret"
            response = TestClient(app).post(
                "/telegram/webhook",
                json={"update_id": 1},
                headers={"X-Telegram-Bot-Api-Secret-Token": "wrong"},
            )

        assert response.status_code == 403

    def test_not_configured(self):
        with patch("app.api.telegram_webhook.config") as mock_config:
            mock_config.WEBHOOK_SECRET = ""
            response = TestClient(app).post("/telegram/webhook", json={"update_id": 1})

        assert response.status_code == 503
