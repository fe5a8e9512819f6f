"""Tests for the Twilio WhatsApp webhook endpoint."""

import sqlite3
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.core.config import settings
from src.interface.webhook import router
from src.interface.webhook_security import compute_twilio_signature


FORM = {
    "From": "whatsapp:+15550001111",
    "Body": "We need milk",
    "ProfileName": "Sam",
    "MessageSid": "SM123",
}


@pytest.fixture
def pipeline(monkeypatch):
    """Replace the pipeline entry points the webhook calls."""
    receive = AsyncMock(return_value=None)
    wait = AsyncMock(return_value=None)
    monkeypatch.setattr("src.services.message_pipeline.receive_message", receive)
    monkeypatch.setattr("src.services.message_pipeline.wait_and_settle", wait)
    return receive, wait


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


@pytest.mark.unit
class TestReceiveWebhook:
    """Tests for POST /webhook/whatsapp."""

    def test_valid_message_is_buffered_and_acknowledged(self, client, pipeline):
        receive, wait = pipeline

        response = client.post("/webhook/whatsapp", data=FORM)

        assert response.status_code == 200
        assert response.text == "<Response></Response>"
        assert response.headers["content-type"].startswith("text/xml")
        receive.assert_awaited_once_with(sender_phone="+15550001111", text="We need milk", profile_name="Sam")
        wait.assert_awaited_once_with(sender_id="+15550001111")

    @pytest.mark.parametrize("missing", ["From", "Body"])
    def test_missing_required_field_is_rejected(self, client, pipeline, missing):
        receive, wait = pipeline
        form = {key: value for key, value in FORM.items() if key != missing}

        response = client.post("/webhook/whatsapp", data=form)

        assert response.status_code == 400
        receive.assert_not_awaited()
        wait.assert_not_awaited()

    def test_blank_body_is_rejected(self, client, pipeline):
        response = client.post("/webhook/whatsapp", data={**FORM, "Body": "   "})

        assert response.status_code == 400

    def test_buffer_failure_still_acknowledges(self, client, pipeline):
        receive, wait = pipeline
        receive.side_effect = RuntimeError("database is locked")

        response = client.post("/webhook/whatsapp", data=FORM)

        assert response.status_code == 200
        wait.assert_not_awaited()

    def test_database_error_still_acknowledges(self, client, pipeline):
        receive, wait = pipeline
        receive.side_effect = sqlite3.OperationalError("database is locked")

        response = client.post("/webhook/whatsapp", data=FORM)

        assert response.status_code == 200
        assert response.text == "<Response></Response>"
        wait.assert_not_awaited()


@pytest.mark.unit
class TestWebhookSignature:
    """Tests for optional X-Twilio-Signature enforcement."""

    @pytest.fixture(autouse=True)
    def enforce_signatures(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_validate_signature", True)
        monkeypatch.setattr(settings, "twilio_auth_token", "secret-token")

    def test_valid_signature_is_accepted(self, client, pipeline):
        signature = compute_twilio_signature(
            auth_token="secret-token", url="http://testserver/webhook/whatsapp", params=FORM
        )

        response = client.post("/webhook/whatsapp", data=FORM, headers={"X-Twilio-Signature": signature})

        assert response.status_code == 200

    def test_missing_signature_is_forbidden(self, client, pipeline):
        receive, _ = pipeline

        response = client.post("/webhook/whatsapp", data=FORM)

        assert response.status_code == 403
        receive.assert_not_awaited()

    def test_tampered_body_is_forbidden(self, client, pipeline):
        signature = compute_twilio_signature(
            auth_token="secret-token", url="http://testserver/webhook/whatsapp", params=FORM
        )

        response = client.post(
            "/webhook/whatsapp",
            data={**FORM, "Body": "Delete everything"},
            headers={"X-Twilio-Signature": signature},
        )

        assert response.status_code == 403
