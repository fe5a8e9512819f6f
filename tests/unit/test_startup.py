"""Tests for startup validation, the health endpoint, and scheduled jobs."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.core import scheduler
from src.core.config import settings
from src.main import app, validate_startup_configuration


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "openrouter_api_key", "sk-or-test")
    monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
    monkeypatch.setattr(settings, "twilio_auth_token", "token")
    monkeypatch.setattr(settings, "twilio_whatsapp_number", "+14155238886")


@pytest.mark.unit
class TestValidateStartupConfiguration:
    """Tests for validate_startup_configuration."""

    def test_passes_with_all_credentials(self, credentials):
        validate_startup_configuration()

    @pytest.mark.parametrize(
        "field", ["openrouter_api_key", "twilio_account_sid", "twilio_auth_token", "twilio_whatsapp_number"]
    )
    def test_exits_when_credential_missing(self, credentials, monkeypatch, field):
        monkeypatch.setattr(settings, field, None)

        with pytest.raises(SystemExit) as exc_info:
            validate_startup_configuration()

        assert exc_info.value.code == 1


@pytest.mark.unit
def test_health_check() -> None:
    """Health endpoint answers without running the lifespan."""
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestBufferSweepJob:
    """Tests for the scheduled buffer sweep."""

    async def test_run_buffer_sweep_calls_pipeline(self, monkeypatch):
        mock_sweep = AsyncMock(return_value=2)
        monkeypatch.setattr("src.services.message_pipeline.sweep_stale_buffers", mock_sweep)

        await scheduler.run_buffer_sweep()

        mock_sweep.assert_awaited_once_with()

    async def test_run_buffer_sweep_swallows_errors(self, monkeypatch):
        monkeypatch.setattr(
            "src.services.message_pipeline.sweep_stale_buffers", AsyncMock(side_effect=RuntimeError("locked"))
        )

        await scheduler.run_buffer_sweep()

    async def test_start_registers_sweep_job(self, monkeypatch):
        monkeypatch.setattr(settings, "buffer_sweep_enabled", True)
        monkeypatch.setattr(settings, "buffer_sweep_interval_seconds", 30)

        scheduler.start_scheduler()
        try:
            job = scheduler.scheduler.get_job("buffer_sweep")
            assert job is not None
            assert job.trigger.interval.total_seconds() == 30
        finally:
            scheduler.scheduler.remove_all_jobs()
            scheduler.stop_scheduler()
