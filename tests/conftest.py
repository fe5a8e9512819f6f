"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from src.core import db_client
from src.core.config import settings
from src.domain.user import UserContext
from src.interface import whatsapp_sender


@pytest.fixture
async def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[str]:
    """Point the app at a fresh SQLite file with the full schema."""
    db_path = str(tmp_path / "hearth.db")
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def debounce_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin debounce timing so tests can pass explicit clock values."""
    monkeypatch.setattr(settings, "debounce_window_ms", 5000)
    monkeypatch.setattr(settings, "debounce_jitter_ms", 500)
    monkeypatch.setattr(settings, "buffer_sweep_grace_ms", 10_000)


@pytest.fixture(autouse=True)
def fresh_rate_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test its own outbound rate limiter."""
    monkeypatch.setattr(whatsapp_sender, "rate_limiter", whatsapp_sender.RateLimiter())


@pytest.fixture
def alice() -> UserContext:
    return UserContext(acting_id="1", display_name="Alice", phone="+15550000001", is_linked=True)


@pytest.fixture
def user_factory(sqlite_db: str):
    """Factory for inserting user records directly.

    Usage:
        user = await user_factory(phone="+15550000001", display_name="Alice", linked_account_id="acct-1")
    """

    async def _create_user(**kwargs):
        user_data = {
            "phone_number": kwargs.pop("phone", "+15550000001"),
            "display_name": kwargs.pop("display_name", "Test User"),
        }
        user_data.update(kwargs)
        return await db_client.create_record(collection="users", data=user_data)

    return _create_user
