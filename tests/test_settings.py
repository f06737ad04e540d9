"""Tests for configuration and the LedgerCore factory."""

import logging

import pytest

from ledger_core.config import (
    LedgerSettings,
    NotificationSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from ledger_core.orchestrator import create_ledger_core
from ledger_core.services.notifications import InMemoryNotificationSink
from ledger_core.services.storage import InMemoryLedgerStorage, SQLiteLedgerStorage


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Isolate from any real .env and from cached settings."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        ledger = LedgerSettings()
        assert ledger.invite_expiry_days == 7
        assert ledger.default_precision == 2
        assert ledger.log_level == "INFO"
        assert StorageSettings().backend == "memory"
        assert NotificationSettings().queue_size == 1000

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_INVITE_EXPIRY_DAYS", "14")
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_NOTIFY_MAX_ATTEMPTS", "5")
        settings = get_settings()
        assert settings.ledger.invite_expiry_days == 14
        assert settings.storage.backend == "sqlite"
        assert settings.notifications.max_attempts == 5

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", " debug ")
        assert LedgerSettings().log_level == "DEBUG"

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "loud")
        with pytest.raises(ValueError):
            LedgerSettings()

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            StorageSettings()

    def test_retry_wait_bounds(self, monkeypatch):
        monkeypatch.setenv("LEDGER_NOTIFY_RETRY_WAIT_MIN", "3")
        monkeypatch.setenv("LEDGER_NOTIFY_RETRY_WAIT_MAX", "1")
        with pytest.raises(ValueError):
            NotificationSettings()

    def test_validate_all_settings(self, monkeypatch):
        assert validate_all_settings() == {
            "ledger": True,
            "storage": True,
            "notifications": True,
        }
        monkeypatch.setenv("LEDGER_STORAGE_CONNECT_ATTEMPTS", "0")
        results = validate_all_settings()
        assert results["storage"] is False
        assert "storage_error" in results


@pytest.mark.asyncio
class TestCreateLedgerCore:
    """Tests for the settings-driven factory."""

    async def test_memory_backend(self):
        sink = InMemoryNotificationSink()
        core = await create_ledger_core(sink=sink)
        try:
            assert isinstance(core.storage, InMemoryLedgerStorage)
            assert core.dispatcher.is_running
            await core.ping()
        finally:
            await core.close()
        assert not core.dispatcher.is_running

    async def test_sqlite_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_STORAGE_SQLITE_PATH", str(tmp_path / "core.db"))
        core = await create_ledger_core()
        try:
            assert isinstance(core.storage, SQLiteLedgerStorage)
            assert core.storage.is_connected
            await core.ping()
        finally:
            await core.close()
        assert not core.storage.is_connected

    async def test_invite_expiry_from_settings(self, monkeypatch):
        monkeypatch.setenv("LEDGER_INVITE_EXPIRY_DAYS", "1")
        core = await create_ledger_core()
        try:
            assert core.orgs._invite_expiry.days == 1
        finally:
            await core.close()

    async def test_debug_mode_forces_debug_logging(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEBUG_MODE", "true")
        core = await create_ledger_core()
        try:
            assert logging.getLogger().level == logging.DEBUG
        finally:
            await core.close()
            logging.getLogger().setLevel(logging.INFO)
