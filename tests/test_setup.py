"""Tests for configuration, logging setup and database adapter selection."""

import logging

from sqlalchemy.pool import NullPool

from shortlink.core.log_config import configure_logging
from shortlink.core.setting import DEFAULT_RESERVED_CODES, Settings
from shortlink.db.postgres_adapter import PostgreSQLAdapter
from shortlink.db.sqlite_adapter import SQLiteAdapter, get_database_adapter


class TestSettings:

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.SHORT_CODE_LENGTH == 7
        assert config.CODE_MIN_LENGTH <= config.SHORT_CODE_LENGTH <= config.CODE_MAX_LENGTH
        assert len(config.CODE_ALPHABET) == 62
        assert config.CODE_GENERATION_MAX_ATTEMPTS == 5
        assert config.RESERVED_CODES == DEFAULT_RESERVED_CODES

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SHORT_CODE_LENGTH", "8")
        monkeypatch.setenv("click_retention_days", "7")
        config = Settings(_env_file=None)
        assert config.SHORT_CODE_LENGTH == 8
        assert config.CLICK_RETENTION_DAYS == 7

    def test_unknown_variables_are_ignored(self, monkeypatch):
        monkeypatch.setenv("ENV_SETTING", "not-an-environment")
        monkeypatch.setenv("SERVICE_NAME", "edge-1")
        config = Settings(_env_file=None)
        assert "ENV_SETTING" not in Settings.model_fields
        assert "SERVICE_NAME" not in Settings.model_fields
        assert not hasattr(config, "SERVICE_NAME")


class TestLogging:

    def test_configure_logging_is_idempotent(self):
        logger = configure_logging("debug")
        configure_logging("warning")

        handlers = [h for h in logger.handlers if getattr(h, "_shortlink", False)]
        assert len(handlers) == 1
        assert logger.level == logging.WARNING
        assert logging.getLogger("shortlink.services.mapping_store").getEffectiveLevel() == logging.WARNING


class TestAdapters:

    def test_sqlite_is_default(self):
        adapter = get_database_adapter("sqlite+aiosqlite:///./x.db")
        assert isinstance(adapter, SQLiteAdapter)
        assert adapter.get_pool_class() is NullPool
        assert adapter.get_connect_args()["timeout"] > 0

    def test_postgres_selected_by_url(self):
        adapter = get_database_adapter("postgresql+asyncpg://u:p@db/shortlinks", pool_size=4)
        assert isinstance(adapter, PostgreSQLAdapter)
        assert adapter.get_dialect_name() == "postgresql"
        assert adapter.get_engine_kwargs()["pool_size"] == 4
