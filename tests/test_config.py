"""Tests for runtime configuration."""

import pytest

from jimjam import (
    Database,
    DatabaseConfig,
    get_database_config,
    get_global_config,
    set_global_config,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.delenv("JIMJAM_JOURNAL_MODE", raising=False)
    monkeypatch.delenv("JIMJAM_BUSY_TIMEOUT", raising=False)
    monkeypatch.setattr("jimjam.config._global_config", None)


def test_defaults():
    config = DatabaseConfig()

    assert config.journal_mode == "WAL"
    assert config.synchronous == "NORMAL"
    assert config.busy_timeout == 5.0
    assert config.transient_retries == 1
    assert "disk i/o error" in config.transient_markers


def test_values_are_normalized():
    config = DatabaseConfig(journal_mode="delete", synchronous="full", transient_retries=-3)

    assert config.journal_mode == "DELETE"
    assert config.synchronous == "FULL"
    assert config.transient_retries == 0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("JIMJAM_JOURNAL_MODE", "memory")
    monkeypatch.setenv("JIMJAM_BUSY_TIMEOUT", "0.5")

    config = get_database_config()

    assert config.journal_mode == "MEMORY"
    assert config.busy_timeout == 0.5


def test_arguments_win_over_environment(monkeypatch):
    monkeypatch.setenv("JIMJAM_JOURNAL_MODE", "memory")

    config = get_database_config(journal_mode="truncate", busy_timeout=2, transient_retries=-1)

    assert config.journal_mode == "TRUNCATE"
    assert config.busy_timeout == 2
    assert config.transient_retries == 0


def test_global_config():
    assert get_global_config() == DatabaseConfig()

    custom = DatabaseConfig(busy_timeout=1.0)
    set_global_config(custom)

    assert get_global_config() is custom


def test_database_falls_back_to_global_config(db_path):
    set_global_config(DatabaseConfig(journal_mode="delete"))

    with Database(db_path) as db:
        assert db.config.journal_mode == "DELETE"
        row = db.handle.execute("PRAGMA journal_mode").fetchone()
        assert row[0] == "delete"


def test_explicit_config_wins(db_path):
    set_global_config(DatabaseConfig(journal_mode="delete"))

    with Database(db_path, DatabaseConfig()) as db:
        assert db.handle.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
