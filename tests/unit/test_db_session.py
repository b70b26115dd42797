import pytest
from sqlalchemy.exc import OperationalError

from src.config import DatabaseSettings
from src.infrastructure.db.session import build_engine, wait_for_database


class UnreachableEngine:
    def __init__(self):
        self.attempts = 0

    def connect(self):
        self.attempts += 1
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_database_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///demo.db")
    monkeypatch.setenv("DB_CONNECT_MAX_RETRIES", "3")
    monkeypatch.setenv("DB_CONNECT_RETRY_DELAY", "0.25")
    monkeypatch.setenv("DB_ECHO", "true")

    settings = DatabaseSettings.from_env()

    assert settings.url == "sqlite+pysqlite:///demo.db"
    assert settings.connect_max_retries == 3
    assert settings.connect_retry_delay == 0.25
    assert settings.echo is True


def test_sqlite_engine_is_reachable(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'ready.db'}")

    wait_for_database(engine, max_retries=1, retry_delay_seconds=0)

    engine.dispose()


def test_unreachable_database_retries_then_raises():
    engine = UnreachableEngine()

    with pytest.raises(OperationalError):
        wait_for_database(engine, max_retries=3, retry_delay_seconds=0)

    assert engine.attempts == 3
