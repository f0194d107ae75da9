"""
Unit tests for the worker database helpers.
"""

import pytest
from sqlalchemy import text

from chainreel_worker import db


@pytest.fixture
def fresh_engine(monkeypatch):
    """Reset the cached engine around each test."""
    monkeypatch.setattr(db, "_engine", None)
    monkeypatch.setattr(db, "_SessionLocal", None)
    yield
    if db._engine is not None:
        db._engine.dispose()


class TestGetDatabaseUrl:
    @pytest.mark.parametrize(
        "configured,expected",
        [
            ("sqlite+aiosqlite:////data/db/chainreel.db", "sqlite:////data/db/chainreel.db"),
            ("sqlite:///./local.db", "sqlite:///./local.db"),
            (
                "postgresql+asyncpg://reel:secret@db:5432/reel",
                "postgresql://reel:secret@db:5432/reel",
            ),
        ],
    )
    def test_sync_driver(self, monkeypatch, configured, expected):
        monkeypatch.setenv("DATABASE_URL", configured)
        assert db.get_database_url() == expected


class TestGetEngine:
    def test_sqlite_file_uses_wal(self, monkeypatch, tmp_path, fresh_engine):
        path = tmp_path / "nested" / "chainreel.db"
        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{path}")

        engine = db.get_engine()
        with engine.connect() as conn:
            mode = conn.execute(text("PRAGMA journal_mode")).scalar()
            timeout = conn.execute(text("PRAGMA busy_timeout")).scalar()

        assert path.parent.is_dir()
        assert mode.lower() == "wal"
        assert timeout == db.SQLITE_BUSY_TIMEOUT_MS

    def test_session_rolls_back_on_error(self, monkeypatch, tmp_path, fresh_engine):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'chainreel.db'}")

        with db.get_db_session() as session:
            session.execute(text("CREATE TABLE t (x INTEGER)"))
            session.commit()

        with pytest.raises(RuntimeError):
            with db.get_db_session() as session:
                session.execute(text("INSERT INTO t VALUES (1)"))
                raise RuntimeError("boom")

        with db.get_db_session() as session:
            assert session.execute(text("SELECT COUNT(*) FROM t")).scalar() == 0
