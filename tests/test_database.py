"""Tests for the global engine and session factory."""

from sqlalchemy import text

from hrms_payroll import database


class TestGlobalSessionFactory:
    async def test_init_db_builds_once(self, engine, monkeypatch):
        built = []

        def fake_get_engine():
            built.append(engine)
            return engine

        monkeypatch.setattr(database, "_engine", None)
        monkeypatch.setattr(database, "_session_factory", None)
        monkeypatch.setattr(database, "get_engine", fake_get_engine)

        first_engine, first_factory = database.init_db()
        second_engine, second_factory = database.init_db()

        assert first_engine is second_engine is engine
        assert first_factory is second_factory
        assert len(built) == 1

    async def test_get_session_uses_global_factory(self, engine, monkeypatch):
        monkeypatch.setattr(database, "_engine", None)
        monkeypatch.setattr(database, "_session_factory", None)
        monkeypatch.setattr(database, "get_engine", lambda: engine)

        async with database.get_session() as session:
            assert await session.scalar(text("SELECT 1")) == 1
