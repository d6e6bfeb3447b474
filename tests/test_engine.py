"""Tests for the module-level engine and session helpers."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from pettycash_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from pettycash_kernel.models.department import Department


@pytest.fixture
def file_engine(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'engine.db'}")
    create_tables()
    yield
    reset_engine()


def _department_count() -> int:
    session = get_session()
    try:
        return session.execute(select(func.count()).select_from(Department)).scalar_one()
    finally:
        session.close()


class TestEngineLifecycle:
    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_reset_forgets_engine(self, file_engine):
        assert get_engine().dialect.name == "sqlite"
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()


class TestSessionScope:
    def test_commits_on_success(self, file_engine):
        with session_scope() as session:
            session.add(Department(name="Operations", float_amount=Decimal("500.00")))

        assert _department_count() == 1

    def test_rolls_back_and_reraises(self, file_engine):
        with pytest.raises(KeyError):
            with session_scope() as session:
                session.add(Department(name="Operations", float_amount=Decimal("500.00")))
                session.flush()
                raise KeyError("boom")

        assert _department_count() == 0
