"""Tests for the engine module's session helpers."""

from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from posting_kernel.db.engine import (
    get_engine,
    get_session,
    get_session_factory,
    is_postgres,
    session_scope,
)
from posting_kernel.services import ChartOfAccountsService


def test_engine_is_the_test_engine(db_engine):
    assert get_engine() is db_engine
    assert is_postgres() == (db_engine.dialect.name == "postgresql")


def test_factory_binds_sessions_to_engine(db_engine):
    with get_session_factory()() as s:
        assert s.get_bind() is db_engine


def test_session_scope_rolls_back_on_error(db_tables):
    company_id = uuid4()

    with pytest.raises(RuntimeError):
        with session_scope() as s:
            ChartOfAccountsService(s).create_account(company_id, "1000", "Assets", "asset")
            raise RuntimeError("abort")

    with get_session() as s:
        assert isinstance(s, Session)
        assert ChartOfAccountsService(s).get_by_code(company_id, "1000") is None
