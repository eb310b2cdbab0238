"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of psibase_sim.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, select  # noqa: E402
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from psibase_sim.database.models import Base, Token  # noqa: E402
from psibase_sim.database.seed import seed_default_tokens  # noqa: E402
from psibase_sim.services.store import SqlTransactionStore  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Render PG JSONB columns as TEXT on SQLite (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all tables and the default tokens.

    StaticPool keeps one shared connection so worker threads used by
    ``run_db`` see the same database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    seed_default_tokens(engine)
    return engine


@pytest.fixture
def store(db_engine: Engine) -> SqlTransactionStore:
    return SqlTransactionStore(db_engine)


@pytest.fixture
def token_ids(db_engine: Engine) -> dict[str, str]:
    """Map of seeded token symbol → token id."""
    with Session(db_engine) as session:
        rows = session.execute(select(Token.symbol, Token.id)).all()
    return {row.symbol: row.id for row in rows}


@pytest.fixture
def fund(store: SqlTransactionStore, token_ids: dict[str, str]):
    """Credit ``amount`` of ``symbol`` to ``user_id``.  Returns the token id."""

    def _fund(user_id: str, symbol: str, amount: float) -> str:
        token_id = token_ids[symbol]
        store.adjust_balance(user_id, token_id, amount)
        return token_id

    return _fund


def make_user_token(sub: str = "alice") -> str:
    """Create a bearer JWT as the external auth provider would."""
    import jwt

    from psibase_sim.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub}, JWT_SECRET, algorithm=JWT_ALGORITHM)
