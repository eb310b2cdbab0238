"""
tests/test_store.py — SqlTransactionStore Tests
================================================

Covers atomic balance adjustment, token lookup, seeding and the
transaction-log round trip on SQLite.
"""

from __future__ import annotations

import pytest

from psibase_sim.database.engine import get_session
from psibase_sim.database.models import Token
from psibase_sim.database.seed import DEFAULT_TOKENS, seed_default_tokens
from psibase_sim.engine.transactions import Transaction
from psibase_sim.services.store import (
    DuplicateRecordError,
    InsufficientBalanceError,
    StoreError,
)


class TestBalances:
    def test_credit_creates_row(self, store, token_ids):
        token_id = token_ids["GOLD"]
        assert store.get_balance("dana", token_id) is None
        assert store.adjust_balance("dana", token_id, 12) == 12
        assert store.get_balance("dana", token_id) == 12

    def test_credit_and_debit_accumulate(self, store, token_ids):
        token_id = token_ids["GOLD"]
        store.adjust_balance("dana", token_id, 12)
        store.adjust_balance("dana", token_id, 8)
        assert store.adjust_balance("dana", token_id, -15) == 5

    def test_debit_cannot_go_negative(self, store, token_ids):
        token_id = token_ids["GOLD"]
        store.adjust_balance("dana", token_id, 5)
        with pytest.raises(InsufficientBalanceError):
            store.adjust_balance("dana", token_id, -6)
        assert store.get_balance("dana", token_id) == 5

    def test_debit_without_row_fails(self, store, token_ids):
        with pytest.raises(InsufficientBalanceError):
            store.adjust_balance("nobody", token_ids["GOLD"], -1)
        assert store.get_balance("nobody", token_ids["GOLD"]) is None

    def test_insufficient_balance_is_a_store_error(self):
        assert issubclass(InsufficientBalanceError, StoreError)

    def test_get_balances_by_symbol(self, store, fund):
        fund("erin", "GEN", 11)
        fund("erin", "GOLD", 3)
        assert store.get_balances("erin") == {"GEN": 11, "GOLD": 3}


class TestTokens:
    def test_get_token_id(self, store, token_ids):
        assert store.get_token_id("GEN") == token_ids["GEN"]

    def test_unknown_symbol_raises(self, store):
        with pytest.raises(StoreError, match="not found"):
            store.get_token_id("XYZ")

    def test_seed_is_idempotent(self, db_engine, token_ids):
        assert set(token_ids) == set(DEFAULT_TOKENS)
        assert seed_default_tokens(db_engine) == 0


class TestSession:
    def test_commits_on_success(self, db_engine, store):
        with get_session(db_engine) as session:
            session.add(Token(symbol="XP", name="Experience"))
        assert store.get_token_id("XP")

    def test_rolls_back_on_error(self, db_engine, store):
        with pytest.raises(RuntimeError):
            with get_session(db_engine) as session:
                session.add(Token(symbol="XP", name="Experience"))
                session.flush()
                raise RuntimeError("abort")
        with pytest.raises(StoreError):
            store.get_token_id("XP")


class TestTransactionLog:
    def _tx(self) -> Transaction:
        return Transaction(
            id="abc123",
            sender="alice",
            action="token_claim",
            payload={"user_id": "alice", "amount": 1},
            timestamp="2026-01-15T12:00:00Z",
            metadata={"consent_verified": True},
        )

    def test_insert_then_get(self, store):
        store.insert_transaction_record(self._tx())
        record = store.get_transaction_record("abc123")
        assert record["status"] == "pending"
        assert record["payload"] == {"user_id": "alice", "amount": 1}
        assert record["metadata"] == {"consent_verified": True}
        assert record["timestamp"] == "2026-01-15T12:00:00Z"

    def test_duplicate_id_rejected(self, store):
        store.insert_transaction_record(self._tx())
        with pytest.raises(DuplicateRecordError):
            store.insert_transaction_record(self._tx())

    def test_update_status(self, store):
        store.insert_transaction_record(self._tx())
        store.update_transaction_status("abc123", "failed", error="nope")
        record = store.get_transaction_record("abc123")
        assert record["status"] == "failed"
        assert record["error"] == "nope"

    def test_update_unknown_id(self, store):
        with pytest.raises(StoreError):
            store.update_transaction_status("missing", "completed")

    def test_get_unknown_id(self, store):
        assert store.get_transaction_record("missing") is None
