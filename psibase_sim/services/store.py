"""
psibase_sim.services.store — Relational Store Interface & SQL Implementation
=============================================================================

The validator and executor never touch SQLAlchemy directly.  They receive a
:class:`TransactionStore` at construction time; :class:`SqlTransactionStore`
is the production implementation and tests may substitute any object with
the same methods.

Every failure surfaces as :class:`StoreError` (or a subclass) so callers can
turn it into a descriptive message without knowing the backend.

Balance adjustments are a single ``UPDATE … SET balance = balance + :delta``
statement, so concurrent adjustments to the same row never lose updates.
Debits carry a ``balance >= :amount`` guard in the same statement, which
keeps a balance from going negative even if two transfers race past
validation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from psibase_sim.database.models import (
    Petition,
    PetitionStatus,
    PsibaseTransactionRecord,
    Token,
    TokenTransaction,
    TransactionStatus,
    UserBalance,
    Vote,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from psibase_sim.engine.transactions import Transaction

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class StoreError(Exception):
    """A lookup or write against the relational store failed."""


class InsufficientBalanceError(StoreError):
    """A debit would have taken a balance below zero."""


class DuplicateRecordError(StoreError):
    """A uniqueness constraint rejected the insert."""


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------
class TransactionStore(Protocol):
    """Narrow view of the relational store used by the simulator."""

    def get_balance(self, user_id: str, token_id: str) -> float | None: ...

    def get_token_id(self, symbol: str) -> str: ...

    def get_balances(self, user_id: str) -> dict[str, float]: ...

    def adjust_balance(self, user_id: str, token_id: str, delta: float) -> float: ...

    def record_token_transaction(
        self,
        *,
        from_user_id: str | None,
        to_user_id: str | None,
        token_id: str,
        amount: float,
        reason: str,
        transaction_type: str,
        metadata: dict,
    ) -> str: ...

    def create_petition(
        self, *, title: str, description: str | None, creator_id: str, metadata: dict
    ) -> str: ...

    def find_vote(self, petition_id: str, voter_id: str) -> str | None: ...

    def insert_vote(
        self, *, petition_id: str, voter_id: str, vote_type: str, metadata: dict
    ) -> str: ...

    def insert_transaction_record(self, tx: Transaction) -> None: ...

    def get_transaction_record(self, transaction_id: str) -> dict | None: ...

    def update_transaction_status(
        self,
        transaction_id: str,
        status: str,
        *,
        result: dict | None = None,
        error: str | None = None,
    ) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------
def record_to_dict(row: PsibaseTransactionRecord) -> dict:
    """Serialize a transaction-log row for API responses and replay."""
    return {
        "transaction_id": row.transaction_id,
        "sender": row.sender,
        "action": row.action,
        "payload": row.payload,
        "metadata": row.metadata_,
        "signature": row.signature,
        "timestamp": row.timestamp,
        "status": row.status,
        "result": row.result,
        "error": row.error,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


class SqlTransactionStore:
    """:class:`TransactionStore` backed by a SQLAlchemy :class:`Engine`.

    Each method runs in its own short session and commits before returning,
    mirroring one RPC/REST call per operation.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # -------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------
    def get_balance(self, user_id: str, token_id: str) -> float | None:
        """Return the balance, or ``None`` when the principal has no row."""
        try:
            with Session(self._engine) as session:
                return session.scalar(
                    select(UserBalance.balance).where(
                        UserBalance.user_id == user_id,
                        UserBalance.token_id == token_id,
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def get_token_id(self, symbol: str) -> str:
        try:
            with Session(self._engine) as session:
                token_id = session.scalar(select(Token.id).where(Token.symbol == symbol))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        if token_id is None:
            raise StoreError(f"Token {symbol!r} not found")
        return token_id

    def get_balances(self, user_id: str) -> dict[str, float]:
        """All balances of *user_id*, keyed by token symbol."""
        try:
            with Session(self._engine) as session:
                rows = session.execute(
                    select(Token.symbol, UserBalance.balance)
                    .join(Token, Token.id == UserBalance.token_id)
                    .where(UserBalance.user_id == user_id)
                    .order_by(Token.symbol)
                ).all()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return {row.symbol: row.balance for row in rows}

    def adjust_balance(self, user_id: str, token_id: str, delta: float) -> float:
        """Atomically add *delta* (may be negative) and return the new balance.

        Credits create the row when missing.  Debits never do, and fail with
        :class:`InsufficientBalanceError` when the balance can't cover them.
        """
        try:
            with Session(self._engine) as session:
                stmt = (
                    update(UserBalance)
                    .where(
                        UserBalance.user_id == user_id,
                        UserBalance.token_id == token_id,
                    )
                    .values(balance=UserBalance.balance + delta)
                )
                if delta < 0:
                    stmt = stmt.where(UserBalance.balance >= -delta)
                updated = session.execute(stmt).rowcount

                if updated == 0:
                    if delta < 0:
                        raise InsufficientBalanceError(
                            f"balance of {user_id} cannot cover {-delta}"
                        )
                    try:
                        with session.begin_nested():   # SAVEPOINT
                            session.add(UserBalance(
                                user_id=user_id, token_id=token_id, balance=delta,
                            ))
                            session.flush()
                    except IntegrityError as exc:
                        # Row appeared concurrently; fall back to the increment.
                        if session.execute(stmt).rowcount == 0:
                            raise StoreError(str(exc.orig)) from exc

                new_balance = session.scalar(
                    select(UserBalance.balance).where(
                        UserBalance.user_id == user_id,
                        UserBalance.token_id == token_id,
                    )
                )
                session.commit()
                return new_balance
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def record_token_transaction(
        self,
        *,
        from_user_id: str | None,
        to_user_id: str | None,
        token_id: str,
        amount: float,
        reason: str,
        transaction_type: str,
        metadata: dict,
    ) -> str:
        row = TokenTransaction(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            token_id=token_id,
            amount=amount,
            reason=reason,
            transaction_type=transaction_type,
            status=TransactionStatus.COMPLETED.value,
            psibase_metadata=metadata,
        )
        return self._insert(row)

    # -------------------------------------------------------------------
    # Governance
    # -------------------------------------------------------------------
    def create_petition(
        self, *, title: str, description: str | None, creator_id: str, metadata: dict
    ) -> str:
        row = Petition(
            title=title,
            description=description,
            creator_id=creator_id,
            status=PetitionStatus.ACTIVE.value,
            psibase_metadata=metadata,
        )
        return self._insert(row)

    def find_vote(self, petition_id: str, voter_id: str) -> str | None:
        try:
            with Session(self._engine) as session:
                return session.scalar(
                    select(Vote.id).where(
                        Vote.petition_id == petition_id,
                        Vote.voter_id == voter_id,
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def insert_vote(
        self, *, petition_id: str, voter_id: str, vote_type: str, metadata: dict
    ) -> str:
        row = Vote(
            petition_id=petition_id,
            voter_id=voter_id,
            vote_type=vote_type,
            psibase_metadata=metadata,
        )
        return self._insert(row)

    # -------------------------------------------------------------------
    # Transaction log
    # -------------------------------------------------------------------
    def insert_transaction_record(self, tx: Transaction) -> None:
        self._insert(PsibaseTransactionRecord(
            transaction_id=tx.id,
            sender=tx.sender,
            action=tx.action,
            payload=dict(tx.payload or {}),
            metadata_=dict(tx.metadata or {}),
            signature=tx.signature,
            timestamp=tx.timestamp,
            status=TransactionStatus.PENDING.value,
        ))

    def get_transaction_record(self, transaction_id: str) -> dict | None:
        try:
            with Session(self._engine) as session:
                row = session.scalar(
                    select(PsibaseTransactionRecord).where(
                        PsibaseTransactionRecord.transaction_id == transaction_id
                    )
                )
                return record_to_dict(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def update_transaction_status(
        self,
        transaction_id: str,
        status: str,
        *,
        result: dict | None = None,
        error: str | None = None,
    ) -> None:
        try:
            with Session(self._engine) as session:
                updated = session.execute(
                    update(PsibaseTransactionRecord)
                    .where(PsibaseTransactionRecord.transaction_id == transaction_id)
                    .values(status=status, result=result, error=error)
                ).rowcount
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        if updated == 0:
            raise StoreError(f"Transaction {transaction_id} not found")

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _insert(self, row: Any) -> Any:
        """Add *row*, commit, and return its primary key."""
        try:
            with Session(self._engine) as session:
                session.add(row)
                session.flush()
                pk = row.id
                session.commit()
                return pk
        except IntegrityError as exc:
            raise DuplicateRecordError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
