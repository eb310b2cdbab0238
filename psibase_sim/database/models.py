"""
psibase_sim.database.models — SQLAlchemy 2.0 Data Models
=========================================================

Tables:
- tokens               — Token catalogue (GEN, SAP, GOLD, …)
- user_balances        — Per-principal, per-token balances
- token_transactions   — Completed transfers and claims
- petitions            — Governance proposals
- votes                — One vote per voter per petition
- psibase_transactions — Append-only simulator transaction log
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all simulator ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActionType(enum.StrEnum):
    """The closed set of actions the simulator accepts."""
    TOKEN_TRANSFER = "token_transfer"
    TOKEN_CLAIM = "token_claim"
    GOVERNANCE_PROPOSAL = "governance_proposal"
    GOVERNANCE_VOTE = "governance_vote"


class TransactionStatus(enum.StrEnum):
    """Lifecycle of a row in ``psibase_transactions``."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TokenTransactionType(enum.StrEnum):
    TRANSFER = "transfer"
    CLAIM = "claim"


class PetitionStatus(enum.StrEnum):
    # Only ``active`` is written here; closing petitions happens elsewhere.
    ACTIVE = "active"


# ---------------------------------------------------------------------------
# Tokens — the token catalogue
# ---------------------------------------------------------------------------
class Token(Base):
    __tablename__ = "tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Token id={self.id} symbol={self.symbol!r}>"


# ---------------------------------------------------------------------------
# UserBalance — one row per (principal, token)
# ---------------------------------------------------------------------------
class UserBalance(Base):
    """Spendable balance of a token held by a principal.

    Principals are identified by the external auth provider's subject id,
    so ``user_id`` is an opaque string rather than a foreign key.
    """
    __tablename__ = "user_balances"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    token_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tokens.id", ondelete="CASCADE"), primary_key=True
    )
    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserBalance user={self.user_id} token={self.token_id} balance={self.balance}>"


# ---------------------------------------------------------------------------
# TokenTransaction — completed transfers and claims
# ---------------------------------------------------------------------------
class TokenTransaction(Base):
    __tablename__ = "token_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    from_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    to_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    token_id: Mapped[str] = mapped_column(String(36), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")
    psibase_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_token_transactions_from", "from_user_id", "created_at"),
        Index("ix_token_transactions_to", "to_user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TokenTransaction id={self.id} type={self.transaction_type} "
            f"amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# Petition — governance proposals
# ---------------------------------------------------------------------------
class Petition(Base):
    __tablename__ = "petitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PetitionStatus.ACTIVE.value
    )
    psibase_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Petition id={self.id} title={self.title!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Vote — one per (petition, voter)
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    petition_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("petitions.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    vote_type: Mapped[str] = mapped_column(String(20), nullable=False)
    psibase_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("petition_id", "voter_id", name="uq_votes_petition_voter"),
    )

    def __repr__(self) -> str:
        return f"<Vote id={self.id} petition={self.petition_id} voter={self.voter_id}>"


# ---------------------------------------------------------------------------
# PsibaseTransactionRecord — append-only simulator log
# ---------------------------------------------------------------------------
class PsibaseTransactionRecord(Base):
    """One row per attempted transaction, keyed by the deterministic id.

    ``status`` moves ``pending → completed`` or ``pending → failed``.
    Rows are never deleted by the simulator.
    """
    __tablename__ = "psibase_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    sender: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Caller-supplied ISO-8601 string, kept verbatim since it feeds the id hash
    timestamp: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_psibase_transactions_sender", "sender", "created_at"),
        Index("ix_psibase_transactions_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<PsibaseTransactionRecord tx={self.transaction_id[:12]} "
            f"action={self.action} status={self.status}>"
        )
