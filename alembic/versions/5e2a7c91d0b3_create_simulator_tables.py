"""Create token, governance and psibase transaction-log tables

Revision ID: 5e2a7c91d0b3
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e2a7c91d0b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create the simulator schema."""
    op.create_table(
        "tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("symbol", sa.String(16), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "user_balances",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column(
            "token_id",
            sa.String(36),
            sa.ForeignKey("tokens.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "token_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("from_user_id", sa.String(64), nullable=True),
        sa.Column("to_user_id", sa.String(64), nullable=True),
        sa.Column("token_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("psibase_metadata", postgresql.JSONB(), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_token_transactions_from", "token_transactions", ["from_user_id", "created_at"]
    )
    op.create_index(
        "ix_token_transactions_to", "token_transactions", ["to_user_id", "created_at"]
    )

    op.create_table(
        "petitions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("psibase_metadata", postgresql.JSONB(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "votes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "petition_id",
            sa.String(36),
            sa.ForeignKey("petitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("voter_id", sa.String(64), nullable=False),
        sa.Column("vote_type", sa.String(20), nullable=False),
        sa.Column("psibase_metadata", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("petition_id", "voter_id", name="uq_votes_petition_voter"),
    )

    op.create_table(
        "psibase_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("transaction_id", sa.String(64), nullable=False, unique=True),
        sa.Column("sender", sa.String(64), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("signature", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("result", postgresql.JSONB(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_psibase_transactions_sender", "psibase_transactions", ["sender", "created_at"]
    )
    op.create_index("ix_psibase_transactions_status", "psibase_transactions", ["status"])


def downgrade() -> None:
    """Drop the simulator schema."""
    op.drop_index("ix_psibase_transactions_status", table_name="psibase_transactions")
    op.drop_index("ix_psibase_transactions_sender", table_name="psibase_transactions")
    op.drop_table("psibase_transactions")
    op.drop_table("votes")
    op.drop_table("petitions")
    op.drop_index("ix_token_transactions_to", table_name="token_transactions")
    op.drop_index("ix_token_transactions_from", table_name="token_transactions")
    op.drop_table("token_transactions")
    op.drop_table("user_balances")
    op.drop_table("tokens")
