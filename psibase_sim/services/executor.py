"""
psibase_sim.services.executor — Per-Action State Mutations
===========================================================

Applies an already-validated :class:`Transaction` to the store.  Only
:class:`~psibase_sim.services.simulator.PsibaseSimulator` calls this; it
always validates first.

Every store call can fail independently.  Failures are caught where they
happen and returned as an :class:`ActionOutcome` with a message prefixed by
the failing operation, e.g. ``"Failed to update sender balance: …"``.

Transfers are a debit followed by a credit.  If the credit fails the sender
is re-credited once; a failed re-credit is reported in the error text and
not retried.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psibase_sim.database.models import ActionType, TokenTransactionType
from psibase_sim.engine.transactions import (
    ActionOutcome,
    GovernanceProposalPayload,
    GovernanceVotePayload,
    TokenClaimPayload,
    TokenTransferPayload,
    Transaction,
    parse_action,
    parse_payload,
)
from psibase_sim.services.store import DuplicateRecordError, StoreError

if TYPE_CHECKING:
    from psibase_sim.config import SimulatorConfig
    from psibase_sim.services.store import TransactionStore

logger = logging.getLogger(__name__)


def _fail(message: str) -> ActionOutcome:
    return ActionOutcome(success=False, error=message)


class TransactionExecutor:
    """Dispatches a transaction to the handler for its action."""

    def __init__(self, store: TransactionStore, config: SimulatorConfig) -> None:
        self._store = store
        self._config = config

    def execute(self, tx: Transaction) -> ActionOutcome:
        action = parse_action(tx.action)
        if action is None:
            return _fail(f"Unsupported action type: {tx.action}")

        payload = parse_payload(action, tx.payload or {})
        match action:
            case ActionType.TOKEN_TRANSFER:
                return self.token_transfer(tx, payload)
            case ActionType.TOKEN_CLAIM:
                return self.token_claim(tx, payload)
            case ActionType.GOVERNANCE_PROPOSAL:
                return self.governance_proposal(tx, payload)
            case ActionType.GOVERNANCE_VOTE:
                return self.governance_vote(tx, payload)
        return _fail(f"Unsupported action type: {tx.action}")

    @staticmethod
    def _origin(tx: Transaction) -> dict:
        return {"transaction_id": tx.id, "timestamp": tx.timestamp}

    # -------------------------------------------------------------------
    # token_transfer
    # -------------------------------------------------------------------
    def token_transfer(self, tx: Transaction, p: TokenTransferPayload) -> ActionOutcome:
        store = self._store
        try:
            store.adjust_balance(p.from_user_id, p.token_id, -p.amount)
        except StoreError as exc:
            return _fail(f"Failed to update sender balance: {exc}")

        try:
            store.adjust_balance(p.to_user_id, p.token_id, p.amount)
        except StoreError as exc:
            error = f"Failed to update recipient balance: {exc}"
            try:
                store.adjust_balance(p.from_user_id, p.token_id, p.amount)
            except StoreError as comp_exc:
                logger.error(
                    "Compensation failed for tx %s: %s could not be re-credited %s",
                    tx.id, p.from_user_id, p.amount,
                )
                error += f"; failed to restore sender balance: {comp_exc}"
            else:
                logger.warning(
                    "Transfer %s rolled back: sender %s re-credited %s",
                    tx.id, p.from_user_id, p.amount,
                )
            return _fail(error)

        try:
            record_id = store.record_token_transaction(
                from_user_id=p.from_user_id,
                to_user_id=p.to_user_id,
                token_id=p.token_id,
                amount=p.amount,
                reason=p.reason or self._config.default_transfer_reason,
                transaction_type=TokenTransactionType.TRANSFER.value,
                metadata=self._origin(tx),
            )
        except StoreError as exc:
            return _fail(f"Failed to record token transaction: {exc}")

        return ActionOutcome(success=True, result={"transaction_id": record_id})

    # -------------------------------------------------------------------
    # token_claim
    # -------------------------------------------------------------------
    def token_claim(self, tx: Transaction, p: TokenClaimPayload) -> ActionOutcome:
        try:
            self._store.adjust_balance(p.user_id, p.token_id, p.amount)
        except StoreError as exc:
            return _fail(f"Failed to update token balance: {exc}")

        try:
            record_id = self._store.record_token_transaction(
                from_user_id=None,
                to_user_id=p.user_id,
                token_id=p.token_id,
                amount=p.amount,
                reason=p.reason or self._config.default_claim_reason,
                transaction_type=TokenTransactionType.CLAIM.value,
                metadata={**self._origin(tx), "challenge_id": p.challenge_id},
            )
        except StoreError as exc:
            return _fail(f"Failed to record token transaction: {exc}")

        return ActionOutcome(success=True, result={"transaction_id": record_id})

    # -------------------------------------------------------------------
    # governance_proposal
    # -------------------------------------------------------------------
    def governance_proposal(
        self, tx: Transaction, p: GovernanceProposalPayload
    ) -> ActionOutcome:
        try:
            petition_id = self._store.create_petition(
                title=p.title,
                description=p.description,
                creator_id=p.creator_id,
                metadata=self._origin(tx),
            )
        except StoreError as exc:
            return _fail(f"Failed to create petition: {exc}")

        return ActionOutcome(success=True, result={"petition_id": petition_id})

    # -------------------------------------------------------------------
    # governance_vote
    # -------------------------------------------------------------------
    def governance_vote(self, tx: Transaction, p: GovernanceVotePayload) -> ActionOutcome:
        # Fast path; the unique constraint on votes is the real guarantee.
        try:
            existing = self._store.find_vote(p.petition_id, p.voter_id)
        except StoreError as exc:
            return _fail(f"Failed to check existing vote: {exc}")
        if existing is not None:
            return _fail("User has already voted on this petition")

        try:
            vote_id = self._store.insert_vote(
                petition_id=p.petition_id,
                voter_id=p.voter_id,
                vote_type=p.vote_type,
                metadata=self._origin(tx),
            )
        except DuplicateRecordError as exc:
            # Lost a race with a concurrent vote, or some other constraint.
            try:
                raced = self._store.find_vote(p.petition_id, p.voter_id)
            except StoreError:
                raced = None
            if raced is not None:
                return _fail("User has already voted on this petition")
            return _fail(f"Failed to record vote: {exc}")
        except StoreError as exc:
            return _fail(f"Failed to record vote: {exc}")

        return ActionOutcome(success=True, result={"vote_id": vote_id})
