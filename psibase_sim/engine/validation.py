"""
psibase_sim.engine.validation — Transaction Admissibility Rules
================================================================

Decides whether a :class:`Transaction` may execute.  Reads balances through
the injected store but never writes.

Rules run independently and accumulate, so a caller sees every problem in
one response:

  1. Structural — sender, action, timestamp present; action known
  2. Consent gate — explicit consent, no coercion (votes, proposals, transfers)
  3. Token payload — positive finite amount, token id (transfers, claims)
  4. Transfer ownership + solvency
  5. Proposal eligibility — governance-token balance ≥ threshold
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from psibase_sim.database.models import ActionType
from psibase_sim.engine.transactions import (
    TokenClaimPayload,
    TokenTransferPayload,
    Transaction,
    ValidationResult,
    is_positive_amount,
    parse_action,
    parse_payload,
)
from psibase_sim.services.store import StoreError

if TYPE_CHECKING:
    from psibase_sim.config import SimulatorConfig
    from psibase_sim.services.store import TransactionStore

logger = logging.getLogger(__name__)

CONSENT_GATED_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.GOVERNANCE_VOTE,
    ActionType.GOVERNANCE_PROPOSAL,
    ActionType.TOKEN_TRANSFER,
})

TOKEN_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.TOKEN_TRANSFER,
    ActionType.TOKEN_CLAIM,
})


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------
def check_required_fields(tx: Transaction, errors: list[str]) -> None:
    if not tx.sender:
        errors.append("Transaction sender is required")
    if not tx.action:
        errors.append("Transaction action is required")
    if not tx.timestamp:
        errors.append("Transaction timestamp is required")


def check_consent(tx: Transaction, errors: list[str]) -> None:
    """Consent must be explicit; any sign of force vetoes the action."""
    metadata = tx.metadata or {}
    if not metadata.get("consent_verified"):
        errors.append("Explicit consent required for this action under The Prime Law")
    if metadata.get("force_applied"):
        errors.append("Coercion detected - violates The Prime Law principles")


def check_token_payload(
    payload: TokenTransferPayload | TokenClaimPayload, errors: list[str]
) -> None:
    if not is_positive_amount(payload.amount):
        errors.append("Token amount must be a positive number")
    if not payload.token_id:
        errors.append("Token ID is required for token operations")


def check_transfer(
    tx: Transaction,
    payload: TokenTransferPayload,
    store: TransactionStore,
    errors: list[str],
) -> None:
    """Only the owner may move tokens, and only what they hold."""
    if payload.from_user_id != tx.sender:
        errors.append("Sender must be the token owner")

    if not payload.token_id or not payload.from_user_id:
        errors.append("Failed to verify token balance")
        return

    try:
        balance = store.get_balance(payload.from_user_id, payload.token_id)
    except StoreError as exc:
        logger.warning("Balance lookup failed for %s: %s", payload.from_user_id, exc)
        errors.append("Failed to verify token balance")
        return

    if balance is None:
        errors.append("Failed to verify token balance")
    elif is_positive_amount(payload.amount) and balance < payload.amount:
        errors.append("Insufficient token balance for transfer")


def check_proposal_eligibility(
    tx: Transaction,
    store: TransactionStore,
    config: SimulatorConfig,
    errors: list[str],
) -> None:
    """Proposers must hold at least ``proposal_threshold`` governance tokens.

    A missing balance row counts as zero here.
    """
    symbol = config.governance_token_symbol
    try:
        token_id = store.get_token_id(symbol)
    except StoreError as exc:
        logger.warning("Governance token %s lookup failed: %s", symbol, exc)
        errors.append("Failed to verify governance token")
        return

    try:
        balance = store.get_balance(tx.sender, token_id)
    except StoreError as exc:
        logger.warning("Governance balance lookup failed for %s: %s", tx.sender, exc)
        errors.append("Failed to verify governance token balance")
        return

    if (balance or 0) < config.proposal_threshold:
        errors.append(f"Insufficient {symbol} tokens for governance participation")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def validate_transaction(
    tx: Transaction,
    store: TransactionStore,
    config: SimulatorConfig,
) -> ValidationResult:
    """Run every applicable rule against *tx* and collect the errors."""
    result = ValidationResult()
    errors = result.errors

    check_required_fields(tx, errors)

    action = parse_action(tx.action)
    if action is None:
        if tx.action:
            errors.append(f"Unsupported action type: {tx.action}")
        return result

    if action in CONSENT_GATED_ACTIONS:
        check_consent(tx, errors)

    if not isinstance(tx.payload, Mapping):
        errors.append("Transaction payload must be an object")
        return result

    payload = parse_payload(action, tx.payload)

    if action in TOKEN_ACTIONS:
        check_token_payload(payload, errors)

    if action is ActionType.TOKEN_TRANSFER:
        check_transfer(tx, payload, store, errors)

    if action is ActionType.GOVERNANCE_PROPOSAL:
        check_proposal_eligibility(tx, store, config, errors)

    return result
