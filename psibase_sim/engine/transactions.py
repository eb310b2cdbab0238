"""
psibase_sim.engine.transactions — Transaction Envelope & Typed Payloads
========================================================================

Every request that reaches the simulator is a :class:`Transaction`.  The
``payload`` travels as a plain mapping (that is what gets hashed and
logged) and is turned into one typed variant per action by
:func:`parse_payload` before the validator or executor looks at it.

No DB I/O in this module.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from psibase_sim.database.models import ActionType

__all__ = [
    "ActionOutcome",
    "ExecutionResult",
    "GovernanceProposalPayload",
    "GovernanceVotePayload",
    "Payload",
    "TokenClaimPayload",
    "TokenTransferPayload",
    "Transaction",
    "ValidationResult",
    "generate_transaction_id",
    "is_positive_amount",
    "parse_action",
    "parse_payload",
]


# ---------------------------------------------------------------------------
# Transaction — the request envelope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Transaction:
    """A caller-constructed request.

    ``action`` stays a raw string so unknown kinds can be represented and
    rejected by validation.  ``signature`` is stored but never verified.
    """

    sender: str | None
    action: str | None
    payload: Mapping[str, Any] | None
    timestamp: str | None
    id: str | None = None
    signature: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Transaction:
        return cls(
            sender=data.get("sender"),
            action=data.get("action"),
            payload=data.get("payload") if data.get("payload") is not None else {},
            timestamp=data.get("timestamp"),
            id=data.get("id"),
            signature=data.get("signature"),
            metadata=data.get("metadata") or {},
        )


def generate_transaction_id(tx: Transaction) -> str:
    """Deterministic SHA-256 id over sender, action, payload and timestamp.

    The JSON encoding is canonical (sorted keys, compact separators), so two
    payload mappings with the same content hash identically regardless of
    key order.
    """
    data = json.dumps(
        {
            "sender": tx.sender,
            "action": tx.action,
            "payload": tx.payload,
            "timestamp": tx.timestamp,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def parse_action(action: str | None) -> ActionType | None:
    """Return the :class:`ActionType` for *action*, or ``None`` if unknown."""
    try:
        return ActionType(action)
    except ValueError:
        return None


def is_positive_amount(value: Any) -> bool:
    """True for finite int/float values strictly greater than zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


# ---------------------------------------------------------------------------
# Typed payload variants — one per ActionType
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TokenTransferPayload:
    from_user_id: str | None
    to_user_id: str | None
    token_id: str | None
    amount: Any
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class TokenClaimPayload:
    user_id: str | None
    token_id: str | None
    amount: Any
    reason: str | None = None
    challenge_id: str | None = None


@dataclass(frozen=True, slots=True)
class GovernanceProposalPayload:
    title: str | None
    description: str | None
    creator_id: str | None


@dataclass(frozen=True, slots=True)
class GovernanceVotePayload:
    petition_id: str | None
    voter_id: str | None
    vote_type: str | None


Payload = (
    TokenTransferPayload
    | TokenClaimPayload
    | GovernanceProposalPayload
    | GovernanceVotePayload
)

_PAYLOAD_TYPES: dict[ActionType, type] = {
    ActionType.TOKEN_TRANSFER: TokenTransferPayload,
    ActionType.TOKEN_CLAIM: TokenClaimPayload,
    ActionType.GOVERNANCE_PROPOSAL: GovernanceProposalPayload,
    ActionType.GOVERNANCE_VOTE: GovernanceVotePayload,
}


def parse_payload(action: ActionType, raw: Mapping[str, Any]) -> Payload:
    """Build the typed variant for *action* from a raw mapping.

    Lenient: keys the variant declares but *raw* lacks become ``None``
    (or the field default), unknown keys are dropped.  Shape checks are the
    validator's job.
    """
    payload_cls = _PAYLOAD_TYPES[action]
    kwargs = {
        name: raw.get(name, None)
        for name in payload_cls.__dataclass_fields__
    }
    return payload_cls(**kwargs)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass
class ValidationResult:
    """Outcome of validation.  ``errors`` is non-empty iff invalid."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"valid": self.valid}
        if self.errors:
            out["errors"] = list(self.errors)
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """What the executor reports for a single action."""

    success: bool
    result: dict | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """What the simulator returns to its caller."""

    success: bool
    transaction_id: str | None = None
    block_height: int | None = None
    timestamp: str | None = None
    result: dict | None = None
    error: str | None = None
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "transaction_id": self.transaction_id,
            "block_height": self.block_height,
            "timestamp": self.timestamp,
            "result": self.result,
            "error": self.error,
            "replayed": self.replayed,
        }
