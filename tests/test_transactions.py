"""
tests/test_transactions.py — Transaction Envelope Unit Tests
=============================================================

Pure tests: id generation, payload parsing, result shapes.  No database.
"""

from __future__ import annotations

import math

import pytest

from psibase_sim.database.models import ActionType
from psibase_sim.engine.transactions import (
    ExecutionResult,
    GovernanceVotePayload,
    TokenClaimPayload,
    TokenTransferPayload,
    Transaction,
    ValidationResult,
    generate_transaction_id,
    is_positive_amount,
    parse_action,
    parse_payload,
)


def _tx(**overrides) -> Transaction:
    fields = {
        "sender": "alice",
        "action": "token_transfer",
        "payload": {"from_user_id": "alice", "to_user_id": "bob", "token_id": "t1", "amount": 5},
        "timestamp": "2026-01-15T12:00:00Z",
    }
    fields.update(overrides)
    return Transaction(**fields)


class TestGenerateTransactionId:
    def test_same_inputs_same_id(self):
        assert generate_transaction_id(_tx()) == generate_transaction_id(_tx())

    def test_is_sha256_hex(self):
        tx_id = generate_transaction_id(_tx())
        assert len(tx_id) == 64
        int(tx_id, 16)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("sender", "mallory"),
            ("action", "token_claim"),
            ("timestamp", "2026-01-15T12:00:01Z"),
            ("payload", {"from_user_id": "alice", "to_user_id": "bob", "token_id": "t1", "amount": 6}),
        ],
    )
    def test_changing_any_field_changes_id(self, field, value):
        assert generate_transaction_id(_tx(**{field: value})) != generate_transaction_id(_tx())

    def test_payload_key_order_does_not_matter(self):
        a = _tx(payload={"amount": 5, "token_id": "t1"})
        b = _tx(payload={"token_id": "t1", "amount": 5})
        assert generate_transaction_id(a) == generate_transaction_id(b)

    def test_id_ignores_signature_and_metadata(self):
        plain = _tx()
        decorated = _tx(signature="sig", metadata={"consent_verified": True})
        assert generate_transaction_id(plain) == generate_transaction_id(decorated)


class TestParsing:
    def test_parse_action_known(self):
        assert parse_action("governance_vote") is ActionType.GOVERNANCE_VOTE

    def test_parse_action_unknown(self):
        assert parse_action("mint_everything") is None
        assert parse_action(None) is None

    def test_parse_transfer_payload(self):
        payload = parse_payload(
            ActionType.TOKEN_TRANSFER,
            {"from_user_id": "a", "to_user_id": "b", "token_id": "t", "amount": 3, "extra": 1},
        )
        assert payload == TokenTransferPayload("a", "b", "t", 3, None)

    def test_missing_keys_become_none(self):
        payload = parse_payload(ActionType.TOKEN_CLAIM, {"amount": 1})
        assert isinstance(payload, TokenClaimPayload)
        assert payload.user_id is None
        assert payload.challenge_id is None

    def test_vote_payload(self):
        payload = parse_payload(
            ActionType.GOVERNANCE_VOTE,
            {"petition_id": "p", "voter_id": "v", "vote_type": "support"},
        )
        assert payload == GovernanceVotePayload("p", "v", "support")

    def test_from_dict_defaults(self):
        tx = Transaction.from_dict({"sender": "a", "action": "token_claim"})
        assert tx.payload == {}
        assert tx.metadata == {}
        assert tx.timestamp is None


class TestIsPositiveAmount:
    @pytest.mark.parametrize("value", [1, 0.5, 1e9])
    def test_accepts(self, value):
        assert is_positive_amount(value)

    @pytest.mark.parametrize("value", [0, -1, math.inf, math.nan, "10", None, True])
    def test_rejects(self, value):
        assert not is_positive_amount(value)


class TestResults:
    def test_validation_result_valid_when_no_errors(self):
        assert ValidationResult().to_dict() == {"valid": True}

    def test_validation_result_invalid(self):
        result = ValidationResult(errors=["nope"])
        assert not result.valid
        assert result.to_dict() == {"valid": False, "errors": ["nope"]}

    def test_execution_result_to_dict(self):
        body = ExecutionResult(success=True, transaction_id="abc", result={"vote_id": "v"}).to_dict()
        assert body["success"] is True
        assert body["result"] == {"vote_id": "v"}
        assert body["replayed"] is False
