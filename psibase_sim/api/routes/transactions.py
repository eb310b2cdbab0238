"""
psibase_sim.api.routes.transactions — Transaction & balance endpoints
======================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from psibase_sim.api.deps import get_current_user, get_simulator
from psibase_sim.database.engine import run_db
from psibase_sim.engine.transactions import Transaction
from psibase_sim.services.simulator import PsibaseSimulator
from psibase_sim.services.store import StoreError

router = APIRouter(tags=["transactions"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class TransactionRequest(BaseModel):
    """Loose on purpose: missing fields are reported by the validator."""

    id: str | None = None
    sender: str | None = None
    action: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None
    signature: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            sender=self.sender,
            action=self.action,
            payload=self.payload,
            timestamp=self.timestamp,
            signature=self.signature,
            metadata=self.metadata,
        )


def _require_sender(body: TransactionRequest, user: dict) -> None:
    if body.sender != user["sub"]:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, "Transaction sender must be the authenticated user"
        )


# ---------------------------------------------------------------------------
# POST /transactions
# ---------------------------------------------------------------------------
@router.post("/transactions")
async def submit_transaction(
    body: TransactionRequest,
    user: dict = Depends(get_current_user),
    simulator: PsibaseSimulator = Depends(get_simulator),
):
    _require_sender(body, user)
    result = await simulator.submit(body.to_transaction())
    return result.to_dict()


# ---------------------------------------------------------------------------
# POST /transactions/validate
# ---------------------------------------------------------------------------
@router.post("/transactions/validate")
async def validate_transaction(
    body: TransactionRequest,
    user: dict = Depends(get_current_user),
    simulator: PsibaseSimulator = Depends(get_simulator),
):
    _require_sender(body, user)
    validation = await run_db(simulator.validate_transaction, body.to_transaction())
    return validation.to_dict()


# ---------------------------------------------------------------------------
# GET /transactions/{transaction_id}
# ---------------------------------------------------------------------------
@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    user: dict = Depends(get_current_user),
    simulator: PsibaseSimulator = Depends(get_simulator),
):
    try:
        record = await run_db(simulator.get_transaction, transaction_id)
    except StoreError as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    if record is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Transaction not found")
    if record["sender"] != user["sub"]:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, "Transaction belongs to another user"
        )
    return record


# ---------------------------------------------------------------------------
# GET /balances/{user_id}
# ---------------------------------------------------------------------------
@router.get("/balances/{user_id}")
async def get_balances(
    user_id: str,
    user: dict = Depends(get_current_user),
    simulator: PsibaseSimulator = Depends(get_simulator),
):
    if user_id != user["sub"]:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Cannot read another user's balances")
    try:
        balances = await run_db(simulator.get_balances, user_id)
    except StoreError as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    return {"user_id": user_id, "balances": balances}
