"""
psibase_sim.services.simulator — Transaction Orchestrator
==========================================================

The single public entry point.  :meth:`PsibaseSimulator.execute_transaction`
runs the whole pipeline for one request:

  1. Assign the deterministic id (a caller-supplied id is kept)
  2. Validate (no writes; failures return immediately)
  3. Persist a ``pending`` log record
  4. Execute the action
  5. Mark the record ``completed`` or ``failed``
  6. Return an :class:`ExecutionResult` with a simulated block height

Nothing raised inside the pipeline escapes to the caller; it comes back as
a failed result carrying the exception's message.  A failure in step 5 is
only logged: the mutation already happened, so the caller gets the real
outcome and the log row stays ``pending``.

Resubmission: with ``replay_completed`` enabled, a transaction that passes
validation and whose id is already ``completed`` returns the stored result
(``replayed=True``) without touching balances again.  A ``pending`` record
is refused and a ``failed`` one is re-run in place.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from psibase_sim.config import SimulatorConfig
from psibase_sim.database.engine import run_db
from psibase_sim.database.models import TransactionStatus
from psibase_sim.engine.transactions import (
    ExecutionResult,
    Transaction,
    ValidationResult,
    generate_transaction_id,
)
from psibase_sim.engine.validation import validate_transaction
from psibase_sim.services.executor import TransactionExecutor
from psibase_sim.services.store import SqlTransactionStore, StoreError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from psibase_sim.services.store import TransactionStore

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _block_height() -> int:
    """Simulated block height: wall-clock seconds, not an ordering guarantee."""
    return int(time.time())


class PsibaseSimulator:
    """Validate-then-execute pipeline over an injected store.

    Usage::

        simulator = PsibaseSimulator(SqlTransactionStore(engine))
        result = simulator.execute_transaction(tx)
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        store: TransactionStore,
        config: SimulatorConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or SimulatorConfig()
        self._executor = TransactionExecutor(store, self._config)

    @property
    def store(self) -> TransactionStore:
        return self._store

    # -------------------------------------------------------------------
    # Read-only operations
    # -------------------------------------------------------------------
    def validate_transaction(self, tx: Transaction) -> ValidationResult:
        return validate_transaction(tx, self._store, self._config)

    def get_transaction(self, transaction_id: str) -> dict | None:
        return self._store.get_transaction_record(transaction_id)

    def get_balances(self, user_id: str) -> dict[str, float]:
        return self._store.get_balances(user_id)

    # -------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------
    def execute_transaction(self, tx: Transaction) -> ExecutionResult:
        try:
            if tx.id is None:
                tx = dataclasses.replace(tx, id=generate_transaction_id(tx))
            return self._run(tx)
        except Exception as exc:
            logger.exception("Unhandled error executing transaction %s", tx.id)
            return ExecutionResult(
                success=False,
                transaction_id=tx.id,
                error=str(exc) or "Unknown error executing transaction",
            )

    async def submit(self, tx: Transaction) -> ExecutionResult:
        """Async variant; runs the pipeline on a worker thread."""
        return await run_db(self.execute_transaction, tx)

    def _run(self, tx: Transaction) -> ExecutionResult:
        validation = self.validate_transaction(tx)
        if not validation.valid:
            logger.info(
                "Rejected %s from %s: %s",
                tx.action, tx.sender, "; ".join(validation.errors),
            )
            return ExecutionResult(
                success=False,
                error=", ".join(validation.errors) or "Transaction validation failed",
            )

        existing = None
        if self._config.replay_completed:
            existing = self._store.get_transaction_record(tx.id)
        if existing is not None:
            if (existing["sender"], existing["action"]) != (tx.sender, tx.action):
                return ExecutionResult(
                    success=False,
                    transaction_id=tx.id,
                    error=f"Transaction id {tx.id} conflicts with an existing record",
                )
            if existing["status"] == TransactionStatus.COMPLETED:
                logger.info("Replaying completed transaction %s", tx.id)
                return ExecutionResult(
                    success=True,
                    transaction_id=tx.id,
                    block_height=_block_height(),
                    timestamp=_now_iso(),
                    result=existing["result"],
                    replayed=True,
                )
            if existing["status"] == TransactionStatus.PENDING:
                return ExecutionResult(
                    success=False,
                    transaction_id=tx.id,
                    error=f"Transaction {tx.id} is already being processed",
                )

        try:
            if existing is not None:
                # Previously failed: re-run against the same log row.
                self._store.update_transaction_status(
                    tx.id, TransactionStatus.PENDING.value
                )
            else:
                self._store.insert_transaction_record(tx)
        except StoreError as exc:
            return ExecutionResult(
                success=False,
                transaction_id=tx.id,
                error=f"Failed to record transaction: {exc}",
            )

        outcome = self._executor.execute(tx)

        # The mutation has happened; report it even if the log can't say so.
        status = TransactionStatus.COMPLETED if outcome.success else TransactionStatus.FAILED
        try:
            self._store.update_transaction_status(
                tx.id, status.value, result=outcome.result, error=outcome.error,
            )
        except StoreError as exc:
            logger.error(
                "Could not mark transaction %s %s: %s", tx.id, status.value, exc
            )

        if outcome.success:
            logger.info("Executed %s %s from %s", tx.action, tx.id[:12], tx.sender)
        else:
            logger.warning(
                "Execution of %s %s failed: %s", tx.action, tx.id[:12], outcome.error
            )

        return ExecutionResult(
            success=outcome.success,
            transaction_id=tx.id,
            block_height=_block_height(),
            timestamp=_now_iso(),
            result=outcome.result,
            error=outcome.error,
        )


def create_simulator(engine: Engine, config: SimulatorConfig | None = None) -> PsibaseSimulator:
    """Build a :class:`PsibaseSimulator` backed by *engine*."""
    return PsibaseSimulator(SqlTransactionStore(engine), config)
