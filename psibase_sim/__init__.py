"""
psibase_sim — Deterministic Transaction Simulator for a Token Economy
======================================================================
Validates and executes token transfers, token claims, governance proposals
and governance votes against a relational store, recording every attempt
in an append-only transaction log.  Acts as a staging layer in front of a
future Psibase blockchain backend.

Package layout::

    psibase_sim/
    ├── config.py          # YAML → typed SimulatorConfig
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # Tokens, balances, petitions, votes, tx log
    │   └── seed.py        # Default token seeder
    ├── engine/
    │   ├── transactions.py # Transaction envelope, typed payloads, ids
    │   └── validation.py  # Admissibility rules (read-only)
    ├── services/
    │   ├── store.py       # TransactionStore protocol + SQL implementation
    │   ├── executor.py    # Per-action state mutations
    │   └── simulator.py   # PsibaseSimulator orchestrator (entry point)
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine/config/simulator + bearer auth
        └── routes/        # Transaction + balance endpoints
"""

__version__ = "0.1.0"
