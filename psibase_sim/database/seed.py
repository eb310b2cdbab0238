"""
psibase_sim.database.seed — Default Token Seeder
=================================================

Baseline token catalogue seeded on first startup so governance eligibility
and transfers work against a fresh database.

Idempotent — only inserts symbols that don't already exist.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select

from psibase_sim.database.engine import get_session
from psibase_sim.database.models import Token

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default token catalogue
# ---------------------------------------------------------------------------
DEFAULT_TOKENS: dict[str, tuple[str, str]] = {
    "GEN": ("Genius", "Governance token; required to create proposals"),
    "SAP": ("Superachiever Playbook", "Personal success track token"),
    "SCQ": ("Superachievers Collective Quest", "Collective success track token"),
    "GOLD": ("Gold", "General-purpose reward currency"),
}
"""Each entry maps ``symbol`` → ``(name, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_tokens(engine: Engine) -> int:
    """Insert default tokens that don't yet exist.

    Returns the number of rows inserted.
    """
    inserted = 0
    with get_session(engine) as session:
        existing = set(session.scalars(select(Token.symbol)).all())
        for symbol, (name, desc) in DEFAULT_TOKENS.items():
            if symbol not in existing:
                session.add(Token(symbol=symbol, name=name, description=desc))
                inserted += 1

    if inserted:
        logger.info("Seeded %d default tokens.", inserted)
    return inserted
