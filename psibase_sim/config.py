"""
psibase_sim.config — YAML Configuration Loader
===============================================

Reads ``config.yaml`` for the simulator's rule settings (governance token,
proposal threshold, resubmission behaviour).  Infrastructure settings
(``DATABASE_URL``, ``JWT_SECRET``) come from the environment instead.

Usage::

    from psibase_sim.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.governance_token_symbol)   # "GEN"
    print(cfg.proposal_threshold)        # 10.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SimulatorConfig:
    """Immutable simulator configuration.

    Every field has a default so ``SimulatorConfig()`` is a usable
    configuration for tests and embedded use.
    """

    # Governance
    governance_token_symbol: str = "GEN"
    proposal_threshold: float = 10.0  # Minimum governance-token balance to propose

    # Resubmission: return the stored result for an id already completed
    replay_completed: bool = True

    # Reasons recorded on token_transactions when the payload has none
    default_transfer_reason: str = "Token transfer via Psibase"
    default_claim_reason: str = "Token claim via Psibase"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> SimulatorConfig:
    """Read *path* and return a :class:`SimulatorConfig` instance.

    Keys absent from the file keep their defaults.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value has the wrong type.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = SimulatorConfig()
    try:
        threshold = float(raw.get("proposal_threshold", defaults.proposal_threshold))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"proposal_threshold must be a number: {exc}") from exc

    replay = raw.get("replay_completed", defaults.replay_completed)
    if not isinstance(replay, bool):
        raise ValueError("replay_completed must be true or false")

    return SimulatorConfig(
        governance_token_symbol=str(
            raw.get("governance_token_symbol", defaults.governance_token_symbol)
        ),
        proposal_threshold=threshold,
        replay_completed=replay,
        default_transfer_reason=str(
            raw.get("default_transfer_reason", defaults.default_transfer_reason)
        ),
        default_claim_reason=str(
            raw.get("default_claim_reason", defaults.default_claim_reason)
        ),
    )
