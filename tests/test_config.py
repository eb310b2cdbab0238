"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import pytest

from psibase_sim.config import SimulatorConfig, load_config


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "config.yaml")


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == SimulatorConfig()


def test_values_override_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "governance_token_symbol: SAP\n"
        "proposal_threshold: 25\n"
        "replay_completed: false\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.governance_token_symbol == "SAP"
    assert cfg.proposal_threshold == 25.0
    assert cfg.replay_completed is False
    assert cfg.default_claim_reason == "Token claim via Psibase"


def test_bad_threshold(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("proposal_threshold: lots\n", encoding="utf-8")
    with pytest.raises(ValueError, match="proposal_threshold"):
        load_config(path)


def test_bad_replay_flag(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("replay_completed: sometimes\n", encoding="utf-8")
    with pytest.raises(ValueError, match="replay_completed"):
        load_config(path)


def test_config_is_frozen():
    cfg = SimulatorConfig()
    with pytest.raises(AttributeError):
        cfg.proposal_threshold = 1  # type: ignore[misc]
