"""Shared fixtures — keep tests independent of the user's environment."""

from __future__ import annotations

import pytest

_ENV_VARS = (
    "FORCE_COLOR",
    "PESTR_CONFIG",
    "PESTR_CPUS_PER_NODE",
    "PESTR_HYPERTHREADING",
    "PESTR_SEARCH_CONSERVE_NODES",
    "PESTR_SEARCH_PE_RADIUS",
    "PESTR_SEARCH_THREAD_RADIUS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def missing_config(tmp_path):
    """Path to a config file that does not exist."""
    return tmp_path / "nonexistent_config.toml"
