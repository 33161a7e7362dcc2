"""Pytest configuration for test isolation.

Network selection, API base URLs and the category contract identifiers are
all read from the environment (and from a ``.env`` in the working directory
when the CLI starts). A developer's shell or a checked-in ``.env`` would leak
into tests and silently point them at a live contract, so every test starts
with those variables cleared and runs from its own temporary directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

_ISOLATED_ENV = (
    "STACKS_API_URL_MAINNET",
    "STACKS_API_URL_TESTNET",
    "TX_CATEGORIES_CONTRACT_MAINNET",
    "TX_CATEGORIES_CONTRACT_TESTNET",
    "STACKS_HISTORY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear configuration env vars and run each test from a scratch cwd."""

    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
