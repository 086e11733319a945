"""
Pytest configuration for EduFlow tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh
in-memory store and session store so state never leaks between cases.
"""
import sys
from pathlib import Path

import pytest

# Ensure the repo root and tests/ (for `utils.*` helpers) are importable
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = Path(__file__).resolve().parent
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Keep security toggles at their dev defaults unless a test opts in."""
    for var in ("EDUFLOW_ENV", "STRICT_CSRF", "EDUFLOW_TRUST_PROXY", "SESSIONS_BACKEND", "AUTO_CREATE_SCHEMA"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def store():
    """Point every repository at a fresh in-memory store for this test."""
    from eduflow.storage import wiring
    from eduflow.storage.memory import InMemoryStore

    fresh = wiring.use_store(InMemoryStore())
    yield fresh
    wiring.set_repos(None)


@pytest.fixture(autouse=True)
def _reset_session_store(monkeypatch: pytest.MonkeyPatch):
    """Replace `main.SESSION_STORE` and clear environment overrides per test."""
    from eduflow.identity_access.stores import SessionStore
    from eduflow.web import main

    monkeypatch.setattr(main, "SESSION_STORE", SessionStore(), raising=False)
    main.SETTINGS.override_environment(None)
    yield
    main.SETTINGS.override_environment(None)
