"""
Pytest config.

Pins the repo root on sys.path so `import portal` works when a global `pytest`
entrypoint is used without installing the project, and gives every test a clean
auth environment.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

TEST_SECRET = "test-secret-key-for-testing-purposes-only"

_AUTH_ENV = (
    "DEMO_USERNAME",
    "DEMO_PASSWORD",
    "DEMO_USER_ID",
    "DEMO_OPEN_ID",
    "DEMO_DISPLAY_NAME",
    "DEMO_EMAIL",
    "DEMO_ROLE",
    "JWT_SECRET",
    "AUTH_SESSION_TTL_SECONDS",
    "AUTH_COOKIE_NAME",
)


@pytest.fixture(autouse=True)
def _auth_env(monkeypatch: pytest.MonkeyPatch):
    """
    Default auth configuration for unit tests: admin/admin with a test secret.

    Individual tests override variables with `monkeypatch.setenv` and then call
    `load_auth_config.cache_clear()` themselves.
    """
    from portal.auth.config import load_auth_config

    for name in _AUTH_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()
