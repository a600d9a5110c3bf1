"""Shared fixtures: isolate tests from the developer's environment."""

from __future__ import annotations

import pytest

from pelican_status.utils import env

_PANEL_VARIABLES = (
    "PELICAN_PANEL_URL",
    "PELICAN_API_KEY",
    "PELICAN_CLIENT_API_KEY",
    "PELICAN_PROBE_KEYWORD",
    "PELICAN_ENABLE_PROBE",
    "PELICAN_PROBE_TIMEOUT_MS",
    "PELICAN_STATUS_TIMEOUT_MS",
    "PELICAN_HTTP_TIMEOUT",
    "PELICAN_PAGE_SIZE",
    "PELICAN_MAX_WORKERS",
    "PELICAN_RATE_LIMIT_PER_MINUTE",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip .env loading and clear panel settings for every test."""
    monkeypatch.setattr(env, "_ENV_LOADED", True)
    for key in _PANEL_VARIABLES:
        monkeypatch.delenv(key, raising=False)
