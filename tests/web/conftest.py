from __future__ import annotations

from typing import Generator

import pytest

from pelican_status.webapp import create_app


@pytest.fixture()
def web_app() -> Generator:
    """Flask app with no panel wired; tests inject fakes via config."""
    app = create_app({"TESTING": True})
    yield app


@pytest.fixture()
def client(web_app):
    return web_app.test_client()
