"""Flask application factory for the server status API."""

from __future__ import annotations

from typing import Any, Dict

from flask import Flask


def create_app(config: Dict[str, Any] | None = None) -> Flask:
    """Create and configure the Flask application.

    ``AGGREGATOR`` and ``POWER_CONTROLLER`` may be supplied in ``config``;
    otherwise they are built from the environment on first use.
    """
    app = Flask(__name__)
    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config.setdefault("AGGREGATOR", None)
    app.config.setdefault("POWER_CONTROLLER", None)
    app.config.setdefault("SETTINGS", None)

    if config:
        app.config.update(config)

    from .api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    return app
