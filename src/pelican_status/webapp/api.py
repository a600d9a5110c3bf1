"""REST API blueprint exposing aggregated server state and power control."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import requests
from flask import Blueprint, current_app, jsonify, request

from pelican_status.aggregator import ServerAggregator
from pelican_status.config import Settings
from pelican_status.errors import ConfigurationError, PanelError, UpstreamError
from pelican_status.power import POWER_ACTIONS, PowerController
from pelican_status.presenter import group_servers

api_bp = Blueprint("api", __name__)

_LOGGER = logging.getLogger(__name__)
_BUILD_LOCK = threading.Lock()


def _get_settings() -> Settings:
    settings = current_app.config.get("SETTINGS")
    if settings is None:
        settings = Settings.from_env()
        current_app.config["SETTINGS"] = settings
    if not isinstance(settings, Settings):
        raise RuntimeError("SETTINGS config must be a Settings instance")
    return settings


def _get_aggregator() -> Any:
    with _BUILD_LOCK:
        aggregator = current_app.config.get("AGGREGATOR")
        if aggregator is None:
            aggregator = ServerAggregator.from_settings(_get_settings())
            current_app.config["AGGREGATOR"] = aggregator
    return aggregator


def _get_power_controller() -> Any:
    with _BUILD_LOCK:
        controller = current_app.config.get("POWER_CONTROLLER")
        if controller is None:
            controller = PowerController.from_settings(_get_settings())
            current_app.config["POWER_CONTROLLER"] = controller
    return controller


def _panel_url() -> Optional[str]:
    configured = current_app.config.get("PANEL_URL")
    if configured:
        return configured
    settings = current_app.config.get("SETTINGS")
    if isinstance(settings, Settings):
        return settings.panel_url
    return None


def _error_status(error: PanelError) -> int:
    if isinstance(error, ConfigurationError):
        return 500
    if isinstance(error, UpstreamError) and error.status_code:
        return error.status_code
    return 502


def _servers_error(error: PanelError):
    _LOGGER.error("Error fetching servers: %s", error)
    return jsonify({"error": str(error), "servers": []}), _error_status(error)


@api_bp.get("/health")
def healthcheck():
    """Simple readiness probe used by tests or deployment."""
    return jsonify({"status": "ok"}), 200


@api_bp.get("/servers")
def list_servers():
    """Run an aggregation cycle and return every visible server."""
    try:
        result = _get_aggregator().aggregate()
    except PanelError as error:
        return _servers_error(error)
    return jsonify(result.to_payload()), 200


@api_bp.get("/servers/grouped")
def list_grouped_servers():
    """Same data as ``/servers``, partitioned by group and subgroup."""
    try:
        result = _get_aggregator().aggregate()
    except PanelError as error:
        return _servers_error(error)

    payload = group_servers(result.servers).to_payload(_panel_url())
    payload["timestamp"] = result.timestamp.isoformat()
    return jsonify(payload), 200


@api_bp.post("/servers/<uuid>/power")
def control_power(uuid: str):
    """Forward a power action (start/stop/restart/kill) to the panel."""
    body = request.get_json(silent=True)
    action = body.get("action") if isinstance(body, dict) else None
    if action not in POWER_ACTIONS:
        return (
            jsonify({"error": "Invalid action. Must be start, stop, restart, or kill."}),
            400,
        )

    try:
        sent = _get_power_controller().send(uuid, action)
    except ValueError as error:
        return jsonify({"error": str(error)}), 400
    except ConfigurationError as error:
        return jsonify({"error": str(error)}), 500
    except UpstreamError as error:
        _LOGGER.error("Pelican power control error for %s: %s", uuid, error)
        return (
            jsonify({"error": f"Failed to {action} server"}),
            error.status_code or 502,
        )
    except requests.RequestException as error:
        _LOGGER.error("Power control error for %s: %s", uuid, error)
        return jsonify({"error": "Failed to control server power"}), 500

    return jsonify({"success": True, "action": sent}), 200
