"""Command-line entry point: snapshot, power control and the web server."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Callable, Optional, Sequence

import requests

from .aggregator import ServerAggregator
from .config import Settings
from .errors import PanelError
from .logging_config import configure_logging
from .power import POWER_ACTIONS, PowerController
from .presenter import group_servers
from .results import iter_ndjson


class CLIApp:
    """Run aggregation or power commands against a configured panel."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        aggregator_factory: Optional[Callable[[Settings], ServerAggregator]] = None,
        power_factory: Optional[Callable[[Settings], PowerController]] = None,
    ) -> None:
        self._settings = settings
        self._aggregator_factory = aggregator_factory or ServerAggregator.from_settings
        self._power_factory = power_factory or PowerController.from_settings

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = Settings.from_env()
        return self._settings

    def snapshot(self, *, grouped: bool = False) -> int:
        """Print the current server records to stdout."""
        try:
            result = self._aggregator_factory(self.settings).aggregate()
        except PanelError as error:
            print(f"Error fetching servers: {error}", file=sys.stderr)
            return 1

        if grouped:
            payload = group_servers(result.servers).to_payload(
                self.settings.panel_url
            )
            payload["timestamp"] = result.timestamp.isoformat()
            print(json.dumps(payload, indent=2, ensure_ascii=False))
            return 0

        for line in iter_ndjson(result):
            print(line)
        return 0

    def power(self, uuid: str, action: str) -> int:
        """Send a power signal and report the outcome."""
        try:
            self._power_factory(self.settings).send(uuid, action)
        except ValueError as error:
            print(str(error), file=sys.stderr)
            return 2
        except (PanelError, requests.RequestException) as error:
            print(f"Failed to {action} server {uuid}: {error}", file=sys.stderr)
            return 1
        print(f"Sent {action} to {uuid}")
        return 0

    def serve(self, host: str, port: int) -> int:
        """Run the Flask development server."""
        from .webapp import create_app

        app = create_app({"SETTINGS": self.settings})
        app.run(host=host, port=port)
        return 0


def build_arg_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(
        prog="pelican-status",
        description="Aggregate Pelican panel server status.",
    )
    subcommands = argument_parser.add_subparsers(dest="command", required=True)

    snapshot = subcommands.add_parser(
        "snapshot", help="Print visible servers as NDJSON."
    )
    snapshot.add_argument(
        "--grouped",
        action="store_true",
        help="Print a single JSON document grouped by group/subgroup.",
    )

    power = subcommands.add_parser("power", help="Send a power signal.")
    power.add_argument("uuid", help="Server UUID.")
    power.add_argument("action", choices=sorted(POWER_ACTIONS))

    serve = subcommands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return argument_parser


def main(argv: Optional[Sequence[str]] = None, app: Optional[CLIApp] = None) -> int:
    configure_logging()
    parsed_args = build_arg_parser().parse_args(argv)
    app = app or CLIApp()

    if parsed_args.command == "snapshot":
        return app.snapshot(grouped=parsed_args.grouped)
    if parsed_args.command == "power":
        return app.power(parsed_args.uuid, parsed_args.action)
    return app.serve(parsed_args.host, parsed_args.port)


if __name__ == "__main__":
    sys.exit(main())
