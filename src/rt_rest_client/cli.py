"""CLI commands for rt-rest-client.

This module provides command-line utilities for:
- Validating configuration
- Dumping configuration (with secrets redacted)
- Verifying that the configured server runs RT and accepts the credentials
- Running a ticket search and printing every result page as one JSON list
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog

from rt_rest_client.adapters.rt.client import AsyncRTClient
from rt_rest_client.config.load import load_settings
from rt_rest_client.config.redact import redact_settings_dict
from rt_rest_client.config.settings import Settings
from rt_rest_client.config.validate import ConfigValidationError
from rt_rest_client.domain.errors import RTClientError
from rt_rest_client.observability.logger import configure_logging

log = structlog.get_logger(__name__)


def _configure_logging_from(settings: Settings) -> None:
    configure_logging(
        log_level=settings.observability.log_level,
        json_logs=settings.observability.json_logs,
        log_format=settings.observability.log_format,
        log_requests=settings.observability.log_requests,
    )


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Validate configuration and exit with appropriate code.

    Exit codes:
        0: Configuration is valid
        1: Configuration is invalid
    """
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    print("✓ Configuration is valid")
    print(f"  - RT host: {settings.rt.scheme}://{settings.rt.host}{settings.rt.api_root}")
    print(f"  - Auth mode: {settings.rt.auth_mode.value}")
    print(f"  - Timeout: {settings.rt.timeout_seconds}s")
    print(f"  - Max pages: {settings.rt.max_pages}")
    return 0


def cmd_dump_config(args: argparse.Namespace) -> int:
    """Dump current configuration as JSON (with secrets redacted)."""
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ Failed to load configuration: {e}", file=sys.stderr)
        return 1

    data = settings.model_dump(mode="json")
    redacted = redact_settings_dict(data)
    print(json.dumps(redacted, indent=2, default=str))
    return 0


async def _verify_server(settings: Settings) -> str:
    async with AsyncRTClient.from_settings(settings) as client:
        return await client.verify_server()


def cmd_verify_server(args: argparse.Namespace) -> int:
    """Run the server/credential handshake against the configured host."""
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ Failed to load configuration: {e}", file=sys.stderr)
        return 1

    _configure_logging_from(settings)
    try:
        version = asyncio.run(_verify_server(settings))
    except RTClientError as e:
        log.error("rt.verify_server.failed", error_type=e.__class__.__name__)
        print(f"✗ {e}", file=sys.stderr)
        return 2

    print(f"✓ {settings.rt.host} runs RT {version}")
    return 0


async def _search(settings: Settings, query: str, fields: list[str]) -> list[dict[str, Any]]:
    async with AsyncRTClient.from_settings(settings) as client:
        return await client.search_tickets(query, fields=fields)


def cmd_search(args: argparse.Namespace) -> int:
    """Search tickets with TicketSQL and print all pages as one JSON list."""
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ Failed to load configuration: {e}", file=sys.stderr)
        return 1

    _configure_logging_from(settings)
    fields = [field.strip() for field in str(args.fields).split(",") if field.strip()]
    try:
        items = asyncio.run(_search(settings, args.query, fields))
    except RTClientError as e:
        log.error("rt.search.failed", error_type=e.__class__.__name__)
        print(f"✗ Search failed: {e}", file=sys.stderr)
        return 2

    payload = {"status": "ok", "count": len(items), "items": items}
    print(json.dumps(payload, indent=2, default=str))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="rt-rest-client",
        description="Request Tracker REST 2.0 client utilities",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="YAML config file (default: $CONFIG_PATH, then config/config.yaml if present)",
    )

    validate_parser = subparsers.add_parser(
        "validate-config",
        parents=[common],
        help="Validate configuration and exit",
    )
    validate_parser.set_defaults(func=cmd_validate_config)

    dump_parser = subparsers.add_parser(
        "dump-config",
        parents=[common],
        help="Dump configuration as JSON (secrets redacted)",
    )
    dump_parser.set_defaults(func=cmd_dump_config)

    verify_parser = subparsers.add_parser(
        "verify-server",
        parents=[common],
        help="Check that the host runs RT and accepts the configured credentials",
    )
    verify_parser.set_defaults(func=cmd_verify_server)

    search_parser = subparsers.add_parser(
        "search",
        parents=[common],
        help="Search tickets with TicketSQL and print all results",
    )
    search_parser.add_argument("query", help="TicketSQL query, e.g. \"Status = 'open'\"")
    search_parser.add_argument(
        "--fields",
        default="Subject,Status",
        help="Comma-separated ticket fields to include (default: Subject,Status)",
    )
    search_parser.set_defaults(func=cmd_search)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
