"""Main entry point and CLI for the WAHA monitor.

Provides both module entry point (python -m waha_monitor) and a console CLI
with one subcommand per monitor operation, plus ``serve`` to run the HTTP
boundary. SIGINT/SIGTERM cancel the running operation.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from pydantic import ValidationError

from waha_monitor.core.cancellation import CancellationToken, bind_signals
from waha_monitor.core.config import MonitorConfig
from waha_monitor.core.exceptions import (
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    OperationCancelled,
)
from waha_monitor.di.container import Container
from waha_monitor.models.results import ApiEnvelope
from waha_monitor.models.schemas import SessionAction
from waha_monitor.observability.logging_config import get_logger, setup_logging

EXIT_OK = 0
EXIT_GATEWAY_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser with subcommands.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="waha-monitor",
        description="Monitor WhatsApp conversations through a WAHA gateway.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chats_parser = subparsers.add_parser("chats", help="List chats of a session")
    chats_parser.add_argument("session", help="Gateway session name")
    chats_parser.add_argument(
        "--no-wait",
        dest="wait_for_sync",
        action="store_false",
        help="Probe once instead of waiting for a synchronizing session",
    )

    messages_parser = subparsers.add_parser("messages", help="List messages of a chat")
    messages_parser.add_argument("session", help="Gateway session name")
    messages_parser.add_argument("chat_id", help="Chat identifier (e.g. 628123@c.us)")
    messages_parser.add_argument(
        "--limit", type=int, default=None, help="Page size (overrides MESSAGES_PAGE_SIZE)"
    )
    messages_parser.add_argument(
        "--oldest-first",
        action="store_true",
        help="Print messages oldest first instead of gateway order",
    )

    contact_parser = subparsers.add_parser("contact", help="Resolve contact metadata")
    contact_parser.add_argument("session", help="Gateway session name")
    contact_parser.add_argument("contact_id", help="Contact or group identifier")
    contact_parser.add_argument("--chat-name", help="Chat name used for groups")

    action_parser = subparsers.add_parser("action", help="Start, stop or log out a session")
    action_parser.add_argument("action", choices=[a.value for a in SessionAction])
    action_parser.add_argument("--user-id", help="User id, required for start")
    action_parser.add_argument("--session", help="Session name, required for stop/logout")

    subparsers.add_parser("sessions", help="List gateway sessions")
    subparsers.add_parser("health", help="Check gateway health")
    subparsers.add_parser("info", help="Show configuration status")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (overrides API_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (overrides API_PORT)")

    return parser


def _load_config() -> MonitorConfig | None:
    """Load configuration from environment.

    Returns None if validation failed (errors are printed).
    """
    try:
        return MonitorConfig()
    except ValidationError as e:
        print(f"Configuration validation error:\n{e}", file=sys.stderr)
        return None


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def _dispatch(
    command: str,
    args: argparse.Namespace,
    container: Container,
    cancel_token: CancellationToken,
) -> ApiEnvelope:
    service = container.provide_monitor_service()
    if command == "chats":
        return await service.list_chats(
            args.session, wait_for_sync=args.wait_for_sync, cancel_token=cancel_token
        )
    if command == "messages":
        envelope = await service.list_messages(
            args.session, args.chat_id, limit=args.limit, cancel_token=cancel_token
        )
        if args.oldest_first and envelope.ok and isinstance(envelope.data, list):
            envelope = envelope.model_copy(update={"data": envelope.data[::-1]})
        return envelope
    if command == "contact":
        return await service.get_contact_metadata(
            args.session,
            args.contact_id,
            chat_name=args.chat_name,
            cancel_token=cancel_token,
        )
    if command == "action":
        return await service.session_action(
            SessionAction(args.action),
            user_id=args.user_id,
            session_name=args.session,
            cancel_token=cancel_token,
        )
    if command == "sessions":
        return await service.list_sessions(cancel_token=cancel_token)
    return await service.health(cancel_token=cancel_token)


async def _run_command(
    command: str, args: argparse.Namespace, config: MonitorConfig
) -> int:
    """Execute the selected CLI command using provided configuration."""
    logger = get_logger(__name__)
    container = Container(config=config, on_progress=lambda m: print(m, file=sys.stderr))
    container.initialize_runtime()

    cancel_token = CancellationToken()
    bind_signals(cancel_token)

    try:
        envelope = await _dispatch(command, args, container, cancel_token)
    except InvalidRequestError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return EXIT_GATEWAY_ERROR
    except OperationCancelled as e:
        logger.info("Operation cancelled", extra={"reason": str(e)})
        return EXIT_CANCELLED

    _print_json(envelope.to_payload())
    try:
        envelope.raise_for_error()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except GatewayError as e:
        logger.warning(
            "Gateway operation failed",
            extra={"command": command, "error_kind": e.kind, "status": e.status},
        )
        return EXIT_GATEWAY_ERROR
    return EXIT_OK


def _serve(args: argparse.Namespace, config: MonitorConfig) -> int:
    import uvicorn

    from waha_monitor.api.app import create_app

    container = Container(config=config)
    container.initialize_runtime()
    uvicorn.run(
        create_app(container=container),
        host=args.host or config.api_host,
        port=args.port or config.api_port,
        log_config=None,
    )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main application entry point with CLI support.

    Args:
        argv: Optional list of arguments to parse; defaults to sys.argv[1:]

    Returns:
        Exit code (0 success, 1 gateway error, 2 configuration error,
        130 cancelled)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = _load_config()
    if config is None:
        return EXIT_CONFIG_ERROR

    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        service_name=config.service_name,
        environment=config.environment,
        loki_url=config.loki_url,
        secrets=[config.waha_api_key.get_secret_value() if config.waha_api_key else None],
    )

    if args.command == "info":
        _print_json(config.describe())
        return EXIT_OK
    if args.command == "serve":
        return _serve(args, config)

    try:
        return asyncio.run(_run_command(args.command, args, config))
    except KeyboardInterrupt:
        return EXIT_CANCELLED


def cli() -> None:
    """Synchronous CLI entrypoint for console_scripts."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
