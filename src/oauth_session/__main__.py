"""Credential session operator CLI. Use --help for usage."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from oauth_session.config import SessionSettings, load_settings
from oauth_session.errors.exceptions import CredentialError, SessionTerminatedError
from oauth_session.logging.context import set_log_context
from oauth_session.logging.setup import generate_trace_id, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REAUTH = 2

COMMANDS = ("token", "refresh", "revoke", "show")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m oauth_session",
        description="Inspect and maintain a stored OAuth2 credential session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  token    Print a valid access token, refreshing first if needed
  refresh  Force a refresh and persist the new credentials
  revoke   Revoke the stored tokens and clear the store record
  show     Describe the stored credentials (no secret values)

Exit codes:
  0  success
  1  error (network, store, configuration)
  2  re-authentication required

Examples:
  python -m oauth_session --config session.yaml token
  python -m oauth_session --config session.yaml --identity user:42 show
        """,
    )
    parser.add_argument("command", choices=COMMANDS, help="Operation to perform")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("session.yaml"),
        help="Path to the YAML settings file (default: ./session.yaml)",
    )
    parser.add_argument(
        "--identity",
        help="Override session.identity from the settings file",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Dotenv file loaded before the settings (default: ./.env)",
    )
    parser.add_argument(
        "--log-level",
        help="Override logging.level from the settings file",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines on stderr",
    )
    return parser.parse_args(argv)


async def run_command(command: str, settings: SessionSettings) -> int:
    """Run one CLI command against a session built from settings."""
    async with settings.create_exchange_client() as client:
        session = await settings.create_session(exchange_client=client)

        if command == "show":
            print(json.dumps(session.describe(), indent=2, default=str))
            return EXIT_OK

        if command == "revoke":
            await session.revoke_tokens()
            print(f"Revoked tokens for {session.identity}")
            return EXIT_OK

        if command == "refresh":
            session.invalidate()
            await session.get_access_token()
            print(json.dumps(session.describe(), indent=2, default=str))
            return EXIT_OK

        print(await session.get_access_token())
        return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.env_file.exists():
        load_dotenv(args.env_file)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.identity:
        settings.identity = args.identity

    setup_logging(
        level=args.log_level or settings.log_level,
        json_format=args.json_logs or settings.log_json,
        log_file=settings.log_file,
    )
    set_log_context(
        identity=settings.identity,
        operation=args.command,
        trace_id=generate_trace_id(),
    )

    try:
        return asyncio.run(run_command(args.command, settings))
    except CredentialError as e:
        if e.requires_reauthentication or isinstance(e, SessionTerminatedError):
            logger.error(
                "Re-authentication required: %s",
                e,
                extra={"error_kind": e.kind.value, "error_type": type(e).__name__},
            )
            return EXIT_REAUTH
        logger.error(
            "Command failed: %s",
            e,
            extra={"error_kind": e.kind.value, "error_type": type(e).__name__},
        )
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
