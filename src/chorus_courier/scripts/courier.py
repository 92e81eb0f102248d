# src/chorus_courier/scripts/courier.py
"""Command line entry point: bootstrap a device and optionally send a message."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from chorus_courier.core.errors import CourierError
from chorus_courier.core.settings import settings
from chorus_courier.models.session import Session
from chorus_courier.services.backend import BackendClient
from chorus_courier.services.bootstrap import SessionBootstrap
from chorus_courier.services.keystore import LocalKeyStore
from chorus_courier.services.router import PayloadRouter

logger = logging.getLogger("chorus_courier")


def load_payloads(path: Path) -> list[dict[str, Any]]:
    """Read a JSON list of ``{"sessionId": ..., "encryptedPayload": ...}`` objects."""
    payloads = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payloads, list):
        raise ValueError(f"{path} must contain a JSON list of payloads")
    return payloads


async def run(args: argparse.Namespace) -> dict[str, Any]:
    session = Session.from_settings()
    if args.backend_url:
        session.backend_url = args.backend_url

    async with BackendClient(session) as backend:
        bootstrap = SessionBootstrap(session, backend, LocalKeyStore())
        profile = await bootstrap.login()
        result: dict[str, Any] = {"self": profile, "client_id": session.client_id}
        try:
            if args.command == "send":
                router = PayloadRouter(session, backend)
                response = await router.send_message(
                    args.conversation_id, load_payloads(args.payloads)
                )
                result["send"] = {"status": response.status, "body": response.body}
        finally:
            logout = await bootstrap.logout()
            result["logged_out"] = logout.logged_out
    return result


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bootstrap a Chorus Courier client session")
    parser.add_argument(
        "--backend-url",
        default=None,
        help="Override the backend URL (defaults to COURIER_BACKEND_URL)",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("login", help="Register a new client and print the user's profile")
    send = subcommands.add_parser("send", help="Register a client and post encrypted payloads")
    send.add_argument("conversation_id", help="Target conversation id")
    send.add_argument("payloads", type=Path, help="JSON file with the encrypted payloads")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        result = asyncio.run(run(args))
    except (CourierError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
