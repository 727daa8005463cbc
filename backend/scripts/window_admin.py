import argparse
import json
import sys
from typing import Any

import httpx
from loguru import logger

from app.core.config import get_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Operate the claim window of a running service")
    parser.add_argument("--url", default=None, help="Service base URL (defaults to SERVICE_URL)")
    parser.add_argument(
        "--admin-key",
        default=None,
        help="Admin password (defaults to ADMIN_PASSWORD)",
    )
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    subparsers = parser.add_subparsers(dest="command", required=True)

    open_parser = subparsers.add_parser("open", help="Open a claim window")
    open_parser.add_argument(
        "--seconds",
        type=int,
        default=None,
        help="Window duration (defaults to the service's WINDOW_SECONDS)",
    )
    subparsers.add_parser("close", help="Close the current window")
    subparsers.add_parser("state", help="Show window state and recent winners")
    claims_parser = subparsers.add_parser("claims", help="List recent claims")
    claims_parser.add_argument("--limit", type=int, default=None, help="Return up to N claims")
    return parser.parse_args(argv)


def run_command(client: httpx.Client, args: argparse.Namespace) -> Any:
    if args.command == "open":
        params = {"seconds": args.seconds} if args.seconds else None
        response = client.post("/admin/open", params=params)
    elif args.command == "close":
        response = client.post("/admin/close")
    elif args.command == "state":
        response = client.get("/state")
    elif args.command == "claims":
        params = {"limit": args.limit} if args.limit else None
        response = client.get("/admin/claims", params=params)
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"Unknown command {args.command}")
    response.raise_for_status()
    return response.json()


def main(argv: list[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    base_url = args.url or str(settings.service_url)
    admin_key = args.admin_key or settings.admin_password
    headers = {"X-Admin-Key": admin_key} if admin_key else {}

    with httpx.Client(
        base_url=base_url, headers=headers, timeout=args.timeout, transport=transport
    ) as client:
        try:
            payload = run_command(client, args)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "{} {} failed with {}: {}",
                exc.request.method,
                exc.request.url,
                exc.response.status_code,
                exc.response.text,
            )
            return 1
        except httpx.HTTPError as exc:
            logger.error("Could not reach {}: {}", base_url, exc)
            return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
