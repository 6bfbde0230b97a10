"""Command-line interface for sealing and opening tokens.

Handy for minting a cookie value by hand or inspecting one captured from a
browser.  Values are read and printed as JSON.
"""

from __future__ import annotations

import argparse
import base64
import binascii
import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from .config import ConfigurationError, Settings, load_settings
from .errors import ExpiredError, SealedCookieError
from .sealing import seal, unseal

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")
SECRET_ENV = "SEALED_COOKIE_SECRET"


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _resolve_secret(args: argparse.Namespace) -> bytes:
    if args.secret_hex:
        try:
            return binascii.unhexlify(args.secret_hex)
        except (binascii.Error, ValueError) as exc:
            raise CLIError("invalid hex in --secret-hex") from exc
    raw = args.secret or os.environ.get(SECRET_ENV)
    if not raw:
        raise CLIError(f"a secret is required via --secret, --secret-hex, or {SECRET_ENV}")
    return raw.encode("utf-8")


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON value: {exc}") from exc


def _parse_expires(raw: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise CLIError(f"invalid ISO 8601 timestamp: {raw}") from exc
    if parsed.tzinfo is None:
        # Same reading as seal(): a naive timestamp is local time.
        parsed = parsed.astimezone()
    return parsed


def _json_default(obj: Any) -> Any:
    if isinstance(obj, bytes):
        return base64.b64encode(obj).decode("ascii")
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seal and open encrypted cookie tokens")
    parser.add_argument("--config", default=None, help="Path to a YAML settings file")
    parser.add_argument("--secret", default=None, help=f"Secret as UTF-8 text (default: ${SECRET_ENV})")
    parser.add_argument("--secret-hex", default=None, help="Secret as hex-encoded bytes")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    seal_parser = subparsers.add_parser("seal", help="seal a JSON value into a token")
    seal_parser.add_argument("--value", required=True, help="JSON value to seal")
    expiry_group = seal_parser.add_mutually_exclusive_group()
    expiry_group.add_argument(
        "--max-age",
        type=int,
        default=None,
        help="Lifetime in seconds from now (default: cookie.max_age setting)",
    )
    expiry_group.add_argument(
        "--expires",
        default=None,
        help="Absolute expiry as an ISO 8601 timestamp (local time when no offset is given)",
    )

    open_parser = subparsers.add_parser("open", help="open a token and print its value as JSON")
    open_parser.add_argument("token", help="Token produced by 'seal'")
    open_parser.add_argument(
        "--allow-expired",
        action="store_true",
        help="Print the value of an expired token instead of failing",
    )
    return parser


def cmd_seal(args: argparse.Namespace, settings: Settings) -> None:
    secret = _resolve_secret(args)
    value = _parse_value(args.value)

    max_age = args.max_age
    if max_age is None and args.expires is None:
        max_age = settings.cookie.max_age
    if max_age is not None and max_age <= 0:
        raise CLIError("--max-age must be positive")

    expires: datetime | None = None
    if max_age is not None:
        expires = datetime.now(timezone.utc) + timedelta(seconds=max_age)
    elif args.expires is not None:
        expires = _parse_expires(args.expires)

    print(seal(secret, value, expires, codec=settings.sealing.codec()))


def cmd_open(args: argparse.Namespace, settings: Settings) -> None:
    secret = _resolve_secret(args)
    try:
        value = unseal(secret, args.token, codec=settings.sealing.codec())
    except ExpiredError as exc:
        if not args.allow_expired:
            raise
        logger.warning("Token expired at %s", datetime.fromtimestamp(exc.expires, timezone.utc))
        value = exc.value
    try:
        rendered = json.dumps(value, separators=COMPACT_JSON_SEPARATORS, default=_json_default)
    except (TypeError, ValueError) as exc:
        raise CLIError(f"value cannot be printed as JSON: {exc}") from exc
    print(rendered)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        settings = load_settings(config_path=args.config)
        if args.command == "seal":
            cmd_seal(args, settings)
        elif args.command == "open":
            cmd_open(args, settings)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except (CLIError, ConfigurationError, SealedCookieError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
