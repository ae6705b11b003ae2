"""
Diagnostics for the Samaya client core.

Usage:
    python -m samaya_client otp-status 9876543210
    python -m samaya_client quote "Yoga Therapy" video 60
    python -m samaya_client auth-status
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Sequence

from .app import build_client
from .config import Settings
from .errors import SamayaError
from .models import ConsultationMode
from .pricing import PricingEngine

logger = logging.getLogger("samaya_client")


async def _otp_status(settings: Settings, phone: str) -> dict:
    async with build_client(settings) as client:
        diagnosis = await client.auth.diagnose_otp(phone)
        return diagnosis.model_dump()


async def _auth_status(settings: Settings) -> dict:
    async with build_client(settings) as client:
        status = await client.auth.check_auth_status()
        return status.model_dump()


def _quote(settings: Settings, service: str, mode: str, duration: int) -> dict:
    engine = PricingEngine(settings.base_price, settings.currency)
    return engine.quote(service, mode, duration).model_dump()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="samaya_client", description="Samaya client diagnostics")
    parser.add_argument("--base-url", dest="base_url", default=None)
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    otp = sub.add_parser("otp-status", help="Check a phone number and API reachability")
    otp.add_argument("phone")

    quote = sub.add_parser("quote", help="Price a consultation")
    quote.add_argument("service")
    quote.add_argument("mode", choices=[m.value for m in ConsultationMode])
    quote.add_argument("duration", type=int, help="Duration in minutes")

    sub.add_parser("auth-status", help="Validate the stored session token")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    overrides = {"api_base_url": args.base_url} if args.base_url else {}
    settings = Settings(**overrides)

    try:
        if args.command == "otp-status":
            result = asyncio.run(_otp_status(settings, args.phone))
        elif args.command == "auth-status":
            result = asyncio.run(_auth_status(settings))
        else:
            result = _quote(settings, args.service, args.mode, args.duration)
    except SamayaError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        print(json.dumps({"error": exc.message, "code": exc.code}), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
