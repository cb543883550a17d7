#!/usr/bin/env python3
"""Запросить OTP у DeeSMS и (по желанию) проверить введённый код."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from deesms import OTPClient, OTPRequest, OTPServiceError, VerifyRequest  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Отправить OTP на номер и проверить код.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("phone", help="Номер телефона, например 0812345678.")
    parser.add_argument("--lang", choices=("th", "en"), default="th", help="Язык SMS.")
    parser.add_argument(
        "--verify",
        action="store_true",
        help="После отправки спросить код и проверить его.",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> None:
    client = OTPClient.from_env()

    try:
        ticket = await client.request_otp(OTPRequest(to=args.phone, lang=args.lang))
    except OTPServiceError as exc:
        print(f"❌ Не удалось отправить OTP: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    print(f"✅ OTP отправлен. ref={ticket.ref or '-'} token={ticket.token}")

    if not args.verify:
        return

    code = input("Код из SMS: ").strip()
    try:
        result = await client.verify_otp(VerifyRequest(token=ticket.token, pin=code))
    except OTPServiceError as exc:
        print(f"❌ Код не принят: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    print(f"✅ Код подтверждён. {result.message or ''}".rstrip())


def main() -> None:
    load_dotenv(ROOT_DIR / ".env")
    asyncio.run(run(parse_args()))


if __name__ == "__main__":
    main()
