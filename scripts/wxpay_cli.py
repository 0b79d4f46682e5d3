#!/usr/bin/env python3
"""
Command-line access to the merchant pay API.

Credentials come from WXPAY_APPID, WXPAY_MCH_ID, WXPAY_KEY (see wxpay.config).

Usage:
    python scripts/wxpay_cli.py query-order --out-trade-no A1
    python scripts/wxpay_cli.py close-order --out-trade-no A1
    python scripts/wxpay_cli.py query-refund --out-trade-no A1
    python scripts/wxpay_cli.py download-bill --bill-date 20260101 -o bill.csv
    python scripts/wxpay_cli.py sign out_trade_no=A1 total_fee=100 --sign-type HMAC-SHA256
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from wxpay import WXPayClient, WXPayConfig, WXPayError, sign
from wxpay.config import missing_env_vars
from wxpay.logging import configure_logging


def _order_ref(args: argparse.Namespace) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if args.out_trade_no:
        params["out_trade_no"] = args.out_trade_no
    if args.transaction_id:
        params["transaction_id"] = args.transaction_id
    if args.sign_type:
        params["sign_type"] = args.sign_type
    return params


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    params = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"❌ Expected name=value, got {pair!r}")
        params[name] = value
    return params


async def run(args: argparse.Namespace) -> Optional[Any]:
    """Execute one subcommand and return its JSON-serializable result."""
    if args.command == "sign":
        config = WXPayConfig.from_env()
        params = _parse_pairs(args.params)
        return {"sign": sign(params, config.key, args.sign_type)}

    async with WXPayClient(WXPayConfig.from_env()) as client:
        if args.command == "query-order":
            return await client.query_order(_order_ref(args))
        if args.command == "close-order":
            return await client.close_order(_order_ref(args))
        if args.command == "query-refund":
            return await client.query_refund(_order_ref(args))
        if args.command == "download-bill":
            params = {"bill_date": args.bill_date, "bill_type": args.bill_type}
            body = await client.download_bill(params)
            if args.output:
                Path(args.output).write_bytes(body)
                return {"saved": args.output, "bytes": len(body)}
            sys.stdout.write(body.decode("utf-8", errors="replace"))
            return None
    raise SystemExit(f"❌ Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Merchant pay API client")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("query-order", "close-order", "query-refund"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--out-trade-no")
        cmd.add_argument("--transaction-id")
        cmd.add_argument("--sign-type", choices=["MD5", "HMAC-SHA256"])

    bill = sub.add_parser("download-bill")
    bill.add_argument("--bill-date", required=True, help="YYYYMMDD")
    bill.add_argument("--bill-type", default="ALL", choices=["ALL", "SUCCESS", "REFUND", "RECHARGE_REFUND"])
    bill.add_argument("-o", "--output", help="Write the bill to this file")

    sign_cmd = sub.add_parser("sign", help="Print the signature of name=value pairs")
    sign_cmd.add_argument("params", nargs="*")
    sign_cmd.add_argument("--sign-type", default="MD5", choices=["MD5", "HMAC-SHA256"])

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries the JSON result
    configure_logging(sys.stderr)

    missing = missing_env_vars()
    if missing:
        print(f"❌ Error: {', '.join(missing)} not set", file=sys.stderr)
        return 2

    try:
        result = asyncio.run(run(args))
    except WXPayError as e:
        print(f"❌ {type(e).__name__} [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    if result is not None:
        print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
