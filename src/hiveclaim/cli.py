#!/usr/bin/env python3
"""
hiveclaim CLI — run the gateway and work with keys and signatures offline.

Commands:
    serve           - Run the HTTP API
    keys            - Derive the credentials a username would receive
    sign-message    - Sign a message with a Bitcoin WIF key
    verify-message  - Verify a Bitcoin signed message
    used            - List used addresses or check one
"""

import argparse
import json
import sys
from typing import Optional


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False):
        print(json.dumps(data, indent=2, default=str))
    elif human_fn:
        human_fn(data)
    else:
        print(json.dumps(data, indent=2, default=str))


# ─── Commands ──────────────────────────────────────────────────────

def cmd_serve(args):
    """Run the API under uvicorn (loads .env first)."""
    import uvicorn
    from dotenv import load_dotenv

    from hiveclaim.api import create_app
    from hiveclaim.config import Settings

    load_dotenv()
    settings = Settings.from_env()
    app = create_app(settings)
    uvicorn.run(app, host=args.host or settings.host, port=args.port or settings.port,
                log_config=None)
    return {"status": "stopped"}


def cmd_keys(args):
    """Derive the four role keys for a username."""
    from hiveclaim.keys import DEFAULT_ADDRESS_PREFIX, generate_credentials

    creds = generate_credentials(args.username, args.prefix or DEFAULT_ADDRESS_PREFIX)
    result = {
        "username": args.username,
        "private": creds.private_keys(),
        "public": creds.public_keys(),
    }

    def human(d):
        print(f"🔑 Keys for {d['username']}")
        for role in ("owner", "active", "posting", "memo"):
            print(f"   {role:<8} {d['public'][role]}")
            print(f"   {'':<8} {d['private'][role]}")

    _output(result, args, human)
    return result


def cmd_sign_message(args):
    """Sign a message with a Bitcoin WIF private key."""
    from hiveclaim.signatures import (
        P2PKH, address_for, private_key_from_wif, sign,
    )

    key, compressed, network = private_key_from_wif(args.wif)
    segwit_type = None if args.type == P2PKH else args.type
    signature = sign(key, args.message, compressed=compressed, segwit_type=segwit_type)
    result = {
        "address": address_for(key.public_key, args.type, network, compressed=compressed),
        "message": args.message,
        "signature": signature,
    }

    def human(d):
        print(f"✅ Signed")
        print(f"   Address:   {d['address']}")
        print(f"   Message:   {d['message']}")
        print(f"   Signature: {d['signature']}")

    _output(result, args, human)
    return result


def cmd_verify_message(args):
    """Verify a Bitcoin signed message. Exits 1 when invalid."""
    from hiveclaim.signatures import verify

    valid = verify(args.address, args.message, args.signature)
    result = {"address": args.address, "valid": valid}

    def human(d):
        print("✅ Valid signature" if d["valid"] else "❌ Invalid signature")

    _output(result, args, human)
    if not valid:
        sys.exit(1)
    return result


def cmd_used(args):
    """List used addresses, or report whether one is used."""
    from hiveclaim.storage import DEFAULT_JSON_PATH, open_ledger

    ledger = open_ledger(args.store or DEFAULT_JSON_PATH)
    try:
        if args.address:
            result = {"address": args.address, "used": ledger.contains(args.address)}
        else:
            addresses = ledger.load()
            result = {"count": len(addresses), "addresses": addresses}
    finally:
        ledger.close()

    def human(d):
        if "used" in d:
            print(f"{'🔒 used' if d['used'] else '🆓 unused'}: {d['address']}")
        else:
            print(f"📒 {d['count']} used address(es)")
            for a in d["addresses"]:
                print(f"   {a}")

    _output(result, args, human)
    return result


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hiveclaim",
        description="hiveclaim — Hive accounts for proven Bitcoin addresses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", help="Bind address (default: $HOST or 0.0.0.0)")
    p.add_argument("--port", type=int, help="Port (default: $PORT or 3000)")

    # keys
    p = sub.add_parser("keys", help="Derive account credentials for a username")
    p.add_argument("username", help="Hive account name")
    p.add_argument("--prefix", help="Public key prefix (default: STM)")

    # sign-message
    p = sub.add_parser("sign-message", help="Sign a message with a Bitcoin WIF key")
    p.add_argument("wif", help="Bitcoin private key (WIF)")
    p.add_argument("message", help="Message to sign")
    p.add_argument("-t", "--type", default="p2pkh",
                   choices=["p2pkh", "p2sh-p2wpkh", "p2wpkh"], help="Address type")

    # verify-message
    p = sub.add_parser("verify-message", help="Verify a Bitcoin signed message")
    p.add_argument("address", help="Bitcoin address")
    p.add_argument("message", help="Signed message")
    p.add_argument("signature", help="Base64 signature")

    # used
    p = sub.add_parser("used", help="Inspect the used-address store")
    p.add_argument("-s", "--store", help="Store location (.json, .db or :memory:)")
    p.add_argument("-a", "--address", help="Check a single address")

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "serve": cmd_serve,
        "keys": cmd_keys,
        "sign-message": cmd_sign_message,
        "verify-message": cmd_verify_message,
        "used": cmd_used,
    }

    try:
        return commands[args.command](args)
    except FileNotFoundError as e:
        print(f"❌ File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
