"""
Command line front end for msgenvelope.

Usage:
    msgenvelope keygen
    msgenvelope derive-public [--private-key KEY]
    msgenvelope hash-email <email>
    msgenvelope hash-phone <phone>
    echo "hello" | msgenvelope encrypt <public-key> [--private-key KEY]
    echo <box hex> | msgenvelope decrypt <public-key> <nonce hex> [--private-key KEY]

Keys are given as ``private:<hex>`` / ``public:<hex>`` (bare hex works too).
The private key falls back to $MSGENVELOPE_PRIVATE_KEY.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from msgenvelope.core.encoding import (
    bin2hex,
    format_private_key,
    format_public_key,
    hex2bin,
    parse_public_key,
)
from msgenvelope.core.exceptions import EnvelopeError, InvalidInputError
from msgenvelope.core.hashing import hash_email, hash_phone_no

from .context import AppContext, build_context
from .logging_config import configure_logging


logger = logging.getLogger(__name__)


def _require_key_pair(ctx: AppContext):
    if ctx.key_pair is None:
        raise InvalidInputError("no private key given (use --private-key or set MSGENVELOPE_PRIVATE_KEY)")
    return ctx.key_pair


def _read_input(args: argparse.Namespace, stdin: TextIO) -> str:
    value = getattr(args, "message", None)
    if value:
        return value
    return stdin.read()


def cmd_keygen(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    key_pair = ctx.provider.generate_key_pair()
    out.write(format_private_key(key_pair.private_key) + "\n")
    out.write(format_public_key(key_pair.public_key) + "\n")


def cmd_derive_public(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    key_pair = _require_key_pair(ctx)
    out.write(format_public_key(key_pair.public_key) + "\n")


def cmd_hash_email(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    out.write(hash_email(args.email) + "\n")


def cmd_hash_phone(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    out.write(hash_phone_no(args.phone) + "\n")


def cmd_encrypt(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    key_pair = _require_key_pair(ctx)
    recipient = parse_public_key(args.public_key)
    text = _read_input(args, stdin).rstrip("\n")

    nonce = ctx.provider.random_nonce()
    box = ctx.envelope.encrypt_text(text, key_pair.private_key, recipient, nonce)
    out.write(bin2hex(nonce) + "\n")
    out.write(bin2hex(box) + "\n")


def cmd_decrypt(ctx: AppContext, args: argparse.Namespace, out: TextIO, stdin: TextIO) -> None:
    key_pair = _require_key_pair(ctx)
    sender = parse_public_key(args.public_key)
    nonce = hex2bin(args.nonce)
    box = hex2bin(_read_input(args, stdin).strip())

    message = ctx.envelope.decrypt_message(box, key_pair.private_key, sender, nonce)
    out.write(str(message) + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msgenvelope",
        description="Encrypt, decrypt and hash gateway messages.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("keygen", help="Generate a new key pair")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("derive-public", help="Print the public key of a private key")
    p.add_argument("--private-key", default=None, help="private:<hex> (default: $MSGENVELOPE_PRIVATE_KEY)")
    p.set_defaults(func=cmd_derive_public)

    p = sub.add_parser("hash-email", help="Hash an email address for identity lookup")
    p.add_argument("email")
    p.set_defaults(func=cmd_hash_email)

    p = sub.add_parser("hash-phone", help="Hash a phone number for identity lookup")
    p.add_argument("phone")
    p.set_defaults(func=cmd_hash_phone)

    p = sub.add_parser("encrypt", help="Encrypt a text message read from stdin")
    p.add_argument("public_key", help="Recipient public key")
    p.add_argument("message", nargs="?", default=None, help="Text (default: read stdin)")
    p.add_argument("--private-key", default=None, help="Sender private:<hex> (default: $MSGENVELOPE_PRIVATE_KEY)")
    p.set_defaults(func=cmd_encrypt)

    p = sub.add_parser("decrypt", help="Decrypt a message box (hex) read from stdin")
    p.add_argument("public_key", help="Sender public key")
    p.add_argument("nonce", help="Message nonce in hex")
    p.add_argument("message", nargs="?", default=None, help="Box in hex (default: read stdin)")
    p.add_argument("--private-key", default=None, help="Recipient private:<hex> (default: $MSGENVELOPE_PRIVATE_KEY)")
    p.set_defaults(func=cmd_decrypt)

    return parser


def main(
    argv: Optional[List[str]] = None,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
    stdin: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    stdin = stdin or sys.stdin

    args = build_parser().parse_args(argv)

    try:
        ctx = build_context(private_key=getattr(args, "private_key", None))
        configure_logging(logging.DEBUG if args.verbose else ctx.log_level)
        args.func(ctx, args, out, stdin)
    except EnvelopeError as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        err.write(f"error: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
