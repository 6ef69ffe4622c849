""" Hex conversion and textual key helpers used at the transport boundary. """

import binascii

from .exceptions import InvalidInputError
from .models import KEY_LEN, KeyKind


def hex2bin(hex_string: str) -> bytes:
    # Strict: odd length or non-hex characters raise instead of truncating.
    if isinstance(hex_string, bytes):
        hex_string = hex_string.decode("ascii", errors="replace")
    try:
        return binascii.unhexlify(hex_string.strip())
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"invalid hex string: {e}") from e


def bin2hex(data: bytes) -> str:
    return binascii.hexlify(data).decode("ascii")


def _parse_key(key_string: str, kind: KeyKind) -> bytes:
    value = key_string.strip()
    prefix = kind.value + ":"
    if value.lower().startswith(prefix):
        value = value[len(prefix):]
    elif ":" in value:
        raise InvalidInputError(f"expected a {kind.value} key, got '{value.split(':', 1)[0]}:' prefix")

    key = hex2bin(value)
    if len(key) != KEY_LEN:
        raise InvalidInputError(f"{kind.value} key must be {KEY_LEN} bytes, got {len(key)}")
    return key


def parse_private_key(key_string: str) -> bytes:
    """Accepts ``private:<64 hex>`` or bare hex and returns the raw key."""
    return _parse_key(key_string, KeyKind.PRIVATE)


def parse_public_key(key_string: str) -> bytes:
    """Accepts ``public:<64 hex>`` or bare hex and returns the raw key."""
    return _parse_key(key_string, KeyKind.PUBLIC)


def format_private_key(key: bytes) -> str:
    return f"{KeyKind.PRIVATE.value}:{bin2hex(key)}"


def format_public_key(key: bytes) -> str:
    return f"{KeyKind.PUBLIC.value}:{bin2hex(key)}"
