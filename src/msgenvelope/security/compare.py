"""Constant-time comparison of secrets."""

from __future__ import annotations

from typing import Union

from msgenvelope.core.hashing import calculate_mac


Secret = Union[str, bytes, bytearray]


def _as_bytes(value: Secret) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def secure_compare(a: Secret, b: Secret) -> bool:
    """
    Compare two secrets without leaking where they differ.

    Length is not treated as secret: different lengths return False right
    away. Otherwise every byte pair is visited, XORed and ORed into one
    accumulator, and the result is only inspected after the loop.
    """
    left = _as_bytes(a)
    right = _as_bytes(b)
    if len(left) != len(right):
        return False

    result = 0
    for x, y in zip(left, right):
        result |= x ^ y
    return result == 0


def verify_mac(
    mac: str,
    from_id: str,
    gateway_id: str,
    message_id: str,
    date: str,
    nonce_hex: str,
    box_hex: str,
    secret: str,
) -> bool:
    """Check the MAC sent with a gateway callback before touching the box."""
    expected = calculate_mac(from_id, gateway_id, message_id, date, nonce_hex, box_hex, secret)
    return secure_compare(expected, mac.lower())
