"""Security helpers: NaCl primitives, message envelopes and secret comparison.

This package provides:
- Curve25519 key pairs and public key derivation
- Box / secret box sealing through libsodium (PyNaCl)
- The envelope service that pads, seals, opens and decodes gateway messages
- Constant-time comparison and gateway callback MAC checks
"""

from .primitives import NaclProvider
from .envelope import EnvelopeService
from .compare import secure_compare, verify_mac

__all__ = [
    "NaclProvider",
    "EnvelopeService",
    "secure_compare",
    "verify_mac",
]
