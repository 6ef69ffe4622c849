"""Authenticated encryption primitives backed by libsodium (PyNaCl).

Box: X25519 + XSalsa20-Poly1305 between a sender and a recipient key pair.
Secret box: XSalsa20-Poly1305 under a single 32-byte symmetric key.

Ciphertexts here never carry the nonce; callers transport it separately.
This is the only module that talks to the crypto library.
"""

from __future__ import annotations

import logging

import nacl.exceptions
import nacl.utils
from nacl.bindings import crypto_secretbox_MACBYTES
from nacl.public import Box, PrivateKey, PublicKey
from nacl.secret import SecretBox

from msgenvelope.core.exceptions import DecryptionFailedError, InvalidInputError
from msgenvelope.core.models import KEY_LEN, NONCE_LEN, KeyPair


logger = logging.getLogger(__name__)

MAC_LEN = crypto_secretbox_MACBYTES  # 16; box and secret box share the Poly1305 tag


def _check_len(name: str, value: bytes, expected: int) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise InvalidInputError(f"{name} must be bytes")
    if len(value) != expected:
        raise InvalidInputError(f"{name} must be {expected} bytes, got {len(value)}")


class NaclProvider:
    """
    Box / secret box / key / randomness provider.

    Stateless apart from libsodium's global RNG, which PyNaCl initialises on
    import, so one instance can be shared across threads.
    """

    name = "sodium"

    # ------------------------------------------------------------------
    # Keys and randomness
    # ------------------------------------------------------------------

    def generate_key_pair(self) -> KeyPair:
        private = PrivateKey.generate()
        return KeyPair(private_key=bytes(private), public_key=bytes(private.public_key))

    def derive_public_key(self, private_key: bytes) -> bytes:
        _check_len("private key", private_key, KEY_LEN)
        return bytes(PrivateKey(bytes(private_key)).public_key)

    def random_bytes(self, size: int) -> bytes:
        if size < 0:
            raise InvalidInputError("size must not be negative")
        return nacl.utils.random(size)

    def random_nonce(self) -> bytes:
        return self.random_bytes(NONCE_LEN)

    def symmetric_key(self) -> bytes:
        return self.random_bytes(KEY_LEN)

    # ------------------------------------------------------------------
    # Public key box
    # ------------------------------------------------------------------

    def _box(self, private_key: bytes, public_key: bytes) -> Box:
        _check_len("private key", private_key, KEY_LEN)
        _check_len("public key", public_key, KEY_LEN)
        return Box(PrivateKey(bytes(private_key)), PublicKey(bytes(public_key)))

    def seal_box(
        self,
        plaintext: bytes,
        nonce: bytes,
        sender_private_key: bytes,
        recipient_public_key: bytes,
    ) -> bytes:
        _check_len("nonce", nonce, NONCE_LEN)
        box = self._box(sender_private_key, recipient_public_key)
        return box.encrypt(bytes(plaintext), bytes(nonce)).ciphertext

    def open_box(
        self,
        ciphertext: bytes,
        recipient_private_key: bytes,
        sender_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        _check_len("nonce", nonce, NONCE_LEN)
        box = self._box(recipient_private_key, sender_public_key)
        if len(ciphertext) < MAC_LEN:
            logger.debug("box too short to authenticate (%d bytes)", len(ciphertext))
            raise DecryptionFailedError()
        try:
            return box.decrypt(bytes(ciphertext), bytes(nonce))
        except nacl.exceptions.CryptoError as e:
            logger.debug("box failed authentication")
            raise DecryptionFailedError() from e

    # ------------------------------------------------------------------
    # Secret box
    # ------------------------------------------------------------------

    def seal_secret_box(self, plaintext: bytes, nonce: bytes, key: bytes) -> bytes:
        _check_len("nonce", nonce, NONCE_LEN)
        _check_len("symmetric key", key, KEY_LEN)
        return SecretBox(bytes(key)).encrypt(bytes(plaintext), bytes(nonce)).ciphertext

    def open_secret_box(self, ciphertext: bytes, nonce: bytes, key: bytes) -> bytes:
        _check_len("nonce", nonce, NONCE_LEN)
        _check_len("symmetric key", key, KEY_LEN)
        if len(ciphertext) < MAC_LEN:
            logger.debug("secret box too short to authenticate (%d bytes)", len(ciphertext))
            raise DecryptionFailedError()
        try:
            return SecretBox(bytes(key)).decrypt(bytes(ciphertext), bytes(nonce))
        except nacl.exceptions.CryptoError as e:
            logger.debug("secret box failed authentication")
            raise DecryptionFailedError() from e

    def __repr__(self) -> str:
        return f"NaclProvider({self.name})"
