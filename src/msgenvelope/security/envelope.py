"""
Envelope service: seals typed messages into boxes and opens them again.

The service never holds keys. It needs a primitive provider, which the
caller builds and passes in (a real :class:`NaclProvider` or a test double).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from msgenvelope.core import codec
from msgenvelope.core.encoding import bin2hex
from msgenvelope.core.exceptions import DecryptionFailedError
from msgenvelope.core.models import (
    FILE_NONCE,
    FILE_THUMBNAIL_NONCE,
    DeliveryReceipt,
    EncryptResult,
    FileAnalysisResult,
    FileMessage,
    ImageMessage,
    LocationMessage,
    Message,
    TextMessage,
    UploadFileResult,
)

from .primitives import NaclProvider


logger = logging.getLogger(__name__)

# practical gateway limit; longer texts are rejected by the transport
MAX_TEXT_BYTES = 3500


class EnvelopeService:
    """
    Encrypts and decrypts gateway messages for one pair of identities at a time.

    Message boxes carry ``tag || body || padding`` sealed with
    ``(sender private key, recipient public key, nonce)``. File and
    thumbnail blobs are sealed in secret boxes under a fresh key and the two
    fixed file nonces. Image blobs are sealed in a plain box with a fresh
    random nonce.
    """

    def __init__(self, provider: Optional[NaclProvider] = None):
        self.provider = provider if provider is not None else NaclProvider()

    # ------------------------------------------------------------------
    # Padding
    # ------------------------------------------------------------------

    def generate_pad_bytes(self) -> int:
        """
        Pick a padding length in [1, 255].

        Draw single random bytes and reject zero, instead of reducing
        modulo 255, so every length stays equally likely.
        """
        pad_bytes = 0
        while pad_bytes < codec.MIN_PAD:
            pad_bytes = self.provider.random_bytes(1)[0]
        return pad_bytes

    # ------------------------------------------------------------------
    # Message boxes
    # ------------------------------------------------------------------

    def encrypt_message(
        self,
        message: Message,
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        """Serialize, pad and seal any supported message."""
        data = codec.encode_message(message)
        padded = codec.pad(data, self.generate_pad_bytes())
        box = self.provider.seal_box(padded, nonce, sender_private_key, recipient_public_key)
        logger.debug(
            "sealed message type 0x%02x: %d payload bytes, %d box bytes",
            message.TYPE_CODE, len(data), len(box),
        )
        return box

    def encrypt_text(
        self,
        text: str,
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        if len(text.encode("utf-8")) > MAX_TEXT_BYTES:
            logger.warning("text is longer than %d bytes, the gateway may reject it", MAX_TEXT_BYTES)
        return self.encrypt_message(TextMessage(text), sender_private_key, recipient_public_key, nonce)

    def encrypt_image_message(
        self,
        upload_result: UploadFileResult,
        image_encrypt_result: EncryptResult,
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        """Reference an uploaded image blob produced by :meth:`encrypt_image`."""
        message = ImageMessage(
            blob_id=upload_result.blob_id,
            size=image_encrypt_result.size,
            nonce=image_encrypt_result.nonce,
        )
        return self.encrypt_message(message, sender_private_key, recipient_public_key, nonce)

    def encrypt_file_message(
        self,
        upload_result: UploadFileResult,
        file_encrypt_result: EncryptResult,
        thumbnail_upload_result: Optional[UploadFileResult],
        file_analysis_result: FileAnalysisResult,
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        """Reference an uploaded file blob (and optional thumbnail) produced by :meth:`encrypt_file`."""
        thumbnail_blob_id = None
        if thumbnail_upload_result is not None and thumbnail_upload_result.blob_id:
            thumbnail_blob_id = thumbnail_upload_result.blob_id

        message = FileMessage(
            blob_id=upload_result.blob_id,
            encryption_key=bin2hex(file_encrypt_result.key),
            mime_type=file_analysis_result.mime_type,
            file_name=file_analysis_result.file_name,
            size=file_analysis_result.size,
            thumbnail_blob_id=thumbnail_blob_id,
        )
        return self.encrypt_message(message, sender_private_key, recipient_public_key, nonce)

    def encrypt_location_message(
        self,
        latitude: float,
        longitude: float,
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
        accuracy: int = 0,
        address: Optional[List[str]] = None,
    ) -> bytes:
        message = LocationMessage(latitude, longitude, accuracy, list(address or []))
        return self.encrypt_message(message, sender_private_key, recipient_public_key, nonce)

    def encrypt_delivery_receipt(
        self,
        receipt_type: int,
        message_ids: List[bytes],
        sender_private_key: bytes,
        recipient_public_key: bytes,
        nonce: bytes,
    ) -> bytes:
        message = DeliveryReceipt(int(receipt_type), list(message_ids))
        return self.encrypt_message(message, sender_private_key, recipient_public_key, nonce)

    def decrypt_message(
        self,
        box: bytes,
        recipient_private_key: bytes,
        sender_public_key: bytes,
        nonce: bytes,
    ) -> Message:
        """
        Open a message box and decode it.

        Raises:
            DecryptionFailedError: authentication failed or the box was empty
            MalformedMessageError: padding or body does not fit the type
            UnsupportedMessageTypeError: unknown type tag
        """
        data = self.provider.open_box(box, recipient_private_key, sender_public_key, nonce)
        if not data:
            raise DecryptionFailedError()

        data = codec.unpad(data)
        message = codec.decode_message(data)
        logger.debug("opened message type 0x%02x (%d bytes)", data[0], len(data))
        return message

    # ------------------------------------------------------------------
    # File and thumbnail blobs (secret box)
    # ------------------------------------------------------------------

    def encrypt_file(self, data: bytes) -> EncryptResult:
        key = self.provider.symmetric_key()
        box = self.provider.seal_secret_box(data, FILE_NONCE, key)
        return EncryptResult(ciphertext=box, key=key, nonce=FILE_NONCE, size=len(box))

    def decrypt_file(self, data: bytes, key: bytes) -> bytes:
        return self.provider.open_secret_box(data, FILE_NONCE, key)

    def encrypt_file_thumbnail(self, data: bytes, key: bytes) -> EncryptResult:
        # same key as the file it belongs to, different nonce
        box = self.provider.seal_secret_box(data, FILE_THUMBNAIL_NONCE, key)
        return EncryptResult(ciphertext=box, key=key, nonce=FILE_THUMBNAIL_NONCE, size=len(box))

    def decrypt_file_thumbnail(self, data: bytes, key: bytes) -> bytes:
        return self.provider.open_secret_box(data, FILE_THUMBNAIL_NONCE, key)

    # ------------------------------------------------------------------
    # Image blobs (box, random nonce, no tag, no padding)
    # ------------------------------------------------------------------

    def encrypt_image(
        self,
        image_data: bytes,
        sender_private_key: bytes,
        recipient_public_key: bytes,
    ) -> EncryptResult:
        nonce = self.provider.random_nonce()
        box = self.provider.seal_box(image_data, nonce, sender_private_key, recipient_public_key)
        return EncryptResult(ciphertext=box, key=b"", nonce=nonce, size=len(box))

    def decrypt_image(
        self,
        data: bytes,
        sender_public_key: bytes,
        recipient_private_key: bytes,
        nonce: bytes,
    ) -> bytes:
        return self.provider.open_box(data, recipient_private_key, sender_public_key, nonce)

    def __repr__(self) -> str:
        return f"EnvelopeService({self.provider!r})"
