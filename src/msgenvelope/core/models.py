"""
Data models for keys, encryption results and the typed gateway messages
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import ClassVar, List, Optional, Union


KEY_LEN = 32
NONCE_LEN = 24
MESSAGE_ID_LEN = 8
BLOB_ID_LEN = 16
IMAGE_FILE_SIZE_LEN = 4
IMAGE_NONCE_LEN = 24

# secret box nonces for file and thumbnail blobs; every blob gets its own key
FILE_NONCE = b"\x00" * 23 + b"\x01"
FILE_THUMBNAIL_NONCE = b"\x00" * 23 + b"\x02"


class MessageType(IntEnum):
    # leading byte of the padding-stripped plaintext
    TEXT = 0x01
    IMAGE = 0x02
    LOCATION = 0x10
    FILE = 0x17
    DELIVERY_RECEIPT = 0x80


class ReceiptType(IntEnum):
    RECEIVED = 0x01
    READ = 0x02
    USER_ACK = 0x03
    USER_DECLINE = 0x04


class KeyKind(Enum):
    # prefixes of the textual key form, e.g. "private:<hex>"
    PRIVATE = "private"
    PUBLIC = "public"


@dataclass(frozen=True)
class KeyPair:
    """A Curve25519 key pair, 32 raw bytes each."""

    private_key: bytes
    public_key: bytes

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key.hex()}, private_key=[REDACTED])"


@dataclass(frozen=True)
class EncryptResult:
    """
    Output of every blob encryption.

    ``key`` is the symmetric key for secret box results and empty for
    box results (images), ``size`` is the ciphertext length.
    """

    ciphertext: bytes
    key: bytes
    nonce: bytes
    size: int


@dataclass(frozen=True)
class UploadFileResult:
    # what the blob upload endpoint hands back
    blob_id: str
    size: int = 0


@dataclass(frozen=True)
class FileAnalysisResult:
    mime_type: str
    file_name: str
    size: int


@dataclass(frozen=True)
class TextMessage:
    TYPE_CODE: ClassVar[MessageType] = MessageType.TEXT

    text: str

    def __str__(self) -> str:
        return f"text message: {self.text}"


@dataclass(frozen=True)
class DeliveryReceipt:
    TYPE_CODE: ClassVar[MessageType] = MessageType.DELIVERY_RECEIPT

    receipt_type: int
    message_ids: List[bytes] = field(default_factory=list)

    def receipt_type_name(self) -> str:
        try:
            return ReceiptType(self.receipt_type).name.lower()
        except ValueError:
            return "unknown"

    def __str__(self) -> str:
        ids = ", ".join(m.hex() for m in self.message_ids)
        return f"delivery receipt ({self.receipt_type_name()}): {ids}"


@dataclass(frozen=True)
class ImageMessage:
    TYPE_CODE: ClassVar[MessageType] = MessageType.IMAGE

    blob_id: str
    size: int
    nonce: bytes

    def __str__(self) -> str:
        return f"image message: blob {self.blob_id} ({self.size} bytes)"


@dataclass(frozen=True)
class FileMessage:
    TYPE_CODE: ClassVar[MessageType] = MessageType.FILE

    blob_id: str
    encryption_key: str
    mime_type: str
    file_name: str
    size: int
    thumbnail_blob_id: Optional[str] = None
    index: int = 0

    def __str__(self) -> str:
        return f"file message: {self.file_name} ({self.mime_type}, {self.size} bytes) blob {self.blob_id}"


@dataclass(frozen=True)
class LocationMessage:
    TYPE_CODE: ClassVar[MessageType] = MessageType.LOCATION

    latitude: float
    longitude: float
    accuracy: int = 0
    address: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        where = f"{self.latitude},{self.longitude}"
        if self.address:
            where += " " + " / ".join(self.address)
        return f"location message: {where}"


Message = Union[TextMessage, DeliveryReceipt, ImageMessage, FileMessage, LocationMessage]
