"""Plaintext layout of the gateway message types.

Every message is serialized as a one byte type tag followed by a type
specific body:

- 0x01 text:      UTF-8 text, no length prefix
- 0x02 image:     16 byte blob id, 4 byte little-endian size, 24 byte nonce
- 0x10 location:  "lat,lon[,accuracy]" line, then address lines, newline separated
- 0x17 file:      compact JSON object (b, k, m, n, s, i, optional t)
- 0x80 receipt:   1 byte receipt type, then 8 byte message ids

Before sealing, the serialized message gets 1-255 bytes of self describing
padding (every padding byte holds the padding length). Decoding is strict and
all-or-nothing: a body that does not match its tag raises
MalformedMessageError, an unknown tag raises UnsupportedMessageTypeError.

These functions are pure; the envelope service does the sealing.
"""

from __future__ import annotations

import json
import struct
from typing import Callable, Dict

from .encoding import bin2hex, hex2bin
from .exceptions import InvalidInputError, MalformedMessageError, UnsupportedMessageTypeError
from .models import (
    BLOB_ID_LEN,
    IMAGE_FILE_SIZE_LEN,
    IMAGE_NONCE_LEN,
    MESSAGE_ID_LEN,
    DeliveryReceipt,
    FileMessage,
    ImageMessage,
    LocationMessage,
    Message,
    MessageType,
    TextMessage,
)


IMAGE_MESSAGE_LEN = 1 + BLOB_ID_LEN + IMAGE_FILE_SIZE_LEN + IMAGE_NONCE_LEN  # 45
MIN_PAD = 1
MAX_PAD = 255

# keys of the file message JSON body that must be present
FILE_REQUIRED_KEYS = ("b", "k", "m", "n", "s")


# ----------------------------------------------------------------------
# Padding
# ----------------------------------------------------------------------

def pad(data: bytes, count: int) -> bytes:
    if not MIN_PAD <= count <= MAX_PAD:
        raise InvalidInputError(f"padding length must be in [{MIN_PAD}, {MAX_PAD}], got {count}")
    return data + bytes([count]) * count


def unpad(data: bytes) -> bytes:
    """Strip padding; the last byte says how many bytes to drop."""
    if not data:
        raise MalformedMessageError("empty plaintext")
    count = data[-1]
    real_len = len(data) - count
    if real_len < 1:
        raise MalformedMessageError("padding longer than message")
    return data[:real_len]


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------

def encode_text(message: TextMessage) -> bytes:
    body = message.text.encode("utf-8")
    if not body:
        raise InvalidInputError("text message must not be empty")
    return bytes([MessageType.TEXT]) + body


def encode_image(message: ImageMessage) -> bytes:
    blob_id = hex2bin(message.blob_id)
    if not 0 <= message.size <= 0xFFFFFFFF:
        raise InvalidInputError(f"image size out of range: {message.size}")
    data = bytes([MessageType.IMAGE]) + blob_id + struct.pack("<I", message.size) + message.nonce
    if len(data) != IMAGE_MESSAGE_LEN:
        # blob id or nonce had the wrong width
        raise InvalidInputError(
            f"image message must be {IMAGE_MESSAGE_LEN} bytes, got {len(data)}"
        )
    return data


def encode_file(message: FileMessage) -> bytes:
    content = {
        "b": message.blob_id,
        "k": message.encryption_key,
        "m": message.mime_type,
        "n": message.file_name,
        "s": message.size,
        "i": message.index,
    }
    if message.thumbnail_blob_id:
        content["t"] = message.thumbnail_blob_id
    body = json.dumps(content, separators=(",", ":"))
    return bytes([MessageType.FILE]) + body.encode("utf-8")


def encode_delivery_receipt(message: DeliveryReceipt) -> bytes:
    if not 0 <= message.receipt_type <= 0xFF:
        raise InvalidInputError(f"receipt type must fit in one byte, got {message.receipt_type}")
    data = bytearray([MessageType.DELIVERY_RECEIPT, message.receipt_type])
    for message_id in message.message_ids:
        if len(message_id) != MESSAGE_ID_LEN:
            raise InvalidInputError(
                f"message ids must be {MESSAGE_ID_LEN} bytes, got {len(message_id)}"
            )
        data += message_id
    return bytes(data)


def encode_location(message: LocationMessage) -> bytes:
    points = f"{message.latitude},{message.longitude}"
    if message.accuracy:
        points += f",{message.accuracy}"
    for line in message.address:
        if "\n" in line:
            raise InvalidInputError("address lines must not contain newlines")
    body = "\n".join([points] + list(message.address))
    return bytes([MessageType.LOCATION]) + body.encode("utf-8")


_ENCODERS: Dict[type, Callable] = {
    TextMessage: encode_text,
    ImageMessage: encode_image,
    FileMessage: encode_file,
    DeliveryReceipt: encode_delivery_receipt,
    LocationMessage: encode_location,
}


def encode_message(message: Message) -> bytes:
    """Serialize a message to tag + body, without padding."""
    encoder = _ENCODERS.get(type(message))
    if encoder is None:
        raise InvalidInputError(f"cannot encode {type(message).__name__}")
    return encoder(message)


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------

def decode_text(data: bytes) -> TextMessage:
    if len(data) < 2:
        raise MalformedMessageError("text message is too short")
    try:
        return TextMessage(data[1:].decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedMessageError("text message is not valid UTF-8") from e


def decode_delivery_receipt(data: bytes) -> DeliveryReceipt:
    if len(data) < 2 or (len(data) - 2) % MESSAGE_ID_LEN != 0:
        raise MalformedMessageError("delivery receipt has invalid length")
    ids = [data[pos:pos + MESSAGE_ID_LEN] for pos in range(2, len(data), MESSAGE_ID_LEN)]
    return DeliveryReceipt(receipt_type=data[1], message_ids=ids)


def decode_image(data: bytes) -> ImageMessage:
    if len(data) != IMAGE_MESSAGE_LEN:
        raise MalformedMessageError(
            f"image message must be {IMAGE_MESSAGE_LEN} bytes, got {len(data)}"
        )
    pos = 1
    blob_id = data[pos:pos + BLOB_ID_LEN]
    pos += BLOB_ID_LEN
    (size,) = struct.unpack("<I", data[pos:pos + IMAGE_FILE_SIZE_LEN])
    pos += IMAGE_FILE_SIZE_LEN
    nonce = data[pos:pos + IMAGE_NONCE_LEN]
    return ImageMessage(blob_id=bin2hex(blob_id), size=size, nonce=nonce)


def _reject_constant(name: str):
    raise ValueError(f"non-finite number {name}")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_file(data: bytes) -> FileMessage:
    try:
        values = json.loads(data[1:].decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise MalformedMessageError("file message JSON badly formatted") from e

    if not isinstance(values, dict) or not values:
        raise MalformedMessageError("file message JSON is not a non-empty object")
    missing = [k for k in FILE_REQUIRED_KEYS if k not in values]
    if missing:
        raise MalformedMessageError(f"file message lacks keys: {', '.join(missing)}")

    size = values["s"]
    index = values.get("i", 0)
    if not _is_int(size) or not _is_int(index):
        raise MalformedMessageError("file message size or index is not an integer")

    return FileMessage(
        blob_id=values["b"],
        encryption_key=values["k"],
        mime_type=values["m"],
        file_name=values["n"],
        size=size,
        thumbnail_blob_id=values.get("t") or None,
        index=index,
    )


def decode_location(data: bytes) -> LocationMessage:
    try:
        lines = data[1:].decode("utf-8").split("\n")
    except UnicodeDecodeError as e:
        raise MalformedMessageError("location message is not valid UTF-8") from e

    points = lines[0].split(",")
    if len(points) < 2:
        raise MalformedMessageError("invalid latitude and longitude")
    try:
        latitude = float(points[0])
        longitude = float(points[1])
    except ValueError as e:
        raise MalformedMessageError("invalid latitude and longitude") from e

    accuracy = 0
    if len(points) > 2:
        try:
            accuracy = int(points[2])
        except ValueError:
            accuracy = 0

    return LocationMessage(latitude=latitude, longitude=longitude, accuracy=accuracy, address=lines[1:])


_DECODERS: Dict[int, Callable[[bytes], Message]] = {
    MessageType.TEXT: decode_text,
    MessageType.DELIVERY_RECEIPT: decode_delivery_receipt,
    MessageType.IMAGE: decode_image,
    MessageType.FILE: decode_file,
    MessageType.LOCATION: decode_location,
}


def decode_message(data: bytes) -> Message:
    """Decode padding-stripped plaintext by its leading type tag."""
    if not data:
        raise MalformedMessageError("empty message")
    decoder = _DECODERS.get(data[0])
    if decoder is None:
        raise UnsupportedMessageTypeError(data[0])
    return decoder(data)
