"""
Unit tests for the EnvelopeService.
"""

import json
import os

import pytest
from unittest.mock import MagicMock

from nacl.public import Box, PrivateKey, PublicKey

from msgenvelope.core.encoding import hex2bin, parse_private_key, parse_public_key
from msgenvelope.core.exceptions import (
    DecryptionFailedError,
    MalformedMessageError,
    UnsupportedMessageTypeError,
)
from msgenvelope.core.models import (
    FILE_NONCE,
    FILE_THUMBNAIL_NONCE,
    DeliveryReceipt,
    EncryptResult,
    FileAnalysisResult,
    FileMessage,
    ImageMessage,
    LocationMessage,
    ReceiptType,
    TextMessage,
    UploadFileResult,
)
from msgenvelope.security.envelope import EnvelopeService
from msgenvelope.security.primitives import MAC_LEN, NaclProvider


# Known answer from the gateway SDK test suite: box sealed by "my" identity
# for "other" identity. The key pair is supplied through the environment.
VECTOR_NONCE = "0a1ec5b67b4d61a1ef91f55e8ce0471fee96ea5d8596dfd0"
VECTOR_BOX = (
    "45181c7aed95a1c100b1b559116c61b43ce15d04014a805288b7d14bf3a993393264fe55"
    "4794ce7d6007233e8ef5a0f1ccdd704f34e7c7b77c72c239182caf1d061d6fff6ffbbfe8"
    "d3b8f3475c2fe352e563aa60290c666b2e627761e32155e62f048b52ef2f39c13ac229f3"
    "93c67811749467396ecd09f42d32a4eb419117d0451056ac18fac957c52b0cca67568e2d"
    "97e5a3fd829a77f914a1ad403c5909fd510a313033422ea5db71eaf43d483238612a54cb"
    "1ecfe55259b1de5579e67c6505df7d674d34a737edf721ea69d15b567bc2195ec67e172f"
    "3cb8d6842ca88c29138cc33e9351dbc1e4973a82e1cf428c1c763bb8f3eb57770f914a"
)
VECTOR_TEXT = "Dies ist eine Testnachricht. äöü"


class ScriptedPadProvider(NaclProvider):
    """Real crypto, but single-byte random draws come from a script."""

    def __init__(self, pad_draws):
        self.pad_draws = list(pad_draws)
        self.draws = 0

    def random_bytes(self, size):
        if size == 1 and self.pad_draws:
            self.draws += 1
            return bytes([self.pad_draws.pop(0)])
        return super().random_bytes(size)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def provider():
    return NaclProvider()


@pytest.fixture
def service(provider):
    return EnvelopeService(provider)


@pytest.fixture
def alice(provider):
    return provider.generate_key_pair()


@pytest.fixture
def bob(provider):
    return provider.generate_key_pair()


@pytest.fixture
def nonce(provider):
    return provider.random_nonce()


def _seal_raw(provider, plaintext, alice, bob, nonce):
    """Seal hand-built padded plaintext, bypassing the codec."""
    return provider.seal_box(plaintext, nonce, alice.private_key, bob.public_key)


# ==============================================================================
# Tests: Padding selection
# ==============================================================================

def test_pad_bytes_rejects_zero():
    service = EnvelopeService(ScriptedPadProvider([0, 0, 0, 7]))
    assert service.generate_pad_bytes() == 7
    assert service.provider.draws == 4


@pytest.mark.parametrize("draw", [1, 128, 255])
def test_pad_bytes_accepts_full_range(draw):
    service = EnvelopeService(ScriptedPadProvider([draw]))
    assert service.generate_pad_bytes() == draw


def test_pad_bytes_within_bounds(service):
    for _ in range(500):
        assert 1 <= service.generate_pad_bytes() <= 255


def test_padding_applied_to_box(alice, bob, nonce):
    service = EnvelopeService(ScriptedPadProvider([9]))
    box = service.encrypt_text("abc", alice.private_key, bob.public_key, nonce)
    plain = service.provider.open_box(box, bob.private_key, alice.public_key, nonce)
    assert plain == b"\x01abc" + b"\x09" * 9
    assert len(box) == 4 + 9 + MAC_LEN


def test_default_provider_is_per_instance():
    a = EnvelopeService()
    b = EnvelopeService()
    assert isinstance(a.provider, NaclProvider)
    assert a.provider is not b.provider


def test_service_uses_injected_provider(alice, bob, nonce):
    fake = MagicMock()
    fake.random_bytes.return_value = b"\x03"
    fake.seal_box.return_value = b"sealed"
    service = EnvelopeService(fake)

    assert service.encrypt_text("hi", alice.private_key, bob.public_key, nonce) == b"sealed"
    fake.seal_box.assert_called_once_with(
        b"\x01hi\x03\x03\x03", nonce, alice.private_key, bob.public_key
    )


# ==============================================================================
# Tests: Message round trips
# ==============================================================================

def test_text_roundtrip(service, alice, bob, nonce):
    box = service.encrypt_text(VECTOR_TEXT, alice.private_key, bob.public_key, nonce)
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)
    assert msg == TextMessage(VECTOR_TEXT)


def test_long_text_still_encrypts(service, alice, bob, nonce, caplog):
    text = "x" * 4000
    box = service.encrypt_text(text, alice.private_key, bob.public_key, nonce)
    assert service.decrypt_message(box, bob.private_key, alice.public_key, nonce).text == text
    assert "3500" in caplog.text


def test_image_message_roundtrip(service, alice, bob, nonce):
    image = service.encrypt_image(b"\xff\xd8\xff jpeg bytes", alice.private_key, bob.public_key)
    upload = UploadFileResult(blob_id="00112233445566778899aabbccddeeff", size=image.size)

    box = service.encrypt_image_message(upload, image, alice.private_key, bob.public_key, nonce)
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)

    assert msg == ImageMessage(upload.blob_id, image.size, image.nonce)
    # the referenced blob opens with the nonce carried in the message
    assert service.decrypt_image(image.ciphertext, alice.public_key, bob.private_key, msg.nonce) == (
        b"\xff\xd8\xff jpeg bytes"
    )


def test_file_message_roundtrip_with_thumbnail(service, alice, bob, nonce):
    encrypted = service.encrypt_file(b"%PDF-1.4 ...")
    upload = UploadFileResult("aa" * 16, encrypted.size)
    thumb = UploadFileResult("bb" * 16, 10)
    analysis = FileAnalysisResult("application/pdf", "doc.pdf", 12)

    box = service.encrypt_file_message(
        upload, encrypted, thumb, analysis, alice.private_key, bob.public_key, nonce
    )
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)

    assert msg == FileMessage(
        blob_id="aa" * 16,
        encryption_key=encrypted.key.hex(),
        mime_type="application/pdf",
        file_name="doc.pdf",
        size=12,
        thumbnail_blob_id="bb" * 16,
    )
    assert service.decrypt_file(encrypted.ciphertext, hex2bin(msg.encryption_key)) == b"%PDF-1.4 ..."


@pytest.mark.parametrize("thumb", [None, UploadFileResult("", 0)])
def test_file_message_without_thumbnail(thumb, alice, bob, nonce):
    service = EnvelopeService(ScriptedPadProvider([1]))
    encrypted = service.encrypt_file(b"data")
    box = service.encrypt_file_message(
        UploadFileResult("cc" * 16), encrypted, thumb,
        FileAnalysisResult("text/plain", "a.txt", 4),
        alice.private_key, bob.public_key, nonce,
    )
    plain = service.provider.open_box(box, bob.private_key, alice.public_key, nonce)
    body = json.loads(plain[1:-1])
    assert "t" not in body
    assert service.decrypt_message(box, bob.private_key, alice.public_key, nonce).thumbnail_blob_id is None


def test_location_roundtrip(service, alice, bob, nonce):
    box = service.encrypt_location_message(
        46.948, 7.4474, alice.private_key, bob.public_key, nonce, accuracy=12, address=["Bundesplatz 3", "Bern"]
    )
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)
    assert msg == LocationMessage(46.948, 7.4474, 12, ["Bundesplatz 3", "Bern"])


def test_delivery_receipt_roundtrip(service, alice, bob, nonce):
    ids = [os.urandom(8) for _ in range(3)]
    box = service.encrypt_delivery_receipt(ReceiptType.READ, ids, alice.private_key, bob.public_key, nonce)
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)
    assert msg == DeliveryReceipt(2, ids)


# ==============================================================================
# Tests: Decrypt failures
# ==============================================================================

def test_decrypt_tampered_box(service, alice, bob, nonce):
    box = bytearray(service.encrypt_text("hello", alice.private_key, bob.public_key, nonce))
    box[5] ^= 0x10
    with pytest.raises(DecryptionFailedError):
        service.decrypt_message(bytes(box), bob.private_key, alice.public_key, nonce)


def test_decrypt_empty_plaintext(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"", alice, bob, nonce)
    with pytest.raises(DecryptionFailedError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


def test_decrypt_padding_too_long(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"\x01a\x05", alice, bob, nonce)
    with pytest.raises(MalformedMessageError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


def test_decrypt_unknown_type(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"\x55data\x01", alice, bob, nonce)
    with pytest.raises(UnsupportedMessageTypeError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


def test_decrypt_receipt_without_ids(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"\x80\x01" + b"\x02\x02", alice, bob, nonce)
    msg = service.decrypt_message(box, bob.private_key, alice.public_key, nonce)
    assert msg == DeliveryReceipt(1, [])


def test_decrypt_receipt_bad_length(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"\x80\x01" + b"\x00" * 7 + b"\x01", alice, bob, nonce)
    with pytest.raises(MalformedMessageError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


@pytest.mark.parametrize("length", [44, 46])
def test_decrypt_image_bad_length(service, provider, alice, bob, nonce, length):
    box = _seal_raw(provider, b"\x02" + b"\x00" * (length - 1) + b"\x01", alice, bob, nonce)
    with pytest.raises(MalformedMessageError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


def test_decrypt_file_bad_json(service, provider, alice, bob, nonce):
    box = _seal_raw(provider, b"\x17{not json\x01", alice, bob, nonce)
    with pytest.raises(MalformedMessageError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


@pytest.mark.parametrize(
    "body",
    [
        b'{"b":"x","k":"y","m":"z","n":"f","s":Infinity}',
        b'{"b":"x","k":"y","m":"z","n":"f","s":NaN}',
        b'{"b":"x","k":"y","m":"z","n":"f","s":3.9}',
        b'{"b":"x","k":"y","m":"z","n":"f","s":3,"i":false}',
        b"[" * 100000 + b"]" * 100000,
    ],
    ids=["infinity", "nan", "float-size", "bool-index", "deep-nesting"],
)
def test_decrypt_file_bad_values(service, provider, alice, bob, nonce, body):
    """Hostile file JSON still surfaces as MalformedMessageError only."""
    box = _seal_raw(provider, b"\x17" + body + b"\x01", alice, bob, nonce)
    with pytest.raises(MalformedMessageError):
        service.decrypt_message(box, bob.private_key, alice.public_key, nonce)


# ==============================================================================
# Tests: File, thumbnail and image blobs
# ==============================================================================

def test_encrypt_file_result(service):
    result = service.encrypt_file(b"payload")
    assert isinstance(result, EncryptResult)
    assert result.nonce == FILE_NONCE
    assert len(result.key) == 32
    assert result.size == len(result.ciphertext) == len(b"payload") + MAC_LEN
    assert service.decrypt_file(result.ciphertext, result.key) == b"payload"


def test_encrypt_file_fresh_key_each_time(service):
    assert service.encrypt_file(b"a").key != service.encrypt_file(b"a").key


def test_thumbnail_roundtrip(service):
    file_result = service.encrypt_file(b"big file")
    thumb = service.encrypt_file_thumbnail(b"small", file_result.key)
    assert thumb.nonce == FILE_THUMBNAIL_NONCE
    assert thumb.key == file_result.key
    assert service.decrypt_file_thumbnail(thumb.ciphertext, thumb.key) == b"small"


def test_thumbnail_not_accepted_as_file(service):
    """Same key, different nonce: a thumbnail cannot stand in for the file."""
    key = service.encrypt_file(b"x").key
    thumb = service.encrypt_file_thumbnail(b"thumbnail", key)
    with pytest.raises(DecryptionFailedError):
        service.decrypt_file(thumb.ciphertext, key)


def test_decrypt_file_wrong_key(service):
    result = service.encrypt_file(b"payload")
    with pytest.raises(DecryptionFailedError):
        service.decrypt_file(result.ciphertext, os.urandom(32))


def test_encrypt_image_result(service, alice, bob):
    result = service.encrypt_image(b"image", alice.private_key, bob.public_key)
    assert result.key == b""
    assert len(result.nonce) == 24
    assert result.size == len(b"image") + MAC_LEN
    # no tag, no padding
    assert service.decrypt_image(result.ciphertext, alice.public_key, bob.private_key, result.nonce) == b"image"


def test_encrypt_image_random_nonce(service, alice, bob):
    a = service.encrypt_image(b"image", alice.private_key, bob.public_key)
    b = service.encrypt_image(b"image", alice.private_key, bob.public_key)
    assert a.nonce != b.nonce


# ==============================================================================
# Tests: Known answer
# ==============================================================================

def test_fixed_key_known_answer():
    """Fixed keys, nonce and pad draw pin the sealed bytes exactly."""
    sender = bytes(range(32))
    recipient = bytes(range(32, 64))
    nonce = bytes(range(64, 88))

    provider = ScriptedPadProvider([3])
    service = EnvelopeService(provider)
    sender_public = provider.derive_public_key(sender)
    recipient_public = provider.derive_public_key(recipient)

    box = service.encrypt_text("hi", sender, recipient_public, nonce)

    plaintext = b"\x01hi\x03\x03\x03"
    expected = Box(PrivateKey(sender), PublicKey(recipient_public)).encrypt(plaintext, nonce).ciphertext
    assert box == expected
    assert len(box) == len(plaintext) + MAC_LEN
    assert provider.open_box(box, recipient, sender_public, nonce) == plaintext

    again = EnvelopeService(ScriptedPadProvider([3])).encrypt_text("hi", sender, recipient_public, nonce)
    assert again == box
    assert service.decrypt_message(box, recipient, sender_public, nonce) == TextMessage("hi")


@pytest.mark.skipif(
    not (os.getenv("MSGENVELOPE_VECTOR_PRIVATE_KEY") and os.getenv("MSGENVELOPE_VECTOR_PUBLIC_KEY")),
    reason="reference key pair not configured",
)
def test_decrypt_reference_vector(service):
    """
    Opt-in: set MSGENVELOPE_VECTOR_PRIVATE_KEY and MSGENVELOPE_VECTOR_PUBLIC_KEY
    to the SDK test key pair to check the recorded box. Skipped otherwise;
    test_fixed_key_known_answer pins the layout without external keys.
    """
    private_key = parse_private_key(os.environ["MSGENVELOPE_VECTOR_PRIVATE_KEY"])
    public_key = parse_public_key(os.environ["MSGENVELOPE_VECTOR_PUBLIC_KEY"])

    msg = service.decrypt_message(hex2bin(VECTOR_BOX), private_key, public_key, hex2bin(VECTOR_NONCE))
    assert msg == TextMessage(VECTOR_TEXT)
