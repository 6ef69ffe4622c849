"""
Exceptions for msgenvelope
Everything derives from EnvelopeError so callers have one general error catcher
"""


class EnvelopeError(Exception):
    # general container for errors
    pass


class DecryptionFailedError(EnvelopeError):
    # raised when a box or secret box fails authentication or opens to nothing.
    # wrong key and corrupted ciphertext are reported identically
    def __init__(self, message: str = "decryption failed"):
        super().__init__(message)


class MalformedMessageError(EnvelopeError):
    # raised when decrypted plaintext does not match the layout of its type
    def __init__(self, message: str = "malformed message"):
        super().__init__(message)


class UnsupportedMessageTypeError(EnvelopeError):
    # raised when the type tag is not one we know how to decode
    def __init__(self, type_code: int):
        self.type_code = type_code
        super().__init__(f"unsupported message type 0x{type_code:02x}")


class InvalidInputError(EnvelopeError):
    # raised on caller misuse (wrong key/nonce length, bad hex, ...)
    pass
