""" Keyed hashes for identity lookup and gateway callback authentication. """

import hashlib
import hmac
import re


# Shared lookup keys. They ship with every client, so the hashes only keep
# addresses out of plain sight in lookup requests.
EMAIL_HMAC_KEY = bytes.fromhex("30a5500fed9701fa6defdb610841900febb8e430881f7ad816826264ec09bad7")
PHONENO_HMAC_KEY = bytes.fromhex("85adf8226953f3d96cfd5d09bf29555eb955fcd8aa5ec4f9fcd869e258370723")

_NON_DIGITS = re.compile(r"[^0-9]")

# Characters trimmed by the reference clients before hashing.
_EMAIL_TRIM = " \t\n\r\0\x0b"


def hash_email(email: str) -> str:
    # Normalise first so "Foo@Bar.com " and "foo@bar.com" hash the same.
    # Only ASCII letters are lowered; bytes.lower leaves the rest alone.
    email_clean = email.strip(_EMAIL_TRIM).encode("utf-8").lower()
    return hmac.new(EMAIL_HMAC_KEY, email_clean, hashlib.sha256).hexdigest()


def hash_phone_no(phone_no: str) -> str:
    # E.164 digits only, no leading +
    phone_clean = _NON_DIGITS.sub("", phone_no)
    return hmac.new(PHONENO_HMAC_KEY, phone_clean.encode("ascii"), hashlib.sha256).hexdigest()


def calculate_mac(
    from_id: str,
    gateway_id: str,
    message_id: str,
    date: str,
    nonce_hex: str,
    box_hex: str,
    secret: str,
) -> str:
    """
    HMAC-SHA256 over the fields of an incoming gateway callback.

    The fields are concatenated as received (all strings) and keyed with the
    gateway secret. Check this before decrypting the box.
    """
    payload = from_id + gateway_id + message_id + date + nonce_hex + box_hex
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
