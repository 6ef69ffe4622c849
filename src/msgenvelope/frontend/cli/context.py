"""Small helper to build the runtime context for the command line tool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging
import os

from msgenvelope.core.encoding import parse_private_key
from msgenvelope.core.models import KeyPair
from msgenvelope.security.envelope import EnvelopeService
from msgenvelope.security.primitives import NaclProvider


PRIVATE_KEY_ENV = "MSGENVELOPE_PRIVATE_KEY"
LOG_LEVEL_ENV = "MSGENVELOPE_LOG_LEVEL"


@dataclass
class AppContext:
    """Container for runtime objects the commands need."""

    provider: NaclProvider
    envelope: EnvelopeService
    key_pair: Optional[KeyPair] = None
    log_level: int = logging.WARNING


def _log_level_from_env(value: Optional[str]) -> int:
    if not value:
        return logging.WARNING
    level = logging.getLevelName(value.strip().upper())
    # getLevelName returns "Level X" for names it does not know
    return level if isinstance(level, int) else logging.WARNING


def build_context(private_key: Optional[str] = None) -> AppContext:
    """
    Build the provider and envelope service for one CLI invocation.

    Configuration comes from the environment:

    - ``MSGENVELOPE_PRIVATE_KEY``: default identity key (``private:<hex>``)
      used when a command is not given a private key explicitly.
    - ``MSGENVELOPE_LOG_LEVEL``: logging level name, default WARNING.

    An explicit ``private_key`` argument wins over the environment.
    """
    provider = NaclProvider()
    envelope = EnvelopeService(provider)

    key_string = private_key or os.getenv(PRIVATE_KEY_ENV)
    key_pair = None
    if key_string:
        secret = parse_private_key(key_string)
        key_pair = KeyPair(private_key=secret, public_key=provider.derive_public_key(secret))

    return AppContext(
        provider=provider,
        envelope=envelope,
        key_pair=key_pair,
        log_level=_log_level_from_env(os.getenv(LOG_LEVEL_ENV)),
    )
