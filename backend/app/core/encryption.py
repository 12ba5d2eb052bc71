"""
Field-level encryption for guest PII (phone numbers, addresses, booking
contact numbers).

Values are stored as ``enc:<fernet token>``. Without a configured key the
cipher passes plaintext through, and values lacking the prefix are returned
as-is on read so rows written before a key was configured stay readable.
"""

import base64
import hashlib
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

PREFIX = "enc:"


def _fernet_for(key: str) -> Fernet:
    try:
        return Fernet(key.encode("utf-8"))
    except ValueError:
        # Not a Fernet key: derive one from the passphrase
        digest = hashlib.sha256(key.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))


class FieldCipher:
    def __init__(self, key: Optional[str] = None):
        self._fernet = _fernet_for(key) if key else None

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None or plaintext == "":
            return None
        if self._fernet is None:
            return plaintext
        token = self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")
        return PREFIX + token

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not value.startswith(PREFIX) or self._fernet is None:
            return value
        try:
            return self._fernet.decrypt(value[len(PREFIX):].encode("ascii")).decode("utf-8")
        except InvalidToken:
            logger.warning("field_decrypt_failed")
            return value


@lru_cache()
def get_field_cipher() -> FieldCipher:
    return FieldCipher(get_settings().ENCRYPTION_KEY or None)


class EncryptedString(TypeDecorator):
    """String column transparently encrypted with the application cipher."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return get_field_cipher().encrypt(value)

    def process_result_value(self, value, dialect):
        return get_field_cipher().decrypt(value)
