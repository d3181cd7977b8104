"""
Symmetric encryption for secrets kept in the settings table (SMTP password).

Values are Fernet tokens. EMAIL_ENCRYPTION_KEY may be a Fernet key or any
passphrase; a passphrase is stretched to a key with SHA-256.
"""
import base64
import binascii
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from repairflow.core.config import settings
from repairflow.core.exceptions import RepairFlowError


class EncryptionKeyMissingError(RepairFlowError):
    def __init__(self):
        super().__init__("EMAIL_ENCRYPTION_KEY is not configured", code="ENCRYPTION_KEY_MISSING")


class DecryptionError(RepairFlowError):
    def __init__(self):
        super().__init__("Stored secret could not be decrypted", code="DECRYPTION_FAILED")


def _derive_key(raw: str) -> bytes:
    try:
        if len(base64.urlsafe_b64decode(raw.encode("utf-8"))) == 32:
            return raw.encode("utf-8")
    except (binascii.Error, ValueError):
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw.encode("utf-8")).digest())


def get_fernet(key: Optional[str] = None) -> Fernet:
    raw = key if key is not None else settings.EMAIL_ENCRYPTION_KEY
    if not raw:
        raise EncryptionKeyMissingError()
    return Fernet(_derive_key(raw))


def encrypt_secret(value: str, key: Optional[str] = None) -> str:
    return get_fernet(key).encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(token: str, key: Optional[str] = None) -> str:
    try:
        return get_fernet(key).decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise DecryptionError()
