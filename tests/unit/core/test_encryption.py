import pytest
from cryptography.fernet import Fernet

from repairflow.core.encryption import (
    DecryptionError,
    EncryptionKeyMissingError,
    decrypt_secret,
    encrypt_secret,
)


def test_round_trip_with_configured_key():
    token = encrypt_secret("smtp-pass")
    assert token != "smtp-pass"
    assert decrypt_secret(token) == "smtp-pass"


def test_fernet_key_used_directly():
    key = Fernet.generate_key().decode()
    token = encrypt_secret("secret", key=key)
    assert Fernet(key.encode()).decrypt(token.encode()) == b"secret"


def test_passphrase_key():
    token = encrypt_secret("secret", key="correct horse battery staple")
    assert decrypt_secret(token, key="correct horse battery staple") == "secret"


def test_wrong_key():
    token = encrypt_secret("secret", key="one passphrase")
    with pytest.raises(DecryptionError):
        decrypt_secret(token, key="another passphrase")


def test_missing_key():
    with pytest.raises(EncryptionKeyMissingError):
        encrypt_secret("secret", key="")
