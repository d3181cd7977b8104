"""
Unit Tests for password hashing and JWT handling
"""
import pytest
from datetime import timedelta
from fastapi import HTTPException

from repairflow.core.security import (
    create_access_token,
    create_token_pair,
    decode_token,
    generate_reset_token,
    get_password_hash,
    password_strength_errors,
    verify_password,
)
from repairflow.models.user import User, UserRole


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = get_password_hash("Password123")
        assert hashed != "Password123"
        assert verify_password("Password123", hashed)
        assert not verify_password("Password124", hashed)

    def test_long_password_truncated_at_72_bytes(self):
        base = "A" * 72
        hashed = get_password_hash(base + "tail-one")
        assert verify_password(base + "tail-two", hashed)


class TestPasswordStrength:

    def test_strong_password(self):
        assert password_strength_errors("Password123") == []

    def test_each_rule_reported(self):
        errors = password_strength_errors("abc")
        assert len(errors) == 3
        assert any("8 characters" in e for e in errors)
        assert any("uppercase" in e for e in errors)
        assert any("number" in e for e in errors)

    def test_custom_min_length(self):
        assert password_strength_errors("Abcdef12", min_length=10)


class TestTokens:

    def test_token_pair(self):
        user = User(id="user-1", email="a@example.com", role=UserRole.STAFF)
        pair = create_token_pair(user)

        access = decode_token(pair["access_token"])
        refresh = decode_token(pair["refresh_token"])
        assert access["type"] == "access"
        assert access["role"] == "STAFF"
        assert access["sub"] == "user-1"
        assert refresh["type"] == "refresh"
        assert "role" not in refresh
        assert pair["token_type"] == "bearer"

    def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_token("not-a-jwt")
        assert exc_info.value.status_code == 401

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "x"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(HTTPException):
            decode_token(token)

    def test_reset_token(self):
        token = generate_reset_token()
        assert len(token) == 32
        int(token, 16)
        assert token != generate_reset_token()
