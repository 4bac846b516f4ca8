"""Unit tests for auth/tokens.py -- password hashing and session tokens.

Covers:
- hash_password() / verify_password() round trip, single-character mutations
- verify_password() returns False for a malformed stored hash
- passwords over 72 UTF-8 bytes are refused with ValidationFailed
- authenticate_user() gives the same None for unknown email and wrong password
- create_session_token() / verify_session_token(): subject, expiry, tampered
  signature, foreign key, garbage input, wrong kind
"""

import os

os.environ.setdefault("DEBUG", "true")

import pytest
from jose import jwt

from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    TOKEN_KIND_FULL,
    TOKEN_KIND_PENDING,
    TokenBadSignature,
    TokenExpired,
    TokenKindMismatch,
    TokenMalformed,
    authenticate_user,
    create_session_token,
    hash_password,
    verify_password,
    verify_session_token,
)
from core.errors import ValidationFailed

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def test_hash_then_verify():
    digest = hash_password("correct horse")
    assert digest != "correct horse"
    assert verify_password("correct horse", digest)


def test_hash_is_salted():
    assert hash_password("same-password") != hash_password("same-password")


@pytest.mark.parametrize("position", [0, 3, 7])
def test_any_single_character_mutation_fails(position):
    password = "Secr3t!pw"
    digest = hash_password(password)
    replacement = "x" if password[position] != "x" else "y"
    mutated = password[:position] + replacement + password[position + 1 :]
    assert not verify_password(mutated, digest)


def test_malformed_hash_returns_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False
    assert verify_password("anything", "") is False


@pytest.mark.parametrize("password", ["a" * 80, "é" * 40])
def test_password_over_72_bytes_is_a_validation_error(password):
    with pytest.raises(ValidationFailed):
        hash_password(password)


def test_password_of_exactly_72_bytes_hashes():
    password = "é" * 36
    assert verify_password(password, hash_password(password))


def test_over_long_password_never_verifies():
    assert verify_password("a" * 80, hash_password("a" * 72)) is False


@pytest.fixture
def user_store():
    store = UserStore("sqlite:///:memory:")
    store.create_user(User(email="Alice@Example.com", name="Alice", password_hash=hash_password("pw-alice")))
    yield store
    store.close()


def test_authenticate_user_success_is_case_insensitive(user_store):
    user = authenticate_user(user_store, "ALICE@example.com", "pw-alice")
    assert user is not None
    assert user.email == "alice@example.com"


def test_authenticate_user_failures_look_the_same(user_store):
    assert authenticate_user(user_store, "alice@example.com", "wrong") is None
    assert authenticate_user(user_store, "nobody@example.com", "pw-alice") is None


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def test_issue_then_verify_returns_subject():
    token = create_session_token(42)
    assert verify_session_token(token) == 42


def test_pending_token_verifies_as_pending():
    token = create_session_token(7, kind=TOKEN_KIND_PENDING)
    assert verify_session_token(token, kind=TOKEN_KIND_PENDING) == 7


def test_expired_token():
    token = create_session_token(42, expire_seconds=-10)
    with pytest.raises(TokenExpired):
        verify_session_token(token)


def test_tampered_signature():
    header, payload, signature = create_session_token(42).split(".")
    swapped = "A" if signature[0] != "A" else "B"
    tampered = ".".join([header, payload, swapped + signature[1:]])
    with pytest.raises(TokenBadSignature):
        verify_session_token(tampered)


def test_token_signed_with_another_key():
    forged = jwt.encode({"sub": "42", "kind": TOKEN_KIND_FULL}, "k" * 64, algorithm="HS256")
    with pytest.raises(TokenBadSignature):
        verify_session_token(forged)


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b", "a.b.c"])
def test_malformed_token(garbage):
    with pytest.raises(TokenMalformed):
        verify_session_token(garbage)


def test_pending_token_rejected_as_session():
    token = create_session_token(42, kind=TOKEN_KIND_PENDING)
    with pytest.raises(TokenKindMismatch):
        verify_session_token(token, kind=TOKEN_KIND_FULL)


def test_session_token_rejected_as_pending():
    token = create_session_token(42, kind=TOKEN_KIND_FULL)
    with pytest.raises(TokenKindMismatch):
        verify_session_token(token, kind=TOKEN_KIND_PENDING)


def test_unknown_kind_is_refused_at_issue():
    with pytest.raises(ValueError):
        create_session_token(42, kind="admin")
