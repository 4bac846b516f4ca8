"""Unit tests for auth/totp.py -- RFC 6238 code generation and drift tolerance.

All times are pinned to the start of a 30-second step so "one step ahead"
and "two steps ahead" are unambiguous.
"""

import base64
from urllib.parse import parse_qs, urlparse

import pyotp
import pytest

from auth.totp import STEP_SECONDS, generate_secret, is_well_formed_code, provisioning_qr_data_url, verify_code

_BASE = 1_700_000_000
T0 = _BASE - (_BASE % STEP_SECONDS)


@pytest.fixture
def secret() -> str:
    secret, _ = generate_secret("alice@example.com", "Enterprise Inventory")
    return secret


def _code_at(secret: str, t: int) -> str:
    return pyotp.TOTP(secret).at(t)


def test_secret_has_at_least_160_bits(secret):
    assert len(base64.b32decode(secret)) * 8 >= 160


def test_provisioning_uri_names_account_and_issuer():
    secret, uri = generate_secret("alice@example.com", "Enterprise Inventory")
    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    query = parse_qs(parsed.query)
    assert query["secret"] == [secret]
    assert query["issuer"] == ["Enterprise Inventory"]
    assert "alice%40example.com" in parsed.path or "alice@example.com" in parsed.path


def test_qr_data_url_is_svg():
    _, uri = generate_secret("alice@example.com", "Enterprise Inventory")
    data_url = provisioning_qr_data_url(uri)
    assert data_url.startswith("data:image/svg+xml;base64,")
    svg = base64.b64decode(data_url.split(",", 1)[1])
    assert b"<svg" in svg


def test_current_step_code_verifies(secret):
    assert verify_code(secret, _code_at(secret, T0), window=1, for_time=T0)


def test_code_31_seconds_ahead_is_within_one_step(secret):
    assert verify_code(secret, _code_at(secret, T0 + 31), window=1, for_time=T0)


def test_code_from_previous_step_is_within_one_step(secret):
    assert verify_code(secret, _code_at(secret, T0 - 1), window=1, for_time=T0)


def test_code_61_seconds_ahead_is_outside_window(secret):
    assert not verify_code(secret, _code_at(secret, T0 + 61), window=1, for_time=T0)


def test_window_zero_accepts_only_current_step(secret):
    assert not verify_code(secret, _code_at(secret, T0 + 31), window=0, for_time=T0)


def test_wrong_secret_does_not_verify(secret):
    other, _ = generate_secret("bob@example.com", "Enterprise Inventory")
    code = _code_at(other, T0)
    if code != _code_at(secret, T0):
        assert not verify_code(secret, code, window=0, for_time=T0)


@pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", "12 456", "123456\n", "", None, 123456])
def test_malformed_codes_are_rejected(secret, code):
    assert not is_well_formed_code(code)
    assert not verify_code(secret, code, window=1, for_time=T0)


def test_missing_or_corrupt_secret_verifies_nothing():
    assert not verify_code(None, "123456")
    assert not verify_code("", "123456")
    assert not verify_code("!!not-base32!!", "123456")
