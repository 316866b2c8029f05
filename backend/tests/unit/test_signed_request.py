"""
Unit tests for Meta signed_request parsing and the nonce cookie signer.
"""

import base64
import hashlib
import hmac
import json

import pytest

from core.security import NonceCookieSigner, SignedRequestError, parse_signed_request

APP_SECRET = "app-secret"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def make_signed_request(payload: dict, secret: str = APP_SECRET) -> str:
    encoded_payload = _b64(json.dumps(payload).encode())
    signature = hmac.new(secret.encode(), encoded_payload.encode(), hashlib.sha256).digest()
    return f"{_b64(signature)}.{encoded_payload}"


# ---------------------------------------------------------------------------
# parse_signed_request
# ---------------------------------------------------------------------------


def test_valid_signed_request():
    signed = make_signed_request({"algorithm": "HMAC-SHA256", "user_id": "42", "issued_at": 1})

    payload = parse_signed_request(signed, APP_SECRET)

    assert payload["user_id"] == "42"


def test_wrong_secret_rejected():
    signed = make_signed_request({"algorithm": "HMAC-SHA256", "user_id": "42"}, "other")

    with pytest.raises(SignedRequestError, match="Invalid signature"):
        parse_signed_request(signed, APP_SECRET)


def test_unsupported_algorithm_rejected():
    signed = make_signed_request({"algorithm": "PLAINTEXT", "user_id": "42"})

    with pytest.raises(SignedRequestError, match="Unsupported algorithm"):
        parse_signed_request(signed, APP_SECRET)


@pytest.mark.parametrize("value", ["", "no-dot", "a.b.c", "!!!.???", "abc.bm90IGpzb24"])
def test_malformed_rejected(value: str):
    with pytest.raises(SignedRequestError):
        parse_signed_request(value, APP_SECRET)


def test_missing_app_secret_rejected():
    signed = make_signed_request({"algorithm": "HMAC-SHA256", "user_id": "42"})

    with pytest.raises(SignedRequestError):
        parse_signed_request(signed, "")


# ---------------------------------------------------------------------------
# NonceCookieSigner
# ---------------------------------------------------------------------------


def test_nonce_cookie_round_trip():
    signer = NonceCookieSigner("c" * 32, max_age_seconds=600)
    assert signer.unsign(signer.sign("nonce-value")) == "nonce-value"


def test_nonce_cookie_tampered():
    signer = NonceCookieSigner("c" * 32, max_age_seconds=600)
    cookie = signer.sign("nonce-value")
    assert signer.unsign(cookie + "x") is None


def test_nonce_cookie_other_secret():
    cookie = NonceCookieSigner("c" * 32, 600).sign("nonce-value")
    assert NonceCookieSigner("d" * 32, 600).unsign(cookie) is None


@pytest.mark.parametrize("value", [None, "", "garbage"])
def test_nonce_cookie_missing_or_garbage(value):
    assert NonceCookieSigner("c" * 32, 600).unsign(value) is None
