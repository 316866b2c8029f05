"""
Signed, self-verifying OAuth state tokens.

A state token carries the caller's payload through the platform's OAuth
redirect and proves on return that this service issued it, that it has not
been altered, and that it is still inside its validity window.

Token layout (six dot-separated fields)::

    b64url(payload) . b64url(sub_state) . nonce . issued_at . expires_at . b64url(signature)

``signature`` is HMAC-SHA256 over the first five fields joined by ``.``.
Timestamps are milliseconds since the epoch.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 32
NONCE_BYTES = 16
DEFAULT_TTL_SECONDS = 600
FIELD_COUNT = 6

# Failure reasons reported by decode()
REASON_MALFORMED = "malformed"
REASON_INVALID_SIGNATURE = "invalid signature"
REASON_NONCE_MISMATCH = "nonce mismatch"
REASON_EXPIRED = "expired"
REASON_INVALID_PAYLOAD = "invalid payload"


def b64url_encode(data: bytes) -> str:
    """Base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url, rejecting characters outside the alphabet."""
    padded = value + "=" * (-len(value) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EncodedState:
    """A freshly issued state token and the nonce to be sent out-of-band."""

    token: str
    nonce: str


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of decoding a state token. ``reason`` is set only when invalid."""

    valid: bool
    payload: Any = None
    sub_state: str | None = None
    nonce: str | None = None
    issued_at: int | None = None
    expires_at: int | None = None
    reason: str | None = None

    @classmethod
    def failure(cls, reason: str) -> "VerifyResult":
        return cls(valid=False, reason=reason)


class SignedStateCodec:
    """
    Issues and verifies OAuth state tokens with HMAC-SHA256.

    Args:
        secret: Signing key, at least 32 bytes.
        clock: Optional callable returning the current time in milliseconds.

    Raises:
        ValueError: If the secret is shorter than 32 bytes.
    """

    def __init__(self, secret: str | bytes, clock: Callable[[], int] | None = None):
        key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        if len(key) < MIN_SECRET_BYTES:
            raise ValueError(f"State signing secret must be at least {MIN_SECRET_BYTES} bytes")
        self._key = key
        self._clock = clock or _now_ms

    def _sign(self, signing_input: str) -> bytes:
        return hmac.new(self._key, signing_input.encode("ascii"), hashlib.sha256).digest()

    def encode(
        self,
        payload: bytes,
        sub_state: str = "",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> EncodedState:
        """
        Issue a new state token.

        Args:
            payload: Opaque bytes returned verbatim on successful decode
            sub_state: Caller's own opaque state string
            ttl_seconds: Validity window

        Returns:
            EncodedState with the token and its nonce
        """
        nonce = b64url_encode(secrets.token_bytes(NONCE_BYTES))
        issued_at = self._clock()
        expires_at = issued_at + ttl_seconds * 1000

        signing_input = ".".join(
            [
                b64url_encode(payload),
                b64url_encode(sub_state.encode("utf-8")),
                nonce,
                str(issued_at),
                str(expires_at),
            ]
        )
        signature = b64url_encode(self._sign(signing_input))
        return EncodedState(token=f"{signing_input}.{signature}", nonce=nonce)

    def decode(
        self,
        token: str,
        expected_nonce: str | None = None,
        parser: Callable[[bytes], Any] | None = None,
    ) -> VerifyResult:
        """
        Verify a state token and extract its payload.

        Checks run in a fixed order: structure, signature, timestamps,
        nonce, expiry, payload. Nothing derived from the token is trusted
        until the signature has been verified. Never raises for
        attacker-controlled input.

        Args:
            token: Token as received on the callback
            expected_nonce: Nonce from the out-of-band channel, if any
            parser: Converts decoded payload bytes into a value; any
                    exception it raises yields ``"invalid payload"``

        Returns:
            VerifyResult
        """
        if not isinstance(token, str):
            return VerifyResult.failure(REASON_MALFORMED)

        parts = token.split(".")
        if len(parts) != FIELD_COUNT:
            return VerifyResult.failure(REASON_MALFORMED)

        payload_b64, sub_state_b64, nonce, issued_raw, expires_raw, signature_b64 = parts

        try:
            provided = b64url_decode(signature_b64)
            expected = self._sign(".".join(parts[:5]))
        except (binascii.Error, ValueError, UnicodeEncodeError):
            return VerifyResult.failure(REASON_INVALID_SIGNATURE)

        if len(provided) != len(expected) or not hmac.compare_digest(provided, expected):
            return VerifyResult.failure(REASON_INVALID_SIGNATURE)

        if not (issued_raw.isdigit() and expires_raw.isdigit()):
            return VerifyResult.failure(REASON_MALFORMED)
        issued_at = int(issued_raw)
        expires_at = int(expires_raw)

        if expected_nonce is not None and not hmac.compare_digest(
            nonce.encode("utf-8"), expected_nonce.encode("utf-8")
        ):
            return VerifyResult.failure(REASON_NONCE_MISMATCH)

        if self._clock() > expires_at:
            return VerifyResult.failure(REASON_EXPIRED)

        try:
            raw_payload = b64url_decode(payload_b64)
            sub_state = b64url_decode(sub_state_b64).decode("utf-8")
            payload = parser(raw_payload) if parser else raw_payload
        except Exception as e:
            logger.debug("State payload rejected: %s", type(e).__name__)
            return VerifyResult.failure(REASON_INVALID_PAYLOAD)

        return VerifyResult(
            valid=True,
            payload=payload,
            sub_state=sub_state,
            nonce=nonce,
            issued_at=issued_at,
            expires_at=expires_at,
        )
