"""
Parser for Meta ``signed_request`` parameters.

Deauthorize and data-deletion callbacks post a form field shaped as
``b64url(signature).b64url(json_payload)`` where the signature is
HMAC-SHA256 of the encoded payload, keyed with the app secret.
"""

import hashlib
import hmac
import json
import logging
from typing import Any

from .state_codec import b64url_decode

logger = logging.getLogger(__name__)


class SignedRequestError(ValueError):
    """Raised when a signed_request is malformed or its signature is wrong."""


def parse_signed_request(signed_request: str, app_secret: str) -> dict[str, Any]:
    """
    Verify and decode a signed_request.

    Args:
        signed_request: Raw form field value
        app_secret: Meta app secret

    Returns:
        Decoded payload (contains at least ``user_id`` and ``algorithm``)

    Raises:
        SignedRequestError: If the value cannot be trusted
    """
    if not app_secret:
        raise SignedRequestError("App secret not configured")
    if not signed_request or signed_request.count(".") != 1:
        raise SignedRequestError("Malformed signed_request")

    encoded_sig, encoded_payload = signed_request.split(".", 1)

    try:
        signature = b64url_decode(encoded_sig)
        payload = json.loads(b64url_decode(encoded_payload))
    except (ValueError, UnicodeError) as e:
        raise SignedRequestError("Malformed signed_request") from e

    if not isinstance(payload, dict):
        raise SignedRequestError("Malformed signed_request")

    algorithm = str(payload.get("algorithm", "")).upper()
    if algorithm != "HMAC-SHA256":
        raise SignedRequestError(f"Unsupported algorithm: {algorithm or 'missing'}")

    expected = hmac.new(
        app_secret.encode("utf-8"), encoded_payload.encode("ascii"), hashlib.sha256
    ).digest()
    if not hmac.compare_digest(signature, expected):
        logger.warning("signed_request signature mismatch")
        raise SignedRequestError("Invalid signature")

    return payload
