"""
Webhook signature verification for the ``X-Hub-Signature-256`` header.

Meta signs every webhook delivery with HMAC-SHA256 over the exact request
body bytes, keyed with the app secret, and sends ``sha256=<hex digest>``.
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


class WebhookSignatureVerifier:
    """Checks webhook bodies against the app secret."""

    def __init__(self, app_secret: str | None):
        self._secret = app_secret.encode("utf-8") if app_secret else b""

    def compute(self, raw_body: bytes) -> str:
        """Return the header value Meta would send for *raw_body*."""
        digest = hmac.new(self._secret, raw_body, hashlib.sha256).hexdigest()
        return SIGNATURE_PREFIX + digest

    def verify(self, raw_body: bytes, signature_header: str | None) -> bool:
        """
        Verify a webhook signature.

        The body must be the bytes as received; re-serialized JSON will not
        match.

        Args:
            raw_body: Request body exactly as read from the wire
            signature_header: Value of ``X-Hub-Signature-256``

        Returns:
            True only if the signature matches. Every failure, including
            a missing header or an unconfigured secret, returns False.
        """
        if not self._secret:
            logger.warning("Webhook signature check failed: app secret not configured")
            return False
        if not signature_header:
            logger.warning("Webhook signature check failed: header missing")
            return False

        try:
            if not signature_header.startswith(SIGNATURE_PREFIX):
                logger.warning("Webhook signature check failed: unexpected header format")
                return False
            provided = signature_header.encode("ascii")
            expected = self.compute(raw_body).encode("ascii")
            if len(provided) != len(expected):
                return False
            return hmac.compare_digest(provided, expected)
        except Exception as e:
            logger.warning("Webhook signature check failed: %s", type(e).__name__)
            return False
