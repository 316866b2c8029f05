"""
Security utilities for OAuth state, webhook and signed-request verification.
"""

from .nonce_cookie import NonceCookieSigner
from .signed_request import SignedRequestError, parse_signed_request
from .state_codec import EncodedState, SignedStateCodec, VerifyResult
from .webhook_signature import WebhookSignatureVerifier

__all__ = [
    "EncodedState",
    "NonceCookieSigner",
    "SignedRequestError",
    "SignedStateCodec",
    "VerifyResult",
    "WebhookSignatureVerifier",
    "parse_signed_request",
]
