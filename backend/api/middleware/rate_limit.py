"""
Rate limiting middleware using slowapi.

Protects the OAuth and publishing endpoints against excessive use. Limits
are per client IP with in-memory storage; the relay runs as a single
process and does not share limiter state.

Rate Limits:
- OAuth start/callback: 30 per minute
- Publishing: 30 per minute
- Token refresh and quota lookups: 60 per minute
- Default: RATE_LIMIT_DEFAULT (120 per minute)

Webhook and health endpoints are exempt: the platform retries deliveries
that are not acknowledged, and probes must never be throttled.
"""

import ipaddress
import logging
import re

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback, or link-local address.

    Private IPs in X-Forwarded-For are untrustworthy: a client can spoof
    X-Forwarded-For: 127.0.0.1 to land in a shared bucket.
    """
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def _get_real_ip(request: Request) -> str:
    """Extract real client IP from proxy headers, falling back to remote address.

    The extracted IP is validated to prevent header injection, and
    private/loopback values fall back to the connection address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can be a comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Rate limit configurations
# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "oauth": "30/minute",
    "publish": "30/minute",
    "account": "60/minute",
    "default": settings.rate_limit_default,
}

limiter = Limiter(
    key_func=_get_real_ip,
    storage_uri="memory://",
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint group.

    Example:
        >>> get_rate_limit("publish")
        "30/minute"
        >>> get_rate_limit("unknown") == settings.rate_limit_default
        True
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
