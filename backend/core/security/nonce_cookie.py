"""
Signing for the out-of-band OAuth nonce cookie.

The nonce issued with a state token is stored in an HTTP-only cookie bound
to the browser that started the flow. The cookie value is signed and
timestamped so a client cannot plant an arbitrary nonce.
"""

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

COOKIE_SALT = "oauth-nonce"


class NonceCookieSigner:
    """Wraps and unwraps nonce values for the ``oauth_nonce`` cookie."""

    def __init__(self, secret: str, max_age_seconds: int):
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt=COOKIE_SALT)
        self.max_age_seconds = max_age_seconds

    def sign(self, nonce: str) -> str:
        return self._serializer.dumps(nonce)

    def unsign(self, cookie_value: str | None) -> str | None:
        """Return the nonce, or None if the cookie is absent, tampered or stale."""
        if not cookie_value:
            return None
        try:
            value = self._serializer.loads(cookie_value, max_age=self.max_age_seconds)
        except SignatureExpired:
            return None
        except BadSignature:
            return None
        return value if isinstance(value, str) else None
