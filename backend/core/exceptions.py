"""
Service-level exceptions raised by request handlers.

Platform and publishing failures live in ``adapters.social.base``.
"""


class RelayError(Exception):
    """Base exception for request handling errors."""

    pass


class RequestValidationFailed(RelayError):
    """Raised when required request fields are missing or invalid."""

    def __init__(self, missing: list[str], message: str | None = None):
        self.missing = list(missing)
        self.message = message or (
            f"Missing required parameter{'s' if len(self.missing) != 1 else ''}: "
            + ", ".join(self.missing)
        )
        super().__init__(self.message)

