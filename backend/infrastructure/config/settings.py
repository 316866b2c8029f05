"""Application settings and configuration."""
import json
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# HMAC-SHA256 keys shorter than this are rejected at startup
MIN_STATE_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Instagram Relay"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    workers: int = 1
    api_prefix: str = "/api/v1/instagram"

    # Meta app (Facebook Login + Instagram Graph API)
    instagram_app_id: str = ""
    instagram_app_secret: str = ""
    instagram_redirect_uri: Optional[str] = None
    graph_api_version: str = "v20.0"
    graph_timeout: float = 30.0

    # Webhooks
    verify_token: str = ""

    # OAuth state signing
    state_secret_key: str
    state_ttl_seconds: int = 600
    oauth_require_nonce_cookie: bool = True
    oauth_nonce_cookie_name: str = "oauth_nonce"

    @field_validator("state_secret_key")
    @classmethod
    def check_state_secret_length(cls, v: str) -> str:
        """Refuse to start with a signing secret too short for HMAC-SHA256."""
        if len(v.encode("utf-8")) < MIN_STATE_SECRET_LENGTH:
            raise ValueError(
                f"STATE_SECRET_KEY must be at least {MIN_STATE_SECRET_LENGTH} characters"
            )
        return v

    # Callback redirects
    default_callback_url: str = "http://localhost:5173/instagram/callback"
    allowed_callback_hosts: str = ""
    frontend_url: str = "http://localhost:5173"

    @property
    def allowed_callback_hosts_list(self) -> list[str]:
        """Hosts callers may name as callbackUrl; empty means unrestricted."""
        return [h.strip().lower() for h in self.allowed_callback_hosts.split(",") if h.strip()]

    # Downstream backend (webhook event consumer)
    downstream_backend_url: str = "http://localhost:3000/api/webhooks/instagram"
    internal_api_key: Optional[str] = None
    downstream_timeout: float = 10.0
    forwarder_workers: int = 4
    forwarder_queue_size: int = 1000

    # Publishing poll policies (attempts x interval seconds)
    image_poll_attempts: int = 10
    image_poll_interval: float = 2.0
    video_poll_attempts: int = 60
    video_poll_interval: float = 5.0
    carousel_poll_attempts: int = 30
    carousel_poll_interval: float = 3.0

    # CORS - stored as str to prevent pydantic-settings auto-JSON-parse failures
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list, stripping trailing slashes."""
        origins = [self.frontend_url]
        v = self.cors_origins.strip()
        if v.startswith("["):
            try:
                origins += json.loads(v)
            except json.JSONDecodeError:
                pass
        else:
            origins += [o.strip().strip("'\"") for o in v.split(",") if o.strip()]
        seen: list[str] = []
        for origin in origins:
            origin = origin.rstrip("/")
            if origin and origin not in seen:
                seen.append(origin)
        return seen

    # Rate limiting
    rate_limit_default: str = "120/minute"

    # Error tracking
    sentry_dsn: Optional[str] = None

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == "development"

    def validate_production_secrets(self) -> None:
        """Validate that production deployments carry the credentials they need.

        Called automatically by get_settings().  The state secret length is
        enforced for every environment by the field validator; this adds the
        checks that only make sense once real traffic is expected.
        """
        if self.environment in ("production", "staging"):
            if not self.instagram_app_id or not self.instagram_app_secret:
                raise ValueError("INSTAGRAM_APP_ID and INSTAGRAM_APP_SECRET are required in production!")
            if not self.verify_token:
                raise ValueError("VERIFY_TOKEN is required in production!")
            if not self.internal_api_key:
                raise ValueError("INTERNAL_API_KEY is required in production!")

        # Access tokens travel in the callback URL query
        if self.environment == "production" and not self.allowed_callback_hosts_list:
            raise ValueError("ALLOWED_CALLBACK_HOSTS is required in production!")

        if self.environment == "production" and self.instagram_redirect_uri:
            parsed = urlparse(self.instagram_redirect_uri)
            if parsed.scheme != "https":
                raise ValueError(
                    "INSTAGRAM_REDIRECT_URI must be an https:// URL in production "
                    f"(got: {self.instagram_redirect_uri!r})"
                )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Fails fast when STATE_SECRET_KEY is missing or shorter than 32 characters,
    and when production deployments lack the Meta or downstream credentials.
    """
    s = Settings()
    s.validate_production_secrets()
    return s


# Global settings instance
settings = get_settings()
