"""
OAuth routes for connecting an Instagram Business account.

The flow is CSRF-protected by a signed state token carrying the caller's
payload, plus (by default) a nonce stored in an HTTP-only cookie on the
browser that started the flow. The callback never renders an error page:
every outcome is a redirect, to the caller's callback URL when the state
can be trusted and to DEFAULT_CALLBACK_URL otherwise.
"""

import logging
from typing import Annotated
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from adapters.social import InstagramAdapter, UpstreamError
from api.dependencies import get_graph_adapter, get_nonce_signer, get_state_codec
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.auth import OAuthStatePayload
from core.exceptions import RequestValidationFailed
from core.security import NonceCookieSigner, SignedStateCodec, VerifyResult
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["OAuth"])


# ============================================
# Helpers
# ============================================


def append_query(url: str, params: dict[str, str]) -> str:
    """Merge *params* into the query string of *url*, keeping existing ones."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend((k, v) for k, v in params.items() if v is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


def callback_url_allowed(url: str) -> bool:
    """Absolute http(s) URL on an allowed host (any host when unrestricted)."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    allowed = settings.allowed_callback_hosts_list
    return not allowed or parts.hostname.lower() in allowed


def _redirect_uri(request: Request) -> str:
    return settings.instagram_redirect_uri or str(request.url_for("oauth_callback"))


def _cookie_path(request: Request) -> str:
    callback_path = request.url_for("oauth_callback").path
    return callback_path.rsplit("/", 1)[0] or "/"


def _cookie_nonce(request: Request, signer: NonceCookieSigner) -> str | None:
    """Nonce from the signed cookie, or None when disabled, absent or tampered."""
    if not settings.oauth_require_nonce_cookie:
        return None
    return signer.unsign(request.cookies.get(settings.oauth_nonce_cookie_name))


def _redirect(url: str, request: Request, clear_cookie: bool = False) -> RedirectResponse:
    response = RedirectResponse(url=url, status_code=302)
    if clear_cookie and settings.oauth_require_nonce_cookie:
        response.delete_cookie(
            settings.oauth_nonce_cookie_name,
            path=_cookie_path(request),
            secure=settings.is_production,
            httponly=True,
            samesite="lax",
        )
    return response


def _failure(
    request: Request,
    error: str,
    description: str | None = None,
    verified: VerifyResult | None = None,
) -> RedirectResponse:
    """Redirect a failed callback to the trusted callback URL or the default."""
    target = settings.default_callback_url
    params = {"success": "false", "error": error}
    if description:
        params["error_description"] = description

    if verified is not None and verified.valid:
        payload: OAuthStatePayload = verified.payload
        if callback_url_allowed(payload.callback_url):
            target = payload.callback_url
            params["userId"] = payload.user_id
            if payload.state:
                params["state"] = payload.state

    return _redirect(append_query(target, params), request, clear_cookie=True)


# ============================================
# Endpoints
# ============================================


@router.get("/url")
@limiter.limit(get_rate_limit("oauth"))
async def start_oauth(
    request: Request,
    codec: Annotated[SignedStateCodec, Depends(get_state_codec)],
    signer: Annotated[NonceCookieSigner, Depends(get_nonce_signer)],
    adapter: Annotated[InstagramAdapter, Depends(get_graph_adapter)],
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    callback_url: Annotated[str | None, Query(alias="callbackUrl")] = None,
    state: Annotated[str | None, Query()] = None,
):
    """
    Start the OAuth flow.

    Issues a signed state token carrying ``userId``, ``callbackUrl`` and the
    caller's own ``state``, sets the nonce cookie, and redirects the browser
    to the Facebook Login dialog.
    """
    missing = [name for name, value in (("userId", user_id), ("callbackUrl", callback_url)) if not value]
    if missing:
        raise RequestValidationFailed(missing)
    if not callback_url_allowed(callback_url):
        raise RequestValidationFailed(["callbackUrl"], "callbackUrl must be an allowed http(s) URL")

    payload = OAuthStatePayload(userId=user_id, callbackUrl=callback_url, state=state)
    encoded = codec.encode(
        payload.to_json_bytes(), sub_state=state or "", ttl_seconds=settings.state_ttl_seconds
    )
    authorization_url = adapter.get_authorization_url(_redirect_uri(request), encoded.token)

    response = RedirectResponse(url=authorization_url, status_code=302)
    if settings.oauth_require_nonce_cookie:
        response.set_cookie(
            settings.oauth_nonce_cookie_name,
            signer.sign(encoded.nonce),
            max_age=settings.state_ttl_seconds,
            path=_cookie_path(request),
            secure=settings.is_production,
            httponly=True,
            samesite="lax",
        )
    logger.info("OAuth flow started")
    return response


@router.get("/callback", name="oauth_callback")
@limiter.limit(get_rate_limit("oauth"))
async def oauth_callback(
    request: Request,
    codec: Annotated[SignedStateCodec, Depends(get_state_codec)],
    signer: Annotated[NonceCookieSigner, Depends(get_nonce_signer)],
    adapter: Annotated[InstagramAdapter, Depends(get_graph_adapter)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    Complete the OAuth flow.

    Verifies the state token (and nonce cookie), exchanges the code for a
    long-lived token and redirects to the caller's callback URL with the
    account details appended.
    """
    parser = OAuthStatePayload.from_json_bytes
    expected_nonce = _cookie_nonce(request, signer)

    # User denied access or the platform reported an error
    if error:
        logger.info("OAuth callback returned error: %s", error)
        recovered = None
        if state and (expected_nonce is not None or not settings.oauth_require_nonce_cookie):
            recovered = codec.decode(state, expected_nonce=expected_nonce, parser=parser)
        return _failure(request, error, error_description, recovered)

    if not code or not state:
        return _failure(request, "missing_params", "code and state are required")

    if settings.oauth_require_nonce_cookie and expected_nonce is None:
        logger.warning("OAuth callback rejected: nonce cookie missing or invalid")
        return _failure(request, "invalid_state", "nonce cookie missing")

    verified = codec.decode(state, expected_nonce=expected_nonce, parser=parser)
    if not verified.valid:
        logger.warning("OAuth callback rejected: %s", verified.reason)
        return _failure(request, "invalid_state", verified.reason)

    payload: OAuthStatePayload = verified.payload
    if not callback_url_allowed(payload.callback_url):
        return _failure(request, "invalid_callback_url")

    try:
        auth = await adapter.exchange_code(code, _redirect_uri(request))
    except UpstreamError as e:
        logger.error("OAuth code exchange failed: %s", e.message)
        return _failure(request, "token_exchange_failed", e.message, verified)

    params = {"success": "true", **auth.to_query(), "userId": payload.user_id}
    if payload.state:
        params["state"] = payload.state

    logger.info("OAuth flow completed", extra={"account_id": auth.instagram_user_id})
    return _redirect(append_query(payload.callback_url, params), request, clear_cookie=True)
