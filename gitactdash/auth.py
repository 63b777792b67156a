"""GitHub OAuth login flow and cookie-based token access."""

from collections.abc import AsyncIterator
from urllib.parse import quote, urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from gitactdash.config import Settings, get_settings
from gitactdash.logging_config import get_server_logger

log = get_server_logger()

router = APIRouter(prefix="/api/auth", tags=["auth"])

TOKEN_COOKIE_NAME = "github_token"
NOT_CONFIGURED = "GitHub OAuth ClientId or ClientSecret are not configured."


def get_token(request: Request) -> str | None:
    """Return the GitHub access token stored in the request cookies, if any."""
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if not token or not token.strip():
        return None
    return token


def is_authenticated(request: Request) -> bool:
    return get_token(request) is not None


def require_token(request: Request) -> str:
    """FastAPI dependency rejecting requests without a token cookie."""
    token = get_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return token


async def get_http_client(config: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client for the token exchange, closed after the request."""
    async with httpx.AsyncClient(timeout=config.request_timeout) as client:
        yield client


@router.get("/login")
async def login(config: Settings = Depends(get_settings)):
    """Redirect to GitHub's authorization page."""
    if not config.github_client_id:
        log.warning("oauth_not_configured")
        raise HTTPException(status_code=400, detail=NOT_CONFIGURED)

    query = urlencode(
        {
            "client_id": config.github_client_id,
            "redirect_uri": config.oauth_callback_url,
            "scope": config.oauth_scope,
        },
        quote_via=quote,
    )
    return RedirectResponse(f"{config.github_oauth_url}/authorize?{query}", status_code=302)


@router.get("/callback")
async def callback(
    code: str = "",
    config: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Exchange the authorization code for a token and store it in a cookie."""
    if not code:
        raise HTTPException(status_code=400, detail="Missing code")

    if not config.oauth_configured:
        log.warning("oauth_not_configured")
        raise HTTPException(status_code=400, detail=NOT_CONFIGURED)

    try:
        response = await http.post(
            f"{config.github_oauth_url}/access_token",
            data={
                "client_id": config.github_client_id,
                "client_secret": config.github_client_secret,
                "code": code,
            },
            headers={"Accept": "application/json"},
        )
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        log.error("token_exchange_failed", error=str(e))
        raise HTTPException(status_code=502, detail="Token exchange with GitHub failed") from e

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not access_token:
        log.warning("token_missing", error=payload.get("error") if isinstance(payload, dict) else None)
        raise HTTPException(status_code=400, detail="No access_token returned")

    log.info("user_authenticated")
    redirect = RedirectResponse("/dashboard", status_code=302)
    redirect.set_cookie(
        TOKEN_COOKIE_NAME,
        access_token,
        httponly=True,
        secure=config.use_https,
        samesite="lax",
    )
    return redirect


@router.get("/logout")
async def logout():
    """Drop the token cookie and go back to the login page."""
    redirect = RedirectResponse("/login", status_code=302)
    redirect.delete_cookie(TOKEN_COOKIE_NAME)
    return redirect
