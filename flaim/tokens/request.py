"""Credential extraction from requests and the auth cookie contract."""

from starlette.requests import Request
from starlette.responses import Response

BEARER_PREFIX = "Bearer "


def extract_token(request: Request, cookie_name: str) -> str | None:
    """Bearer header first, then the auth cookie; None if neither is set."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith(BEARER_PREFIX):
        token = auth[len(BEARER_PREFIX) :].strip()
        if token:
            return token
    cookie = request.cookies.get(cookie_name)
    if cookie:
        return cookie
    return None


def set_auth_cookie(
    response: Response, cookie_name: str, token: str, max_age: int
) -> None:
    """HttpOnly, Secure, SameSite=Lax cookie living as long as the token."""
    response.set_cookie(
        key=cookie_name,
        value=token,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
