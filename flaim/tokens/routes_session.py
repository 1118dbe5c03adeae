"""Token refresh and the entitlement-protected session endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from flaim.api.deps import Issuer, Now, Settings, require_entitlement
from flaim.api.schemas import TokenPayload, TokenResponse, ValidatedPayload
from flaim.core.errors import MissingToken
from flaim.crypto.types import DecodedToken
from flaim.tokens.request import extract_token, set_auth_cookie

router = APIRouter(tags=["tokens"])

Entitled = Annotated[DecodedToken, Depends(require_entitlement)]


@router.post("/refresh")
async def refresh_token(
    request: Request,
    response: Response,
    issuer: Issuer,
    settings: Settings,
    now: Now,
    body: TokenPayload | None = None,
) -> TokenResponse:
    """POST /refresh -- re-mint from a token that still validates."""
    token = body.token if body else None
    token = token or extract_token(request, settings.cookie_name)
    if not token:
        raise MissingToken()
    fresh = await issuer.refresh(token, now)
    set_auth_cookie(response, settings.cookie_name, fresh, issuer.ttl_seconds)
    return TokenResponse(access_token=fresh, expires_in=issuer.ttl_seconds)


@router.get("/session")
async def current_session(claims: Entitled) -> ValidatedPayload:
    """GET /session -- the caller's claims, for paid-feature clients."""
    return ValidatedPayload(
        customer_id=claims.sub, email=claims.email, plan=claims.plan.value
    )
