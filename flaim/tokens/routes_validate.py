"""Token validation endpoint for downstream services."""

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from flaim.api.deps import Now, Settings, Validator
from flaim.api.schemas import TokenPayload, ValidatedPayload, ValidateResponse
from flaim.core.errors import AuthError, MissingToken
from flaim.tokens.request import extract_token

router = APIRouter(tags=["tokens"])


@router.post("/validate", response_model=None)
async def validate_token(
    request: Request,
    validator: Validator,
    settings: Settings,
    now: Now,
    body: TokenPayload | None = None,
) -> ValidateResponse | JSONResponse:
    """POST /validate -- signature, claims and entitlement in one call."""
    token = body.token if body else None
    token = token or extract_token(request, settings.cookie_name)
    try:
        if not token:
            raise MissingToken()
        claims = await validator.verify_with_entitlement(token, now)
    except AuthError as exc:
        return JSONResponse(
            {"valid": False, **exc.to_body()}, status_code=exc.status_code
        )
    return ValidateResponse(
        payload=ValidatedPayload(
            customer_id=claims.sub, email=claims.email, plan=claims.plan.value
        )
    )
