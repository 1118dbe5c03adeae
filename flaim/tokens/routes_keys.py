"""Internal key rotation trigger for cron and operators."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse

from flaim.api.deps import DbSession, Now, Settings, require_internal_token
from flaim.api.schemas import RotationResponse
from flaim.tokens.scheduler import run_rotation_check

router = APIRouter(prefix="/internal/keys", tags=["internal"])

InternalToken = Annotated[str, Depends(require_internal_token)]


@router.post("/rotate", response_model=None)
async def rotate_keys(
    db: DbSession,
    settings: Settings,
    now: Now,
    _token: InternalToken,
    force: Annotated[bool, Query()] = False,
) -> RotationResponse | JSONResponse:
    """POST /internal/keys/rotate -- rotate when due, or always with force."""
    outcome = await run_rotation_check(db, settings, now, force=force)
    body = RotationResponse(
        rotated=outcome.rotated, kid=outcome.kid, error=outcome.error
    )
    if outcome.error is not None:
        return JSONResponse(body.model_dump(), status_code=500)
    return body
