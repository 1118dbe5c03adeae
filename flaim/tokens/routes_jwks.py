"""Verification key metadata endpoint."""

from fastapi import APIRouter, Response

from flaim.api.deps import Keys, Now
from flaim.crypto.types import KeyMetadataResponse

router = APIRouter(tags=["tokens"])

JWKS_CACHE_CONTROL = "public, max-age=3600"


@router.get("/jwks")
@router.get("/jwt/jwks", include_in_schema=False)
async def jwks(response: Response, keys: Keys, now: Now) -> KeyMetadataResponse:
    """Active and in-grace key ids; secrets never leave the key store."""
    metadata = await keys.describe_verification_keys(now)
    response.headers["Cache-Control"] = JWKS_CACHE_CONTROL
    return metadata
