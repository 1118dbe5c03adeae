"""Liveness probe."""

from fastapi import APIRouter

from flaim.api.deps import Now
from flaim.api.schemas import HealthResponse

router = APIRouter(tags=["health"])

SERVICE_NAME = "flaim-auth"


@router.get("/health")
async def health(now: Now) -> HealthResponse:
    return HealthResponse(
        status="healthy", service=SERVICE_NAME, timestamp=now.isoformat()
    )
