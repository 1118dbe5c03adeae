"""Pydantic schemas for the HTTP contract consumed by other services."""

from pydantic import BaseModel, ConfigDict


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class TokenPayload(BaseModel):
    """Body for endpoints that take a token explicitly."""

    token: str | None = None


class ValidatedPayload(BaseModel):
    """Claims returned to downstream services: {customerId, email, plan}."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    customer_id: str
    email: str
    plan: str


class ValidateResponse(BaseModel):
    """Successful POST /validate response."""

    valid: bool = True
    payload: ValidatedPayload


class TokenResponse(BaseModel):
    """Freshly minted bearer token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class RotationResponse(BaseModel):
    rotated: bool
    kid: str | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str
