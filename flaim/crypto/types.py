"""Type definitions for signing keys, key metadata, and JWT claims."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, SecretStr


class KeyStatus(StrEnum):
    """Lifecycle status of an HMAC signing key."""

    ACTIVE = "active"
    RETIRED = "retired"


class PaidPlan(StrEnum):
    """Plans that may appear in a token's plan claim."""

    PRO = "pro"


class SigningKey(BaseModel):
    """A decrypted HMAC signing key."""

    model_config = ConfigDict(frozen=True)

    id: str
    secret: SecretStr
    status: KeyStatus
    created_at: datetime
    retired_at: datetime | None = None


class KeyMetadataEntry(BaseModel):
    """Non-secret JWK-style description of a verification key."""

    kty: str = "oct"
    use: str = "sig"
    alg: str = "HS256"
    kid: str
    status: KeyStatus
    created: datetime
    rotated: datetime | None = None


class KeyMetadataResponse(BaseModel):
    """Key set metadata response; never carries secret material."""

    keys: list[KeyMetadataEntry]


class TokenClaims(BaseModel):
    """Claims bundle for token creation."""

    sub: str
    email: str
    plan: PaidPlan = PaidPlan.PRO


class DecodedToken(BaseModel):
    """Signature-verified token claims."""

    model_config = ConfigDict(extra="allow")

    sub: str
    email: str
    plan: PaidPlan
    iat: int
    exp: int
    iss: str
    aud: str | list[str]
