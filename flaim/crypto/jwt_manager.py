"""JWT creation and signature verification using HS256."""

from datetime import datetime, timedelta
from typing import Any

import jwt

from flaim.crypto.types import SigningKey, TokenClaims

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud"]


class JWTManager:
    """Creates HS256 tokens and checks their signatures.

    Expiry, issuer and audience are left to the token validator, which
    checks them against an explicit ``now``.
    """

    def __init__(self, issuer: str, audience: str, ttl_seconds: int) -> None:
        self._issuer = issuer
        self._audience = audience
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def create_token(self, claims: TokenClaims, key: SigningKey, now: datetime) -> str:
        """Create a signed token carrying the subscriber claims."""
        payload = {
            "sub": claims.sub,
            "email": claims.email,
            "plan": claims.plan.value,
            "iat": now,
            "exp": now + timedelta(seconds=self._ttl_seconds),
            "iss": self._issuer,
            "aud": self._audience,
        }
        return jwt.encode(
            payload,
            key.secret.get_secret_value(),
            algorithm=ALGORITHM,
            headers={"kid": key.id},
        )

    def verify_signature(self, token: str, key: SigningKey) -> dict[str, Any]:
        """Verify the signature against one key and return the raw claims."""
        return jwt.decode(
            token,
            key.secret.get_secret_value(),
            algorithms=[ALGORITHM],
            options={
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_iss": False,
                "verify_aud": False,
                "require": REQUIRED_CLAIMS,
            },
        )

    @staticmethod
    def unverified_kid(token: str) -> str | None:
        """Read the kid header without verifying anything."""
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        return kid if isinstance(kid, str) and kid else None
