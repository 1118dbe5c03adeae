"""Short-lived token minting and refresh."""

from datetime import datetime

import structlog

from flaim.core.settings import AuthSettings
from flaim.crypto.jwt_manager import JWTManager
from flaim.crypto.types import PaidPlan, TokenClaims
from flaim.tokens.rotation import KeyRotationManager
from flaim.tokens.validator import TokenValidator

logger = structlog.get_logger(__name__)


class TokenIssuer:
    """Signs subscriber tokens with the currently active key."""

    def __init__(self, keys: KeyRotationManager, settings: AuthSettings) -> None:
        self._keys = keys
        self._settings = settings
        self._jwt = JWTManager(
            issuer=settings.issuer,
            audience=settings.audience,
            ttl_seconds=settings.token_ttl,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._jwt.ttl_seconds

    async def mint(
        self, subscriber_id: str, email: str, plan: PaidPlan, now: datetime
    ) -> str:
        """Mint a token expiring ``token_ttl`` seconds after ``now``."""
        key = await self._keys.get_signing_key(now)
        token = self._jwt.create_token(
            TokenClaims(sub=subscriber_id, email=email, plan=plan), key, now
        )
        logger.info("token.minted", subscriber_id=subscriber_id, kid=key.id)
        return token

    async def refresh(self, existing_token: str, now: datetime) -> str:
        """Re-mint from a token that still passes full validation."""
        validator = TokenValidator(self._keys, self._settings)
        claims = await validator.verify_signature_and_claims(existing_token, now)
        return await self.mint(claims.sub, claims.email, claims.plan, now)
