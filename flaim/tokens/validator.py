"""Token signature, claim, and entitlement verification."""

from datetime import datetime
from typing import Any

import jwt
import structlog
from pydantic import ValidationError

from flaim.billing.subscription_cache import SubscriptionCache
from flaim.core.errors import (
    ClaimMismatch,
    InvalidToken,
    SubscriptionInactive,
    TokenExpired,
)
from flaim.core.settings import AuthSettings
from flaim.crypto.jwt_manager import JWTManager
from flaim.crypto.types import DecodedToken, SigningKey
from flaim.tokens.rotation import KeyRotationManager

logger = structlog.get_logger(__name__)


class TokenValidator:
    """Verifies tokens against the acceptable key set.

    ``subscriptions`` is only needed for entitlement-aware verification.
    """

    def __init__(
        self,
        keys: KeyRotationManager,
        settings: AuthSettings,
        subscriptions: SubscriptionCache | None = None,
    ) -> None:
        self._keys = keys
        self._settings = settings
        self._subscriptions = subscriptions
        self._jwt = JWTManager(
            issuer=settings.issuer,
            audience=settings.audience,
            ttl_seconds=settings.token_ttl,
        )

    async def verify_signature_and_claims(
        self, token: str, now: datetime
    ) -> DecodedToken:
        """Check signature, expiry, issuer and audience."""
        try:
            kid = self._jwt.unverified_kid(token)
        except jwt.PyJWTError as exc:
            raise InvalidToken("Malformed token") from exc

        candidates = await self._keys.get_verification_keys(now)
        if kid is not None:
            candidates = [key for key in candidates if key.id == kid]
            if not candidates:
                logger.info("token.unknown_or_retired_kid", kid=kid)
                raise InvalidToken("Token signed with an unknown or retired key")

        raw = self._match_signature(token, candidates)
        return self._check_claims(raw, now)

    def _match_signature(
        self, token: str, candidates: list[SigningKey]
    ) -> dict[str, Any]:
        for key in candidates:
            try:
                return self._jwt.verify_signature(token, key)
            except jwt.InvalidSignatureError:
                continue
            except jwt.PyJWTError as exc:
                raise InvalidToken(str(exc) or "Invalid token") from exc
        raise InvalidToken("Token signature does not match any acceptable key")

    def _check_claims(self, raw: dict[str, Any], now: datetime) -> DecodedToken:
        try:
            claims = DecodedToken.model_validate(raw)
        except ValidationError as exc:
            raise InvalidToken("Token claims are malformed") from exc

        tolerance = self._settings.clock_tolerance
        now_ts = now.timestamp()
        if claims.exp <= now_ts - tolerance:
            raise TokenExpired()
        if claims.iat > now_ts + tolerance:
            raise InvalidToken("Token issued in the future")
        if claims.iss != self._settings.issuer:
            raise ClaimMismatch("Unexpected token issuer")
        audiences = [claims.aud] if isinstance(claims.aud, str) else claims.aud
        if self._settings.audience not in audiences:
            raise ClaimMismatch("Unexpected token audience")
        return claims

    async def verify_with_entitlement(self, token: str, now: datetime) -> DecodedToken:
        """Signature/claims check plus a live entitlement lookup."""
        if self._subscriptions is None:
            raise RuntimeError("Entitlement checks need a subscription cache")
        claims = await self.verify_signature_and_claims(token, now)
        if not await self._subscriptions.has_entitlement(claims.sub, now):
            logger.info("token.subscription_inactive", subscriber_id=claims.sub)
            raise SubscriptionInactive()
        return claims
