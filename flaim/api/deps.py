"""FastAPI dependency injection for token services and internal auth."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.billing.checkout import CheckoutGateway, StripeCheckoutGateway
from flaim.billing.subscription_cache import SubscriptionCache
from flaim.core.clock import utc_now
from flaim.core.errors import MissingToken
from flaim.core.settings import AuthSettings, StripeSettings
from flaim.crypto.types import DecodedToken
from flaim.db.engine import get_session
from flaim.tokens.issuer import TokenIssuer
from flaim.tokens.request import extract_token
from flaim.tokens.rotation import KeyRotationManager
from flaim.tokens.validator import TokenValidator

_security = HTTPBearer()


def load_settings() -> AuthSettings:
    return AuthSettings()


def load_stripe_settings() -> StripeSettings:
    return StripeSettings()


def get_now() -> datetime:
    """Request time; overridden in tests to pin the clock."""
    return utc_now()


Settings = Annotated[AuthSettings, Depends(load_settings)]
DbSession = Annotated[AsyncSession, Depends(get_session)]
Now = Annotated[datetime, Depends(get_now)]


def get_key_manager(db: DbSession, settings: Settings) -> KeyRotationManager:
    return KeyRotationManager(db, settings)


def get_subscription_cache(db: DbSession, settings: Settings) -> SubscriptionCache:
    return SubscriptionCache(db, settings.subscription_ttl)


Keys = Annotated[KeyRotationManager, Depends(get_key_manager)]
Subscriptions = Annotated[SubscriptionCache, Depends(get_subscription_cache)]


def get_token_validator(
    keys: Keys, subscriptions: Subscriptions, settings: Settings
) -> TokenValidator:
    return TokenValidator(keys, settings, subscriptions)


def get_token_issuer(keys: Keys, settings: Settings) -> TokenIssuer:
    return TokenIssuer(keys, settings)


def get_checkout_gateway(
    stripe_settings: Annotated[StripeSettings, Depends(load_stripe_settings)],
) -> CheckoutGateway:
    return StripeCheckoutGateway(stripe_settings)


Validator = Annotated[TokenValidator, Depends(get_token_validator)]
Issuer = Annotated[TokenIssuer, Depends(get_token_issuer)]


async def require_entitlement(
    request: Request,
    validator: Validator,
    settings: Settings,
    now: Now,
) -> DecodedToken:
    """Authorize a paid-feature request: valid token and live entitlement."""
    token = extract_token(request, settings.cookie_name)
    if token is None:
        raise MissingToken()
    return await validator.verify_with_entitlement(token, now)


async def require_internal_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_security)],
    settings: Settings,
) -> str:
    """Verify the AUTH_INTERNAL_TOKEN Bearer token."""
    expected = settings.internal_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if credentials.credentials != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return credentials.credentials
