"""Tests for token minting and refresh."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from flaim.core.errors import InvalidToken, TokenExpired, UpstreamUnavailable
from flaim.core.settings import AuthSettings
from flaim.crypto.types import PaidPlan
from flaim.tokens.issuer import TokenIssuer
from flaim.tokens.rotation import KeyRotationManager

T0 = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def issuer(key_manager: KeyRotationManager, settings: AuthSettings) -> TokenIssuer:
    return TokenIssuer(key_manager, settings)


class TestMint:
    """Tests for mint."""

    async def test_signed_with_active_key(
        self, key_manager: KeyRotationManager, issuer: TokenIssuer
    ) -> None:
        key = await key_manager.rotate(T0)
        token = await issuer.mint("cus_1", "a@b.com", PaidPlan.PRO, T0)
        assert jwt.get_unverified_header(token)["kid"] == key.id
        payload = jwt.decode(
            token,
            key.secret.get_secret_value(),
            algorithms=["HS256"],
            audience="flaim-platform",
            options={"verify_exp": False},
        )
        assert payload["exp"] - payload["iat"] == 900

    async def test_no_signing_key(self, issuer: TokenIssuer) -> None:
        with pytest.raises(UpstreamUnavailable):
            await issuer.mint("cus_1", "a@b.com", PaidPlan.PRO, T0)

    def test_ttl_from_settings(self, key_manager: KeyRotationManager) -> None:
        issuer = TokenIssuer(key_manager, AuthSettings(token_ttl=60))
        assert issuer.ttl_seconds == 60


class TestRefresh:
    """Tests for refresh."""

    async def test_fresh_lifetime_same_identity(
        self, key_manager: KeyRotationManager, issuer: TokenIssuer
    ) -> None:
        await key_manager.rotate(T0)
        original = await issuer.mint("cus_1", "a@b.com", PaidPlan.PRO, T0)
        later = T0 + timedelta(minutes=10)
        fresh = await issuer.refresh(original, later)

        payload = jwt.decode(fresh, options={"verify_signature": False})
        assert payload["sub"] == "cus_1"
        assert payload["email"] == "a@b.com"
        assert payload["plan"] == "pro"
        assert payload["iat"] == int(later.timestamp())

    async def test_refresh_uses_current_key(
        self, key_manager: KeyRotationManager, issuer: TokenIssuer
    ) -> None:
        await key_manager.rotate(T0)
        original = await issuer.mint("cus_1", "a@b.com", PaidPlan.PRO, T0)
        newer = await key_manager.rotate(T0 + timedelta(minutes=1))
        fresh = await issuer.refresh(original, T0 + timedelta(minutes=2))
        assert jwt.get_unverified_header(fresh)["kid"] == newer.id

    async def test_expired_token_cannot_refresh(
        self, key_manager: KeyRotationManager, issuer: TokenIssuer
    ) -> None:
        await key_manager.rotate(T0)
        original = await issuer.mint("cus_1", "a@b.com", PaidPlan.PRO, T0)
        with pytest.raises(TokenExpired):
            await issuer.refresh(original, T0 + timedelta(minutes=16))

    async def test_invalid_token_cannot_refresh(
        self, key_manager: KeyRotationManager, issuer: TokenIssuer
    ) -> None:
        await key_manager.rotate(T0)
        with pytest.raises(InvalidToken):
            await issuer.refresh("garbage", T0)
