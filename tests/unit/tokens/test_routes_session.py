"""Tests for POST /refresh and GET /session."""

from datetime import timedelta

import jwt
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.billing.subscription_cache import SubscriptionCache, SubscriptionStatus
from flaim.core.clock import utc_now
from flaim.core.settings import AuthSettings
from flaim.crypto.types import PaidPlan
from flaim.tokens.issuer import TokenIssuer
from flaim.tokens.rotation import KeyRotationManager

HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_PAYMENT_REQUIRED = 402


async def _mint(
    db_session: AsyncSession,
    settings: AuthSettings,
    *,
    status: SubscriptionStatus | None = SubscriptionStatus.ACTIVE,
    minted_ago: timedelta = timedelta(minutes=5),
) -> str:
    now = utc_now()
    keys = KeyRotationManager(db_session, settings)
    await keys.rotate(now - timedelta(days=1))
    if status is not None:
        cache = SubscriptionCache(db_session, settings.subscription_ttl)
        await cache.upsert("cus_1", status, now + timedelta(days=30), now)
    token = await TokenIssuer(keys, settings).mint(
        "cus_1", "a@b.com", PaidPlan.PRO, now - minted_ago
    )
    await db_session.commit()
    return token


class TestRefresh:
    """Tests for POST /refresh."""

    async def test_refresh_from_body(
        self, client: AsyncClient, db_session: AsyncSession, settings: AuthSettings
    ) -> None:
        token = await _mint(db_session, settings)
        resp = await client.post("/refresh", json={"token": token})

        assert resp.status_code == HTTP_OK
        body = resp.json()
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == 900
        fresh = jwt.decode(body["access_token"], options={"verify_signature": False})
        old = jwt.decode(token, options={"verify_signature": False})
        assert fresh["sub"] == "cus_1"
        assert fresh["iat"] > old["iat"]

        cookie = resp.headers["set-cookie"]
        assert cookie.startswith(f"Auth={body['access_token']}")
        assert "HttpOnly" in cookie
        assert "Max-Age=900" in cookie

    async def test_refresh_from_cookie(
        self, client: AsyncClient, db_session: AsyncSession, settings: AuthSettings
    ) -> None:
        token = await _mint(db_session, settings)
        client.cookies.set("Auth", token)
        resp = await client.post("/refresh")
        assert resp.status_code == HTTP_OK

    async def test_expired_token_rejected(
        self, client: AsyncClient, db_session: AsyncSession, settings: AuthSettings
    ) -> None:
        token = await _mint(db_session, settings, minted_ago=timedelta(hours=1))
        resp = await client.post("/refresh", json={"token": token})
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert resp.json() == {"error": "Token has expired", "code": "TOKEN_EXPIRED"}

    async def test_missing_token(self, client: AsyncClient) -> None:
        resp = await client.post("/refresh")
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert resp.json()["code"] == "MISSING_TOKEN"


class TestSession:
    """Tests for GET /session."""

    async def test_entitled_caller(
        self, client: AsyncClient, db_session: AsyncSession, settings: AuthSettings
    ) -> None:
        token = await _mint(db_session, settings)
        resp = await client.get(
            "/session", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == HTTP_OK
        assert resp.json() == {"customerId": "cus_1", "email": "a@b.com", "plan": "pro"}

    async def test_canceled_subscription(
        self, client: AsyncClient, db_session: AsyncSession, settings: AuthSettings
    ) -> None:
        token = await _mint(db_session, settings, status=SubscriptionStatus.CANCELED)
        resp = await client.get(
            "/session", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == HTTP_PAYMENT_REQUIRED
        assert resp.json()["code"] == "SUBSCRIPTION_INACTIVE"

    async def test_anonymous(self, client: AsyncClient) -> None:
        resp = await client.get("/session")
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert resp.json()["code"] == "MISSING_TOKEN"
