"""Tests for webhook signature verification and event application."""

import hashlib
import hmac
import json
import time
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.billing.subscription_cache import SubscriptionCache, SubscriptionStatus
from flaim.billing.webhook import (
    WebhookPayloadError,
    WebhookSignatureError,
    apply_event,
    parse_webhook_event,
    verify_webhook,
)

SECRET = "whsec_unit"
NOW = datetime(2026, 1, 1, tzinfo=UTC)
PERIOD_END = int((NOW + timedelta(days=30)).timestamp())


def _sign(payload: bytes, secret: str = SECRET, timestamp: int | None = None) -> str:
    ts = timestamp if timestamp is not None else int(time.time())
    signed = f"{ts}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _event(event_type: str, obj: dict[str, object]) -> bytes:
    return json.dumps(
        {"id": "evt_1", "type": event_type, "data": {"object": obj}}
    ).encode()


def _subscription(status: str = "active", **extra: object) -> dict[str, object]:
    obj: dict[str, object] = {
        "id": "sub_1",
        "customer": "cus_1",
        "status": status,
        "current_period_end": PERIOD_END,
    }
    obj.update(extra)
    return obj


@pytest.fixture
def cache(db_session: AsyncSession) -> SubscriptionCache:
    return SubscriptionCache(db_session, 24 * 3600)


class TestVerifyWebhook:
    """Tests for verify_webhook."""

    def test_valid_signature(self) -> None:
        payload = _event("customer.subscription.created", _subscription())
        verify_webhook(payload, _sign(payload), SECRET, 300)

    def test_missing_signature(self) -> None:
        with pytest.raises(WebhookSignatureError):
            verify_webhook(b"{}", None, SECRET, 300)

    def test_wrong_secret(self) -> None:
        payload = _event("customer.subscription.created", _subscription())
        with pytest.raises(WebhookSignatureError):
            verify_webhook(payload, _sign(payload, secret="whsec_other"), SECRET, 300)

    def test_tampered_body(self) -> None:
        payload = _event("customer.subscription.created", _subscription())
        header = _sign(payload)
        tampered = payload.replace(b"cus_1", b"cus_2")
        with pytest.raises(WebhookSignatureError):
            verify_webhook(tampered, header, SECRET, 300)

    def test_stale_timestamp(self) -> None:
        payload = _event("customer.subscription.created", _subscription())
        header = _sign(payload, timestamp=int(time.time()) - 600)
        with pytest.raises(WebhookSignatureError):
            verify_webhook(payload, header, SECRET, 300)

    def test_unconfigured_secret(self) -> None:
        payload = b"{}"
        with pytest.raises(WebhookSignatureError):
            verify_webhook(payload, _sign(payload), "", 300)


class TestParseWebhookEvent:
    """Tests for parse_webhook_event."""

    def test_unhandled_type_ignored(self) -> None:
        assert parse_webhook_event(_event("charge.refunded", {"id": "ch_1"})) is None

    def test_malformed_json(self) -> None:
        with pytest.raises(WebhookPayloadError):
            parse_webhook_event(b"not json")

    def test_handled_type_missing_fields(self) -> None:
        with pytest.raises(WebhookPayloadError):
            parse_webhook_event(_event("customer.subscription.updated", {"id": "s"}))


class TestApplyEvent:
    """Tests for apply_event."""

    async def test_created_caches_subscription(self, cache: SubscriptionCache) -> None:
        event = parse_webhook_event(
            _event("customer.subscription.created", _subscription("trialing"))
        )
        assert event is not None
        await apply_event(cache, event, NOW)
        record = await cache.get("cus_1", NOW)
        assert record is not None
        assert record.status == SubscriptionStatus.TRIALING
        assert await cache.has_entitlement("cus_1", NOW)

    async def test_deleted_cancels(self, cache: SubscriptionCache) -> None:
        for event_type in (
            "customer.subscription.created",
            "customer.subscription.deleted",
        ):
            event = parse_webhook_event(_event(event_type, _subscription()))
            assert event is not None
            await apply_event(cache, event, NOW)
        record = await cache.get("cus_1", NOW)
        assert record is not None
        assert record.status == SubscriptionStatus.CANCELED

    async def test_updated_with_provider_status(
        self, cache: SubscriptionCache
    ) -> None:
        event = parse_webhook_event(
            _event("customer.subscription.updated", _subscription("unpaid"))
        )
        assert event is not None
        await apply_event(cache, event, NOW)
        assert not await cache.has_entitlement("cus_1", NOW)

    async def test_missing_period_end(self, cache: SubscriptionCache) -> None:
        event = parse_webhook_event(
            _event(
                "customer.subscription.updated",
                _subscription(current_period_end=None),
            )
        )
        assert event is not None
        with pytest.raises(WebhookPayloadError):
            await apply_event(cache, event, NOW)

    async def test_invoice_failed_then_paid(self, cache: SubscriptionCache) -> None:
        await cache.upsert(
            "cus_1", SubscriptionStatus.ACTIVE, NOW + timedelta(days=30), NOW
        )
        failed = parse_webhook_event(
            _event("invoice.payment_failed", {"id": "in_1", "customer": "cus_1"})
        )
        assert failed is not None
        await apply_event(cache, failed, NOW)
        assert not await cache.has_entitlement("cus_1", NOW)

        paid = parse_webhook_event(
            _event("invoice.payment_succeeded", {"id": "in_2", "customer": "cus_1"})
        )
        assert paid is not None
        await apply_event(cache, paid, NOW)
        assert await cache.has_entitlement("cus_1", NOW)

    async def test_invoice_for_unknown_customer(
        self, cache: SubscriptionCache
    ) -> None:
        event = parse_webhook_event(
            _event("invoice.payment_failed", {"id": "in_1", "customer": "cus_x"})
        )
        assert event is not None
        await apply_event(cache, event, NOW)
        assert await cache.get("cus_x", NOW) is None
