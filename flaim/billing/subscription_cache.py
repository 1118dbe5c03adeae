"""Entitlement lookups backed by webhook-maintained subscription records."""

from datetime import datetime, timedelta
from enum import StrEnum

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.core.clock import ensure_utc
from flaim.core.errors import store_guard
from flaim.db.models_subscription import SubscriptionEntity
from flaim.db.repo_subscription import (
    SubscriptionUpsertData,
    delete_updated_before,
    get_subscription,
    set_subscription_status,
    upsert_subscription,
)

logger = structlog.get_logger(__name__)

SUBSCRIPTION_STORE = "subscription store"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})

_PROVIDER_STATUS_MAP = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "paused": SubscriptionStatus.CANCELED,
    "cancelled": SubscriptionStatus.CANCELED,
}


def normalize_status(raw: str) -> SubscriptionStatus:
    """Map a payment-provider status onto the four cached states."""
    try:
        return SubscriptionStatus(raw)
    except ValueError:
        pass
    mapped = _PROVIDER_STATUS_MAP.get(raw)
    if mapped is None:
        logger.warning("subscription.unknown_status", status=raw)
        return SubscriptionStatus.CANCELED
    return mapped


class SubscriptionRecord(BaseModel):
    """Cached view of one subscriber's plan state."""

    subscriber_id: str
    status: SubscriptionStatus
    current_period_end: datetime
    last_updated: datetime
    plan_id: str | None = None
    cancel_at_period_end: bool = False

    def is_entitled(self, now: datetime) -> bool:
        return self.status in ENTITLED_STATUSES and self.current_period_end > now


def _to_record(entity: SubscriptionEntity) -> SubscriptionRecord:
    return SubscriptionRecord(
        subscriber_id=entity.subscriber_id,
        status=normalize_status(entity.status),
        current_period_end=ensure_utc(entity.current_period_end),
        last_updated=ensure_utc(entity.last_updated),
        plan_id=entity.plan_id,
        cancel_at_period_end=entity.cancel_at_period_end,
    )


class SubscriptionCache:
    """TTL'd subscription status; missing or stale records fail closed."""

    def __init__(self, session: AsyncSession, ttl_seconds: int) -> None:
        self._session = session
        self._ttl = timedelta(seconds=ttl_seconds)

    async def upsert(
        self,
        subscriber_id: str,
        status: SubscriptionStatus,
        current_period_end: datetime,
        now: datetime,
        *,
        plan_id: str | None = None,
        cancel_at_period_end: bool = False,
    ) -> SubscriptionRecord:
        """Overwrite the record from a full lifecycle event."""
        data = SubscriptionUpsertData(
            subscriber_id=subscriber_id,
            status=status.value,
            current_period_end=current_period_end,
            last_updated=now,
            plan_id=plan_id,
            cancel_at_period_end=cancel_at_period_end,
        )
        with store_guard(SUBSCRIPTION_STORE):
            entity = await upsert_subscription(self._session, data)
        logger.info(
            "subscription.upserted", subscriber_id=subscriber_id, status=status.value
        )
        return _to_record(entity)

    async def mark_past_due(
        self, subscriber_id: str, now: datetime
    ) -> SubscriptionRecord | None:
        return await self._set_status(subscriber_id, SubscriptionStatus.PAST_DUE, now)

    async def mark_active(
        self, subscriber_id: str, now: datetime
    ) -> SubscriptionRecord | None:
        return await self._set_status(subscriber_id, SubscriptionStatus.ACTIVE, now)

    async def _set_status(
        self, subscriber_id: str, status: SubscriptionStatus, now: datetime
    ) -> SubscriptionRecord | None:
        entity = None
        if await self.get(subscriber_id, now) is not None:
            with store_guard(SUBSCRIPTION_STORE):
                entity = await set_subscription_status(
                    self._session, subscriber_id, status.value, now
                )
        if entity is None:
            logger.info(
                "subscription.status_update_ignored",
                subscriber_id=subscriber_id,
                status=status.value,
            )
            return None
        return _to_record(entity)

    async def get(self, subscriber_id: str, now: datetime) -> SubscriptionRecord | None:
        """Return the record, or None when absent or older than the TTL."""
        with store_guard(SUBSCRIPTION_STORE):
            entity = await get_subscription(self._session, subscriber_id)
        if entity is None:
            return None
        record = _to_record(entity)
        if now - record.last_updated >= self._ttl:
            return None
        return record

    async def has_entitlement(self, subscriber_id: str, now: datetime) -> bool:
        record = await self.get(subscriber_id, now)
        return record is not None and record.is_entitled(now)

    async def purge_stale(self, now: datetime) -> int:
        """Delete records past the freshness horizon."""
        with store_guard(SUBSCRIPTION_STORE):
            removed = await delete_updated_before(self._session, now - self._ttl)
        if removed:
            logger.info("subscription.purged", count=removed)
        return removed
