"""Scheduled key rotation and subscription cache maintenance."""

import asyncio
from datetime import datetime

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.billing.subscription_cache import SubscriptionCache
from flaim.core.clock import utc_now
from flaim.core.settings import AuthSettings
from flaim.db.engine import session_scope
from flaim.tokens.rotation import KeyRotationManager

logger = structlog.get_logger(__name__)


class RotationOutcome(BaseModel):
    """Result of one scheduled rotation check."""

    rotated: bool
    kid: str | None = None
    error: str | None = None


async def run_rotation_check(
    session: AsyncSession,
    settings: AuthSettings,
    now: datetime,
    *,
    force: bool = False,
) -> RotationOutcome:
    """Rotate when due. Failures are logged and reported, never raised."""
    manager = KeyRotationManager(session, settings)
    try:
        if not force and not await manager.should_rotate(now):
            logger.debug("key_rotation.not_due")
            return RotationOutcome(rotated=False)
        key = await manager.rotate(now)
    except Exception as exc:
        logger.exception("key_rotation.failed", error=str(exc))
        await session.rollback()
        return RotationOutcome(rotated=False, error=str(exc) or type(exc).__name__)
    return RotationOutcome(rotated=True, kid=key.id)


async def run_maintenance_tick(settings: AuthSettings) -> RotationOutcome:
    """One scheduler tick: rotation check plus stale subscription purge."""
    now = utc_now()
    try:
        async with session_scope() as session:
            outcome = await run_rotation_check(session, settings, now)
            cache = SubscriptionCache(session, settings.subscription_ttl)
            await cache.purge_stale(now)
    except Exception as exc:
        logger.exception("scheduler.tick_failed", error=str(exc))
        return RotationOutcome(rotated=False, error=str(exc) or type(exc).__name__)
    return outcome


async def rotation_loop(settings: AuthSettings) -> None:
    """Run maintenance ticks every ``rotation_check_interval`` seconds."""
    interval = settings.rotation_check_interval
    logger.info("scheduler.started", interval_seconds=interval)
    while True:
        await run_maintenance_tick(settings)
        await asyncio.sleep(interval)
