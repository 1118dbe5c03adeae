"""Key store: signing key history plus the single active key."""

from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.core.clock import ensure_utc
from flaim.crypto.types import KeyStatus
from flaim.db.models_keys import SigningKeyEntity


async def get_active_key(
    session: AsyncSession,
) -> SigningKeyEntity | None:
    """Return the key currently used for signing."""
    stmt = select(SigningKeyEntity).where(
        SigningKeyEntity.status == KeyStatus.ACTIVE.value
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_key_history(
    session: AsyncSession,
) -> list[SigningKeyEntity]:
    """Return all stored keys, most recent first."""
    stmt = select(SigningKeyEntity).order_by(
        SigningKeyEntity.created_at.desc(), SigningKeyEntity.id.desc()
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def replace_active_key(
    session: AsyncSession,
    new_key: SigningKeyEntity,
    previous_key_retired_at: datetime,
    *,
    history_limit: int,
    grace_period: timedelta,
    now: datetime,
) -> SigningKeyEntity:
    """Retire the active key and install ``new_key`` in one transaction.

    The retire UPDATE is flushed before the INSERT so the single-active
    index never sees two active rows.
    """
    stmt = (
        update(SigningKeyEntity)
        .where(SigningKeyEntity.status == KeyStatus.ACTIVE.value)
        .values(
            status=KeyStatus.RETIRED.value,
            retired_at=previous_key_retired_at,
        )
    )
    await session.execute(stmt)
    new_key.status = KeyStatus.ACTIVE.value
    session.add(new_key)
    await session.flush()
    await trim_history(
        session, history_limit=history_limit, grace_period=grace_period, now=now
    )
    return new_key


async def trim_history(
    session: AsyncSession,
    *,
    history_limit: int,
    grace_period: timedelta,
    now: datetime,
) -> list[str]:
    """Delete generations beyond the cap that are outside their grace window."""
    history = await get_key_history(session)
    removed: list[str] = []
    for entity in history[history_limit:]:
        if entity.status == KeyStatus.ACTIVE.value or entity.retired_at is None:
            continue
        if now - ensure_utc(entity.retired_at) < grace_period:
            continue
        await session.delete(entity)
        removed.append(entity.id)
    if removed:
        await session.flush()
    return removed
