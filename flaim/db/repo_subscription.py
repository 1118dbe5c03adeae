"""Database operations for cached subscription status."""

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.db.models_subscription import SubscriptionEntity


class SubscriptionUpsertData(BaseModel):
    """Parameters for writing a subscription record."""

    subscriber_id: str
    status: str
    current_period_end: datetime
    last_updated: datetime
    plan_id: str | None = None
    cancel_at_period_end: bool = False


async def get_subscription(
    session: AsyncSession, subscriber_id: str
) -> SubscriptionEntity | None:
    """Look up the stored record for a subscriber."""
    stmt = select(SubscriptionEntity).where(
        SubscriptionEntity.subscriber_id == subscriber_id
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upsert_subscription(
    session: AsyncSession, data: SubscriptionUpsertData
) -> SubscriptionEntity:
    """Create or overwrite the record for a subscriber in one statement.

    Concurrent first writes for the same subscriber resolve to the last
    writer instead of failing on the primary key.
    """
    values = data.model_dump()
    insert = _dialect_insert(session)
    stmt = insert(SubscriptionEntity).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[SubscriptionEntity.subscriber_id],
        set_={key: stmt.excluded[key] for key in values if key != "subscriber_id"},
    )
    await session.execute(stmt)

    refreshed = (
        select(SubscriptionEntity)
        .where(SubscriptionEntity.subscriber_id == data.subscriber_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(refreshed)
    return result.scalar_one()


def _dialect_insert(session: AsyncSession):
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


async def set_subscription_status(
    session: AsyncSession, subscriber_id: str, status: str, updated_at: datetime
) -> SubscriptionEntity | None:
    """Change only the status of an existing record. None if unknown."""
    existing = await get_subscription(session, subscriber_id)
    if existing is None:
        return None
    existing.status = status
    existing.last_updated = updated_at
    await session.flush()
    return existing


async def delete_updated_before(session: AsyncSession, cutoff: datetime) -> int:
    """Delete records not refreshed since ``cutoff``."""
    stmt = (
        delete(SubscriptionEntity)
        .where(SubscriptionEntity.last_updated <= cutoff)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount or 0
