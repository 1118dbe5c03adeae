"""Signing key rotation cadence and grace-period policy."""

from datetime import datetime, timedelta

import structlog
from cryptography.fernet import InvalidToken as InvalidFernetToken
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession

from flaim.core.clock import ensure_utc
from flaim.core.errors import UpstreamUnavailable, store_guard
from flaim.core.settings import AuthSettings
from flaim.crypto.keys import (
    decrypt_secret,
    encrypt_secret,
    generate_hmac_secret,
    generate_key_id,
)
from flaim.crypto.types import (
    KeyMetadataEntry,
    KeyMetadataResponse,
    KeyStatus,
    SigningKey,
)
from flaim.db.models_keys import SigningKeyEntity
from flaim.db.repo_keys import get_active_key, get_key_history, replace_active_key
from flaim.tokens.bootstrap import BOOTSTRAP_KEY_ID, BootstrapKeyProvider

logger = structlog.get_logger(__name__)

KEY_STORE = "key store"


class KeyRotationManager:
    """Decides when to rotate and which keys may verify tokens."""

    def __init__(self, session: AsyncSession, settings: AuthSettings) -> None:
        self._session = session
        self._settings = settings
        self._rotation_interval = timedelta(seconds=settings.key_rotation_interval)
        self._grace_period = timedelta(seconds=settings.key_grace_period)
        self._bootstrap = BootstrapKeyProvider(settings.bootstrap_secret)

    @property
    def grace_period(self) -> timedelta:
        return self._grace_period

    async def should_rotate(self, now: datetime) -> bool:
        """True when no key exists yet or the active key is due."""
        with store_guard(KEY_STORE):
            active = await get_active_key(self._session)
        if active is None:
            return True
        return now - ensure_utc(active.created_at) >= self._rotation_interval

    async def rotate(self, now: datetime) -> SigningKey:
        """Generate a fresh key and make it the active one."""
        secret = generate_hmac_secret()
        entity = SigningKeyEntity(
            id=generate_key_id(),
            algorithm="HS256",
            secret_encrypted=encrypt_secret(
                secret, self._settings.signing_key_encryption_key
            ),
            status=KeyStatus.ACTIVE.value,
            created_at=now,
        )
        with store_guard(KEY_STORE):
            stored = await replace_active_key(
                self._session,
                entity,
                previous_key_retired_at=now,
                history_limit=self._settings.key_history_limit,
                grace_period=self._grace_period,
                now=now,
            )
        logger.info("key_rotation.rotated", kid=stored.id)
        return SigningKey(
            id=stored.id,
            secret=SecretStr(secret),
            status=KeyStatus.ACTIVE,
            created_at=now,
        )

    def _in_grace(self, entity: SigningKeyEntity, now: datetime) -> bool:
        if entity.status == KeyStatus.ACTIVE.value:
            return True
        if entity.retired_at is None:
            return False
        return now - ensure_utc(entity.retired_at) < self._grace_period

    async def _key_history(self) -> list[SigningKeyEntity]:
        with store_guard(KEY_STORE):
            return await get_key_history(self._session)

    async def _acceptable_entities(self, now: datetime) -> list[SigningKeyEntity]:
        history = await self._key_history()
        return [entity for entity in history if self._in_grace(entity, now)]

    def _bootstrap_superseded_at(
        self, history: list[SigningKeyEntity]
    ) -> datetime | None:
        """Creation time of the first stored key, or None before any rotation."""
        if not history:
            return None
        return min(ensure_utc(entity.created_at) for entity in history)

    def _bootstrap_in_grace(
        self, history: list[SigningKeyEntity], now: datetime
    ) -> bool:
        if not self._bootstrap.configured:
            return False
        superseded_at = self._bootstrap_superseded_at(history)
        return superseded_at is None or now - superseded_at < self._grace_period

    async def is_key_acceptable_for_verification(
        self, key_id: str, now: datetime
    ) -> bool:
        """True for the active key or a retired key still within grace."""
        history = await self._key_history()
        if key_id == BOOTSTRAP_KEY_ID:
            return self._bootstrap_in_grace(history, now)
        return any(
            entity.id == key_id and self._in_grace(entity, now) for entity in history
        )

    async def get_verification_keys(self, now: datetime) -> list[SigningKey]:
        """Active plus in-grace retired keys, newest first.

        The bootstrap key verifies until one grace period after the first
        stored key replaced it. It never signs once a stored key exists.
        """
        history = await self._key_history()
        keys = [
            self._to_signing_key(entity)
            for entity in history
            if self._in_grace(entity, now)
        ]
        if self._bootstrap_in_grace(history, now):
            superseded_at = self._bootstrap_superseded_at(history)
            bootstrap = self._bootstrap.get_key("verification", superseded_at)
            if bootstrap is not None:
                if superseded_at is None:
                    return [bootstrap, *keys]
                keys.append(bootstrap)
        return keys

    async def get_signing_key(self, now: datetime) -> SigningKey:
        """Return the key new tokens must be signed with."""
        with store_guard(KEY_STORE):
            active = await get_active_key(self._session)
        if active is not None:
            return self._to_signing_key(active)
        bootstrap = self._bootstrap.get_key("signing")
        if bootstrap is not None:
            return bootstrap
        logger.error("key_store.no_signing_key", checked_at=now.isoformat())
        raise UpstreamUnavailable("No signing key available")

    async def describe_verification_keys(self, now: datetime) -> KeyMetadataResponse:
        """Non-secret metadata for the active and in-grace keys."""
        entities = await self._acceptable_entities(now)
        return KeyMetadataResponse(
            keys=[
                KeyMetadataEntry(
                    kid=entity.id,
                    status=KeyStatus(entity.status),
                    created=ensure_utc(entity.created_at),
                    rotated=(
                        ensure_utc(entity.retired_at) if entity.retired_at else None
                    ),
                )
                for entity in entities
            ]
        )

    def _to_signing_key(self, entity: SigningKeyEntity) -> SigningKey:
        try:
            secret = decrypt_secret(
                entity.secret_encrypted, self._settings.signing_key_encryption_key
            )
        except InvalidFernetToken as exc:
            logger.error("key_store.decrypt_failed", kid=entity.id)
            raise UpstreamUnavailable("Signing key could not be decrypted") from exc
        return SigningKey(
            id=entity.id,
            secret=SecretStr(secret),
            status=KeyStatus(entity.status),
            created_at=ensure_utc(entity.created_at),
            retired_at=ensure_utc(entity.retired_at) if entity.retired_at else None,
        )
