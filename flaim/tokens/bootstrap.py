"""Pre-shared secret used only before the first key rotation."""

from datetime import UTC, datetime

import structlog
from pydantic import SecretStr

from flaim.crypto.types import KeyStatus, SigningKey

logger = structlog.get_logger(__name__)

BOOTSTRAP_KEY_ID = "bootstrap"
_BOOTSTRAP_CREATED_AT = datetime(1970, 1, 1, tzinfo=UTC)


class BootstrapKeyProvider:
    """Manually provisioned fallback key for an unbootstrapped key store.

    Every use is logged at warning level: a deployment still relying on it
    has two sources of truth for the active key.
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def get_key(
        self, purpose: str, retired_at: datetime | None = None
    ) -> SigningKey | None:
        """Return the bootstrap key, logging that the fallback is in use.

        With ``retired_at`` the key is reported as retired: a stored key has
        superseded it and it may only verify.
        """
        if not self._secret:
            return None
        logger.warning(
            "key_store.bootstrap_key_in_use",
            purpose=purpose,
            kid=BOOTSTRAP_KEY_ID,
        )
        return SigningKey(
            id=BOOTSTRAP_KEY_ID,
            secret=SecretStr(self._secret),
            status=KeyStatus.ACTIVE if retired_at is None else KeyStatus.RETIRED,
            created_at=_BOOTSTRAP_CREATED_AT,
            retired_at=retired_at,
        )
