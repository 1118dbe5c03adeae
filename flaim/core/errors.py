"""Error taxonomy for token validation and its upstream dependencies."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class AuthError(Exception):
    """Base class for errors rendered as structured HTTP responses."""

    code = "AUTH_ERROR"
    status_code = 401
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict[str, str]:
        """Render as {"error": ..., "code": ...}."""
        return {"error": self.message, "code": self.code}


class MissingToken(AuthError):
    """No credential was presented."""

    code = "MISSING_TOKEN"
    default_message = "Authentication required"


class InvalidToken(AuthError):
    """Malformed token, or its signature matches no acceptable key."""

    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class TokenExpired(AuthError):
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class ClaimMismatch(AuthError):
    """Issuer or audience differs from the configured constants."""

    code = "CLAIM_MISMATCH"
    default_message = "Token issuer or audience mismatch"


class SubscriptionInactive(AuthError):
    """Token is valid but the subscriber has no current entitlement."""

    code = "SUBSCRIPTION_INACTIVE"
    status_code = 402
    default_message = "Subscription not active"


class UpstreamUnavailable(AuthError):
    """Durable store or payment provider failed; callers may retry."""

    code = "UPSTREAM_UNAVAILABLE"
    status_code = 500
    default_message = "Upstream dependency unavailable"


@contextmanager
def store_guard(dependency: str) -> Iterator[None]:
    """Translate store failures and timeouts into UpstreamUnavailable."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise UpstreamUnavailable(f"{dependency} unavailable") from exc
    except TimeoutError as exc:
        raise UpstreamUnavailable(f"{dependency} timed out") from exc
