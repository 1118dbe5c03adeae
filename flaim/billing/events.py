"""Typed payment-provider lifecycle events.

Payloads are validated into a discriminated union on ``type`` before any
field is read. Only the fields the subscription cache needs are modelled.
"""

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

SUBSCRIPTION_EVENT_TYPES = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)
INVOICE_EVENT_TYPES = (
    "invoice.payment_succeeded",
    "invoice.payment_failed",
)
HANDLED_EVENT_TYPES = frozenset(SUBSCRIPTION_EVENT_TYPES + INVOICE_EVENT_TYPES)


def _customer_id(value: Any) -> Any:
    """Accept a customer id string or an expanded customer object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


CustomerId = Annotated[str, BeforeValidator(_customer_id)]


class _ProviderObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PriceRef(_ProviderObject):
    id: str


class SubscriptionItem(_ProviderObject):
    price: PriceRef | None = None
    current_period_end: int | None = None


class SubscriptionItemList(_ProviderObject):
    data: list[SubscriptionItem] = Field(default_factory=list)


class SubscriptionObject(_ProviderObject):
    """Subscription payload; period end may live on the first item."""

    id: str
    customer: CustomerId
    status: str
    current_period_end: int | None = None
    cancel_at_period_end: bool = False
    items: SubscriptionItemList | None = None

    @property
    def period_end(self) -> datetime | None:
        raw = self.current_period_end
        if raw is None and self.items and self.items.data:
            raw = self.items.data[0].current_period_end
        if raw is None:
            return None
        return datetime.fromtimestamp(raw, UTC)

    @property
    def plan_id(self) -> str | None:
        if self.items and self.items.data and self.items.data[0].price:
            return self.items.data[0].price.id
        return None


class InvoiceObject(_ProviderObject):
    id: str | None = None
    customer: CustomerId | None = None


class SubscriptionEventData(_ProviderObject):
    object: SubscriptionObject


class InvoiceEventData(_ProviderObject):
    object: InvoiceObject


class SubscriptionEvent(_ProviderObject):
    id: str
    type: Literal[
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ]
    created: int | None = None
    data: SubscriptionEventData


class InvoiceEvent(_ProviderObject):
    id: str
    type: Literal["invoice.payment_succeeded", "invoice.payment_failed"]
    created: int | None = None
    data: InvoiceEventData


class EventEnvelope(_ProviderObject):
    """Minimal shape shared by every event, used to route unknown types."""

    id: str
    type: str


LifecycleEvent = Annotated[
    SubscriptionEvent | InvoiceEvent, Field(discriminator="type")
]

_lifecycle_adapter: TypeAdapter[SubscriptionEvent | InvoiceEvent] = TypeAdapter(
    LifecycleEvent
)


def parse_lifecycle_event(payload: bytes | str) -> SubscriptionEvent | InvoiceEvent:
    """Validate a raw event body into its typed variant."""
    return _lifecycle_adapter.validate_json(payload)
