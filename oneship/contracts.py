"""Normalized courier contracts shared by providers, workflows and webhooks."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Lifecycle status of a shipping order."""

    PENDING = "pending"
    CREATED = "created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Address(BaseModel):
    """Sender or recipient address."""

    name: str
    phone: str
    address: str
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class ShippingItem(BaseModel):
    """A single parcel line item. Weight is in kg, value in CNY."""

    name: str
    quantity: int = 1
    weight: float
    value: Optional[float] = None
    description: Optional[str] = None


class ShippingOrder(BaseModel):
    """Order as normalized across couriers."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    provider: str
    order_number: Optional[str] = Field(
        default=None, description="Courier-side order number"
    )
    status: OrderStatus = OrderStatus.PENDING
    from_address: Address
    to_address: Address
    items: List[ShippingItem] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreateOrderRequest(BaseModel):
    """Request to create an order with a courier.

    Addresses and items are optional at this level so that incomplete
    requests reach the provider, which owns the validation rules.
    """

    provider: str
    from_address: Optional[Address] = None
    to_address: Optional[Address] = None
    items: List[ShippingItem] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CreateOrderResponse(BaseModel):
    order: ShippingOrder
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class QueryOrderRequest(BaseModel):
    order_id: str
    provider: str


class TrackingEvent(BaseModel):
    """A single scan event reported by a courier."""

    timestamp: datetime = Field(default_factory=utcnow)
    status: OrderStatus
    location: Optional[str] = None
    description: str


class QueryOrderResponse(BaseModel):
    order: ShippingOrder
    tracking_events: List[TrackingEvent] = Field(default_factory=list)


class FreeShippingNotification(BaseModel):
    """Free-shipping promotion detected for an order."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_id: str
    provider: str
    detected_at: datetime = Field(default_factory=utcnow)
    amount: float
    conditions: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WebhookEventType(str, Enum):
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    ORDER_DELIVERED = "order.delivered"
    ORDER_FAILED = "order.failed"
    FREE_SHIPPING_DETECTED = "free_shipping.detected"
    FREE_SHIPPING_EXPIRED = "free_shipping.expired"


class WebhookPayload(BaseModel):
    """Body posted to webhook endpoints.

    ``event`` is a free-form string so workflows can emit custom events
    alongside the :class:`WebhookEventType` values.
    """

    event: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    data: Any = None
    order_id: Optional[str] = None
    provider: Optional[str] = None


class WebhookSubscription(BaseModel):
    """Endpoint receiving service events of the listed types."""

    id: str = Field(default_factory=lambda: f"webhook-{uuid.uuid4().hex[:12]}")
    url: str
    events: List[WebhookEventType]
    secret: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    active: bool = True

    def accepts(self, event: WebhookEventType) -> bool:
        return self.active and event in self.events
