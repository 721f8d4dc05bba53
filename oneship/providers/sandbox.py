"""In-process sandbox couriers.

Sandbox providers keep created orders in memory and answer with synthetic
tracking data. They make it possible to run workflows end to end without
courier credentials. While a free-shipping listener is running, every new
order is checked and qualifying promotions are pushed to the listeners.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import ClassVar, Dict, Optional

from ..contracts import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderStatus,
    QueryOrderRequest,
    QueryOrderResponse,
    ShippingOrder,
    TrackingEvent,
    utcnow,
)
from ..errors import OrderNotFoundError
from .base import BaseProvider


class SandboxProvider(BaseProvider):
    """Shared behavior for the sandbox couriers."""

    order_prefix: ClassVar[str]
    delivery_days: ClassVar[int] = 2
    hub_location: ClassVar[str] = "Shenzhen"

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, ShippingOrder] = {}

    def _new_order_number(self) -> str:
        return f"{self.order_prefix}{uuid.uuid4().hex[:12].upper()}"

    def _find(self, order_id: str) -> Optional[ShippingOrder]:
        order = self._orders.get(order_id)
        if order is not None:
            return order
        return next(
            (o for o in self._orders.values() if o.order_number == order_id), None
        )

    async def _create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        now = utcnow()
        order = ShippingOrder(
            provider=self.id,
            order_number=self._new_order_number(),
            status=OrderStatus.CREATED,
            from_address=request.from_address,
            to_address=request.to_address,
            items=request.items,
            metadata=request.metadata,
            created_at=now,
            updated_at=now,
        )
        self._orders[order.id] = order
        if self._free_shipping_listeners:
            notification = await self._check_free_shipping(order.id)
            if notification is not None:
                await self.notify_free_shipping_listeners(notification)
        return CreateOrderResponse(
            order=order.model_copy(),
            tracking_number=order.order_number,
            estimated_delivery=now + timedelta(days=self.delivery_days),
        )

    async def _query_order(self, request: QueryOrderRequest) -> QueryOrderResponse:
        order = self._find(request.order_id)
        if order is None:
            raise OrderNotFoundError(request.order_id)
        if order.status == OrderStatus.CREATED:
            order.status = OrderStatus.IN_TRANSIT
            order.updated_at = utcnow()
        events = [
            TrackingEvent(
                timestamp=order.created_at,
                status=OrderStatus.CREATED,
                location=order.from_address.city,
                description="Order received by courier",
            )
        ]
        if order.status != OrderStatus.CREATED:
            events.append(
                TrackingEvent(
                    timestamp=order.updated_at,
                    status=order.status,
                    location=self.hub_location,
                    description=f"Package is {order.status.value.replace('_', ' ')}",
                )
            )
        return QueryOrderResponse(order=order.model_copy(), tracking_events=events)

    async def _cancel_order(self, order_id: str) -> None:
        order = self._find(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        order.status = OrderStatus.CANCELLED
        order.updated_at = utcnow()
