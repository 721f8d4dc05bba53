"""YTO Express sandbox courier."""

from __future__ import annotations

from typing import Optional

from ..contracts import FreeShippingNotification
from .base import CORE_CAPABILITIES, ProviderCapability
from .sandbox import SandboxProvider

LIGHT_PARCEL_MAX_WEIGHT = 1.0


class YTOProvider(SandboxProvider):
    """YTO Express (圆通). Free shipping on light parcels."""

    id = "yto"
    name = "YTO Express"
    capabilities = CORE_CAPABILITIES | {ProviderCapability.CHECK_FREE_SHIPPING}
    order_prefix = "YT"
    delivery_days = 3
    hub_location = "Shanghai"

    async def _check_free_shipping(
        self, order_id: str
    ) -> Optional[FreeShippingNotification]:
        order = self._find(order_id)
        if order is None:
            return None
        weight = sum(item.weight * item.quantity for item in order.items)
        if weight > LIGHT_PARCEL_MAX_WEIGHT:
            return None
        return FreeShippingNotification(
            order_id=order.id,
            provider=self.id,
            amount=8,
            conditions=[f"Parcel weight at most {LIGHT_PARCEL_MAX_WEIGHT:g} kg"],
            metadata={"weight": weight},
        )
