"""SF Express sandbox courier."""

from __future__ import annotations

from typing import Optional

from ..contracts import FreeShippingNotification
from .base import CORE_CAPABILITIES, ProviderCapability
from .sandbox import SandboxProvider

FREE_SHIPPING_MIN_VALUE = 100.0


class SFExpressProvider(SandboxProvider):
    """SF Express (顺丰). Next-day delivery, free shipping on valuable orders."""

    id = "sf-express"
    name = "SF Express"
    capabilities = CORE_CAPABILITIES | {ProviderCapability.CHECK_FREE_SHIPPING}
    order_prefix = "SF"
    delivery_days = 1

    async def _check_free_shipping(
        self, order_id: str
    ) -> Optional[FreeShippingNotification]:
        order = self._find(order_id)
        if order is None:
            return None
        declared = sum((item.value or 0) * item.quantity for item in order.items)
        if declared < FREE_SHIPPING_MIN_VALUE:
            return None
        return FreeShippingNotification(
            order_id=order.id,
            provider=self.id,
            amount=15,
            conditions=[f"Order over {FREE_SHIPPING_MIN_VALUE:g} CNY"],
            metadata={"declared_value": declared},
        )
