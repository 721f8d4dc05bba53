"""Example creating an order with a sandbox courier and polling its execution."""

import asyncio
import sys

from oneship import ShippingService
from oneship.contracts import CreateOrderRequest
from oneship.providers import ProviderConfig, SFExpressProvider


async def main():
    webhook_url = sys.argv[1] if len(sys.argv) > 1 else None

    service = ShippingService()
    service.register_provider(SFExpressProvider())
    await service.configure_provider(
        "sf-express", ProviderConfig(id="sf-express", api_key="sandbox")
    )

    order = await service.create_order(
        CreateOrderRequest(
            provider="sf-express",
            from_address={"name": "Li Lei", "phone": "13800000000", "address": "1 Nanshan Rd"},
            to_address={"name": "Han Meimei", "phone": "13900000000", "address": "9 Huaihai Rd"},
            items=[{"name": "Tea set", "quantity": 1, "weight": 1.2, "value": 180}],
        ),
        webhook_url=webhook_url,
    )
    print(f"Created {order.id} ({order.order_number})")

    notification = await service.check_free_shipping(order.id)
    if notification:
        print(f"Free shipping worth {notification.amount} CNY: {notification.conditions}")

    for execution in await service.engine.list_executions():
        print(execution.id, execution.status.value, [s.id for s in execution.steps])


if __name__ == "__main__":
    asyncio.run(main())
