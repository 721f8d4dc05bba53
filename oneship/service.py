"""High level shipping service wiring providers, webhooks and workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .config import OneShipConfig, load_config
from .contracts import (
    CreateOrderRequest,
    FreeShippingNotification,
    OrderStatus,
    QueryOrderRequest,
    ShippingOrder,
    WebhookEventType,
    WebhookPayload,
    WebhookSubscription,
    utcnow,
)
from .errors import OrderCreationError, OrderNotFoundError, ProviderNotInitializedError
from .persistence import get_repository
from .providers import BaseProvider, ProviderCapability, ProviderConfig, ProviderRegistry
from .webhooks import WebhookDispatcher
from .workflow import (
    DEFAULT_CREATE_ORDER_WORKFLOW,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowExecution,
    WorkflowStepStatus,
)

logger = logging.getLogger(__name__)


class ShippingService:
    """Entry point for applications creating and tracking shipments.

    Order operations emit :class:`~oneship.contracts.WebhookEventType` events.
    Each event is posted to every active subscription registered for it with
    :meth:`subscribe_webhook`. A failed delivery is logged and never fails the
    operation that emitted the event.
    """

    def __init__(
        self,
        engine: Optional[WorkflowEngine] = None,
        registry: Optional[ProviderRegistry] = None,
        dispatcher: Optional[WebhookDispatcher] = None,
        config: Optional[OneShipConfig] = None,
    ) -> None:
        if engine is None or dispatcher is None:
            config = config or load_config()
        self.registry = registry or ProviderRegistry()
        self.dispatcher = dispatcher or WebhookDispatcher.from_config(config)
        self.engine = engine or WorkflowEngine(
            self.dispatcher.deliver, repository=get_repository(config=config)
        )
        self._orders: Dict[str, ShippingOrder] = {}
        self._notifications: Dict[str, FreeShippingNotification] = {}
        self._webhooks: Dict[str, WebhookSubscription] = {}

    # -- providers -----------------------------------------------------
    def register_provider(self, provider: BaseProvider) -> None:
        self.registry.register(provider)

    async def configure_provider(self, provider_id: str, config: ProviderConfig) -> None:
        await self.registry.initialize_provider(provider_id, config)

    def _initialized_provider(self, provider_id: str) -> BaseProvider:
        provider = self.registry.get_initialized(provider_id)
        if provider is None:
            raise ProviderNotInitializedError(provider_id)
        return provider

    # -- workflows -----------------------------------------------------
    async def run_workflow(
        self,
        workflow: WorkflowDefinition,
        context: Optional[Mapping[str, Any]] = None,
        wait: bool = True,
        timeout: Optional[float] = None,
    ) -> WorkflowExecution:
        """Run ``workflow`` against the initialized providers.

        With ``wait`` the finished execution is returned; otherwise the
        running snapshot is returned immediately.
        """
        execution = await self.engine.execute(workflow, context, self.registry.table())
        if not wait:
            return execution
        return await self.engine.wait_for(execution.id, timeout=timeout)

    @staticmethod
    def _create_order_workflow(webhook_url: Optional[str]) -> WorkflowDefinition:
        if webhook_url:
            return DEFAULT_CREATE_ORDER_WORKFLOW.with_webhook_url(webhook_url)
        entry = DEFAULT_CREATE_ORDER_WORKFLOW.entry_step
        # Without an endpoint the notification steps could only fail.
        return DEFAULT_CREATE_ORDER_WORKFLOW.model_copy(
            update={"steps": [entry.model_copy(update={"on_success": None})]}
        )

    # -- orders --------------------------------------------------------
    async def create_order(
        self,
        request: CreateOrderRequest,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ShippingOrder:
        """Create an order through the default create-order workflow.

        Raises:
            OrderCreationError: If the create step did not succeed.
        """
        workflow = self._create_order_workflow(webhook_url)
        data = request.model_dump()
        if webhook_url:
            data["webhook_url"] = webhook_url

        execution = await self.run_workflow(
            workflow, {"provider": request.provider, "input": data}, timeout=timeout
        )
        step = execution.find_step(workflow.entry_step.id)
        if step is None or step.status != WorkflowStepStatus.SUCCESS:
            reason = (step.error if step else None) or execution.error or "unknown error"
            raise OrderCreationError(
                f"Failed to create order: {reason}", execution_id=execution.id
            )

        order: ShippingOrder = step.output["order"]
        self._orders[order.id] = order
        logger.info(
            f"Created order {order.id} with {order.provider} in execution {execution.id}"
        )
        await self._emit_order(WebhookEventType.ORDER_CREATED, order)
        return order

    def get_order(self, order_id: str) -> Optional[ShippingOrder]:
        return self._orders.get(order_id)

    def _require_order(self, order_id: str) -> ShippingOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def query_order(self, order_id: str) -> ShippingOrder:
        order = self._require_order(order_id)
        provider = self._initialized_provider(order.provider)
        response = await provider.query_order(
            QueryOrderRequest(
                order_id=order.order_number or order_id, provider=order.provider
            )
        )
        updated = response.order
        self._orders[order_id] = updated

        await self._emit_order(WebhookEventType.ORDER_UPDATED, updated)
        if updated.status == OrderStatus.DELIVERED:
            await self._emit_order(WebhookEventType.ORDER_DELIVERED, updated)
        return updated

    async def cancel_order(self, order_id: str) -> None:
        order = self._require_order(order_id)
        provider = self._initialized_provider(order.provider)
        await provider.cancel_order(order.order_number or order_id)
        cancelled = order.model_copy(
            update={"status": OrderStatus.CANCELLED, "updated_at": utcnow()}
        )
        self._orders[order_id] = cancelled
        await self._emit_order(WebhookEventType.ORDER_UPDATED, cancelled)

    # -- free shipping -------------------------------------------------
    async def check_free_shipping(
        self, order_id: str
    ) -> Optional[FreeShippingNotification]:
        """Ask the order's courier for a free-shipping promotion.

        Returns ``None`` when nothing was found or the courier cannot check.
        """
        order = self._require_order(order_id)
        provider = self.registry.get_initialized(order.provider)
        if provider is None or not provider.supports(
            ProviderCapability.CHECK_FREE_SHIPPING
        ):
            return None

        notification = await provider.check_free_shipping(order_id)
        if notification is not None:
            await self._record_free_shipping(notification)
        return notification

    async def _record_free_shipping(self, notification: FreeShippingNotification) -> None:
        self._notifications[notification.id] = notification
        logger.info(
            f"Free shipping detected for order {notification.order_id} "
            f"by {notification.provider}"
        )
        await self._emit(
            WebhookEventType.FREE_SHIPPING_DETECTED,
            notification.model_dump(mode="json"),
            order_id=notification.order_id,
            provider=notification.provider,
        )

    async def start_free_shipping_listeners(self) -> List[str]:
        """Listen for promotions on every initialized courier that can report them.

        Reported promotions are stored like those found by
        :meth:`check_free_shipping` and emitted as ``free_shipping.detected``.

        Returns:
            Ids of the providers now being listened to.
        """
        started = []
        for provider in self.registry.all():
            if not self.registry.is_initialized(provider.id) or not provider.supports(
                ProviderCapability.CHECK_FREE_SHIPPING
            ):
                continue
            await provider.start_free_shipping_listener(self._record_free_shipping)
            started.append(provider.id)
        logger.info(f"Listening for free shipping on: {', '.join(started) or 'none'}")
        return started

    async def stop_free_shipping_listeners(self) -> None:
        for provider in self.registry.all():
            if provider.supports(ProviderCapability.CHECK_FREE_SHIPPING):
                await provider.stop_free_shipping_listener()

    def list_free_shipping_notifications(self) -> List[FreeShippingNotification]:
        return list(self._notifications.values())

    # -- webhook subscriptions ------------------------------------------
    def subscribe_webhook(
        self,
        url: str,
        events: Iterable[Union[WebhookEventType, str]],
        secret: Optional[str] = None,
    ) -> WebhookSubscription:
        subscription = WebhookSubscription(url=url, events=list(events), secret=secret)
        self._webhooks[subscription.id] = subscription
        logger.info(
            f"Subscribed {url} to {', '.join(e.value for e in subscription.events)}"
        )
        return subscription

    def get_webhook(self, webhook_id: str) -> Optional[WebhookSubscription]:
        return self._webhooks.get(webhook_id)

    def list_webhooks(self) -> List[WebhookSubscription]:
        return list(self._webhooks.values())

    def delete_webhook(self, webhook_id: str) -> None:
        self._webhooks.pop(webhook_id, None)

    async def _emit_order(self, event: WebhookEventType, order: ShippingOrder) -> None:
        await self._emit(
            event, order.model_dump(mode="json"), order_id=order.id, provider=order.provider
        )

    async def _emit(
        self,
        event: WebhookEventType,
        data: Any,
        order_id: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        subscribers = [s for s in self._webhooks.values() if s.accepts(event)]
        if not subscribers:
            return
        payload = WebhookPayload(
            event=event.value, data=data, order_id=order_id, provider=provider
        ).model_dump(mode="json")
        results = await asyncio.gather(
            *(self.dispatcher.deliver(s.url, payload) for s in subscribers),
            return_exceptions=True,
        )
        for subscription, result in zip(subscribers, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Failed to send {event.value} to webhook {subscription.id}: {result}"
                )
