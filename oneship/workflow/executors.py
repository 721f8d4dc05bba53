"""Step executors: one adapter per step type."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

from ..contracts import CreateOrderRequest, QueryOrderRequest, WebhookPayload
from ..errors import ProviderNotFoundError, StepConfigurationError
from ..providers.base import BaseProvider, ProviderCapability
from .context import StepExecutionContext
from .definition import StepType, WorkflowStepDefinition
from .models import StepResult

logger = logging.getLogger(__name__)

ProviderTable = Mapping[str, BaseProvider]
WebhookCaller = Callable[[str, Dict[str, Any]], Awaitable[None]]

DEFAULT_DELAY_MILLIS = 1000


class StepExecutor(metaclass=abc.ABCMeta):
    """Performs the work of one step type.

    Executors return a :class:`StepResult` or raise. The ``next_step_id`` they
    report is a hint only; the engine decides where to go next.
    """

    @abc.abstractmethod
    async def execute(
        self,
        step: WorkflowStepDefinition,
        context: StepExecutionContext,
        providers: ProviderTable,
    ) -> StepResult:
        raise NotImplementedError


def resolve_provider(
    step: WorkflowStepDefinition,
    context: StepExecutionContext,
    providers: ProviderTable,
    require_order_id: bool = False,
) -> BaseProvider:
    """Look up the provider bound to ``step``, falling back to the context."""

    provider_id = step.provider or context.provider
    if not provider_id:
        raise StepConfigurationError(f"Provider is required for {step.type} step")
    if require_order_id and not context.order_id:
        raise StepConfigurationError(f"Order ID is required for {step.type} step")
    provider = providers.get(provider_id)
    if provider is None:
        raise ProviderNotFoundError(provider_id)
    return provider


class CreateOrderStepExecutor(StepExecutor):
    """Creates an order from ``context.input`` with the step's provider."""

    async def execute(self, step, context, providers) -> StepResult:
        provider = resolve_provider(step, context, providers)
        data = context.input
        request = CreateOrderRequest(
            provider=provider.id,
            from_address=data.get("from_address"),
            to_address=data.get("to_address"),
            items=data.get("items") or [],
            metadata=data.get("metadata") or {},
        )
        response = await provider.create_order(request)
        return StepResult(
            output={
                "order": response.order,
                "tracking_number": response.tracking_number,
                "estimated_delivery": response.estimated_delivery,
            },
            next_step_id=step.on_success,
        )


class QueryOrderStepExecutor(StepExecutor):
    async def execute(self, step, context, providers) -> StepResult:
        provider = resolve_provider(step, context, providers, require_order_id=True)
        response = await provider.query_order(
            QueryOrderRequest(order_id=context.order_id, provider=provider.id)
        )
        return StepResult(
            output={
                "order": response.order,
                "tracking_events": response.tracking_events,
            },
            next_step_id=step.on_success,
        )


class CheckFreeShippingStepExecutor(StepExecutor):
    """Asks the provider for a free-shipping promotion.

    A provider without the capability is treated like one that found
    nothing: the step succeeds with ``notification`` set to ``None``.
    """

    async def execute(self, step, context, providers) -> StepResult:
        provider = resolve_provider(step, context, providers, require_order_id=True)
        if not provider.supports(ProviderCapability.CHECK_FREE_SHIPPING):
            logger.debug(f"Provider {provider.id} cannot check free shipping")
            return StepResult(
                output={"notification": None}, next_step_id=step.on_failure
            )

        notification = await provider.check_free_shipping(context.order_id)
        return StepResult(
            output={"notification": notification},
            next_step_id=step.on_success if notification else step.on_failure,
        )


class WebhookStepExecutor(StepExecutor):
    """Posts the execution input to a webhook.

    Delivery errors do not fail the step; they are reported in the output
    as ``{"success": False, "error": ...}``.
    """

    def __init__(self, webhook_caller: WebhookCaller) -> None:
        self._webhook_caller = webhook_caller

    async def execute(self, step, context, providers) -> StepResult:
        url = step.config.get("url") or context.input.get("webhook_url")
        if not url:
            raise StepConfigurationError("Webhook URL is required for webhook step")

        payload = WebhookPayload(
            event=step.config.get("event"),
            data=context.get("input"),
            order_id=context.order_id,
            provider=context.provider,
        )
        try:
            await self._webhook_caller(url, payload.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Webhook step {step.id} could not deliver to {url}: {e}")
            return StepResult(
                output={"success": False, "error": str(e)},
                next_step_id=step.on_failure,
            )
        return StepResult(output={"success": True}, next_step_id=step.on_success)


class DelayStepExecutor(StepExecutor):
    async def execute(self, step, context, providers) -> StepResult:
        delay = step.config.get("delay_millis", DEFAULT_DELAY_MILLIS)
        await asyncio.sleep(delay / 1000.0)
        return StepResult(output={"delayed": delay}, next_step_id=step.on_success)


def default_executors(webhook_caller: WebhookCaller) -> Dict[str, StepExecutor]:
    """Built-in executors keyed by step type."""

    return {
        StepType.CREATE_ORDER.value: CreateOrderStepExecutor(),
        StepType.QUERY_ORDER.value: QueryOrderStepExecutor(),
        StepType.CHECK_FREE_SHIPPING.value: CheckFreeShippingStepExecutor(),
        StepType.WEBHOOK.value: WebhookStepExecutor(webhook_caller),
        StepType.DELAY.value: DelayStepExecutor(),
    }


__all__ = [
    "StepExecutor",
    "CreateOrderStepExecutor",
    "QueryOrderStepExecutor",
    "CheckFreeShippingStepExecutor",
    "WebhookStepExecutor",
    "DelayStepExecutor",
    "ProviderTable",
    "WebhookCaller",
    "default_executors",
    "resolve_provider",
]
