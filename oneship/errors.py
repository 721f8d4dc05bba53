"""Exception hierarchy for OneShip."""

from __future__ import annotations


class OneShipError(Exception):
    """Base class for all OneShip errors."""


class ConfigurationError(OneShipError):
    """Raised when configuration files or values are invalid."""


class StepConfigurationError(OneShipError):
    """A workflow step is missing something it needs to run.

    Raised for a missing provider id, order id or webhook URL. These are
    fatal to the step, although they still pass through the step's retry loop.
    """


class ProviderError(OneShipError):
    """Base class for provider failures."""


class ProviderNotFoundError(ProviderError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} not found")
        self.provider_id = provider_id


class ProviderNotInitializedError(ProviderError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} is not initialized")
        self.provider_id = provider_id


class ProviderAlreadyRegisteredError(ProviderError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} is already registered")
        self.provider_id = provider_id


class InvalidOrderRequestError(ProviderError, ValueError):
    """Create-order request failed provider-side validation."""


class UnsupportedCapabilityError(ProviderError):
    def __init__(self, provider_id: str, capability: str) -> None:
        super().__init__(f"Provider {provider_id} does not support {capability}")
        self.provider_id = provider_id
        self.capability = capability


class WebhookDeliveryError(OneShipError):
    """Webhook endpoint could not be reached or rejected the payload."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"Webhook delivery to {url} failed: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class OrderNotFoundError(OneShipError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderCreationError(OneShipError):
    """The create-order workflow finished without producing an order."""

    def __init__(self, message: str, execution_id: str | None = None) -> None:
        super().__init__(message)
        self.execution_id = execution_id
