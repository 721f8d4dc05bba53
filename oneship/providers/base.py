"""Base courier provider interface."""

from __future__ import annotations

import abc
import logging
from enum import Enum
from typing import Awaitable, Callable, ClassVar, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict

from ..contracts import (
    CreateOrderRequest,
    CreateOrderResponse,
    FreeShippingNotification,
    QueryOrderRequest,
    QueryOrderResponse,
)
from ..errors import (
    InvalidOrderRequestError,
    ProviderNotInitializedError,
    UnsupportedCapabilityError,
)

logger = logging.getLogger(__name__)

FreeShippingListener = Callable[[FreeShippingNotification], Awaitable[None]]


class ProviderCapability(str, Enum):
    """Operations a provider may implement."""

    CREATE_ORDER = "create_order"
    QUERY_ORDER = "query_order"
    CANCEL_ORDER = "cancel_order"
    CHECK_FREE_SHIPPING = "check_free_shipping"


CORE_CAPABILITIES = frozenset(
    {
        ProviderCapability.CREATE_ORDER,
        ProviderCapability.QUERY_ORDER,
        ProviderCapability.CANCEL_ORDER,
    }
)


class ProviderConfig(BaseModel):
    """Configuration passed to :meth:`BaseProvider.initialize`."""

    model_config = ConfigDict(extra="allow")

    id: str
    api_key: str
    api_secret: Optional[str] = None
    api_url: Optional[str] = None


class BaseProvider(metaclass=abc.ABCMeta):
    """Abstract base class for courier providers.

    Subclasses implement the ``_create_order``/``_query_order``/``_cancel_order``
    hooks. Optional operations are declared in ``capabilities``; callers must
    check :meth:`supports` before invoking them.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    capabilities: ClassVar[FrozenSet[ProviderCapability]] = CORE_CAPABILITIES

    def __init__(self) -> None:
        self.config: Optional[ProviderConfig] = None
        self._free_shipping_listeners: List[FreeShippingListener] = []

    @property
    def is_initialized(self) -> bool:
        return self.config is not None

    def supports(self, capability: ProviderCapability) -> bool:
        return capability in self.capabilities

    async def initialize(self, config: ProviderConfig) -> None:
        """Store ``config`` and run provider-specific setup."""
        self.config = config
        await self.on_initialize(config)
        logger.info(f"Initialized provider {self.id}")

    async def on_initialize(self, config: ProviderConfig) -> None:
        """Hook for provider-specific initialization (no-op by default)."""
        pass

    def _require_initialized(self) -> None:
        if self.config is None:
            raise ProviderNotInitializedError(self.id)

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        self._require_initialized()
        self.validate_create_order_request(request)
        return await self._create_order(request)

    def validate_create_order_request(self, request: CreateOrderRequest) -> None:
        if not request.from_address or not request.to_address or not request.items:
            raise InvalidOrderRequestError(
                "Invalid create order request: missing required fields"
            )
        if not request.from_address.phone or not request.to_address.phone:
            raise InvalidOrderRequestError(
                "Invalid create order request: phone number is required"
            )

    async def query_order(self, request: QueryOrderRequest) -> QueryOrderResponse:
        self._require_initialized()
        return await self._query_order(request)

    async def cancel_order(self, order_id: str) -> None:
        self._require_initialized()
        await self._cancel_order(order_id)

    async def check_free_shipping(
        self, order_id: str
    ) -> Optional[FreeShippingNotification]:
        """Look for a free-shipping promotion applicable to ``order_id``.

        Only available on providers declaring
        :attr:`ProviderCapability.CHECK_FREE_SHIPPING`.
        """
        if not self.supports(ProviderCapability.CHECK_FREE_SHIPPING):
            raise UnsupportedCapabilityError(
                self.id, ProviderCapability.CHECK_FREE_SHIPPING.value
            )
        self._require_initialized()
        return await self._check_free_shipping(order_id)

    async def start_free_shipping_listener(self, callback: FreeShippingListener) -> None:
        """Have ``callback`` awaited for every promotion the courier reports."""
        if not self.supports(ProviderCapability.CHECK_FREE_SHIPPING):
            raise UnsupportedCapabilityError(
                self.id, ProviderCapability.CHECK_FREE_SHIPPING.value
            )
        self._require_initialized()
        self._free_shipping_listeners.append(callback)
        await self.on_start_free_shipping_listener()

    async def stop_free_shipping_listener(self) -> None:
        self._free_shipping_listeners.clear()
        await self.on_stop_free_shipping_listener()

    async def on_start_free_shipping_listener(self) -> None:
        pass

    async def on_stop_free_shipping_listener(self) -> None:
        pass

    async def notify_free_shipping_listeners(
        self, notification: FreeShippingNotification
    ) -> None:
        for callback in list(self._free_shipping_listeners):
            try:
                await callback(notification)
            except Exception:
                logger.exception(f"Free shipping listener for provider {self.id} failed")

    @abc.abstractmethod
    async def _create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        raise NotImplementedError

    @abc.abstractmethod
    async def _query_order(self, request: QueryOrderRequest) -> QueryOrderResponse:
        raise NotImplementedError

    @abc.abstractmethod
    async def _cancel_order(self, order_id: str) -> None:
        raise NotImplementedError

    async def _check_free_shipping(
        self, order_id: str
    ) -> Optional[FreeShippingNotification]:
        raise NotImplementedError
