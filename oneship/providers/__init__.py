"""Courier providers and the provider registry."""

from __future__ import annotations

from typing import Dict, Optional, Type

from ..config import OneShipConfig, load_config
from .base import BaseProvider, ProviderCapability, ProviderConfig
from .registry import ProviderRegistry
from .sf_express import SFExpressProvider
from .yto import YTOProvider
from .zto import ZTOProvider

SANDBOX_PROVIDERS: Dict[str, Type[BaseProvider]] = {
    cls.id: cls for cls in (SFExpressProvider, YTOProvider, ZTOProvider)
}


def get_provider(provider_id: str) -> BaseProvider:
    """Instantiate the sandbox courier registered under ``provider_id``."""

    try:
        provider_cls = SANDBOX_PROVIDERS[provider_id]
    except KeyError:
        raise ValueError(f"Unsupported provider: {provider_id}") from None
    return provider_cls()


async def build_registry(config: Optional[OneShipConfig] = None) -> ProviderRegistry:
    """Create a registry holding every provider listed in ``config.providers``.

    Each configured provider is registered and initialized with its settings.
    """

    config = config or load_config()
    registry = ProviderRegistry()
    for provider_id, settings in config.providers.items():
        registry.register(get_provider(provider_id))
        await registry.initialize_provider(
            provider_id, ProviderConfig(id=provider_id, **settings.model_dump())
        )
    return registry


__all__ = [
    "BaseProvider",
    "ProviderCapability",
    "ProviderConfig",
    "ProviderRegistry",
    "SANDBOX_PROVIDERS",
    "SFExpressProvider",
    "YTOProvider",
    "ZTOProvider",
    "build_registry",
    "get_provider",
]
