"""Registry of courier providers."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..errors import ProviderAlreadyRegisteredError, ProviderNotFoundError
from .base import BaseProvider, ProviderConfig

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Keeps track of providers and which of them have been initialized."""

    def __init__(self) -> None:
        self._providers: Dict[str, BaseProvider] = {}
        self._configs: Dict[str, ProviderConfig] = {}

    def register(self, provider: BaseProvider) -> None:
        if provider.id in self._providers:
            raise ProviderAlreadyRegisteredError(provider.id)
        self._providers[provider.id] = provider
        logger.debug(f"Registered provider {provider.id}")

    def get(self, provider_id: str) -> Optional[BaseProvider]:
        return self._providers.get(provider_id)

    def all(self) -> List[BaseProvider]:
        return list(self._providers.values())

    async def initialize_provider(self, provider_id: str, config: ProviderConfig) -> None:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        await provider.initialize(config)
        self._configs[provider_id] = config

    def is_initialized(self, provider_id: str) -> bool:
        return provider_id in self._configs

    def get_initialized(self, provider_id: str) -> Optional[BaseProvider]:
        if not self.is_initialized(provider_id):
            return None
        return self._providers.get(provider_id)

    def table(self) -> Dict[str, BaseProvider]:
        """Initialized providers keyed by id, as consumed by the workflow engine."""
        return {
            pid: provider
            for pid, provider in self._providers.items()
            if pid in self._configs
        }

    def unregister(self, provider_id: str) -> None:
        self._providers.pop(provider_id, None)
        self._configs.pop(provider_id, None)

    def clear(self) -> None:
        self._providers.clear()
        self._configs.clear()
