"""Shared fixtures for OneShip tests."""

from typing import Any, Dict, List, Tuple

import pytest

from oneship.providers import ProviderConfig, SFExpressProvider, YTOProvider, ZTOProvider


class RecordingWebhook:
    """Webhook caller that records deliveries and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, url: str, payload: Dict[str, Any]) -> None:
        self.calls.append((url, payload))
        if self.fail:
            raise ConnectionError("endpoint unreachable")


@pytest.fixture
def webhook():
    return RecordingWebhook()


@pytest.fixture
def order_input() -> Dict[str, Any]:
    return {
        "from_address": {"name": "Li Lei", "phone": "13800000000", "address": "1 Nanshan Rd", "city": "Shenzhen"},
        "to_address": {"name": "Han Meimei", "phone": "13900000000", "address": "9 Huaihai Rd", "city": "Shanghai"},
        "items": [{"name": "Tea set", "quantity": 2, "weight": 0.4, "value": 40}],
    }


def initialized(provider):
    """Mark a sandbox provider initialized without awaiting ``initialize``."""
    provider.config = ProviderConfig(id=provider.id, api_key="test-key")
    return provider


@pytest.fixture
def providers():
    return {
        p.id: initialized(p)
        for p in (SFExpressProvider(), YTOProvider(), ZTOProvider())
    }
