"""ZTO Express sandbox courier. Has no free-shipping capability."""

from __future__ import annotations

from .sandbox import SandboxProvider


class ZTOProvider(SandboxProvider):
    id = "zto"
    name = "ZTO Express"
    order_prefix = "ZTO"
    delivery_days = 2
    hub_location = "Guangzhou"
