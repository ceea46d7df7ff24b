"""Discord adapter: gateway implementation and embed builders."""

from __future__ import annotations

from .gateway import DiscordGateway

__all__ = ["DiscordGateway"]
