"""Platform handler registry.

Returns the handler for a platform id, or None when the platform is not
recognised (the matcher then falls back to generic strategies only).
"""

from __future__ import annotations

from formhand.engine.platforms.workday import WorkdayPlatformHandler
from formhand.engine.protocols import PlatformHandler

_HANDLERS: dict[str, type] = {
    "workday": WorkdayPlatformHandler,
}


def get_platform_handler(platform: str | None) -> PlatformHandler | None:
    if not platform:
        return None
    handler_cls = _HANDLERS.get(platform.strip().lower())
    return handler_cls() if handler_cls is not None else None


__all__ = ["WorkdayPlatformHandler", "get_platform_handler"]
