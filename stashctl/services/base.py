"""Base service with common methods for all Stash services."""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from stashctl.core.client import StashClient


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, client: "StashClient") -> None:
        """Initialize service with Stash client.

        Args:
            client: StashClient instance (authenticated for user operations)
        """
        self.client = client

    async def _setting(self, key: str) -> dict[str, Any]:
        """Read a site setting, dropping null fields.

        Args:
            key: ``system_settings`` key

        Returns:
            Setting value (empty when missing)
        """
        value: Optional[dict[str, Any]] = await self.client.get_setting(key)
        if not value:
            return {}
        return {k: v for k, v in value.items() if v is not None}
