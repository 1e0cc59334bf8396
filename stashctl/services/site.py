"""Site service for maintenance mode, announcements and roles."""

from __future__ import annotations

import logging

from stashctl.core.exceptions import MaintenanceModeError
from stashctl.models.base import Announcement, Identity, MaintenanceMode

from .base import BaseService

logger = logging.getLogger(__name__)

MAINTENANCE_SETTING = "maintenance_mode"
ANNOUNCEMENT_SETTING = "announcement"
ADMIN_ROLE = "admin"


class SiteService(BaseService):
    """Service for site-wide settings."""

    async def get_maintenance_mode(self) -> MaintenanceMode:
        """Current maintenance mode (disabled when unset)."""
        return MaintenanceMode.model_validate(await self._setting(MAINTENANCE_SETTING))

    async def get_announcement(self) -> Announcement:
        """Current site announcement (disabled when unset)."""
        return Announcement.model_validate(await self._setting(ANNOUNCEMENT_SETTING))

    async def is_admin(self, user_id: str) -> bool:
        return await self.client.has_role(user_id, ADMIN_ROLE)

    async def ensure_uploads_allowed(self, identity: Identity) -> MaintenanceMode:
        """Refuse uploads for non-admins while maintenance is enabled.

        Args:
            identity: Signed-in user

        Returns:
            Current maintenance mode

        Raises:
            MaintenanceModeError: If maintenance is on and the user is not
                an admin.
        """
        mode = await self.get_maintenance_mode()
        if not mode.enabled:
            return mode

        if await self.is_admin(identity.id):
            logger.info("Maintenance mode is on; continuing as admin %s", identity.id)
            return mode

        raise MaintenanceModeError(mode.message)
