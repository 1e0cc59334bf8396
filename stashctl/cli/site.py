"""Site commands for stashctl."""

from __future__ import annotations

import asyncio

import click

from stashctl.cli.common import Context, global_options, handle_errors
from stashctl.core.client import StashClient
from stashctl.core.output import OutputFormat, print_json, print_key_value
from stashctl.models.base import Announcement, MaintenanceMode
from stashctl.services.site import SiteService


async def _site_status(client: StashClient) -> tuple[MaintenanceMode, Announcement]:
    async with client:
        service = SiteService(client)
        return await service.get_maintenance_mode(), await service.get_announcement()


@click.group()
def site() -> None:
    """Site-wide settings."""
    pass


@site.command("status")
@global_options
@handle_errors
def site_status(ctx: Context) -> None:
    """Show maintenance mode and the current announcement.

    Example:
        stashctl site status
        stashctl site status -o json
    """
    maintenance, announcement = asyncio.run(_site_status(ctx.get_client()))

    if ctx.output_format == OutputFormat.JSON:
        print_json(
            {
                "maintenance_mode": maintenance.model_dump(),
                "announcement": announcement.model_dump(),
            }
        )
        return

    print_key_value(
        {
            "maintenance": maintenance.enabled,
            "maintenance_message": maintenance.message or None,
            "announcement": announcement.message if announcement.enabled else None,
            "announcement_type": announcement.type if announcement.enabled else None,
        },
        title="Site Status",
    )
