"""Main CLI entry point for stashctl."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import click

from stashctl import __version__
from stashctl.cli.auth import auth
from stashctl.cli.common import Context, global_options, handle_errors, require_auth
from stashctl.cli.config_cmd import config
from stashctl.cli.site import site
from stashctl.cli.upload import upload
from stashctl.core.client import StashClient
from stashctl.core.exceptions import SessionExpiredError
from stashctl.core.output import OutputFormat, print_output, print_success
from stashctl.models.base import Identity

# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="stashctl")
def cli() -> None:
    """stashctl - A CLI for Stash cloud file storage.

    Upload files one at a time with live progress, pause-free retries and
    client-side image compression.

    Get started:

      stashctl config init        # Create config file

      stashctl auth login         # Sign in

      stashctl upload FILES...    # Upload files

    Use --help on any command for more information.
    """
    pass


# =============================================================================
# Register Command Groups
# =============================================================================

cli.add_command(config)
cli.add_command(auth)
cli.add_command(site)
cli.add_command(upload)


# =============================================================================
# Top-Level Commands
# =============================================================================


async def _whoami(client: StashClient) -> Optional[Identity]:
    async with client:
        return await client.get_user()


@cli.command()
@global_options
@handle_errors
@require_auth
def whoami(ctx: Context) -> None:
    """Show current user and authentication context."""
    client = ctx.get_client()
    identity = asyncio.run(_whoami(client))
    if identity is None:
        raise SessionExpiredError(client.base_url)

    profile = ctx.get_profile()
    profile_name = ctx.profile_name or (ctx.config.default_profile if ctx.config else "default")
    output = {
        "user_id": identity.id,
        "email": identity.email or "-",
        "server": client.base_url,
        "profile": profile_name,
        "bucket": profile.bucket,
        "default_folder": profile.default_folder or "-",
    }

    print_output(
        output,
        format=ctx.output_format,
        column_labels={
            "user_id": "User ID",
            "email": "Email",
            "server": "Server",
            "profile": "Profile",
            "bucket": "Bucket",
            "default_folder": "Default Folder",
        },
    )


@cli.group()
def health() -> None:
    """Server health and connectivity checks."""
    pass


async def _ping(client: StashClient) -> dict[str, Any]:
    async with client:
        return await client.ping()


@health.command("ping")
@global_options
@handle_errors
def health_ping(ctx: Context) -> None:
    """Check server connectivity."""
    client = ctx.get_client()
    result = asyncio.run(_ping(client))
    result["authenticated"] = client.is_authenticated

    if ctx.output_format == OutputFormat.JSON:
        print_output(result, format=OutputFormat.JSON)
        return

    print_success(f"Server reachable: {result['url']}")
    print_output(
        {
            "status": result["status"],
            "version": result["version"],
            "latency": f"{result['latency_ms']}ms",
            "authenticated": result["authenticated"],
        },
        format=OutputFormat.TABLE,
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
