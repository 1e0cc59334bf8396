"""Config commands for stashctl."""

from __future__ import annotations

from typing import Optional

import click

from stashctl.core.config import CONFIG_FILE, DEFAULT_BUCKET, Config
from stashctl.core.exceptions import ValidationError
from stashctl.core.output import OutputFormat, print_error, print_key_value, print_output, print_success
from stashctl.core.validation import validate_folder_id, validate_server_url, validate_timeout


def _validated(url: str, folder: Optional[str]) -> tuple[str, Optional[str]]:
    try:
        url = validate_server_url(url)
        if folder:
            folder = validate_folder_id(folder)
    except ValidationError as e:
        print_error(str(e))
        raise SystemExit(1) from e
    return url, folder


@click.group()
def config() -> None:
    """Manage stashctl configuration."""
    pass


@config.command("init")
@click.option("--url", prompt="Stash backend URL", help="Stash backend URL")
@click.option("--api-key", default=None, help="Public API key")
@click.option("--profile", default="default", help="Profile name")
@click.option("--bucket", default=DEFAULT_BUCKET, show_default=True, help="Storage bucket")
@click.option("--folder", default=None, help="Default folder ID for uploads")
@click.option("--force", is_flag=True, help="Overwrite existing config")
def config_init(
    url: str,
    api_key: Optional[str],
    profile: str,
    bucket: str,
    folder: Optional[str],
    force: bool,
) -> None:
    """Create configuration file with a new profile.

    Example:
        stashctl config init --url https://abc.stash.example.com --api-key KEY
    """
    url, folder = _validated(url, folder)

    if CONFIG_FILE.exists() and not force:
        cfg = Config.load()
        if cfg.has_profile(profile):
            print_error(f"Profile '{profile}' already exists. Use --force to overwrite.")
            raise SystemExit(1)
    else:
        cfg = Config()

    cfg.add_profile(
        name=profile,
        url=url,
        api_key=api_key,
        bucket=bucket,
        default_folder=folder,
    )

    if len(cfg.profiles) == 1:
        cfg.default_profile = profile

    cfg.save()

    print_success(f"Configuration saved to {CONFIG_FILE}")
    print_key_value(
        {
            "profile": profile,
            "url": url,
            "bucket": bucket,
            "default_folder": folder or "-",
        }
    )


@config.command("show")
@click.option("--output", "-o", type=click.Choice(["json", "table"]), default="table")
def config_show(output: str) -> None:
    """Show current configuration."""
    cfg = Config.load()

    if not cfg.profiles:
        print_error("No configuration found. Run 'stashctl config init' first.")
        raise SystemExit(1)

    data = {
        "config_file": str(CONFIG_FILE),
        "default_profile": cfg.default_profile,
        "output_format": cfg.output_format,
        "profiles": list(cfg.profiles.keys()),
    }

    if output == "json":
        data["profile_details"] = {
            name: {k: v for k, v in p.to_dict().items() if k != "api_key"}
            for name, p in cfg.profiles.items()
        }
        print_output(data, format=OutputFormat.JSON)
        return

    print_key_value(data, title="Configuration")
    click.echo()
    for name, profile in cfg.profiles.items():
        marker = " (default)" if name == cfg.default_profile else ""
        click.echo(f"Profile: {name}{marker}")
        print_key_value(
            {
                "url": profile.url,
                "api_key": "(set)" if profile.api_key else "(not set)",
                "bucket": profile.bucket,
                "verify_ssl": profile.verify_ssl,
                "timeout": f"{profile.timeout}s",
                "default_folder": profile.default_folder or "-",
                "compress_images": profile.compress_images,
            },
        )
        click.echo()


@config.command("use-context")
@click.argument("profile")
def config_use_context(profile: str) -> None:
    """Switch the active profile.

    Example:
        stashctl config use-context production
    """
    cfg = Config.load()

    if not cfg.has_profile(profile):
        print_error(f"Profile '{profile}' not found.")
        click.echo(f"Available profiles: {', '.join(cfg.profiles.keys())}")
        raise SystemExit(1)

    cfg.set_default_profile(profile)
    cfg.save()

    print_success(f"Switched to profile '{profile}'")


@config.command("current-context")
def config_current_context() -> None:
    """Show the current active profile."""
    cfg = Config.load()

    if not cfg.profiles:
        print_error("No configuration found.")
        raise SystemExit(1)

    click.echo(cfg.default_profile)


@config.command("add-profile")
@click.argument("name")
@click.option("--url", required=True, help="Stash backend URL")
@click.option("--api-key", default=None, help="Public API key")
@click.option("--bucket", default=DEFAULT_BUCKET, show_default=True, help="Storage bucket")
@click.option("--folder", default=None, help="Default folder ID for uploads")
@click.option("--timeout", type=int, default=30, help="Request timeout in seconds")
@click.option("--no-verify-ssl", is_flag=True, help="Disable SSL verification")
def config_add_profile(
    name: str,
    url: str,
    api_key: Optional[str],
    bucket: str,
    folder: Optional[str],
    timeout: int,
    no_verify_ssl: bool,
) -> None:
    """Add a new profile.

    Example:
        stashctl config add-profile dev --url https://dev.stash.example.com
    """
    url, folder = _validated(url, folder)
    try:
        timeout = validate_timeout(timeout)
    except ValidationError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    cfg = Config.load()

    if cfg.has_profile(name):
        print_error(f"Profile '{name}' already exists.")
        raise SystemExit(1)

    cfg.add_profile(
        name=name,
        url=url,
        api_key=api_key,
        bucket=bucket,
        default_folder=folder,
        timeout=timeout,
        verify_ssl=not no_verify_ssl,
    )
    cfg.save()

    print_success(f"Profile '{name}' added")


@config.command("remove-profile")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def config_remove_profile(name: str, yes: bool) -> None:
    """Remove a profile.

    Example:
        stashctl config remove-profile dev
    """
    cfg = Config.load()

    if not cfg.has_profile(name):
        print_error(f"Profile '{name}' not found.")
        raise SystemExit(1)

    if name == cfg.default_profile:
        print_error("Cannot remove the default profile. Switch to another profile first.")
        raise SystemExit(1)

    if not yes:
        click.confirm(f"Remove profile '{name}'?", abort=True)

    cfg.remove_profile(name)
    cfg.save()

    print_success(f"Profile '{name}' removed")
