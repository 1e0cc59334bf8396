"""Authentication commands for stashctl."""

from __future__ import annotations

import asyncio

import click

from stashctl.cli.common import sign_in
from stashctl.core.auth import AuthManager
from stashctl.core.client import StashClient
from stashctl.core.config import Config
from stashctl.core.exceptions import (
    AuthenticationError,
    ConnectionError,
    ProfileNotFoundError,
    ValidationError,
)
from stashctl.core.output import (
    print_error,
    print_json,
    print_key_value,
    print_success,
    print_warning,
)
from stashctl.core.validation import validate_email


@click.group()
def auth() -> None:
    """Manage authentication credentials."""
    pass


@auth.command("login")
@click.option("--profile", "-p", "profile_name", help="Profile to authenticate")
@click.option("--email", "-e", help="Account email")
@click.option("--password", help="Password (will prompt if not provided)")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
def auth_login(
    profile_name: str | None,
    email: str | None,
    password: str | None,
    output: str,
) -> None:
    """Sign in and cache the access token.

    Credentials come from options, then environment variables
    (STASH_EMAIL, STASH_PASSWORD), then a prompt.

    Example:
        stashctl auth login
        stashctl auth login --profile staging
        stashctl auth login -e me@example.com
    """
    config = Config.load()
    auth_mgr = AuthManager()

    try:
        profile = config.get_profile(profile_name)
    except ProfileNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    env_email, env_password = auth_mgr.get_credentials()
    user = email or env_email
    pwd = password or env_password

    if not user:
        user = click.prompt("Email")

    try:
        user = validate_email(user)
    except ValidationError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    if not pwd:
        pwd = click.prompt("Password", hide_input=True)

    click.echo(f"Signing in to {profile.url}...")

    client = StashClient(
        base_url=profile.url,
        api_key=profile.api_key,
        verify_ssl=profile.verify_ssl,
        timeout=profile.timeout,
    )

    try:
        session = asyncio.run(sign_in(client, user, pwd))
    except (AuthenticationError, ConnectionError) as e:
        print_error(f"Authentication failed: {e}")
        raise SystemExit(1) from e

    signed_in_as = session.user.email or user
    cached = auth_mgr.save_session(
        token=session.access_token,
        url=profile.url,
        user_id=session.user.id,
        email=signed_in_as,
        expires_in=session.expires_in,
    )

    if output == "json":
        print_json(
            {
                "status": "authenticated",
                "user_id": session.user.id,
                "email": signed_in_as,
                "url": profile.url,
                "expires_at": cached.expires_at.isoformat() if cached.expires_at else None,
            }
        )
    else:
        print_success(f"Logged in as {signed_in_as}")
        click.echo(f"Session cached until {cached.expires_at}")


async def _sign_out(client: StashClient) -> None:
    async with client:
        await client.sign_out()


@auth.command("logout")
@click.option("--profile", "-p", "profile_name", help="Profile to logout")
def auth_logout(profile_name: str | None) -> None:
    """Revoke and clear the cached session.

    Example:
        stashctl auth logout
        stashctl auth logout --profile staging
    """
    config = Config.load()
    auth_mgr = AuthManager()

    try:
        profile = config.get_profile(profile_name)
    except ProfileNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    session = auth_mgr.load_session(profile.url)
    if session:
        client = StashClient(
            base_url=profile.url,
            api_key=profile.api_key,
            access_token=session.token,
            verify_ssl=profile.verify_ssl,
        )
        asyncio.run(_sign_out(client))

    if auth_mgr.clear_session():
        print_success("Logged out")
    else:
        print_warning("No cached session found")


@auth.command("status")
@click.option("--profile", "-p", "profile_name", help="Profile to check")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
def auth_status(profile_name: str | None, output: str) -> None:
    """Check authentication status.

    Example:
        stashctl auth status
        stashctl auth status --profile staging
    """
    config = Config.load()
    auth_mgr = AuthManager()

    try:
        profile = config.get_profile(profile_name)
    except ProfileNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    session_info = auth_mgr.get_session_info(profile.url)
    env_email, env_password = auth_mgr.get_credentials()
    env_token = auth_mgr.get_token_from_env()

    status = {
        "url": profile.url,
        "env_email": env_email or "(not set)",
        "env_password": "(set)" if env_password else "(not set)",
        "env_token": "(set)" if env_token else "(not set)",
        "session_cached": session_info is not None,
    }

    if session_info:
        status.update(
            {
                "session_user": session_info["user_id"],
                "session_email": session_info["email"],
                "session_created": session_info["created_at"],
                "session_expires": session_info["expires_at"],
                "session_expired": session_info["is_expired"],
            }
        )

    if output == "json":
        print_json(status)
    else:
        print_key_value(status, title=f"Auth Status: {profile_name or config.default_profile}")
