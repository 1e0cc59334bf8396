"""Common CLI utilities, decorators, and helpers."""

from __future__ import annotations

import asyncio
import sys
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import click

from stashctl.core.auth import AuthManager
from stashctl.core.client import StashClient
from stashctl.core.config import Config, Profile, get_credentials
from stashctl.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionError,
    PermissionDeniedError,
    ProfileNotFoundError,
    StashCtlError,
)
from stashctl.core.logging import setup_logging
from stashctl.core.output import OutputFormat, print_error
from stashctl.models.base import AuthSession

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# Context Object
# =============================================================================


class Context:
    """CLI context object passed to commands."""

    def __init__(self) -> None:
        self.config: Optional[Config] = None
        self.client: Optional[StashClient] = None
        self.profile_name: Optional[str] = None
        self.output_format: OutputFormat = OutputFormat.TABLE
        self.quiet: bool = False
        self.verbose: bool = False
        self.auth_manager: AuthManager = AuthManager()

    def get_profile(self) -> Profile:
        """Get the selected profile.

        Raises:
            ConfigurationError: If the profile is not configured.
        """
        if self.config is None:
            self.config = Config.load()

        try:
            return self.config.get_profile(self.profile_name)
        except ProfileNotFoundError as e:
            raise ConfigurationError(
                f"Profile '{self.profile_name or self.config.default_profile}' not found. "
                "Run 'stashctl config init' to create one."
            ) from e

    def get_client(self) -> StashClient:
        """Get or create a client for the selected profile.

        The client carries the cached access token when one exists.

        Raises:
            ConfigurationError: If no profile configured.
        """
        if self.client is not None:
            return self.client

        profile = self.get_profile()
        self.client = StashClient(
            base_url=profile.url,
            api_key=profile.api_key,
            access_token=self.auth_manager.get_session_token(profile.url),
            bucket=profile.bucket,
            timeout=profile.timeout,
            verify_ssl=profile.verify_ssl,
        )
        return self.client


pass_context = click.make_pass_decorator(Context, ensure=True)


async def sign_in(client: StashClient, email: str, password: str) -> AuthSession:
    """Sign in and release the connection pool before the loop closes."""
    async with client:
        return await client.sign_in(email, password)


# =============================================================================
# Global Options
# =============================================================================


def global_options(f: F) -> F:
    """Add global options to a command."""

    @click.option(
        "--profile",
        "-p",
        envvar="STASH_PROFILE",
        help="Config profile to use",
    )
    @click.option(
        "--output",
        "-o",
        "output_format",
        type=click.Choice(["json", "table"]),
        default="table",
        help="Output format",
    )
    @click.option(
        "--quiet",
        "-q",
        is_flag=True,
        help="Minimal output",
    )
    @click.option(
        "--verbose",
        "-v",
        is_flag=True,
        help="Enable verbose output",
    )
    @pass_context
    @wraps(f)
    def wrapper(
        ctx: Context,
        profile: Optional[str],
        output_format: str,
        quiet: bool,
        verbose: bool,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Populate context from global options and invoke the command."""
        ctx.profile_name = profile
        ctx.output_format = OutputFormat.from_string(output_format)
        ctx.quiet = quiet
        ctx.verbose = verbose

        setup_logging(quiet=quiet, verbose=verbose)

        if ctx.config is None:
            ctx.config = Config.load()

        return f(ctx, *args, **kwargs)

    return wrapper  # type: ignore


# =============================================================================
# Authentication Decorators
# =============================================================================


def require_auth(f: F) -> F:
    """Ensure user is authenticated before running command."""

    @wraps(f)
    def wrapper(ctx: Context, *args: Any, **kwargs: Any) -> Any:
        """Sign in from environment credentials when no token is cached."""
        client = ctx.get_client()

        if not client.is_authenticated:
            email, password = get_credentials()
            if not (email and password):
                raise click.ClickException(
                    "Not authenticated. Run 'stashctl auth login' or set STASH_EMAIL/STASH_PASSWORD."
                )
            try:
                session = asyncio.run(sign_in(client, email, password))
            except AuthenticationError as e:
                raise click.ClickException(str(e)) from e

            ctx.auth_manager.save_session(
                token=session.access_token,
                url=client.base_url,
                user_id=session.user.id,
                email=email,
                expires_in=session.expires_in,
            )

        return f(ctx, *args, **kwargs)

    return wrapper  # type: ignore


# =============================================================================
# Error Handling
# =============================================================================


def handle_errors(f: F) -> F:
    """Handle common errors and convert to CLI exceptions."""

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        """Capture errors and exit with consistent messaging."""
        try:
            return f(*args, **kwargs)
        except PermissionDeniedError as e:
            print_error(str(e))
            sys.exit(ExitCode.PERMISSION_ERROR)
        except AuthenticationError as e:
            print_error(str(e))
            sys.exit(ExitCode.AUTH_ERROR)
        except ConnectionError as e:
            print_error(str(e))
            sys.exit(ExitCode.NETWORK_ERROR)
        except StashCtlError as e:
            print_error(str(e))
            sys.exit(ExitCode.GENERAL_ERROR)
        except click.ClickException:
            raise
        except Exception as e:
            print_error(f"Unexpected error: {e}")
            sys.exit(ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore


# =============================================================================
# Exit Codes
# =============================================================================


class ExitCode:
    """Standard exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 2
    NETWORK_ERROR = 3
    PERMISSION_ERROR = 4
    USER_CANCELLED = 5
