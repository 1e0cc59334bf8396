"""Tests for CLI common helpers."""

from __future__ import annotations

from typing import Any, cast
from unittest.mock import AsyncMock, MagicMock, patch

import click
import pytest

from stashctl.cli.common import Context, ExitCode, handle_errors, require_auth
from stashctl.core.config import Config, Profile
from stashctl.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    PermissionDeniedError,
    UploadError,
)
from stashctl.models.base import AuthSession, Identity


def _protected_command(ctx: Context) -> str:
    return "ok"


class FakeClient:
    base_url = "https://stash.example.org"

    def __init__(self, access_token: str | None = None) -> None:
        self.access_token = access_token

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None


def _context(client: FakeClient) -> Context:
    ctx = Context()
    ctx.config = Config(profiles={"default": Profile(url="https://stash.example.org")})
    ctx.client = cast(Any, client)
    ctx.auth_manager = MagicMock()
    return ctx


def test_require_auth_passes_through_with_cached_token():
    ctx = _context(FakeClient(access_token="cached"))

    assert require_auth(_protected_command)(ctx) == "ok"
    ctx.auth_manager.save_session.assert_not_called()


def test_require_auth_signs_in_from_env(monkeypatch):
    monkeypatch.setenv("STASH_EMAIL", "me@example.com")
    monkeypatch.setenv("STASH_PASSWORD", "secret")
    ctx = _context(FakeClient())
    session = AuthSession(access_token="new-token", expires_in=600, user=Identity(id="u1"))

    with patch("stashctl.cli.common.sign_in", new=AsyncMock(return_value=session)) as mock_sign_in:
        result = require_auth(_protected_command)(ctx)

    assert result == "ok"
    mock_sign_in.assert_awaited_once_with(ctx.client, "me@example.com", "secret")
    ctx.auth_manager.save_session.assert_called_once_with(
        token="new-token",
        url="https://stash.example.org",
        user_id="u1",
        email="me@example.com",
        expires_in=600,
    )


def test_require_auth_raises_without_credentials(monkeypatch):
    monkeypatch.delenv("STASH_EMAIL", raising=False)
    monkeypatch.delenv("STASH_PASSWORD", raising=False)
    ctx = _context(FakeClient())

    with pytest.raises(click.ClickException, match="Not authenticated"):
        require_auth(_protected_command)(ctx)


def test_require_auth_reports_failed_sign_in(monkeypatch):
    monkeypatch.setenv("STASH_EMAIL", "me@example.com")
    monkeypatch.setenv("STASH_PASSWORD", "wrong")
    ctx = _context(FakeClient())
    failure = AsyncMock(side_effect=AuthenticationError("https://stash.example.org", "Invalid login credentials"))

    with patch("stashctl.cli.common.sign_in", new=failure):
        with pytest.raises(click.ClickException, match="Invalid login credentials"):
            require_auth(_protected_command)(ctx)
    ctx.auth_manager.save_session.assert_not_called()


def test_get_profile_missing_raises_configuration_error():
    ctx = Context()
    ctx.config = Config(profiles={"default": Profile(url="https://stash.example.org")})
    ctx.profile_name = "staging"

    with pytest.raises(ConfigurationError, match="config init"):
        ctx.get_profile()


def test_get_client_uses_cached_token():
    ctx = Context()
    ctx.config = Config(
        profiles={"default": Profile(url="https://stash.example.org", api_key="anon", bucket="media")}
    )
    ctx.auth_manager = MagicMock()
    ctx.auth_manager.get_session_token.return_value = "cached-token"

    client = ctx.get_client()

    assert client.access_token == "cached-token"
    assert client.bucket == "media"
    assert ctx.get_client() is client
    ctx.auth_manager.get_session_token.assert_called_once_with("https://stash.example.org")


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (PermissionDeniedError("files", "insert"), ExitCode.PERMISSION_ERROR),
        (AuthenticationError("https://stash.example.org"), ExitCode.AUTH_ERROR),
        (NetworkError("https://stash.example.org", "refused"), ExitCode.NETWORK_ERROR),
        (UploadError("rejected"), ExitCode.GENERAL_ERROR),
        (RuntimeError("boom"), ExitCode.GENERAL_ERROR),
    ],
)
def test_handle_errors_exit_codes(error: Exception, code: int):
    @handle_errors
    def command() -> None:
        raise error

    with pytest.raises(SystemExit) as exc_info:
        command()
    assert exc_info.value.code == code


def test_handle_errors_reraises_click_exceptions():
    @handle_errors
    def command() -> None:
        raise click.ClickException("usage")

    with pytest.raises(click.ClickException):
        command()
