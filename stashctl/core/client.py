"""Async HTTP client for the Stash backend.

Covers the auth, REST and object storage endpoints used by stashctl, with
retry logic for idempotent reads and bearer-token authentication.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from stashctl.core.exceptions import (
    AuthenticationError,
    ConnectionError,
    MetadataError,
    NetworkError,
    PermissionDeniedError,
    RetryExhaustedError,
    ServerUnreachableError,
    SessionExpiredError,
    TimeoutError,
    UploadError,
)
from stashctl.core.timeouts import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_UPLOAD_TIMEOUT_SECONDS
from stashctl.core.validation import validate_server_url
from stashctl.models.base import AuthSession, FileRecord, Identity

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_TIMEOUT = DEFAULT_HTTP_TIMEOUT_SECONDS
DEFAULT_MAX_RETRIES = 3
DEFAULT_BUCKET = "user-files"
RETRY_BACKOFF_BASE = 2
RETRYABLE_STATUS_CODES = {502, 503, 504}

FILES_TABLE = "files"
SETTINGS_TABLE = "system_settings"
UPLOAD_CACHE_CONTROL = "3600"


def error_message(resp: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value

    text = resp.text.strip()
    return text or f"HTTP {resp.status_code}"


# =============================================================================
# StashClient
# =============================================================================


@dataclass
class StashClient:
    """Async HTTP client for the Stash auth, REST and storage APIs."""

    base_url: str
    api_key: str | None = None
    access_token: str | None = None
    bucket: str = DEFAULT_BUCKET
    timeout: int = DEFAULT_TIMEOUT
    upload_timeout: int = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    verify_ssl: bool = True
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    _client: httpx.AsyncClient | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.base_url = validate_server_url(self.base_url)

    # =========================================================================
    # Client Management
    # =========================================================================

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify_ssl,
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> StashClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Request Plumbing
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        """Check if client has an access token."""
        return self.access_token is not None

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = self.access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        retry: bool = True,
    ) -> httpx.Response:
        """Execute HTTP request, retrying transient failures when allowed.

        Args:
            method: HTTP method.
            path: API path.
            params: Query parameters.
            json: JSON body.
            content: Raw body.
            headers: Additional headers.
            timeout: Request timeout override.
            retry: Whether transient failures are retried. Writes pass False.

        Returns:
            HTTP response with a 2xx status.

        Raises:
            SessionExpiredError: On 401 with an access token.
            AuthenticationError: On 401 without one.
            PermissionDeniedError: On 403.
            httpx.HTTPStatusError: On other non-2xx statuses.
            ConnectionError: On network failures (RetryExhaustedError once
                retries are used up).
        """
        client = self._get_client()
        request_timeout = timeout or self.timeout
        attempts = self.max_retries + 1 if retry else 1
        last_error: ConnectionError | None = None

        for attempt in range(attempts):
            try:
                resp = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    content=content,
                    headers=self._headers(headers),
                    timeout=request_timeout,
                )
            except httpx.ConnectError:
                last_error = ServerUnreachableError(self.base_url)
            except httpx.TimeoutException:
                last_error = TimeoutError(self.base_url, request_timeout)
            except httpx.TransportError as e:
                last_error = NetworkError(self.base_url, str(e))
            else:
                if resp.status_code == 401:
                    if self.access_token:
                        raise SessionExpiredError(self.base_url)
                    raise AuthenticationError(self.base_url, error_message(resp))
                if resp.status_code == 403:
                    raise PermissionDeniedError(path, method.lower())

                if resp.status_code in RETRYABLE_STATUS_CODES:
                    last_error = NetworkError(self.base_url, f"HTTP {resp.status_code}")
                    if attempt + 1 >= attempts:
                        resp.raise_for_status()
                else:
                    resp.raise_for_status()
                    return resp

            if attempt + 1 < attempts:
                delay = RETRY_BACKOFF_BASE ** (attempt + 1)
                logger.warning(
                    "%s %s: %s on attempt %d/%d, retrying in %ds",
                    method,
                    path,
                    last_error,
                    attempt + 1,
                    attempts,
                    delay,
                )
                await asyncio.sleep(delay)

        if not retry and last_error is not None:
            raise last_error
        raise RetryExhaustedError(f"{method} {path}", attempts, last_error)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email/password and keep the access token.

        Raises:
            AuthenticationError: If the credentials are rejected.
        """
        try:
            resp = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                retry=False,
            )
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(self.base_url, error_message(e.response)) from e

        session = AuthSession.model_validate(resp.json())
        self.access_token = session.access_token
        return session

    async def sign_out(self) -> None:
        """Revoke the access token on the server and forget it locally."""
        if not self.access_token:
            return
        try:
            await self._request("POST", "/auth/v1/logout", retry=False)
        except (AuthenticationError, ConnectionError, httpx.HTTPStatusError) as e:
            logger.debug("Server-side sign-out failed: %s", e)
        finally:
            self.access_token = None

    async def get_user(self) -> Identity | None:
        """Look up the user behind the access token.

        Returns:
            Identity, or None when there is no valid session.
        """
        if not self.access_token:
            return None
        try:
            resp = await self._request("GET", "/auth/v1/user")
        except AuthenticationError:
            return None
        return Identity.model_validate(resp.json())

    # =========================================================================
    # Storage and Records
    # =========================================================================

    async def upload_object(
        self,
        path: str,
        payload: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """Store a blob in the bucket. Never overwrites an existing object.

        Raises:
            UploadError: If the object store rejects the upload or the
                connection fails.
        """
        url = f"/storage/v1/object/{quote(self.bucket)}/{quote(path)}"
        try:
            await self._request(
                "POST",
                url,
                content=payload,
                headers={
                    "Content-Type": content_type,
                    "Cache-Control": f"max-age={UPLOAD_CACHE_CONTROL}",
                    "x-upsert": "false",
                },
                timeout=self.upload_timeout,
                retry=False,
            )
        except httpx.HTTPStatusError as e:
            raise UploadError(error_message(e.response), path) from e
        except ConnectionError as e:
            raise UploadError(e.message, path) from e

        logger.debug("Stored %d bytes at %s/%s", len(payload), self.bucket, path)

    async def insert_file_record(self, record: FileRecord) -> None:
        """Insert a row describing an uploaded blob.

        Raises:
            MetadataError: If the insert is rejected or the connection fails.
        """
        try:
            await self._request(
                "POST",
                f"/rest/v1/{FILES_TABLE}",
                json=record.to_insert(),
                headers={"Prefer": "return=minimal"},
                retry=False,
            )
        except httpx.HTTPStatusError as e:
            raise MetadataError(error_message(e.response), record.storage_path) from e
        except ConnectionError as e:
            raise MetadataError(e.message, record.storage_path) from e

    # =========================================================================
    # Site Settings
    # =========================================================================

    async def get_setting(self, key: str) -> dict[str, Any] | None:
        """Read one ``system_settings`` value.

        Returns:
            The value object, or None if the key is missing or not an object.
        """
        resp = await self._request(
            "GET",
            f"/rest/v1/{SETTINGS_TABLE}",
            params={"select": "value", "key": f"eq.{key}"},
        )
        rows = resp.json()
        if not rows:
            return None
        value = rows[0].get("value")
        return value if isinstance(value, dict) else None

    async def has_role(self, user_id: str, role: str) -> bool:
        """Ask the backend whether a user holds a role."""
        resp = await self._request(
            "POST",
            "/rest/v1/rpc/has_role",
            json={"_user_id": user_id, "_role": role},
        )
        return bool(resp.json())

    # =========================================================================
    # Convenience Methods
    # =========================================================================

    async def ping(self) -> dict[str, Any]:
        """Check server connectivity and get auth service info.

        Raises:
            ConnectionError: If server is unreachable.
        """
        start = time.monotonic()
        resp = await self._request("GET", "/auth/v1/health")
        latency = int((time.monotonic() - start) * 1000)

        try:
            info = resp.json()
        except ValueError:
            info = {}

        return {
            "url": self.base_url,
            "status": "ok",
            "version": info.get("version", "unknown") if isinstance(info, dict) else "unknown",
            "latency_ms": latency,
        }
