"""Authentication management for stashctl.

Handles credential lookup and access token caching.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from stashctl.core.config import CONFIG_DIR, ENV_EMAIL, ENV_PASSWORD, ENV_TOKEN

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SESSION_CACHE_FILE = CONFIG_DIR / ".session"
DEFAULT_SESSION_SECONDS = 60 * 60


# =============================================================================
# Session Cache
# =============================================================================


@dataclass
class CachedSession:
    """Cached access token with metadata."""

    token: str
    url: str
    user_id: str
    email: str
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self) -> bool:
        """Check if session has expired."""
        if self.expires_at:
            return datetime.now() >= self.expires_at
        return False

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "url": self.url,
            "user_id": self.user_id,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CachedSession:
        return cls(
            token=data["token"],
            url=data["url"],
            user_id=data["user_id"],
            email=data.get("email", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=(
                datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None
            ),
        )


# =============================================================================
# AuthManager
# =============================================================================


class AuthManager:
    """Manages authentication credentials and access tokens."""

    def __init__(self, cache_file: Path | None = None):
        """Initialize auth manager.

        Args:
            cache_file: Path to session cache file.
        """
        self.cache_file = cache_file or SESSION_CACHE_FILE

    # =========================================================================
    # Credential Access
    # =========================================================================

    def get_credentials(self) -> tuple[str | None, str | None]:
        """Get (email, password) from environment variables."""
        return os.getenv(ENV_EMAIL), os.getenv(ENV_PASSWORD)

    def get_token_from_env(self) -> str | None:
        return os.getenv(ENV_TOKEN)

    # =========================================================================
    # Session Cache
    # =========================================================================

    def save_session(
        self,
        token: str,
        url: str,
        user_id: str,
        email: str = "",
        expires_in: int = DEFAULT_SESSION_SECONDS,
    ) -> CachedSession:
        """Save access token to cache.

        Args:
            token: Access token (bearer).
            url: Backend URL.
            user_id: Authenticated user ID.
            email: Email used to sign in.
            expires_in: Seconds until the token expires.

        Returns:
            Cached session object.
        """
        now = datetime.now()
        session = CachedSession(
            token=token,
            url=url,
            user_id=user_id,
            email=email,
            created_at=now,
            expires_at=now + timedelta(seconds=expires_in),
        )

        self.cache_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.cache_file, "w") as f:
            json.dump(session.to_dict(), f)

        # Owner read/write only
        try:
            os.chmod(self.cache_file, 0o600)
        except OSError as e:
            logger.debug("Could not restrict permissions on %s: %s", self.cache_file, e)

        return session

    def load_session(self, url: str | None = None) -> CachedSession | None:
        """Load cached session.

        Args:
            url: Optional URL to match. If provided, only returns session for that URL.

        Returns:
            Cached session if valid, None otherwise.
        """
        if not self.cache_file.exists():
            return None

        try:
            with open(self.cache_file) as f:
                data = json.load(f)

            session = CachedSession.from_dict(data)

            if url and session.url != url:
                return None

            if session.is_expired():
                self.clear_session()
                return None

            return session

        except (json.JSONDecodeError, KeyError, ValueError):
            logger.warning("Discarding unreadable session cache %s", self.cache_file)
            self.clear_session()
            return None

    def clear_session(self) -> bool:
        """Clear cached session.

        Returns:
            True if cache was cleared.
        """
        if self.cache_file.exists():
            try:
                self.cache_file.unlink()
                return True
            except OSError as e:
                logger.warning("Could not remove session cache: %s", e)
        return False

    def has_valid_session(self, url: str | None = None) -> bool:
        return self.load_session(url) is not None

    # =========================================================================
    # Convenience Methods
    # =========================================================================

    def get_session_token(self, url: str | None = None) -> str | None:
        """Get access token from environment or cache.

        Priority:
        1. Environment variable (STASH_TOKEN)
        2. Cached session

        Args:
            url: Optional URL to match for cached session.

        Returns:
            Access token if available.
        """
        if token := self.get_token_from_env():
            return token

        if session := self.load_session(url):
            return session.token

        return None

    def get_session_info(self, url: str | None = None) -> dict | None:
        """Get session information for display."""
        session = self.load_session(url)
        if not session:
            return None

        return {
            "url": session.url,
            "user_id": session.user_id,
            "email": session.email,
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat() if session.expires_at else None,
            "is_expired": session.is_expired(),
        }
