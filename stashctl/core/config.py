"""Configuration management for stashctl.

Supports YAML profiles and environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from stashctl.core.exceptions import ConfigurationError, ProfileNotFoundError, ValidationError
from stashctl.core.timeouts import DEFAULT_HTTP_TIMEOUT_SECONDS
from stashctl.core.validation import validate_timeout

# =============================================================================
# Constants
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "stashctl"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_BUCKET = "user-files"
DEFAULT_MAX_IMAGE_DIMENSION = 1920
DEFAULT_MAX_IMAGE_SIZE_MB = 1.0

# Environment variable names
ENV_URL = "STASH_URL"
ENV_API_KEY = "STASH_API_KEY"
ENV_BUCKET = "STASH_BUCKET"
ENV_EMAIL = "STASH_EMAIL"
ENV_PASSWORD = "STASH_PASSWORD"
ENV_TOKEN = "STASH_TOKEN"
ENV_PROFILE = "STASH_PROFILE"
ENV_VERIFY_SSL = "STASH_VERIFY_SSL"
ENV_TIMEOUT = "STASH_TIMEOUT"


# =============================================================================
# Profile
# =============================================================================


@dataclass
class Profile:
    """Configuration profile for a Stash backend."""

    url: str
    api_key: Optional[str] = None
    bucket: str = DEFAULT_BUCKET
    verify_ssl: bool = True
    timeout: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    default_folder: Optional[str] = None
    compress_images: bool = True
    max_image_dimension: int = DEFAULT_MAX_IMAGE_DIMENSION
    max_image_size_mb: float = DEFAULT_MAX_IMAGE_SIZE_MB

    @property
    def max_image_size_bytes(self) -> int:
        return int(self.max_image_size_mb * 1024 * 1024)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "url": self.url,
            "bucket": self.bucket,
            "verify_ssl": self.verify_ssl,
            "timeout": self.timeout,
            "default_folder": self.default_folder,
            "compress_images": self.compress_images,
            "max_image_dimension": self.max_image_dimension,
            "max_image_size_mb": self.max_image_size_mb,
        }
        if self.api_key is not None:
            data["api_key"] = self.api_key
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from dictionary."""
        return cls(
            url=data.get("url", ""),
            api_key=data.get("api_key"),
            bucket=data.get("bucket", DEFAULT_BUCKET),
            verify_ssl=data.get("verify_ssl", True),
            timeout=data.get("timeout", DEFAULT_HTTP_TIMEOUT_SECONDS),
            default_folder=data.get("default_folder"),
            compress_images=data.get("compress_images", True),
            max_image_dimension=data.get("max_image_dimension", DEFAULT_MAX_IMAGE_DIMENSION),
            max_image_size_mb=data.get("max_image_size_mb", DEFAULT_MAX_IMAGE_SIZE_MB),
        )


# =============================================================================
# Config
# =============================================================================


@dataclass
class Config:
    """Application configuration."""

    default_profile: str = "default"
    output_format: str = "table"
    profiles: dict[str, Profile] = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load config from file with environment variable overrides.

        Priority (highest to lowest):
        1. Environment variables
        2. Config file
        3. Defaults

        Args:
            config_path: Optional path to config file.

        Returns:
            Loaded configuration.
        """
        path = config_path or CONFIG_FILE
        config = cls()

        if path.exists():
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

                config.default_profile = data.get("default_profile", "default")
                config.output_format = data.get("output_format", "table")

                for name, pdata in (data.get("profiles") or {}).items():
                    config.profiles[name] = Profile.from_dict(pdata or {})
            except Exception as e:
                raise ConfigurationError(f"Failed to load config: {e}") from e

        # Environment variable overrides
        if url := os.getenv(ENV_URL):
            verify_ssl = os.getenv(ENV_VERIFY_SSL, "true").lower() in ("true", "1", "yes")
            timeout_raw = os.getenv(ENV_TIMEOUT, str(DEFAULT_HTTP_TIMEOUT_SECONDS))
            try:
                timeout = validate_timeout(int(timeout_raw))
            except (ValueError, ValidationError) as e:
                raise ConfigurationError(
                    "Invalid timeout in environment", field=ENV_TIMEOUT, value=timeout_raw
                ) from e

            config.profiles["default"] = Profile(
                url=url,
                api_key=os.getenv(ENV_API_KEY),
                bucket=os.getenv(ENV_BUCKET, DEFAULT_BUCKET),
                verify_ssl=verify_ssl,
                timeout=timeout,
            )
        elif api_key := os.getenv(ENV_API_KEY):
            for profile in config.profiles.values():
                if profile.api_key is None:
                    profile.api_key = api_key

        if profile_name := os.getenv(ENV_PROFILE):
            config.default_profile = profile_name

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save config to file.

        Args:
            config_path: Optional path to config file.
        """
        path = config_path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "default_profile": self.default_profile,
            "output_format": self.output_format,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def get_profile(self, name: Optional[str] = None) -> Profile:
        """Get profile by name or default.

        Args:
            name: Profile name. If None, uses default_profile.

        Returns:
            Profile configuration.

        Raises:
            ProfileNotFoundError: If profile doesn't exist.
        """
        name = name or self.default_profile
        if name not in self.profiles:
            raise ProfileNotFoundError(name)
        return self.profiles[name]

    def has_profile(self, name: str) -> bool:
        """Check if profile exists."""
        return name in self.profiles

    def add_profile(
        self,
        name: str,
        url: str,
        api_key: Optional[str] = None,
        bucket: str = DEFAULT_BUCKET,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_HTTP_TIMEOUT_SECONDS,
        default_folder: Optional[str] = None,
    ) -> Profile:
        """Add or update a profile.

        Args:
            name: Profile name.
            url: Backend URL.
            api_key: Public API key sent with every request.
            bucket: Storage bucket for uploads.
            verify_ssl: Whether to verify SSL certificates.
            timeout: Request timeout in seconds.
            default_folder: Folder ID used when none is given.

        Returns:
            Created profile.
        """
        profile = Profile(
            url=url,
            api_key=api_key,
            bucket=bucket,
            verify_ssl=verify_ssl,
            timeout=timeout,
            default_folder=default_folder,
        )
        self.profiles[name] = profile
        return profile

    def remove_profile(self, name: str) -> bool:
        """Remove a profile.

        Returns:
            True if removed, False if didn't exist.
        """
        if name in self.profiles:
            del self.profiles[name]
            return True
        return False

    def set_default_profile(self, name: str) -> None:
        """Set the default profile.

        Raises:
            ProfileNotFoundError: If profile doesn't exist.
        """
        if name not in self.profiles:
            raise ProfileNotFoundError(name)
        self.default_profile = name


def get_credentials() -> tuple[Optional[str], Optional[str]]:
    """Get sign-in credentials from environment variables.

    Returns:
        Tuple of (email, password) from environment.
    """
    return os.getenv(ENV_EMAIL), os.getenv(ENV_PASSWORD)


def get_token() -> Optional[str]:
    """Get access token from environment variable."""
    return os.getenv(ENV_TOKEN)
