"""Pytest configuration and fixtures for stashctl tests."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from PIL import Image


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_yaml() -> str:
    """Sample config YAML content."""
    return """
default_profile: test
output_format: table

profiles:
  test:
    url: https://stash-test.example.org
    api_key: anon-test-key
    bucket: test-files
    verify_ssl: false
    timeout: 30
    default_folder: 6f1c2b0e-6f0a-4c53-9a57-3a3f3c1a2b10
    compress_images: false

  production:
    url: https://stash.example.org
    verify_ssl: true
    timeout: 60
    max_image_dimension: 1280
    max_image_size_mb: 0.5
"""


@pytest.fixture
def make_image_bytes():
    """Factory for encoded noise images (noise keeps encoders from shrinking them)."""

    def _make(size: tuple[int, int] = (64, 48), fmt: str = "JPEG", mode: str = "RGB") -> bytes:
        img = Image.effect_noise(size, 80).convert(mode)
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        return buf.getvalue()

    return _make
