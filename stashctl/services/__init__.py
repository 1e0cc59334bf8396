"""Service layer for Stash operations.

Provides service classes that encapsulate Stash backend operations.
"""

from __future__ import annotations

from .base import BaseService
from .site import SiteService
from .uploads import UploadService

__all__ = [
    "BaseService",
    "SiteService",
    "UploadService",
]
