"""Shared constants for the upload queue.

The estimator constants describe a deliberately conservative throughput so
the displayed progress rarely outruns the real transfer.
"""

# =============================================================================
# Progress Estimation
# =============================================================================

# Seconds between progress ticks while a transfer is in flight
DEFAULT_TICK_INTERVAL = 0.2

# Assumed minimum throughput (bytes/s) used to extrapolate progress
DEFAULT_THROUGHPUT_FLOOR = 500 * 1024

# Shortest expected transfer, so tiny files still show movement
MIN_EXPECTED_DURATION = 2.0

# Estimated progress never claims completion before the transport resolves
MAX_ESTIMATED_PERCENT = 95.0

# =============================================================================
# Image Compression
# =============================================================================

# Longest edge (px) after downscaling
DEFAULT_MAX_IMAGE_DIMENSION = 1920

# Target encoded size
DEFAULT_MAX_IMAGE_SIZE_BYTES = 1024 * 1024

# Starting and lowest quality for lossy re-encoding
DEFAULT_IMAGE_QUALITY = 85
MIN_IMAGE_QUALITY = 40
IMAGE_QUALITY_STEP = 10

# Pillow format names per media type; other image types pass through
COMPRESSIBLE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

LOSSY_FORMATS = {"JPEG", "WEBP"}

# =============================================================================
# Storage Paths
# =============================================================================

# Hex characters of randomness appended to the timestamp in object names
STORAGE_SUFFIX_LENGTH = 8

DEFAULT_MIME_TYPE = "application/octet-stream"
