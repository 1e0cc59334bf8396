"""Shared timeout defaults for stashctl HTTP traffic."""

# Metadata, auth and settings requests
DEFAULT_HTTP_TIMEOUT_SECONDS = 30

# Blob uploads (large files on slow links)
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 60 * 60
