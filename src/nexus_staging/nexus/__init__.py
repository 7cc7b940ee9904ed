"""Nexus staging REST API client."""

from nexus_staging.nexus.client import (
    DEFAULT_SERVER_URL,
    TRANSIENT_STATUS_CODES,
    NexusClient,
    is_transient_error,
)

__all__ = [
    "DEFAULT_SERVER_URL",
    "TRANSIENT_STATUS_CODES",
    "NexusClient",
    "is_transient_error",
]
