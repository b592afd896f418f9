"""Domain layer: errors and schemas."""

from .errors import ErrorCodes, ServeError
from .schemas import (
    Configuration,
    DirectoryEntry,
    ListingPayload,
    ServingInfo,
    Theme,
    UpdateStatus,
)

__all__ = [
    "ErrorCodes",
    "ServeError",
    "Configuration",
    "DirectoryEntry",
    "ListingPayload",
    "ServingInfo",
    "Theme",
    "UpdateStatus",
]
