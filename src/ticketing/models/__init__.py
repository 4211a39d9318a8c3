"""
Ticketing Models Package

Pydantic models for events, media assets, caller identity and configuration.
"""

from .asset import (
    BucketState,
    ObjectListing,
    StoredObject,
    StoreResult,
    UploadAuthorization,
    UploadRequest,
)
from .event import (
    BatchResult,
    Event,
    EventCreate,
    EventFilters,
    EventPatch,
    EventStatistics,
    EventStatus,
)
from .identity import CallerIdentity, UserRole

__all__ = [
    # Event models
    "Event",
    "EventCreate",
    "EventPatch",
    "EventFilters",
    "EventStatistics",
    "EventStatus",
    "BatchResult",

    # Asset models
    "UploadRequest",
    "UploadAuthorization",
    "StoredObject",
    "ObjectListing",
    "StoreResult",
    "BucketState",

    # Identity
    "CallerIdentity",
    "UserRole",
]
