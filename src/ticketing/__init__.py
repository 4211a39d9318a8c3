"""
Event Ticketing Core.

Persistence layer of an event-ticketing platform:

- dal: DynamoDB event store and S3 asset store
- models: Data models and configuration
- security: Bearer token verification for caller identity
- utils: Observability and error taxonomy

Page rendering, HTTP routing and token issuance live in the calling layers.
"""

__version__ = "1.0.0"
__description__ = "Event ticketing persistence core on DynamoDB and S3"

# Re-export commonly used classes for convenience
from ticketing.dal import AssetStore, AwsClients, EventStore, build_stores
from ticketing.models.event import Event, EventFilters, EventPatch, EventStatus
from ticketing.utils.observability import logger, metrics, tracer

__all__ = [
    "AssetStore",
    "AwsClients",
    "EventStore",
    "build_stores",
    "Event",
    "EventFilters",
    "EventPatch",
    "EventStatus",
    "logger",
    "tracer",
    "metrics",
]
