"""
Data Access Layer (DAL) for the ticketing core.

This module exposes the DynamoDB event store, the S3 asset store and a
factory wiring both to one set of AWS client handles.
"""

from typing import Optional, Tuple

from ticketing.dal.asset_store import AssetStore
from ticketing.dal.clients import AwsClients
from ticketing.dal.event_store import EventStore, UtcClock
from ticketing.models.env_vars import TicketingEnvVars, get_ticketing_env_vars
from ticketing.utils.observability import logger


def build_stores(env: Optional[TicketingEnvVars] = None) -> Tuple[EventStore, AssetStore]:
    """
    Build both stores from environment configuration and apply its log level.

    Args:
        env: Typed environment variables, read from the process environment if omitted

    Returns:
        Tuple of (EventStore, AssetStore) sharing one ``AwsClients``
    """
    env = env or get_ticketing_env_vars()
    logger.setLevel(env.LOG_LEVEL)
    clients = AwsClients.from_env(env)
    event_store = EventStore(
        clients,
        table_name=env.EVENTS_TABLE,
        max_workers=env.BATCH_MAX_WORKERS,
        use_indexes=env.secondary_indexes_enabled,
        default_image_url=env.DEFAULT_EVENT_IMAGE,
    )
    asset_store = AssetStore(
        clients,
        bucket_name=env.S3_BUCKET_NAME,
        public_endpoint=env.public_asset_endpoint,
        default_image_url=env.DEFAULT_EVENT_IMAGE,
        upload_expires_in=env.UPLOAD_URL_EXPIRES_SECONDS,
    )
    return event_store, asset_store


__all__ = [
    'AssetStore',
    'AwsClients',
    'EventStore',
    'UtcClock',
    'build_stores',
]
