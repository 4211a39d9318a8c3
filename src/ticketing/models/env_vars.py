"""
Environment variable models for type-safe configuration.

This module defines the Pydantic model for the environment variables the
ticketing stores read at process start.
"""

from typing import Annotated, Optional

from aws_lambda_env_modeler import BaseModel as BaseEnvModel, get_environment_variables
from pydantic import Field

DEFAULT_EVENT_IMAGE = 'https://images.unsplash.com/photo-1501281668745-f6f2612e4e71?w=800'


class TicketingEnvVars(BaseEnvModel):
    """Environment variables for the event and asset stores."""

    # DynamoDB table holding Event records
    EVENTS_TABLE: Annotated[str, Field(
        default='Events',
        description='DynamoDB table name for event storage',
        min_length=1
    )] = 'Events'

    # S3 bucket holding event media
    S3_BUCKET_NAME: Annotated[str, Field(
        default='event-images',
        description='S3 bucket name for event images',
        min_length=3,
        max_length=63
    )] = 'event-images'

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region for service deployment'
    )] = 'us-east-1'

    # Custom endpoint, e.g. http://localhost:4566 for LocalStack
    AWS_ENDPOINT: Annotated[Optional[str], Field(
        default=None,
        description='Endpoint URL override for DynamoDB and S3'
    )] = None

    PUBLIC_ASSET_ENDPOINT: Annotated[Optional[str], Field(
        default=None,
        description='Base URL used to build public object URLs'
    )] = None

    DEFAULT_EVENT_IMAGE: Annotated[str, Field(
        default=DEFAULT_EVENT_IMAGE,
        description='Placeholder image URL for events without an uploaded image'
    )] = DEFAULT_EVENT_IMAGE

    UPLOAD_URL_EXPIRES_SECONDS: Annotated[int, Field(
        default=3600,
        description='Default lifetime of presigned upload URLs in seconds',
        ge=1,
        le=604800
    )] = 3600

    BATCH_MAX_WORKERS: Annotated[int, Field(
        default=10,
        description='Thread pool size for batch fan-out',
        ge=1,
        le=100
    )] = 10

    USE_SECONDARY_INDEXES: Annotated[str, Field(
        default='true',
        description='Query status/category/userId indexes instead of scanning (true/false)',
        pattern=r'^(true|false)$'
    )] = 'true'

    # Shared secret for the bearer token verifier
    JWT_SECRET: Annotated[Optional[str], Field(
        default=None,
        description='HMAC secret used to verify caller bearer tokens'
    )] = None

    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='event-ticketing',
        description='Service name for AWS Powertools'
    )] = 'event-ticketing'

    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    @property
    def secondary_indexes_enabled(self) -> bool:
        """Check if index queries are enabled for filtered listings."""
        return self.USE_SECONDARY_INDEXES.lower() == 'true'

    @property
    def public_asset_endpoint(self) -> str:
        """Base URL for public object URLs, path-style."""
        if self.PUBLIC_ASSET_ENDPOINT:
            return self.PUBLIC_ASSET_ENDPOINT.rstrip('/')
        if self.AWS_ENDPOINT:
            return self.AWS_ENDPOINT.rstrip('/')
        return f'https://s3.{self.AWS_REGION}.amazonaws.com'


def get_ticketing_env_vars() -> TicketingEnvVars:
    """
    Get typed environment variables for the ticketing stores.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=TicketingEnvVars)
