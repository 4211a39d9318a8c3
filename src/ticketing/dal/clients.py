"""
Long-lived AWS client handles.

One ``AwsClients`` is built at process start and handed to every store, so
there is no module-level client and tests can substitute their own handles.
"""

import threading
from typing import Any, Optional

import boto3
from botocore.config import Config

from ticketing.models.env_vars import TicketingEnvVars
from ticketing.utils.observability import logger


class AwsClients:
    """DynamoDB resource and S3 client sharing one boto3 session."""

    def __init__(
        self,
        region_name: str = 'us-east-1',
        endpoint_url: Optional[str] = None,
        session: Optional[boto3.session.Session] = None,
    ) -> None:
        """
        Initialize the client handles.

        Args:
            region_name: AWS region name
            endpoint_url: Endpoint override for both services (LocalStack, tests)
            session: Pre-built boto3 session, a fresh one is created when omitted
        """
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self.session = session or boto3.session.Session(region_name=region_name)
        self._session_lock = threading.Lock()

        client_kwargs: dict[str, Any] = {}
        if endpoint_url:
            client_kwargs['endpoint_url'] = endpoint_url
        self._client_kwargs = client_kwargs

        self.dynamodb = self.session.resource('dynamodb', **client_kwargs)
        # Path-style addressing and SigV4 so presigned URLs work against custom endpoints
        self.s3 = self.session.client(
            's3',
            config=Config(signature_version='s3v4', s3={'addressing_style': 'path'}),
            **client_kwargs,
        )

        logger.debug('AWS clients initialized', extra={
            'region_name': region_name,
            'endpoint_url': endpoint_url,
        })

    def new_dynamodb_resource(self) -> Any:
        """
        DynamoDB resource on a fresh session, for use by one worker thread.

        boto3 sessions and resources must not be shared between threads; the
        new session reuses this one's credentials and region.
        """
        with self._session_lock:
            credentials = self.session.get_credentials()
            frozen = credentials.get_frozen_credentials() if credentials else None
            session = boto3.session.Session(
                aws_access_key_id=frozen.access_key if frozen else None,
                aws_secret_access_key=frozen.secret_key if frozen else None,
                aws_session_token=frozen.token if frozen else None,
                region_name=self.region_name,
            )
        return session.resource('dynamodb', **self._client_kwargs)

    @classmethod
    def from_env(cls, env: TicketingEnvVars) -> 'AwsClients':
        return cls(region_name=env.AWS_REGION, endpoint_url=env.AWS_ENDPOINT)
