"""
S3 implementation of the asset store.

Issues presigned upload URLs for event media, derives public object URLs and
provisions the backing bucket (existence, public-read policy, CORS). Every
public operation is fail-soft: failures come back as ``False`` or as a result
value carrying an error, never as an exception.
"""

import json
import threading
import time
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from ticketing.dal.clients import AwsClients
from ticketing.models.asset import (
    DEFAULT_UPLOAD_FOLDER,
    BucketState,
    ObjectListing,
    StoredObject,
    StoreResult,
    UploadAuthorization,
    UploadRequest,
)
from ticketing.models.env_vars import DEFAULT_EVENT_IMAGE
from ticketing.utils.errors import ProvisioningError
from ticketing.utils.observability import add_metric, logger, tracer

BUCKET_NOT_FOUND_CODES = {'404', 'NoSuchBucket', 'NotFound'}

CORS_CONFIGURATION = {
    'CORSRules': [
        {
            'AllowedHeaders': ['*'],
            'AllowedMethods': ['PUT', 'POST', 'GET', 'DELETE'],
            'AllowedOrigins': ['*'],
            'ExposeHeaders': ['ETag'],
            'MaxAgeSeconds': 3000,
        },
    ],
}


def bucket_policy(bucket_name: str) -> Dict[str, Any]:
    """Public read on every object; public PUT only with the public-read ACL header."""
    resource = f'arn:aws:s3:::{bucket_name}/*'
    return {
        'Version': '2012-10-17',
        'Statement': [
            {
                'Sid': 'PublicReadGetObject',
                'Effect': 'Allow',
                'Principal': '*',
                'Action': ['s3:GetObject'],
                'Resource': [resource],
            },
            {
                'Sid': 'AllowUploads',
                'Effect': 'Allow',
                'Principal': '*',
                'Action': ['s3:PutObject'],
                'Resource': [resource],
                'Condition': {'StringEquals': {'s3:x-amz-acl': 'public-read'}},
            },
        ],
    }


def file_extension(file_name: str, default: str = 'jpg') -> str:
    """Lowercased suffix after the last dot, or ``default`` when there is none."""
    base_name = file_name.rsplit('/', 1)[-1]
    if '.' not in base_name:
        return default
    extension = base_name.rsplit('.', 1)[-1].strip().lower()
    return extension or default


def generate_unique_key(file_name: str, folder: Optional[str] = None) -> str:
    """Object key ``{folder}/{epochMillis}-{randomToken}.{ext}``."""
    timestamp = int(time.time() * 1000)
    token = uuid4().hex[:13]
    return f'{folder or DEFAULT_UPLOAD_FOLDER}/{timestamp}-{token}.{file_extension(file_name)}'


class AssetStore:
    """Event media objects in one S3 bucket."""

    def __init__(
        self,
        clients: AwsClients,
        bucket_name: str = 'event-images',
        public_endpoint: Optional[str] = None,
        default_image_url: str = DEFAULT_EVENT_IMAGE,
        upload_expires_in: int = 3600,
    ) -> None:
        """
        Initialize the asset store.

        Args:
            clients: Shared AWS client handles
            bucket_name: Name of the S3 bucket
            public_endpoint: Base URL for public object URLs; defaults to the
                client endpoint, then to the regional S3 endpoint
            default_image_url: URL returned for an empty object key
            upload_expires_in: Presigned URL lifetime when a request names none
        """
        self.s3 = clients.s3
        self.region_name = clients.region_name
        self.bucket_name = bucket_name
        self.public_endpoint = (
            public_endpoint or clients.endpoint_url or f'https://s3.{clients.region_name}.amazonaws.com'
        ).rstrip('/')
        self.default_image_url = default_image_url
        self.upload_expires_in = upload_expires_in
        self.bucket_state = BucketState.UNKNOWN
        self._provision_lock = threading.Lock()

        logger.debug(f'Asset store initialized for bucket: {bucket_name}')

    @tracer.capture_method
    def issue_upload_authorization(self, request: Union[UploadRequest, Dict[str, Any]]) -> UploadAuthorization:
        """
        Issue a presigned PUT URL for one object.

        A file name containing "/" is used verbatim as the key; otherwise a
        unique key is generated under the requested folder. The URL is only
        valid for a PUT with the declared content type and expires after
        ``expires_in`` seconds.

        Args:
            request: Upload request, or a raw payload validated into one

        Returns:
            Successful authorization with url/key/bucket, or a failure with
            an error message
        """
        try:
            upload = request if isinstance(request, UploadRequest) else UploadRequest.model_validate(request)
        except ValidationError as e:
            logger.warning('Invalid upload request', extra={'error': str(e)})
            return UploadAuthorization.failure(f'Invalid upload request: {e.error_count()} validation error(s)')

        expires_in = upload.expires_in or self.upload_expires_in
        key = upload.file_name if '/' in upload.file_name else generate_unique_key(upload.file_name, upload.folder)

        try:
            url = self.s3.generate_presigned_url(
                ClientMethod='put_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key,
                    'ContentType': upload.content_type,
                    'ACL': 'public-read',
                },
                ExpiresIn=expires_in,
                HttpMethod='PUT',
            )
        except (ClientError, BotoCoreError) as e:
            add_metric(name='UploadAuthorizationError', unit=MetricUnit.Count, value=1)
            logger.error('Failed to generate presigned URL', extra={
                'error': str(e),
                'bucket': self.bucket_name,
                'key': key,
            })
            return UploadAuthorization.failure(str(e) or 'Failed to generate upload URL')

        add_metric(name='UploadAuthorizationIssued', unit=MetricUnit.Count, value=1)
        logger.info('Presigned upload URL issued', extra={
            'bucket': self.bucket_name,
            'key': key,
            'content_type': upload.content_type,
            'expires_in': expires_in,
        })
        return UploadAuthorization(
            success=True,
            url=url,
            key=key,
            bucket=self.bucket_name,
            message='Presigned URL generated successfully',
        )

    def public_url(self, key: Optional[str]) -> str:
        """Public path-style URL of an object, or the placeholder image for an empty key."""
        if not key:
            return self.default_image_url
        return f'{self.public_endpoint}/{self.bucket_name}/{key.lstrip("/")}'

    @tracer.capture_method
    def ensure_bucket_exists(self) -> bool:
        """
        Make sure the bucket exists, provisioning it when absent.

        Provisioning creates the bucket, then applies the public-read policy
        and the CORS rules. Calls are serialized, so concurrent callers
        provision at most once; an existing bucket short-circuits everything.

        Returns:
            True if the bucket exists afterwards, False on any failure
        """
        with self._provision_lock:
            try:
                exists = self._bucket_exists()
            except (ClientError, BotoCoreError) as e:
                self.bucket_state = BucketState.UNKNOWN
                logger.error('Error checking bucket', extra={'bucket': self.bucket_name, 'error': str(e)})
                return False

            if exists:
                self.bucket_state = BucketState.EXISTS
                return True

            self.bucket_state = BucketState.ABSENT
            logger.info(f'Bucket {self.bucket_name} not found, provisioning')
            try:
                self._provision_bucket()
            except ProvisioningError as e:
                self.bucket_state = BucketState.PROVISIONING_FAILED
                add_metric(name='BucketProvisioningFailed', unit=MetricUnit.Count, value=1)
                logger.error('Failed to provision bucket', extra={
                    'bucket': self.bucket_name,
                    'step': e.step,
                    'error_code': e.error_code,
                    'error': e.message,
                })
                return False

            self.bucket_state = BucketState.EXISTS
            add_metric(name='BucketProvisioned', unit=MetricUnit.Count, value=1)
            logger.info(f'Bucket {self.bucket_name} provisioned')
            return True

    @tracer.capture_method
    def list_objects(self, prefix: str = '') -> ObjectListing:
        """
        List objects under a prefix.

        Returns:
            Listing of object metadata; on failure an empty listing whose
            ``error`` is set
        """
        objects = []
        try:
            paginator = self.s3.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for content in page.get('Contents', []):
                    objects.append(StoredObject(
                        key=content['Key'],
                        size=content.get('Size', 0),
                        last_modified=content.get('LastModified'),
                        etag=content.get('ETag'),
                        storage_class=content.get('StorageClass'),
                    ))
        except (ClientError, BotoCoreError) as e:
            logger.warning('Failed to list objects', extra={
                'bucket': self.bucket_name,
                'prefix': prefix,
                'error': str(e),
            })
            return ObjectListing(error=str(e))

        logger.debug(f'Listed {len(objects)} objects', extra={'prefix': prefix})
        return ObjectListing(objects=objects)

    @tracer.capture_method
    def delete_object(self, key: str) -> StoreResult:
        """
        Delete one object.

        Returns:
            Result that is truthy on success and carries the error otherwise
        """
        if not key:
            return StoreResult(success=False, error='Object key is required')

        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.warning('Failed to delete object', extra={
                'bucket': self.bucket_name,
                'key': key,
                'error': str(e),
            })
            return StoreResult(success=False, error=str(e))

        logger.info(f'Deleted object: {key}')
        return StoreResult(success=True)

    @tracer.capture_method
    def test_connection(self) -> bool:
        """
        Liveness probe against S3; also provisions the bucket if needed.

        Returns:
            True if S3 answered and the bucket is ready, False otherwise
        """
        try:
            self.s3.list_buckets()
        except (ClientError, BotoCoreError) as e:
            logger.error('S3 connection test failed', extra={'error': str(e)})
            return False

        if not self.ensure_bucket_exists():
            logger.warning(f'S3 reachable but bucket {self.bucket_name} is not ready')
            return False
        return True

    def _bucket_exists(self) -> bool:
        try:
            self.s3.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            if e.response['Error']['Code'] in BUCKET_NOT_FOUND_CODES:
                return False
            raise
        return True

    def _provision_bucket(self) -> None:
        """
        Create the bucket, then apply policy and CORS.

        Raises:
            ProvisioningError: Naming the step that failed
        """
        self.bucket_state = BucketState.PROVISIONING
        steps = (
            ('create', self._create_bucket),
            ('policy', self._configure_bucket_policy),
            ('cors', self._configure_bucket_cors),
        )
        for step, run in steps:
            try:
                run()
            except (ClientError, BotoCoreError) as e:
                raise ProvisioningError(bucket_name=self.bucket_name, step=step, reason=str(e)) from e

    def _create_bucket(self) -> None:
        create_kwargs: Dict[str, Any] = {'Bucket': self.bucket_name}
        if self.region_name != 'us-east-1':
            create_kwargs['CreateBucketConfiguration'] = {'LocationConstraint': self.region_name}
        self.s3.create_bucket(**create_kwargs)

    def _configure_bucket_policy(self) -> None:
        self.s3.put_bucket_policy(Bucket=self.bucket_name, Policy=json.dumps(bucket_policy(self.bucket_name)))

    def _configure_bucket_cors(self) -> None:
        self.s3.put_bucket_cors(Bucket=self.bucket_name, CORSConfiguration=CORS_CONFIGURATION)
