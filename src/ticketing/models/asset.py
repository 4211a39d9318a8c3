"""
Asset (media object) models.

Requests and results exchanged with the asset store. Results are explicit
value types so callers can tell "nothing there" apart from "the call failed".
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_UPLOAD_FOLDER = 'event-images'


class BucketState(str, Enum):
    """Provisioning state of the backing bucket as last observed."""

    UNKNOWN = 'unknown'
    EXISTS = 'exists'
    ABSENT = 'absent'
    PROVISIONING = 'provisioning'
    PROVISIONING_FAILED = 'provisioning_failed'


class UploadRequest(BaseModel):
    """Request for a presigned upload URL."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: Annotated[str, Field(
        min_length=1,
        alias='fileName',
        description='Original file name, or a full object key when it contains "/"',
        examples=['poster.PNG', 'event-images/custom-key.jpg']
    )]

    content_type: Annotated[str, Field(
        min_length=1,
        alias='contentType',
        description='MIME type the upload must be sent with',
        examples=['image/png']
    )]

    folder: Annotated[Optional[str], Field(
        default=None,
        description='Key prefix for synthesized keys; defaults to event-images'
    )] = None

    expires_in: Annotated[Optional[int], Field(
        default=None,
        alias='expiresIn',
        ge=1,
        le=604800,
        description='URL lifetime in seconds; the store default applies when omitted'
    )] = None

    @field_validator('folder')
    @classmethod
    def strip_folder_slashes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip('/') or None


class UploadAuthorization(BaseModel):
    """Upload authorization contract: either a signed URL or a failure."""

    success: bool
    url: Optional[str] = None
    key: Optional[str] = None
    bucket: Optional[str] = None
    error: Optional[str] = None
    message: str

    @classmethod
    def failure(cls, error: str) -> 'UploadAuthorization':
        return cls(success=False, error=error, message='Failed to generate presigned URL')


class StoredObject(BaseModel):
    """Metadata of one object in the bucket."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None


class ObjectListing(BaseModel):
    """Result of a best-effort listing; ``error`` is set when the call failed."""

    objects: List[StoredObject] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def keys(self) -> List[str]:
        return [obj.key for obj in self.objects]


class StoreResult(BaseModel):
    """Result of a best-effort mutation; truthy only when it succeeded."""

    success: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success
