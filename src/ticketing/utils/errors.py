"""
Error taxonomy for the ticketing persistence layer.

Every error raised by the stores derives from ``BaseServiceError`` so a calling
layer can log it, map it to an HTTP status and render a generic user message
without knowing which backing service failed.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Throttling codes get a retry hint; nothing in this package retries on its own.
THROTTLING_ERROR_CODES = {
    'ProvisionedThroughputExceededException': 60,
    'ThrottlingException': 30,
    'RequestLimitExceeded': 30,
    'SlowDown': 30,
}


class ErrorSeverity(str, Enum):
    """Error severity levels for classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    VALIDATION = "VALIDATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    SECURITY = "SECURITY"


class ErrorContext(BaseModel):
    """Context information for errors."""

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique request identifier")
    user_id: Optional[str] = Field(default=None, description="Caller identifier if available")
    operation: str = Field(description="Operation being performed")
    resource_id: Optional[str] = Field(default=None, description="Resource identifier")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class BaseServiceError(Exception):
    """Base exception class for service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC,
        context: Optional[ErrorContext] = None,
        retry_after: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context
        self.retry_after = retry_after
        self.user_message = user_message or "The operation failed. Please try again."
        self.error_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging and response."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "retry_after": self.retry_after,
            "context": self.context.model_dump() if self.context else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ResourceNotFoundError(BaseServiceError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        context: Optional[ErrorContext] = None,
    ):
        message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.BUSINESS_LOGIC,
            context=context,
            user_message=f"The requested {resource_type.lower()} was not found.",
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class EventNotFoundError(ResourceNotFoundError):
    """Raised by callers that prefer an exception over the store's ``None``."""

    def __init__(self, event_id: str, context: Optional[ErrorContext] = None):
        super().__init__(resource_type="Event", resource_id=event_id, context=context)


class StorageUnavailableError(BaseServiceError):
    """The backing store rejected a call: network, throttling or permissions."""

    def __init__(
        self,
        message: str,
        operation: str,
        resource_name: str,
        aws_error_code: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message=message,
            error_code="STORAGE_UNAVAILABLE",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.INFRASTRUCTURE,
            context=context,
            retry_after=THROTTLING_ERROR_CODES.get(aws_error_code or ''),
            user_message="A storage error occurred. Please try again later.",
        )
        self.operation = operation
        self.resource_name = resource_name
        self.aws_error_code = aws_error_code


class ProvisioningError(BaseServiceError):
    """A bucket create, policy or CORS step failed."""

    def __init__(self, bucket_name: str, step: str, reason: str):
        super().__init__(
            message=f"Provisioning step '{step}' failed for bucket {bucket_name}: {reason}",
            error_code="PROVISIONING_FAILURE",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.INFRASTRUCTURE,
        )
        self.bucket_name = bucket_name
        self.step = step


class TicketCapacityError(BaseServiceError):
    """A write would leave ``ticketsSold`` above ``totalTickets``."""

    def __init__(
        self,
        event_id: Optional[str] = None,
        tickets_sold: Optional[int] = None,
        total_tickets: Optional[int] = None,
        context: Optional[ErrorContext] = None,
    ):
        target = f"event {event_id}" if event_id else "event"
        super().__init__(
            message=f"ticketsSold ({tickets_sold}) exceeds totalTickets ({total_tickets}) for {target}",
            error_code="TICKET_CAPACITY_EXCEEDED",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            context=context,
        )
        self.event_id = event_id
        self.tickets_sold = tickets_sold
        self.total_tickets = total_tickets


def create_error_context(
    operation: str,
    resource_id: Optional[str] = None,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **additional_data: Any,
) -> ErrorContext:
    """Context for a failed store operation; a request id is generated when the caller has none."""
    if request_id:
        additional_fields = {"request_id": request_id}
    else:
        additional_fields = {}
    return ErrorContext(
        operation=operation,
        resource_id=resource_id,
        user_id=user_id,
        additional_data=additional_data,
        **additional_fields,
    )


def format_error_response(
    error: BaseServiceError,
    include_details: bool = False,
) -> Dict[str, Any]:
    """Format error for an API response body."""

    response = {
        "success": False,
        "error": {
            "code": error.error_code,
            "message": error.user_message,
            "error_id": error.error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }

    if error.retry_after:
        response["retry_after"] = error.retry_after

    if include_details and error.context:
        response["error"]["details"] = {
            "operation": error.context.operation,
            "resource_id": error.context.resource_id,
        }

    return response


def get_http_status_code(error: BaseServiceError) -> int:
    """Get appropriate HTTP status code for error."""

    status_mapping = {
        "RESOURCE_NOT_FOUND": 404,
        "TICKET_CAPACITY_EXCEEDED": 422,
        "STORAGE_UNAVAILABLE": 503,
        "PROVISIONING_FAILURE": 502,
    }

    return status_mapping.get(error.error_code, 500)
