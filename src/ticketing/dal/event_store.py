"""
DynamoDB implementation of the event store.

This module owns the authoritative representation of Event records: creation,
point lookup, filtered listing, partial update, fan-out batch mutation and
aggregate statistics. Store failures surface as ``StorageUnavailableError``;
absent records surface as ``None``/``False``.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from functools import reduce, wraps
from typing import Any, Callable, Dict, List, Optional, Union

from aws_lambda_powertools.metrics import MetricUnit
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from ticketing.dal.clients import AwsClients
from ticketing.models.env_vars import DEFAULT_EVENT_IMAGE
from ticketing.models.event import (
    BatchResult,
    Event,
    EventCreate,
    EventFilters,
    EventPatch,
    EventStatistics,
    EventStatus,
    generate_event_id,
)
from ticketing.utils.errors import BaseServiceError, StorageUnavailableError, TicketCapacityError, create_error_context
from ticketing.utils.observability import add_metric, logger, tracer

# Secondary indexes by partition attribute, in query priority order
INDEX_BY_ATTRIBUTE = {
    'userId': 'UserIdIndex',
    'status': 'StatusIndex',
    'category': 'CategoryIndex',
}

# Codes DynamoDB answers with when a query names an index the table lacks
MISSING_INDEX_ERROR_CODES = {'ValidationException', 'ResourceNotFoundException'}


def handle_dynamodb_errors(operation: str) -> Callable:
    """Decorator translating boto errors into ``StorageUnavailableError`` and recording metrics."""

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            operation_start = time.time()
            add_metric(name=f"DynamoDB{operation}Count", unit=MetricUnit.Count, value=1)
            resource_id = args[0] if args and isinstance(args[0], str) else None

            try:
                result = func(self, *args, **kwargs)

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error'].get('Message', str(e))

                add_metric(name=f"DynamoDB{operation}Error", unit=MetricUnit.Count, value=1)
                logger.error(f"DynamoDB {operation} error", extra={
                    "error_code": error_code,
                    "error_message": error_message,
                    "table_name": self.table_name,
                    "operation": operation,
                })
                raise StorageUnavailableError(
                    message=f"DynamoDB error: {error_message}",
                    operation=operation,
                    resource_name=self.table_name,
                    aws_error_code=error_code,
                    context=create_error_context(operation, resource_id=resource_id, table_name=self.table_name),
                ) from e

            except BotoCoreError as e:
                add_metric(name=f"DynamoDB{operation}Error", unit=MetricUnit.Count, value=1)
                logger.error(f"DynamoDB connection error during {operation}", extra={
                    "error": str(e),
                    "table_name": self.table_name,
                })
                raise StorageUnavailableError(
                    message=f"Database connection error: {e}",
                    operation=operation,
                    resource_name=self.table_name,
                    context=create_error_context(operation, resource_id=resource_id, table_name=self.table_name),
                ) from e

            duration_ms = (time.time() - operation_start) * 1000
            add_metric(name=f"DynamoDB{operation}Duration", unit=MetricUnit.Milliseconds, value=duration_ms)
            tracer.put_annotation("dynamodb_operation", operation)
            return result

        return wrapper
    return decorator


def _is_conditional_check_failure(error: ClientError) -> bool:
    return error.response['Error']['Code'] == 'ConditionalCheckFailedException'


def _to_dynamodb_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Enum):
        return value.value
    return value


def _from_dynamodb_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class UtcClock:
    """ISO-8601 UTC timestamps, strictly increasing within one instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: Optional[datetime] = None

    def now_iso(self) -> str:
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now.isoformat(timespec='microseconds')


class EventStore:
    """Event records in a DynamoDB table keyed by ``eventId``."""

    def __init__(
        self,
        clients: AwsClients,
        table_name: str = 'Events',
        max_workers: int = 10,
        use_indexes: bool = True,
        default_image_url: str = DEFAULT_EVENT_IMAGE,
        clock: Optional[UtcClock] = None,
    ) -> None:
        """
        Initialize the event store.

        Args:
            clients: Shared AWS client handles
            table_name: Name of the DynamoDB table
            max_workers: Thread pool size for batch fan-out
            use_indexes: Query the status/category/userId indexes for filtered listings
            default_image_url: Image URL stored when an event is created without one
            clock: Timestamp source, mainly for tests
        """
        self.table_name = table_name
        self._clients = clients
        # One Table handle per thread; the constructing thread reuses the shared resource
        self._local = threading.local()
        self._local.table = clients.dynamodb.Table(table_name)
        self.max_workers = max_workers
        self.use_indexes = use_indexes
        self.default_image_url = default_image_url
        self.clock = clock or UtcClock()

        logger.debug(f'Event store initialized for table: {table_name}')

    @property
    def table(self) -> Any:
        """The Events table handle owned by the calling thread."""
        table = getattr(self._local, 'table', None)
        if table is None:
            table = self._clients.new_dynamodb_resource().Table(self.table_name)
            self._local.table = table
        return table

    @tracer.capture_method
    @handle_dynamodb_errors("CreateEvent")
    def create_event(self, data: Union[EventCreate, Dict[str, Any]]) -> Event:
        """
        Create a new event with a generated id and audit timestamps.

        Args:
            data: Event fields without id or timestamps

        Returns:
            The stored Event

        Raises:
            TicketCapacityError: If ticketsSold exceeds totalTickets
            StorageUnavailableError: If DynamoDB rejects the write
        """
        request = data if isinstance(data, EventCreate) else EventCreate.model_validate(data)
        self._check_capacity(None, request.tickets_sold, request.total_tickets)

        now = self.clock.now_iso()
        event = Event(
            **request.model_dump(exclude={'image_url'}),
            event_id=generate_event_id(),
            image_url=request.image_url or self.default_image_url,
            created_at=now,
            updated_at=now,
        )

        self.table.put_item(
            Item=self._event_to_item(event),
            ConditionExpression=Attr('eventId').not_exists(),
        )

        logger.info(f'Successfully created event: {event.event_id}', extra={
            'user_id': event.user_id,
            'status': event.status.value,
        })
        tracer.put_annotation('event_created', event.event_id)
        return event

    @tracer.capture_method
    @handle_dynamodb_errors("GetEvent")
    def get_event_by_id(self, event_id: str) -> Optional[Event]:
        """
        Retrieve an event by its id.

        Returns:
            Event if found, None otherwise
        """
        item = self._get_item(event_id)
        if item is None:
            logger.info(f'Event not found: {event_id}')
            return None
        return self._item_to_event(item)

    @tracer.capture_method
    @handle_dynamodb_errors("ListEvents")
    def list_events(self, filters: Union[EventFilters, Dict[str, Any], None] = None) -> List[Event]:
        """
        List events, newest first.

        Equality filters on status, category and userId are evaluated by
        DynamoDB; the search term is matched afterwards against title,
        organizer, location and city.

        Args:
            filters: Optional listing filters

        Returns:
            Matching events sorted by createdAt descending
        """
        filters = self._coerce_filters(filters)
        items = self._fetch_items(filters.equality_predicates())

        events = []
        for item in items:
            try:
                events.append(self._item_to_event(item))
            except ValueError as e:
                logger.warning(f'Failed to parse event item: {e}', extra={'event_id': item.get('eventId')})

        if filters.search:
            events = [event for event in events if event.matches_search(filters.search)]

        events.sort(key=lambda event: event.created_at_datetime(), reverse=True)
        if filters.limit:
            events = events[:filters.limit]

        logger.info(f'Listed {len(events)} events', extra={
            'filters': filters.model_dump(exclude_none=True, mode='json'),
        })
        tracer.put_annotation('events_listed', len(events))
        return events

    @tracer.capture_method
    @handle_dynamodb_errors("UpdateEvent")
    def update_event(self, event_id: str, data: Union[EventPatch, Dict[str, Any]]) -> Optional[Event]:
        """
        Apply a partial update and refresh ``updatedAt``.

        Fields missing from the patch are left untouched; the id, creation
        timestamp and ownership fields are never written. Concurrent updates
        are not serialized: the last write wins.

        Args:
            event_id: Id of the event to update
            data: Patch, or a raw payload validated into one

        Returns:
            The updated Event, or None if no event has that id

        Raises:
            TicketCapacityError: If the write would leave ticketsSold above totalTickets
            StorageUnavailableError: If DynamoDB rejects the write
        """
        patch = data if isinstance(data, EventPatch) else EventPatch.model_validate(data)
        changes = patch.changes()

        tickets_sold = changes.get('ticketsSold')
        total_tickets = changes.get('totalTickets')
        condition = Attr('eventId').exists()
        if tickets_sold is not None and total_tickets is not None:
            self._check_capacity(event_id, tickets_sold, total_tickets)
        elif tickets_sold is not None:
            condition = condition & Attr('totalTickets').gte(tickets_sold)
        elif total_tickets is not None:
            condition = condition & Attr('ticketsSold').lte(total_tickets)

        assignments = []
        names = {}
        values = {}
        for position, (attribute, value) in enumerate(changes.items()):
            names[f'#field{position}'] = attribute
            values[f':value{position}'] = _to_dynamodb_value(value)
            assignments.append(f'#field{position} = :value{position}')
        names['#updatedAt'] = 'updatedAt'
        values[':updatedAt'] = self.clock.now_iso()
        assignments.append('#updatedAt = :updatedAt')

        try:
            response = self.table.update_item(
                Key={'eventId': event_id},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues='ALL_NEW',
            )
        except ClientError as e:
            if not _is_conditional_check_failure(e):
                raise
            current = self._get_item(event_id)
            if current is None:
                logger.info(f'Event not found for update: {event_id}')
                return None
            raise TicketCapacityError(
                event_id=event_id,
                tickets_sold=tickets_sold if tickets_sold is not None else _from_dynamodb_value(current.get('ticketsSold')),
                total_tickets=total_tickets if total_tickets is not None else _from_dynamodb_value(current.get('totalTickets')),
            ) from e

        logger.info(f'Successfully updated event: {event_id}', extra={'fields': sorted(changes)})
        tracer.put_annotation('event_updated', event_id)
        return self._item_to_event(response['Attributes'])

    def update_event_status(self, event_id: str, status: Union[EventStatus, str]) -> Optional[Event]:
        """Set the status of one event. Any transition is accepted."""
        return self.update_event(event_id, EventPatch(status=EventStatus(status)))

    @tracer.capture_method
    @handle_dynamodb_errors("DeleteEvent")
    def delete_event(self, event_id: str) -> bool:
        """
        Delete an event by its id.

        Returns:
            True if the event was deleted, False if it did not exist
        """
        try:
            self.table.delete_item(
                Key={'eventId': event_id},
                ConditionExpression=Attr('eventId').exists(),
            )
        except ClientError as e:
            if _is_conditional_check_failure(e):
                logger.info(f'Event not found for deletion: {event_id}')
                return False
            raise

        logger.info(f'Successfully deleted event: {event_id}')
        tracer.put_annotation('event_deleted', event_id)
        return True

    def batch_update_status(self, event_ids: List[str], status: Union[EventStatus, str]) -> bool:
        """Set the status of every event; False if any single update failed."""
        return self.batch_update_status_detailed(event_ids, status).ok

    def batch_delete(self, event_ids: List[str]) -> bool:
        """Delete every event; False if any single delete failed."""
        return self.batch_delete_detailed(event_ids).ok

    @tracer.capture_method
    def batch_update_status_detailed(self, event_ids: List[str], status: Union[EventStatus, str]) -> BatchResult:
        """
        Fan out one status update per id and report which ids applied.

        Updates that succeeded are not rolled back when others fail.
        """
        new_status = EventStatus(status)
        return self._fan_out(
            event_ids,
            lambda event_id: self.update_event_status(event_id, new_status),
            'BatchUpdateStatus',
        )

    @tracer.capture_method
    def batch_delete_detailed(self, event_ids: List[str]) -> BatchResult:
        """
        Fan out one delete per id and report which ids applied.

        Deletes that succeeded are not rolled back when others fail.
        """
        return self._fan_out(event_ids, self.delete_event, 'BatchDelete')

    @tracer.capture_method
    def get_statistics(self, filters: Union[EventFilters, Dict[str, Any], None] = None) -> EventStatistics:
        """
        Aggregate counters over the full (optionally filtered) listing.

        This reads every matching record on each call.
        """
        statistics = EventStatistics.from_events(self.list_events(filters))
        logger.info('Computed event statistics', extra={
            'total_events': statistics.total_events,
            'total_tickets_sold': statistics.total_tickets_sold,
        })
        return statistics

    @tracer.capture_method
    def health_check(self) -> Dict[str, Any]:
        """
        Perform a health check on the events table.

        Returns:
            Dictionary with health check results, never raises
        """
        start_time = time.time()
        try:
            self.table.load()
            table_status = self.table.table_status
            health = {
                'status': 'healthy' if table_status == 'ACTIVE' else 'unhealthy',
                'table_name': self.table_name,
                'table_status': table_status,
                'response_time_ms': round((time.time() - start_time) * 1000, 2),
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }
            logger.debug('DynamoDB health check completed', extra=health)
            return health

        except (ClientError, BotoCoreError) as e:
            health = {
                'status': 'unhealthy',
                'table_name': self.table_name,
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }
            logger.error('DynamoDB health check failed', extra=health)
            return health

    def _fan_out(self, event_ids: List[str], apply: Callable[[str], Any], operation: str) -> BatchResult:
        """
        Run ``apply`` once per id on a thread pool and wait for all of them.

        An id fails when ``apply`` raises a service error, meets a stored
        record that is not a valid event, or returns a not-found sentinel
        (None/False).
        """
        ordered_ids = list(dict.fromkeys(event_ids))
        if not ordered_ids:
            return BatchResult()

        outcomes: Dict[str, bool] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ordered_ids))) as executor:
            future_to_id = {executor.submit(apply, event_id): event_id for event_id in ordered_ids}

            for future in as_completed(future_to_id):
                event_id = future_to_id[future]
                try:
                    outcome = future.result()
                except BaseServiceError as e:
                    logger.warning(f'{operation} failed for event {event_id}', extra={
                        'error_code': e.error_code,
                        'error_message': e.message,
                    })
                    outcomes[event_id] = False
                    continue
                except ValueError as e:
                    # Record exists but does not parse as an Event
                    logger.warning(f'{operation} failed for event {event_id}', extra={'error_message': str(e)})
                    outcomes[event_id] = False
                    continue
                outcomes[event_id] = outcome is not None and outcome is not False

        result = BatchResult(
            succeeded=[event_id for event_id in ordered_ids if outcomes[event_id]],
            failed=[event_id for event_id in ordered_ids if not outcomes[event_id]],
        )

        add_metric(name=f"{operation}Succeeded", unit=MetricUnit.Count, value=len(result.succeeded))
        add_metric(name=f"{operation}Failed", unit=MetricUnit.Count, value=len(result.failed))
        log = logger.info if result.ok else logger.error
        log(f'{operation} finished', extra={
            'requested': len(ordered_ids),
            'succeeded': len(result.succeeded),
            'failed': result.failed,
        })
        return result

    def _get_item(self, event_id: str) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key={'eventId': event_id}, ConsistentRead=True)
        return response.get('Item')

    def _fetch_items(self, predicates: Dict[str, str]) -> List[Dict[str, Any]]:
        """Run the server-side equality filter, following every page."""
        if self.use_indexes and predicates:
            index_attribute = next(iter(predicates))
            remaining = {k: v for k, v in predicates.items() if k != index_attribute}
            query_kwargs = {
                'IndexName': INDEX_BY_ATTRIBUTE[index_attribute],
                'KeyConditionExpression': Key(index_attribute).eq(predicates[index_attribute]),
            }
            filter_expression = self._build_filter_expression(remaining)
            if filter_expression is not None:
                query_kwargs['FilterExpression'] = filter_expression
            try:
                return self._paginate(self.table.query, query_kwargs)
            except ClientError as e:
                if e.response['Error']['Code'] not in MISSING_INDEX_ERROR_CODES:
                    raise
                logger.warning(f"Index {query_kwargs['IndexName']} unavailable, falling back to scan", extra={
                    'error_message': e.response['Error'].get('Message'),
                })

        scan_kwargs = {}
        filter_expression = self._build_filter_expression(predicates)
        if filter_expression is not None:
            scan_kwargs['FilterExpression'] = filter_expression
        return self._paginate(self.table.scan, scan_kwargs)

    @staticmethod
    def _paginate(read: Callable[..., Dict[str, Any]], kwargs: Dict[str, Any]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while True:
            response = read(**kwargs)
            items.extend(response.get('Items', []))
            last_evaluated_key = response.get('LastEvaluatedKey')
            if not last_evaluated_key:
                return items
            kwargs = {**kwargs, 'ExclusiveStartKey': last_evaluated_key}

    @staticmethod
    def _build_filter_expression(predicates: Dict[str, str]) -> Optional[Any]:
        if not predicates:
            return None
        conditions = [Attr(attribute).eq(value) for attribute, value in predicates.items()]
        return reduce(lambda left, right: left & right, conditions)

    @staticmethod
    def _coerce_filters(filters: Union[EventFilters, Dict[str, Any], None]) -> EventFilters:
        if filters is None:
            return EventFilters()
        if isinstance(filters, EventFilters):
            return filters
        return EventFilters.model_validate(filters)

    @staticmethod
    def _check_capacity(event_id: Optional[str], tickets_sold: int, total_tickets: int) -> None:
        if tickets_sold > total_tickets:
            raise TicketCapacityError(event_id=event_id, tickets_sold=tickets_sold, total_tickets=total_tickets)

    @staticmethod
    def _event_to_item(event: Event) -> Dict[str, Any]:
        """
        Convert an Event to a DynamoDB item.

        None values are omitted, as are empty strings on index key attributes,
        which DynamoDB rejects.
        """
        item = {}
        for attribute, value in event.model_dump(by_alias=True, exclude_none=True).items():
            if value == '' and attribute in INDEX_BY_ATTRIBUTE:
                continue
            item[attribute] = _to_dynamodb_value(value)
        return item

    @staticmethod
    def _item_to_event(item: Dict[str, Any]) -> Event:
        """
        Convert a DynamoDB item to an Event.

        Raises:
            ValueError: If the item is not a valid event record
        """
        try:
            return Event.model_validate({key: _from_dynamodb_value(value) for key, value in item.items()})
        except ValidationError as e:
            logger.error(f'Failed to convert DynamoDB item to Event: {e}', extra={'event_id': item.get('eventId')})
            raise ValueError(f"Invalid event data in database: {e}") from e
