"""
Event domain models.

This module defines the persisted Event record and the value types used to
create, patch, filter and summarise events. Python attributes are snake_case;
the stored/serialised attribute names are the camelCase names of the Events
table (``eventId``, ``ticketsSold`` ...).
"""

import re
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel


class EventStatus(str, Enum):
    """Event lifecycle status. Transitions are not validated."""

    ACTIVE = 'active'
    PENDING = 'pending'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    SUSPENDED = 'suspended'
    DRAFT = 'draft'


def generate_event_id() -> str:
    """Timestamp-derived id with a random suffix, e.g. ``evt_1718000000000_3f9a0c1b2``."""
    return f"evt_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def _validate_iso_instant(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValueError(f"'{value}' is not an ISO-8601 date") from None
    return value


IsoInstant = Annotated[Optional[str], AfterValidator(_validate_iso_instant)]


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Event(CamelModel):
    """Core Event record as stored in the Events table."""

    event_id: Annotated[str, Field(
        min_length=1,
        description='Unique identifier of the event',
        examples=['evt_1718000000000_3f9a0c1b2']
    )]

    title: Annotated[str, Field(description='Event title', examples=['Tech Summit'])]

    description: Optional[str] = None
    category: Optional[str] = None
    date: Annotated[Optional[str], Field(description='ISO-8601 instant when the event takes place')] = None
    location: Optional[str] = None
    city: Optional[str] = None

    user_id: Optional[str] = None
    organizer: Optional[str] = None
    organizer_email: Optional[str] = None

    tickets_sold: Annotated[int, Field(ge=0)] = 0
    total_tickets: Annotated[int, Field(ge=0)] = 0
    ticket_price: Annotated[float, Field(ge=0)] = 0.0
    revenue: Annotated[float, Field(ge=0)] = 0.0

    status: EventStatus = EventStatus.PENDING
    image_url: Optional[str] = None

    created_at: Annotated[str, Field(description='ISO timestamp when the event was created')]
    updated_at: Annotated[str, Field(description='ISO timestamp when the event was last written')]

    def matches_search(self, term: str) -> bool:
        """Case-insensitive substring match over title, organizer, location and city."""
        needle = term.lower()
        haystacks = (self.title, self.organizer, self.location, self.city)
        return any(needle in (value or '').lower() for value in haystacks)

    def created_at_datetime(self) -> datetime:
        created = datetime.fromisoformat(self.created_at.replace('Z', '+00:00'))
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created


class EventCreate(CamelModel):
    """Input for creating an event: everything but the id and audit timestamps."""

    title: Annotated[str, Field(min_length=1, max_length=200)]
    description: Optional[str] = None
    category: Optional[str] = None
    date: IsoInstant = None
    location: Optional[str] = None
    city: Optional[str] = None

    user_id: Optional[str] = None
    organizer: Optional[str] = None
    organizer_email: Optional[str] = None

    tickets_sold: Annotated[int, Field(ge=0)] = 0
    total_tickets: Annotated[int, Field(ge=0)] = 0
    ticket_price: Annotated[float, Field(ge=0)] = 0.0
    revenue: Annotated[float, Field(ge=0)] = 0.0

    status: EventStatus = EventStatus.PENDING
    image_url: Optional[str] = None

    @model_validator(mode='after')
    def default_organizer_email(self) -> 'EventCreate':
        """Derive a placeholder organizer email from the organizer name."""
        if not self.organizer_email and self.organizer:
            local_part = re.sub(r'\s+', '', self.organizer.lower())
            self.organizer_email = f"{local_part}@example.com"
        return self


class EventPatch(CamelModel):
    """
    Partial update of an event.

    Only fields the caller explicitly sets to a non-None value are written.
    The id, audit timestamps and ownership fields are not part of the patch,
    so they are dropped if a raw payload carries them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    title: Annotated[Optional[str], Field(min_length=1, max_length=200)] = None
    description: Optional[str] = None
    category: Optional[str] = None
    date: IsoInstant = None
    location: Optional[str] = None
    city: Optional[str] = None

    tickets_sold: Annotated[Optional[int], Field(ge=0)] = None
    total_tickets: Annotated[Optional[int], Field(ge=0)] = None
    ticket_price: Annotated[Optional[float], Field(ge=0)] = None
    revenue: Annotated[Optional[float], Field(ge=0)] = None

    status: Optional[EventStatus] = None
    image_url: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Stored attribute name to value for every explicitly supplied field."""
        supplied = {}
        for name in sorted(self.model_fields_set):
            value = getattr(self, name)
            if value is None:
                continue
            supplied[to_camel(name)] = value.value if isinstance(value, Enum) else value
        return supplied

    def is_empty(self) -> bool:
        return not self.changes()


# Filters where the literal "all" selects everything
ALL_MEANS_UNFILTERED = {'status', 'category'}


class EventFilters(CamelModel):
    """Listing filters: equality predicates pushed to the store, search applied after."""

    status: Optional[EventStatus] = None
    category: Optional[str] = None
    user_id: Optional[str] = None
    search: Optional[str] = None
    limit: Annotated[Optional[int], Field(ge=1)] = None

    @field_validator('status', 'category', 'search', 'user_id', mode='before')
    @classmethod
    def blank_means_unfiltered(cls, v: Any, info: ValidationInfo) -> Any:
        """``None`` and empty strings mean no filter; so does ``"all"`` for status and category."""
        if not isinstance(v, str):
            return v
        if not v.strip():
            return None
        if info.field_name in ALL_MEANS_UNFILTERED and v.lower() == 'all':
            return None
        return v

    def equality_predicates(self) -> Dict[str, str]:
        """Stored attribute name to required value, in index priority order."""
        predicates = {}
        if self.user_id:
            predicates['userId'] = self.user_id
        if self.status:
            predicates['status'] = self.status.value
        if self.category:
            predicates['category'] = self.category
        return predicates


class EventStatistics(CamelModel):
    """Aggregate counters over a set of events."""

    total_events: int = 0
    total_revenue: float = 0.0
    total_tickets_sold: int = 0
    total_tickets_available: int = 0
    active_events: int = 0
    pending_events: int = 0
    completed_events: int = 0
    cancelled_events: int = 0
    suspended_events: int = 0
    draft_events: int = 0
    average_attendance: int = 0
    sellout_rate: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_events(cls, events: List[Event]) -> 'EventStatistics':
        """Reduce a listing to its counters."""
        by_status: Dict[str, int] = {}
        by_category: Dict[str, int] = {}
        for event in events:
            by_status[event.status.value] = by_status.get(event.status.value, 0) + 1
            category = event.category or 'Uncategorized'
            by_category[category] = by_category.get(category, 0) + 1

        total_events = len(events)
        tickets_sold = sum(event.tickets_sold for event in events)
        tickets_available = sum(event.total_tickets for event in events)

        return cls(
            total_events=total_events,
            total_revenue=round(sum(event.revenue for event in events), 2),
            total_tickets_sold=tickets_sold,
            total_tickets_available=tickets_available,
            active_events=by_status.get(EventStatus.ACTIVE.value, 0),
            pending_events=by_status.get(EventStatus.PENDING.value, 0),
            completed_events=by_status.get(EventStatus.COMPLETED.value, 0),
            cancelled_events=by_status.get(EventStatus.CANCELLED.value, 0),
            suspended_events=by_status.get(EventStatus.SUSPENDED.value, 0),
            draft_events=by_status.get(EventStatus.DRAFT.value, 0),
            average_attendance=round(tickets_sold / total_events) if total_events else 0,
            sellout_rate=round(tickets_sold / tickets_available * 100) if tickets_available else 0,
            by_status=by_status,
            by_category=by_category,
        )


class BatchResult(BaseModel):
    """Outcome of a fan-out batch. Applied items are never rolled back."""

    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def __bool__(self) -> bool:
        return self.ok
