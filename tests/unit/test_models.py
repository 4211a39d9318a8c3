"""
Unit tests for Pydantic models.

This module tests the validation, serialization, and derived values of the
event, asset and identity models.
"""

import re

import pytest
from pydantic import ValidationError

from ticketing.models.asset import ObjectListing, StoredObject, StoreResult, UploadAuthorization, UploadRequest
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
from ticketing.models.identity import CallerIdentity, UserRole


def make_event(**overrides) -> Event:
    data = {
        "event_id": generate_event_id(),
        "title": "Tech Summit",
        "created_at": "2025-01-01T00:00:00+00:00",
        "updated_at": "2025-01-01T00:00:00+00:00",
    }
    data.update(overrides)
    return Event(**data)


class TestEventCreate:
    """Test cases for EventCreate model."""

    def test_accepts_camel_case_payload(self, sample_event_data):
        request = EventCreate.model_validate(sample_event_data)

        assert request.title == "Tech Summit 2025"
        assert request.user_id == "user-1"
        assert request.tickets_sold == 120
        assert request.total_tickets == 500
        assert request.status == EventStatus.ACTIVE

    def test_defaults(self):
        request = EventCreate(title="Meetup")

        assert request.status == EventStatus.PENDING
        assert request.tickets_sold == 0
        assert request.total_tickets == 0
        assert request.revenue == 0.0
        assert request.image_url is None

    def test_title_required(self):
        with pytest.raises(ValidationError):
            EventCreate.model_validate({"category": "Music"})

    def test_rejects_negative_counts(self):
        with pytest.raises(ValidationError):
            EventCreate(title="Meetup", tickets_sold=-1)

    def test_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            EventCreate(title="Meetup", status="archived")

    def test_rejects_malformed_date(self):
        with pytest.raises(ValidationError):
            EventCreate(title="Meetup", date="next tuesday")

    def test_organizer_email_derived_from_organizer(self):
        request = EventCreate(title="Meetup", organizer="Jane Doe")

        assert request.organizer_email == "janedoe@example.com"

    def test_explicit_organizer_email_kept(self):
        request = EventCreate(title="Meetup", organizer="Jane Doe", organizer_email="jane@corp.io")

        assert request.organizer_email == "jane@corp.io"


class TestEventPatch:
    """Test cases for EventPatch change extraction."""

    def test_changes_only_include_supplied_fields(self):
        patch = EventPatch.model_validate({"title": "Renamed", "ticketsSold": 10})

        assert patch.changes() == {"ticketsSold": 10, "title": "Renamed"}

    def test_none_values_are_not_changes(self):
        patch = EventPatch.model_validate({"title": "Renamed", "city": None})

        assert patch.changes() == {"title": "Renamed"}

    def test_status_unwrapped_to_value(self):
        patch = EventPatch(status=EventStatus.CANCELLED)

        assert patch.changes() == {"status": "cancelled"}

    def test_identity_and_audit_fields_dropped(self):
        patch = EventPatch.model_validate({
            "eventId": "evt_other",
            "createdAt": "2020-01-01T00:00:00Z",
            "userId": "someone-else",
            "title": "Renamed",
        })

        assert patch.changes() == {"title": "Renamed"}

    def test_empty_patch(self):
        assert EventPatch().is_empty()
        assert not EventPatch(city="Austin").is_empty()


class TestEventFilters:
    """Test cases for listing filters."""

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_blank_means_unfiltered(self, value):
        filters = EventFilters(status=value, category=value, search=value, user_id=value)

        assert filters.status is None
        assert filters.category is None
        assert filters.search is None
        assert filters.user_id is None
        assert filters.equality_predicates() == {}

    @pytest.mark.parametrize("value", ["all", "ALL"])
    def test_all_means_unfiltered_for_status_and_category(self, value):
        filters = EventFilters(status=value, category=value)

        assert filters.status is None
        assert filters.category is None

    def test_all_is_a_literal_search_term(self):
        filters = EventFilters(search="all", user_id="all")

        assert filters.search == "all"
        assert filters.equality_predicates() == {"userId": "all"}

    def test_predicates_in_index_priority_order(self):
        filters = EventFilters.model_validate({"category": "Music", "status": "active", "userId": "u1"})

        assert list(filters.equality_predicates()) == ["userId", "status", "category"]
        assert filters.equality_predicates()["status"] == "active"

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            EventFilters(limit=0)


class TestEvent:
    """Test cases for the Event record."""

    def test_generated_id_format(self):
        assert re.fullmatch(r"evt_\d{13}_[0-9a-f]{9}", generate_event_id())

    def test_generated_ids_are_unique(self):
        assert len({generate_event_id() for _ in range(200)}) == 200

    def test_serializes_camel_case(self):
        event = make_event(tickets_sold=3, user_id="u1")
        dumped = event.model_dump(by_alias=True)

        assert dumped["ticketsSold"] == 3
        assert dumped["userId"] == "u1"
        assert "eventId" in dumped

    def test_search_is_case_insensitive(self):
        event = make_event(title="Python Tech Night", organizer="PyLadies", city="Berlin")

        assert event.matches_search("tech")
        assert event.matches_search("PYLADIES")
        assert event.matches_search("berl")
        assert not event.matches_search("Austin")

    def test_search_ignores_missing_fields(self):
        event = make_event(title="Concert")

        assert not event.matches_search("Paris")


class TestEventStatistics:
    """Test cases for statistics aggregation."""

    def test_empty(self):
        stats = EventStatistics.from_events([])

        assert stats.total_events == 0
        assert stats.average_attendance == 0
        assert stats.sellout_rate == 0

    def test_aggregates(self):
        events = [
            make_event(status=EventStatus.ACTIVE, tickets_sold=50, total_tickets=100, revenue=500.25, category="Music"),
            make_event(status=EventStatus.PENDING, tickets_sold=10, total_tickets=100, revenue=100.0),
            make_event(status=EventStatus.ACTIVE, tickets_sold=0, total_tickets=0, revenue=0.0, category="Music"),
        ]

        stats = EventStatistics.from_events(events)

        assert stats.total_events == 3
        assert stats.total_revenue == 600.25
        assert stats.total_tickets_sold == 60
        assert stats.total_tickets_available == 200
        assert stats.active_events == 2
        assert stats.pending_events == 1
        assert stats.cancelled_events == 0
        assert stats.average_attendance == 20
        assert stats.sellout_rate == 30
        assert stats.by_status == {"active": 2, "pending": 1}
        assert stats.by_category == {"Music": 2, "Uncategorized": 1}

    def test_serializes_camel_case(self):
        dumped = EventStatistics().model_dump(by_alias=True)

        assert {"totalEvents", "totalRevenue", "totalTicketsSold", "activeEvents", "pendingEvents"} <= set(dumped)


class TestBatchResult:
    """Test cases for batch outcomes."""

    def test_ok_when_nothing_failed(self):
        assert BatchResult(succeeded=["a", "b"])
        assert BatchResult().ok

    def test_not_ok_when_any_failed(self):
        result = BatchResult(succeeded=["a"], failed=["b"])

        assert not result
        assert not result.ok


class TestAssetModels:
    """Test cases for asset store request and result models."""

    def test_upload_request_aliases(self):
        request = UploadRequest.model_validate({"fileName": "poster.png", "contentType": "image/png", "expiresIn": 60})

        assert request.file_name == "poster.png"
        assert request.content_type == "image/png"
        assert request.expires_in == 60

    def test_upload_request_folder_slashes_stripped(self):
        assert UploadRequest(file_name="a.png", content_type="image/png", folder="/banners/").folder == "banners"
        assert UploadRequest(file_name="a.png", content_type="image/png", folder="/").folder is None

    @pytest.mark.parametrize("expires_in", [0, 604801])
    def test_upload_request_expiry_bounds(self, expires_in):
        with pytest.raises(ValidationError):
            UploadRequest(file_name="a.png", content_type="image/png", expires_in=expires_in)

    def test_upload_authorization_failure(self):
        failure = UploadAuthorization.failure("boom")

        assert failure.success is False
        assert failure.url is None
        assert failure.error == "boom"
        assert failure.message == "Failed to generate presigned URL"

    def test_listing_and_result(self):
        listing = ObjectListing(objects=[StoredObject(key="event-images/a.jpg", size=3)])

        assert listing.ok
        assert listing.keys == ["event-images/a.jpg"]
        assert not ObjectListing(error="AccessDenied").ok
        assert StoreResult(success=True)
        assert not StoreResult(success=False, error="AccessDenied")


class TestCallerIdentity:
    """Test cases for the caller identity value."""

    def test_from_camel_case(self):
        identity = CallerIdentity.model_validate({"subjectId": "u1", "email": "a@b.c", "role": "admin"})

        assert identity.is_admin
        assert identity.owns("u1")
        assert not identity.owns("u2")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            CallerIdentity(subject_id="u1", email="a@b.c", role="superuser")

    def test_frozen(self):
        identity = CallerIdentity(subject_id="u1", email="a@b.c", role=UserRole.ATTENDEE)

        with pytest.raises(ValidationError):
            identity.role = UserRole.ADMIN
