"""
Pytest configuration and shared fixtures for the ticketing core.

This module provides the mocked AWS environment (moto) and the store
fixtures used across unit and integration tests.
"""

import os
from typing import Any, Dict, Generator

import boto3
import pytest
from moto import mock_aws

# Set before the package is imported during collection, Powertools reads them at import time
os.environ.update({
    "AWS_DEFAULT_REGION": "us-east-1",
    "AWS_ACCESS_KEY_ID": "test",
    "AWS_SECRET_ACCESS_KEY": "test",
    "AWS_SECURITY_TOKEN": "test",
    "AWS_SESSION_TOKEN": "test",
    "POWERTOOLS_SERVICE_NAME": "test-event-ticketing",
    "POWERTOOLS_METRICS_NAMESPACE": "TestEventTicketing",
    "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
    "LOG_LEVEL": "DEBUG",
})

from ticketing.dal import AssetStore, AwsClients, EventStore  # noqa: E402

TEST_TABLE_NAME = "test-events-table"
TEST_BUCKET_NAME = "test-event-images"
TEST_REGION = "us-east-1"


def _index(name: str, attribute: str) -> Dict[str, Any]:
    return {
        "IndexName": name,
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
    }


def create_events_table(dynamodb, with_indexes: bool = True):
    """Create the Events table, optionally with its status/category/userId indexes."""
    attribute_definitions = [{"AttributeName": "eventId", "AttributeType": "S"}]
    table_kwargs: Dict[str, Any] = {}
    if with_indexes:
        attribute_definitions += [
            {"AttributeName": "status", "AttributeType": "S"},
            {"AttributeName": "category", "AttributeType": "S"},
            {"AttributeName": "userId", "AttributeType": "S"},
        ]
        table_kwargs["GlobalSecondaryIndexes"] = [
            _index("StatusIndex", "status"),
            _index("CategoryIndex", "category"),
            _index("UserIdIndex", "userId"),
        ]

    table = dynamodb.create_table(
        TableName=TEST_TABLE_NAME,
        KeySchema=[{"AttributeName": "eventId", "KeyType": "HASH"}],
        AttributeDefinitions=attribute_definitions,
        BillingMode="PROVISIONED",
        ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
        **table_kwargs,
    )
    table.wait_until_exists()
    return table


# AWS fixtures
@pytest.fixture
def aws_mock() -> Generator[None, None, None]:
    """Mock every AWS service for the duration of a test."""
    with mock_aws():
        yield


@pytest.fixture
def aws_clients(aws_mock) -> AwsClients:
    return AwsClients(region_name=TEST_REGION)


@pytest.fixture
def dynamodb_table(aws_clients):
    """Create a mock Events table with secondary indexes."""
    return create_events_table(aws_clients.dynamodb)


@pytest.fixture
def events_table_factory(aws_clients):
    """Create the Events table on demand, e.g. without its indexes."""
    def factory(with_indexes: bool = True):
        return create_events_table(aws_clients.dynamodb, with_indexes=with_indexes)

    return factory


@pytest.fixture
def event_store(aws_clients, dynamodb_table) -> EventStore:
    return EventStore(aws_clients, table_name=TEST_TABLE_NAME, max_workers=4)


@pytest.fixture
def asset_store(aws_clients) -> AssetStore:
    """Asset store whose bucket does not exist yet."""
    return AssetStore(
        aws_clients,
        bucket_name=TEST_BUCKET_NAME,
        public_endpoint="http://localhost:4566",
    )


@pytest.fixture
def s3_bucket(aws_clients) -> str:
    """Create the test bucket directly, without policy or CORS."""
    boto3.client("s3", region_name=TEST_REGION).create_bucket(Bucket=TEST_BUCKET_NAME)
    return TEST_BUCKET_NAME


# Sample data fixtures
@pytest.fixture
def sample_event_data() -> Dict[str, Any]:
    """Event creation payload as a calling layer would send it."""
    return {
        "title": "Tech Summit 2025",
        "description": "Annual technology conference",
        "category": "Technology",
        "date": "2025-09-15T09:00:00.000Z",
        "location": "Convention Center",
        "city": "Austin",
        "userId": "user-1",
        "organizer": "Jane Doe",
        "ticketsSold": 120,
        "totalTickets": 500,
        "ticketPrice": 49.99,
        "revenue": 5998.8,
        "status": "active",
    }


# Error simulation fixtures
@pytest.fixture
def mock_client_error():
    """Build botocore ClientErrors for testing error handling."""
    from botocore.exceptions import ClientError

    def create_error(error_code: str, message: str = "Test error", operation_name: str = "TestOperation"):
        return ClientError(
            error_response={
                "Error": {
                    "Code": error_code,
                    "Message": message,
                }
            },
            operation_name=operation_name,
        )

    return create_error


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
