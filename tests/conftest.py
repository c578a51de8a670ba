"""Pytest configuration and fixtures."""

import json
import os

import httpx
import pytest

# Set environment variables before imports
os.environ["PULSETRACK_TABLE_NAME"] = "pulsetrack-test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

COLLECTOR_URL = "http://collector.test/api/analytics/track"
START_MS = 1_700_000_000_000
MS_PER_DAY = 24 * 60 * 60 * 1000


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, days: float = 0, ms: int = 0) -> None:
        self.now += int(days * MS_PER_DAY) + ms


class CollectorStub:
    """Scripted collector behind an httpx.MockTransport.

    ``responses`` is consumed one entry per request: an int is returned as
    the status code, an exception instance is raised as a transport error.
    Once exhausted every request gets a 200.
    """

    def __init__(self):
        self.responses: list = []
        self.requests: list[dict] = []
        self.on_request = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.on_request is not None:
            self.on_request(body)

        outcome = self.responses.pop(0) if self.responses else 200
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"success": outcome < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def delivered_event_ids(self) -> list[str]:
        """Ids of events in every request, in request order."""
        return [event["eventId"] for body in self.requests for event in body["events"]]


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="pulsetrack-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def memory_store():
    """Empty in-memory durable store."""
    from pulsetrack.storage.base import MemoryStore

    return MemoryStore()


@pytest.fixture
def collector():
    """Scripted collector endpoint."""
    return CollectorStub()


@pytest.fixture
def collector_client(collector):
    """Collector client wired to the scripted collector."""
    from pulsetrack.execution.collector import CollectorClient

    return CollectorClient(COLLECTOR_URL, transport=collector.transport)


@pytest.fixture
def make_event():
    """Factory for enriched events."""
    from pulsetrack.models.event import Event

    def _make(name: str = "page_view", **properties):
        return Event(
            name=name,
            properties=properties or {"page": "/"},
            visitor_id="visitor-1",
            session_id="session-1",
        )

    return _make


@pytest.fixture
def make_pipeline(memory_store, clock, collector_client):
    """Factory for pipelines sharing the durable store, clock and collector."""
    from pulsetrack.config import PipelineConfig
    from pulsetrack.services.pipeline import TelemetryPipeline

    def _make(store=None, **config):
        return TelemetryPipeline(
            PipelineConfig(**config),
            durable_store=store if store is not None else memory_store,
            client=collector_client,
            clock=clock,
        )

    return _make


@pytest.fixture(autouse=True)
def reset_process_pipeline():
    """Drop the process-wide pipeline after each test."""
    yield
    from pulsetrack.services.pipeline import reset_pipeline

    reset_pipeline()
