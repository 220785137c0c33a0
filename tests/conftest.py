"""Pytest configuration and shared fixtures.

Unit tests run without external services: database sessions, SMTP and
webhook endpoints are replaced by in-memory fakes (see tests/factories.py).

Environment variables for database-backed tests:
    TEST_DATABASE_URL: PostgreSQL connection URL (psycopg)
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from hubnotify.db.models.base import EventKind, RepositoryKind
from hubnotify.services.notifications import NotificationEvent, UserTarget, WebhookTarget
from hubnotify.services.packages import PackageInfo, RepositoryInfo
from hubnotify.services.payload_cache import PayloadCache
from hubnotify.services.template_data import TemplateDataBuilder
from hubnotify.services.templates import TemplateRenderer
from hubnotify.services.webhook import WebhookSender
from hubnotify.worker.context import DeliveryContext
from tests.factories import FakeClock, FakeSessionFactory, RecordingTransport

BASE_URL = "https://hub.test"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------
@pytest.fixture
def repository_info() -> RepositoryInfo:
    return RepositoryInfo(
        repository_id=uuid.uuid4(),
        name="bitnami",
        kind=RepositoryKind.HELM,
        url="https://charts.bitnami.com/bitnami",
        user_alias="jdoe",
        organization_name="bitnami-org",
        last_scanning_errors="error scanning etcd\nerror scanning redis",
        last_tracking_errors=None,
    )


@pytest.fixture
def package_info(repository_info: RepositoryInfo) -> PackageInfo:
    return PackageInfo(
        package_id=uuid.uuid4(),
        name="etcd",
        normalized_name="etcd",
        version="3.5.0",
        repository=repository_info,
    )


@pytest.fixture
def release_event(package_info: PackageInfo) -> NotificationEvent:
    return NotificationEvent(
        event_id=uuid.uuid4(),
        kind=EventKind.NEW_RELEASE,
        package_id=package_info.package_id,
        package_version=package_info.version,
    )


@pytest.fixture
def scanning_event(repository_info: RepositoryInfo) -> NotificationEvent:
    return NotificationEvent(
        event_id=uuid.uuid4(),
        kind=EventKind.REPOSITORY_SCANNING_ERRORS,
        repository_id=repository_info.repository_id,
    )


@pytest.fixture
def webhook_target() -> WebhookTarget:
    return WebhookTarget(
        webhook_id=uuid.uuid4(),
        url="https://receiver.test/hook",
        secret="very-secret",
    )


@pytest.fixture
def user_target() -> UserTarget:
    return UserTarget(user_id=uuid.uuid4(), email="user@example.com")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture
def package_manager(package_info: PackageInfo) -> MagicMock:
    manager = MagicMock()
    manager.get = AsyncMock(return_value=package_info)
    return manager


@pytest.fixture
def repository_manager(repository_info: RepositoryInfo) -> MagicMock:
    manager = MagicMock()
    manager.get_by_id = AsyncMock(return_value=repository_info)
    return manager


@pytest.fixture
def cache(clock: FakeClock) -> PayloadCache:
    return PayloadCache(ttl=300, clock=clock)


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


@pytest.fixture
def template_data(package_manager, repository_manager, cache, renderer) -> TemplateDataBuilder:
    return TemplateDataBuilder(package_manager, repository_manager, cache, renderer, BASE_URL)


@pytest.fixture
def webhook_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def webhook_sender(webhook_transport: RecordingTransport) -> WebhookSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_transport))
    return WebhookSender(http_client=client)


@pytest.fixture
def email_sender() -> MagicMock:
    sender = MagicMock()
    sender.send_email = AsyncMock(return_value="<id@hub.local>")
    return sender


@pytest.fixture
def delivery_context(template_data, renderer, webhook_sender, email_sender) -> DeliveryContext:
    return DeliveryContext(
        template_data=template_data,
        renderer=renderer,
        webhook_sender=webhook_sender,
        email_sender=email_sender,
    )
