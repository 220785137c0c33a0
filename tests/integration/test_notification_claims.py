"""Integration tests for concurrent notification delivery.

Tests verify against PostgreSQL that:
1. Concurrent transactions never claim the same notification (SKIP LOCKED)
2. Several workers draining one queue deliver every notification exactly once
3. Retryable failures leave the notification pending until it is delivered
4. Terminal failures are recorded with their error

Run with: TEST_DATABASE_URL=postgresql://... pytest tests/integration
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections import Counter
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy import select

from hubnotify.db.models import (
    Event,
    Notification,
    Organization,
    Package,
    Repository,
    Snapshot,
    User,
    Webhook,
)
from hubnotify.db.models.base import EventKind, RepositoryKind
from hubnotify.services.notifications import NotificationManager
from hubnotify.services.packages import PackageManager, RepositoryManager
from hubnotify.services.payload_cache import PayloadCache
from hubnotify.services.template_data import TemplateDataBuilder
from hubnotify.services.templates import TemplateRenderer
from hubnotify.services.webhook import WebhookSender
from hubnotify.worker.context import DeliveryContext
from hubnotify.worker.main import ProcessOutcome, Worker, WorkerConfig

pytestmark = [
    pytest.mark.integration,
    pytest.mark.asyncio,
    pytest.mark.skipif(
        "TEST_DATABASE_URL" not in os.environ,
        reason="Requires database - set TEST_DATABASE_URL",
    ),
]


async def seed(
    session_factory, webhooks: int = 0, users: int = 0, active: bool = True
) -> list[uuid.UUID]:
    """Create one release event with a notification per webhook and per user.

    Returns:
        IDs of the created notifications.
    """
    organization = Organization(organization_id=uuid.uuid4(), name="bitnami-org")
    repository = Repository(
        repository_id=uuid.uuid4(),
        name="bitnami",
        url="https://charts.bitnami.com/bitnami",
        kind=RepositoryKind.HELM,
        organization_id=organization.organization_id,
    )
    package = Package(
        package_id=uuid.uuid4(),
        name="etcd",
        normalized_name="etcd",
        repository_id=repository.repository_id,
    )
    snapshot = Snapshot(package_id=package.package_id, version="3.5.0", changes=[])
    event = Event(
        event_id=uuid.uuid4(),
        event_kind=EventKind.NEW_RELEASE,
        package_id=package.package_id,
        package_version="3.5.0",
    )

    rows: list = [organization, repository, package, snapshot, event]
    notification_ids = []
    for i in range(webhooks):
        webhook = Webhook(
            webhook_id=uuid.uuid4(),
            name=f"hook-{i}",
            url=f"https://receiver.test/hooks/{i}",
            secret="s3cr3t",
            active=active,
            organization_id=organization.organization_id,
        )
        notification = Notification(
            notification_id=uuid.uuid4(),
            event_id=event.event_id,
            webhook_id=webhook.webhook_id,
        )
        rows += [webhook, notification]
        notification_ids.append(notification.notification_id)
    for i in range(users):
        user = User(user_id=uuid.uuid4(), alias=f"user{i}", email=f"user{i}@example.com")
        notification = Notification(
            notification_id=uuid.uuid4(),
            event_id=event.event_id,
            user_id=user.user_id,
        )
        rows += [user, notification]
        notification_ids.append(notification.notification_id)

    # Parents first so foreign keys are satisfied
    async with session_factory() as session, session.begin():
        for row in rows:
            session.add(row)
            await session.flush()

    return notification_ids


def build_worker(session_factory, handler, email_sender=None, name: str = "worker") -> Worker:
    cache = PayloadCache(ttl=300)
    renderer = TemplateRenderer()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    context = DeliveryContext(
        template_data=TemplateDataBuilder(
            PackageManager(), RepositoryManager(), cache, renderer, "https://hub.test"
        ),
        renderer=renderer,
        webhook_sender=WebhookSender(http_client=client),
        email_sender=email_sender,
    )
    config = WorkerConfig(name=name, pause_on_empty_queue=0.01, pause_on_error=0.01)
    return Worker(session_factory, NotificationManager(), context, cache, config)


async def drain(worker: Worker, max_passes: int = 1000) -> list[ProcessOutcome]:
    outcomes = []
    for _ in range(max_passes):
        outcome = await worker.process_one()
        outcomes.append(outcome)
        if outcome is ProcessOutcome.NO_PENDING:
            break
    return outcomes


async def load_notifications(session_factory) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification))
        return list(result.scalars().all())


class TestSkipLocked:
    async def test_concurrent_claims_get_distinct_rows(self, db_session_factory):
        await seed(db_session_factory, webhooks=2)
        manager = NotificationManager()

        async with db_session_factory() as first, first.begin():
            claimed_first = await manager.get_pending(first)

            async with db_session_factory() as second, second.begin():
                claimed_second = await manager.get_pending(second)

                async with db_session_factory() as third, third.begin():
                    claimed_third = await manager.get_pending(third)

        assert claimed_first is not None
        assert claimed_second is not None
        assert claimed_first.notification_id != claimed_second.notification_id
        assert claimed_third is None


class TestConcurrentWorkers:
    async def test_every_notification_delivered_once(self, db_session_factory):
        notification_ids = await seed(db_session_factory, webhooks=20, users=5)
        hits: Counter[str] = Counter()

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            hits[str(request.url)] += 1
            return httpx.Response(200)

        email_sender = MagicMock()
        email_sender.send_email = AsyncMock(return_value="<id@hub.test>")
        workers = [
            build_worker(db_session_factory, handler, email_sender, name=f"worker-{i}")
            for i in range(4)
        ]

        await asyncio.gather(*(drain(w) for w in workers))

        assert len(hits) == 20
        assert set(hits.values()) == {1}
        recipients = [call.args[0].to for call in email_sender.send_email.await_args_list]
        assert sorted(recipients) == sorted(f"user{i}@example.com" for i in range(5))

        notifications = await load_notifications(db_session_factory)
        assert {n.notification_id for n in notifications} == set(notification_ids)
        assert all(n.processed for n in notifications)
        assert all(n.error is None for n in notifications)
        assert all(n.processed_at is not None for n in notifications)

    async def test_retryable_failure_stays_pending(self, db_session_factory):
        await seed(db_session_factory, webhooks=1)
        statuses = iter([500, 200])

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(statuses))

        worker = build_worker(db_session_factory, handler)

        assert await worker.process_one() is ProcessOutcome.RETRY
        [notification] = await load_notifications(db_session_factory)
        assert notification.processed is False
        assert notification.error is None
        async with db_session_factory() as session:
            assert await NotificationManager().count_pending(session) == 1

        assert await worker.process_one() is ProcessOutcome.PROCESSED
        [notification] = await load_notifications(db_session_factory)
        assert notification.processed is True
        assert notification.error is None

    async def test_terminal_failure_recorded(self, db_session_factory):
        await seed(db_session_factory, webhooks=1)

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        worker = build_worker(db_session_factory, handler)

        assert await worker.process_one() is ProcessOutcome.PROCESSED
        assert await worker.process_one() is ProcessOutcome.NO_PENDING
        [notification] = await load_notifications(db_session_factory)
        assert notification.processed is True
        assert notification.error == "unexpected status code: 404"

        async with db_session_factory() as session:
            manager = NotificationManager()
            assert await manager.count_pending(session) == 0
            failed = await manager.get_failed(session)
        assert [n.notification_id for n in failed] == [notification.notification_id]

    async def test_missing_email_sender_recorded(self, db_session_factory):
        await seed(db_session_factory, users=1)

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        worker = build_worker(db_session_factory, handler, email_sender=None)

        assert await worker.process_one() is ProcessOutcome.PROCESSED
        [notification] = await load_notifications(db_session_factory)
        assert notification.error == "email sender not available"

    async def test_inactive_webhook_recorded(self, db_session_factory):
        await seed(db_session_factory, webhooks=1, active=False)
        calls = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        worker = build_worker(db_session_factory, handler)

        assert await worker.process_one() is ProcessOutcome.PROCESSED
        [notification] = await load_notifications(db_session_factory)
        assert notification.processed is True
        assert notification.error == "webhook is not active"
        assert calls == []

    async def test_failing_template_does_not_block_queue(self, db_session_factory):
        [broken_id, _] = await seed(db_session_factory, webhooks=2)
        async with db_session_factory() as session, session.begin():
            broken = await session.get(Notification, broken_id)
            webhook = await session.get(Webhook, broken.webhook_id)
            webhook.template = "{{ 1 / 0 }}"

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        worker = build_worker(db_session_factory, handler)

        outcomes = await drain(worker)

        assert outcomes == [ProcessOutcome.PROCESSED, ProcessOutcome.PROCESSED, ProcessOutcome.NO_PENDING]
        errors = {n.notification_id: n.error for n in await load_notifications(db_session_factory)}
        assert errors[broken_id] == "error rendering webhook payload: division by zero"
        assert sum(error is None for error in errors.values()) == 1
