"""Test doubles and data factories for hubnotify.

Use these to build consistent test objects without duplicating setup
across tests.
"""

from __future__ import annotations

import uuid

import httpx

from hubnotify.services.notifications import (
    NotificationEvent,
    PendingNotification,
    UserTarget,
    WebhookTarget,
)


class FakeTransaction:
    """Records whether the transaction block committed or rolled back."""

    def __init__(self, session: FakeSession) -> None:
        self.session = session

    async def __aenter__(self) -> FakeTransaction:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.session.commits += 1
        else:
            self.session.rollbacks += 1
        return False


class FakeSession:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def begin(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.closed = True
        return False


class FakeSessionFactory:
    """Stand-in for async_sessionmaker keeping every session it created."""

    def __init__(self) -> None:
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session

    @property
    def commits(self) -> int:
        return sum(s.commits for s in self.sessions)

    @property
    def rollbacks(self) -> int:
        return sum(s.rollbacks for s in self.sessions)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport:
    """httpx MockTransport handler answering with a fixed status (or raising).

    Every request received is kept in ``requests``.
    """

    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text="ignored")


def create_pending(
    event: NotificationEvent,
    target: UserTarget | WebhookTarget,
    notification_id: uuid.UUID | None = None,
) -> PendingNotification:
    """Create a claimed notification for an event and a target."""
    return PendingNotification(
        notification_id=notification_id or uuid.uuid4(),
        event=event,
        target=target,
    )
