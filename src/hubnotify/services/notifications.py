"""PostgreSQL-backed notifications queue.

This service claims pending notifications using PostgreSQL's
SELECT ... FOR UPDATE SKIP LOCKED pattern. The row lock is held by the
caller's transaction until it commits or rolls back, so concurrent
workers never pick the same notification: a second worker skips the
locked row and claims the next one instead of blocking.

Usage:
    from hubnotify.services.notifications import NotificationManager

    async with session.begin():
        notification = await manager.get_pending(session)
        if notification is not None:
            ...  # deliver
            await manager.update_status(session, notification.notification_id, error=None)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from hubnotify.db.models.notifications import Event, Notification, Webhook
from hubnotify.db.models.users import User

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hubnotify.db.models.base import EventKind

logger = logging.getLogger(__name__)


class NotificationQueueError(Exception):
    """Base exception for notifications queue operations."""


class InvalidNotificationError(NotificationQueueError):
    """Raised when a notification row does not reference a usable target."""


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """The event a notification is about."""

    event_id: uuid.UUID
    kind: EventKind
    package_id: uuid.UUID | None = None
    package_version: str | None = None
    repository_id: uuid.UUID | None = None


@dataclass(frozen=True, slots=True)
class UserTarget:
    """Deliver the notification by email to a user."""

    user_id: uuid.UUID
    email: str


@dataclass(frozen=True, slots=True)
class WebhookTarget:
    """Deliver the notification by calling a webhook."""

    webhook_id: uuid.UUID
    url: str
    secret: str | None = None
    content_type: str | None = None
    template: str | None = None
    active: bool = True


NotificationTarget = UserTarget | WebhookTarget


@dataclass(frozen=True, slots=True)
class PendingNotification:
    """A claimed notification, ready to be delivered."""

    notification_id: uuid.UUID
    event: NotificationEvent
    target: NotificationTarget


class NotificationManager:
    """Claims and finalizes notifications.

    All methods take the session of the caller's transaction: claiming,
    delivering and recording the outcome must happen in one transaction.
    """

    async def get_pending(self, session: AsyncSession) -> PendingNotification | None:
        """Claim the oldest unprocessed notification.

        The notification row stays locked until the session's transaction
        ends. Rows locked by other transactions are skipped.

        Args:
            session: Session with an open transaction.

        Returns:
            The claimed notification, or None if none is claimable.

        Raises:
            InvalidNotificationError: If the row references no usable target.
            NotificationQueueError: If the claim query fails.
        """
        stmt = (
            select(Notification)
            .where(Notification.processed.is_(False))
            .order_by(Notification.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
        )

        try:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                return None

            # Related rows are read without locking: several notifications
            # usually share one event.
            event = await session.get(Event, row.event_id)
            target = await self._load_target(session, row)
        except SQLAlchemyError as e:
            logger.error("Failed to claim pending notification: %s", str(e))
            raise NotificationQueueError(f"Failed to claim pending notification: {e}") from e

        if event is None:
            msg = f"Notification {row.notification_id} references missing event {row.event_id}"
            raise InvalidNotificationError(msg)

        logger.debug(
            "Notification claimed: notification_id=%s, event_id=%s, target=%s",
            row.notification_id,
            event.event_id,
            type(target).__name__,
        )

        return PendingNotification(
            notification_id=row.notification_id,
            event=NotificationEvent(
                event_id=event.event_id,
                kind=event.event_kind,
                package_id=event.package_id,
                package_version=event.package_version,
                repository_id=event.repository_id,
            ),
            target=target,
        )

    async def _load_target(self, session: AsyncSession, row: Notification) -> NotificationTarget:
        if row.webhook_id is not None:
            webhook = await session.get(Webhook, row.webhook_id)
            if webhook is None:
                msg = f"Notification {row.notification_id} references missing webhook"
                raise InvalidNotificationError(msg)
            return WebhookTarget(
                webhook_id=webhook.webhook_id,
                url=webhook.url,
                secret=webhook.secret,
                content_type=webhook.content_type,
                template=webhook.template,
                active=webhook.active,
            )

        if row.user_id is not None:
            user = await session.get(User, row.user_id)
            if user is None:
                msg = f"Notification {row.notification_id} references missing user"
                raise InvalidNotificationError(msg)
            return UserTarget(user_id=user.user_id, email=user.email)

        msg = f"Notification {row.notification_id} has no target"
        raise InvalidNotificationError(msg)

    async def update_status(
        self,
        session: AsyncSession,
        notification_id: uuid.UUID,
        processed: bool = True,
        error: str | None = None,
    ) -> None:
        """Record the outcome of a delivery.

        Args:
            session: Session of the transaction holding the claim.
            notification_id: UUID of the notification.
            processed: Whether the notification is done with.
            error: Error message of a failed delivery, None (or empty) on success.

        Raises:
            NotificationQueueError: If the update fails.
        """
        stmt = (
            update(Notification)
            .where(Notification.notification_id == notification_id)
            .values(
                processed=processed,
                processed_at=datetime.now(UTC) if processed else None,
                error=error or None,
            )
        )

        try:
            await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to update notification %s: %s", notification_id, str(e))
            raise NotificationQueueError(f"Failed to update notification status: {e}") from e

    async def add(
        self,
        session: AsyncSession,
        event_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        webhook_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        """Queue a notification for a user or a webhook.

        Args:
            session: Database session.
            event_id: UUID of the event to notify about.
            user_id: Recipient user, mutually exclusive with webhook_id.
            webhook_id: Recipient webhook, mutually exclusive with user_id.

        Returns:
            UUID of the created notification.

        Raises:
            ValueError: If not exactly one target is given.
            NotificationQueueError: If the insert fails.
        """
        if (user_id is None) == (webhook_id is None):
            msg = "Exactly one of user_id or webhook_id must be provided"
            raise ValueError(msg)

        notification = Notification(event_id=event_id, user_id=user_id, webhook_id=webhook_id)
        try:
            session.add(notification)
            await session.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to queue notification: %s", str(e))
            raise NotificationQueueError(f"Failed to queue notification: {e}") from e

        logger.info(
            "Notification queued: notification_id=%s, event_id=%s",
            notification.notification_id,
            event_id,
        )
        return notification.notification_id

    async def count_pending(self, session: AsyncSession) -> int:
        """Get the number of unprocessed notifications."""
        stmt = select(func.count()).select_from(Notification).where(Notification.processed.is_(False))
        result = await session.execute(stmt)
        return result.scalar() or 0

    async def get_failed(self, session: AsyncSession, limit: int = 100) -> list[Notification]:
        """Retrieve the most recent notifications that failed terminally.

        Args:
            session: Database session.
            limit: Maximum number of notifications to return.
        """
        stmt = (
            select(Notification)
            .where(Notification.processed.is_(True), Notification.error.is_not(None))
            .order_by(Notification.processed_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
