"""Event, webhook and notification models.

Notifications form the durable delivery queue. Workers pick up
unprocessed rows using SELECT ... FOR UPDATE SKIP LOCKED, so several
worker instances can drain the same table safely.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hubnotify.db.models.base import (
    Base,
    EventKind,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)
from hubnotify.db.models.users import User


class Event(Base):
    """Immutable record of something that happened in the hub.

    Package events reference a package version, repository events
    reference a repository.
    """

    __tablename__ = "events"

    event_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    event_kind: Mapped[EventKind] = mapped_column(
        Enum(EventKind, name="event_kind", create_constraint=True),
        nullable=False,
    )

    repository_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("repositories.repository_id", ondelete="CASCADE"),
        nullable=True,
    )
    package_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("packages.package_id", ondelete="CASCADE"),
        nullable=True,
    )
    package_version: Mapped[str | None] = mapped_column(String(100), nullable=True)


class Webhook(Base):
    """A webhook configured by a user or an organization."""

    __tablename__ = "webhooks"

    webhook_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    # Shared secret sent with every request so receivers can authenticate us
    secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Optional Jinja2 template producing the request body
    template: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=True,
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.organization_id", ondelete="CASCADE"),
        nullable=True,
    )


class Notification(Base):
    """A pending delivery obligation: one event for one user or one webhook.

    Rows are never deleted by the worker. Once handled they are marked
    processed, keeping the error message of terminal failures.
    """

    __tablename__ = "notifications"

    notification_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=True,
    )
    webhook_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("webhooks.webhook_id", ondelete="CASCADE"),
        nullable=True,
    )

    processed: Mapped[bool] = mapped_column(default=False, nullable=False)
    processed_at: Mapped[OptionalTimestampTZ]
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    event: Mapped[Event] = relationship("Event")
    user: Mapped[User | None] = relationship("User")
    webhook: Mapped[Webhook | None] = relationship("Webhook")

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (webhook_id IS NULL)",
            name="single_target",
        ),
        # Primary query for workers: oldest unprocessed notification
        Index(
            "ix_notifications_pending",
            "created_at",
            postgresql_where=text("processed = false"),
        ),
        Index("ix_notifications_event_id", "event_id"),
    )
