"""SQLAlchemy ORM models.

This package contains the database models the worker reads and writes:
- base: Common metadata, annotated column types and enums
- users: Users and organizations
- packages: Repositories, packages and package versions
- notifications: Events, webhooks and the notifications queue
"""

from hubnotify.db.models.base import Base, EventKind, RepositoryKind, metadata
from hubnotify.db.models.notifications import Event, Notification, Webhook
from hubnotify.db.models.packages import Package, Repository, Snapshot
from hubnotify.db.models.users import Organization, User

__all__ = [
    "Base",
    "Event",
    "EventKind",
    "Notification",
    "Organization",
    "Package",
    "Repository",
    "RepositoryKind",
    "Snapshot",
    "User",
    "Webhook",
    "metadata",
]
