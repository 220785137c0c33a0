"""Owner models: users and organizations.

Only the columns the notification worker reads are mapped here; the
account subsystem owns the rest of these tables.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from hubnotify.db.models.base import Base, TimestampTZ, UUIDPrimaryKey


class User(Base):
    """A registered user, target of email notifications."""

    __tablename__ = "users"

    user_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    alias: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class Organization(Base):
    """An organization publishing repositories."""

    __tablename__ = "organizations"

    organization_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
