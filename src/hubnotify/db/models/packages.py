"""Repository, package and package version (snapshot) models.

These tables are written by the tracker; the notification worker only
reads them to build notification payloads.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Enum, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hubnotify.db.models.base import (
    Base,
    RepositoryKind,
    TimestampTZ,
    UUIDPrimaryKey,
)
from hubnotify.db.models.users import Organization, User


class Repository(Base):
    """A repository of packages, owned by a user or by an organization."""

    __tablename__ = "repositories"

    repository_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    kind: Mapped[RepositoryKind] = mapped_column(
        Enum(RepositoryKind, name="repository_kind", create_constraint=True),
        nullable=False,
    )

    # Owner: exactly one of these is set by the account subsystem
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

    # Newline separated error reports from the last tracking/scanning runs
    last_scanning_errors: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_tracking_errors: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped[User | None] = relationship("User")
    organization: Mapped[Organization | None] = relationship("Organization")
    packages: Mapped[list[Package]] = relationship(
        "Package",
        back_populates="repository",
        cascade="all, delete-orphan",
    )


class Package(Base):
    """A package published in a repository."""

    __tablename__ = "packages"

    package_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    logo_image_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("repositories.repository_id", ondelete="CASCADE"),
        nullable=False,
    )

    repository: Mapped[Repository] = relationship("Repository", back_populates="packages")
    snapshots: Mapped[list[Snapshot]] = relationship(
        "Snapshot",
        back_populates="package",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_packages_repository_id", "repository_id"),
        Index("uq_packages_repository_id_name", "repository_id", "name", unique=True),
    )


class Snapshot(Base):
    """A specific version of a package."""

    __tablename__ = "snapshots"

    package_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("packages.package_id", ondelete="CASCADE"),
        primary_key=True,
    )
    version: Mapped[str] = mapped_column(String(100), primary_key=True)
    created_at: Mapped[TimestampTZ]

    # List of human readable change entries for this version
    changes: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    contains_security_updates: Mapped[bool] = mapped_column(default=False, nullable=False)
    prerelease: Mapped[bool] = mapped_column(default=False, nullable=False)

    package: Mapped[Package] = relationship("Package", back_populates="snapshots")
