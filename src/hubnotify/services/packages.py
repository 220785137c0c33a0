"""Read-only access to packages and repositories.

The notification worker needs a snapshot of the package version or the
repository an event refers to. Results are returned as frozen dataclasses
so they can be cached and shared between deliveries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from hubnotify.db.models.packages import Package, Repository, Snapshot

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hubnotify.db.models.base import RepositoryKind

logger = logging.getLogger(__name__)


class PackageNotFoundError(LookupError):
    """Raised when a package version does not exist."""


class RepositoryNotFoundError(LookupError):
    """Raised when a repository does not exist."""


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Snapshot of the repository facts used in notifications."""

    repository_id: uuid.UUID
    name: str
    kind: RepositoryKind
    url: str
    user_alias: str | None = None
    organization_name: str | None = None
    last_scanning_errors: str | None = None
    last_tracking_errors: str | None = None

    @property
    def publisher(self) -> str:
        """Organization name, or the user alias for user owned repositories."""
        return self.organization_name or self.user_alias or ""


@dataclass(frozen=True, slots=True)
class PackageInfo:
    """Snapshot of a package version used in notifications."""

    package_id: uuid.UUID
    name: str
    normalized_name: str
    version: str
    repository: RepositoryInfo
    logo_image_id: uuid.UUID | None = None
    changes: tuple[str, ...] = ()
    contains_security_updates: bool = False
    prerelease: bool = False


def _repository_info(repository: Repository) -> RepositoryInfo:
    return RepositoryInfo(
        repository_id=repository.repository_id,
        name=repository.name,
        kind=repository.kind,
        url=repository.url,
        user_alias=repository.user.alias if repository.user else None,
        organization_name=repository.organization.name if repository.organization else None,
        last_scanning_errors=repository.last_scanning_errors,
        last_tracking_errors=repository.last_tracking_errors,
    )


class PackageManager:
    """Looks up package versions."""

    async def get(
        self,
        session: AsyncSession,
        package_id: uuid.UUID,
        version: str | None = None,
    ) -> PackageInfo:
        """Get a package version.

        Args:
            session: Database session.
            package_id: UUID of the package.
            version: Version to load. Latest known version when None.

        Returns:
            Snapshot of the package version and its repository.

        Raises:
            PackageNotFoundError: If the package or the version does not exist.
        """
        stmt = (
            select(Package, Snapshot)
            .join(Snapshot, Snapshot.package_id == Package.package_id)
            .where(Package.package_id == package_id)
            .options(
                joinedload(Package.repository).joinedload(Repository.user),
                joinedload(Package.repository).joinedload(Repository.organization),
            )
            .order_by(Snapshot.created_at.desc())
            .limit(1)
        )
        if version is not None:
            stmt = stmt.where(Snapshot.version == version)

        result = await session.execute(stmt)
        row = result.first()
        if row is None:
            raise PackageNotFoundError(f"Package not found: {package_id} (version {version})")

        package, snapshot = row
        logger.debug("Loaded package %s version %s", package.name, snapshot.version)

        return PackageInfo(
            package_id=package.package_id,
            name=package.name,
            normalized_name=package.normalized_name,
            version=snapshot.version,
            repository=_repository_info(package.repository),
            logo_image_id=package.logo_image_id,
            changes=tuple(snapshot.changes or ()),
            contains_security_updates=snapshot.contains_security_updates,
            prerelease=snapshot.prerelease,
        )


class RepositoryManager:
    """Looks up repositories."""

    async def get_by_id(self, session: AsyncSession, repository_id: uuid.UUID) -> RepositoryInfo:
        """Get a repository by ID.

        Raises:
            RepositoryNotFoundError: If the repository does not exist.
        """
        stmt = (
            select(Repository)
            .where(Repository.repository_id == repository_id)
            .options(joinedload(Repository.user), joinedload(Repository.organization))
        )
        result = await session.execute(stmt)
        repository = result.scalar_one_or_none()
        if repository is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")

        return _repository_info(repository)
