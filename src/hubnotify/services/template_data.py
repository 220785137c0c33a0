"""Template context preparation for notification events.

Builds the data templates are rendered with, backed by the payload cache:
the package or repository an event refers to is loaded once per event and
reused by every notification of that event until the cache entry expires.
Rendered email content is cached the same way, without a recipient.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hubnotify.services.email import EmailData
from hubnotify.services.payload_cache import CacheKind, cache_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hubnotify.services.notifications import NotificationEvent
    from hubnotify.services.packages import (
        PackageInfo,
        PackageManager,
        RepositoryInfo,
        RepositoryManager,
    )
    from hubnotify.services.payload_cache import PayloadCache
    from hubnotify.services.templates import TemplateRenderer

logger = logging.getLogger(__name__)


class MissingEventDataError(LookupError):
    """Raised when an event lacks the reference its kind requires."""


def package_url(base_url: str, package: PackageInfo, include_version: bool = True) -> str:
    """Build the public URL of a package (version) page.

    Example: https://hub.local/packages/helm/bitnami/etcd/3.5.0
    """
    url = (
        f"{base_url}/packages/{package.repository.kind.value}"
        f"/{package.repository.name}/{package.normalized_name}"
    )
    if include_version and package.version:
        url = f"{url}/{package.version}"
    return url


def _split_lines(value: str | None) -> list[str]:
    if not value:
        return []
    return [line for line in value.split("\n") if line.strip()]


class TemplateDataBuilder:
    """Prepares template context and email content for events.

    Attributes:
        base_url: Public base URL of the hub, without trailing slash.
    """

    def __init__(
        self,
        package_manager: PackageManager,
        repository_manager: RepositoryManager,
        cache: PayloadCache,
        renderer: TemplateRenderer,
        base_url: str,
    ) -> None:
        self.package_manager = package_manager
        self.repository_manager = repository_manager
        self.cache = cache
        self.renderer = renderer
        self.base_url = base_url.rstrip("/")

    async def get_package(self, session: AsyncSession, event: NotificationEvent) -> PackageInfo:
        """Get the package version a package event refers to.

        Raises:
            MissingEventDataError: If the event has no package reference.
            PackageNotFoundError: If the package version does not exist.
        """
        key = cache_key(CacheKind.PACKAGE, event.event_id)
        package = self.cache.get(key)
        if package is not None:
            return package

        if event.package_id is None:
            msg = f"Event {event.event_id} has no package"
            raise MissingEventDataError(msg)

        package = await self.package_manager.get(session, event.package_id, event.package_version)
        self.cache.set(key, package)
        return package

    async def get_repository(
        self,
        session: AsyncSession,
        event: NotificationEvent,
    ) -> RepositoryInfo:
        """Get the repository a repository event refers to.

        Raises:
            MissingEventDataError: If the event has no repository reference.
            RepositoryNotFoundError: If the repository does not exist.
        """
        key = cache_key(CacheKind.REPOSITORY, event.event_id)
        repository = self.cache.get(key)
        if repository is not None:
            return repository

        if event.repository_id is None:
            msg = f"Event {event.event_id} has no repository"
            raise MissingEventDataError(msg)

        repository = await self.repository_manager.get_by_id(session, event.repository_id)
        self.cache.set(key, repository)
        return repository

    async def context(self, session: AsyncSession, event: NotificationEvent) -> dict[str, Any]:
        """Build the template context of an event.

        Package events get a ``package`` entry, repository events a
        ``repository`` entry.
        """
        context: dict[str, Any] = {
            "base_url": self.base_url,
            "event": {"id": str(event.event_id), "kind": event.kind.type_name},
        }

        if event.kind.is_package_event:
            package = await self.get_package(session, event)
            context["package"] = {
                "name": package.name,
                "version": package.version,
                "logoImageID": str(package.logo_image_id) if package.logo_image_id else "",
                "url": package_url(self.base_url, package),
                "changes": list(package.changes),
                "containsSecurityUpdates": package.contains_security_updates,
                "prerelease": package.prerelease,
                "repository": {
                    "kind": package.repository.kind.value,
                    "name": package.repository.name,
                    "publisher": package.repository.publisher,
                },
            }
        else:
            repository = await self.get_repository(session, event)
            context["repository"] = {
                "kind": repository.kind.value,
                "name": repository.name,
                "userAlias": repository.user_alias or "",
                "organizationName": repository.organization_name or "",
                "lastScanningErrors": _split_lines(repository.last_scanning_errors),
                "lastTrackingErrors": _split_lines(repository.last_tracking_errors),
            }

        return context

    async def email_data(self, session: AsyncSession, event: NotificationEvent) -> EmailData:
        """Get the rendered email of an event, without recipient.

        Callers fill in the recipient with ``dataclasses.replace(data, to=...)``.

        Raises:
            TemplateRenderError: If the email cannot be rendered.
        """
        key = cache_key(CacheKind.EMAIL_DATA, event.event_id)
        data = self.cache.get(key)
        if data is not None:
            return data

        context = await self.context(session, event)
        subject, body = self.renderer.render_email(event.kind, context)
        data = EmailData(to="", subject=subject, body=body)
        self.cache.set(key, data)

        logger.debug("Email data prepared: event_id=%s", event.event_id)
        return data
