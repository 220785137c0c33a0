"""Base model definitions, mixins, and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Common annotated column types for timestamps and UUIDs
- Enum types used across multiple models
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()

# UUID primary key with server-side default generation
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

# Timestamp with timezone, defaults to now
TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]

# Optional timestamp with timezone
OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

ShortString = Annotated[str, mapped_column(String(100))]
MediumString = Annotated[str, mapped_column(String(255))]
LongString = Annotated[str, mapped_column(String(1000))]


class Base(DeclarativeBase):
    """Declarative base for all models."""

    metadata = metadata
    registry = type_registry


# =============================================================================
# Common Enums
# =============================================================================


class EventKind(enum.Enum):
    """Kinds of events that produce notifications.

    Values:
        NEW_RELEASE: A new package version was published
        REPOSITORY_SCANNING_ERRORS: Security scanning of a repository failed
        REPOSITORY_TRACKING_ERRORS: Tracking (indexing) of a repository failed
        REPOSITORY_OWNERSHIP_CLAIM: Someone claimed ownership of a repository
    """

    NEW_RELEASE = "new_release"
    REPOSITORY_SCANNING_ERRORS = "repository_scanning_errors"
    REPOSITORY_TRACKING_ERRORS = "repository_tracking_errors"
    REPOSITORY_OWNERSHIP_CLAIM = "repository_ownership_claim"

    @property
    def type_name(self) -> str:
        """Public name of the event kind, as used in payloads."""
        return _EVENT_KIND_TYPE_NAMES[self]

    @property
    def is_package_event(self) -> bool:
        """Whether the event refers to a package version."""
        return self is EventKind.NEW_RELEASE


_EVENT_KIND_TYPE_NAMES = {
    EventKind.NEW_RELEASE: "package.new-release",
    EventKind.REPOSITORY_SCANNING_ERRORS: "repository.scanning-errors",
    EventKind.REPOSITORY_TRACKING_ERRORS: "repository.tracking-errors",
    EventKind.REPOSITORY_OWNERSHIP_CLAIM: "repository.ownership-claim",
}


class RepositoryKind(enum.Enum):
    """Kind of artifacts a repository hosts.

    The value is the public kind name used in URLs and payloads.
    """

    HELM = "helm"
    FALCO = "falco"
    OPA = "opa"
    OLM = "olm"
    TBACTION = "tbaction"
    KREW = "krew"
    HELM_PLUGIN = "helm-plugin"
    TEKTON_TASK = "tekton-task"
    KEDA_SCALER = "keda-scaler"
    COREDNS = "coredns"
    KEPTN = "keptn"
    TEKTON_PIPELINE = "tekton-pipeline"
    CONTAINER = "container"
    KUBEWARDEN = "kubewarden"
    GATEKEEPER = "gatekeeper"
    KYVERNO = "kyverno"
