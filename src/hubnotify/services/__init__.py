"""hubnotify service layer.

This package contains the services the worker is built from:
- NotificationManager: PostgreSQL-backed notifications queue
- PackageManager / RepositoryManager: Read access to hub data
- PayloadCache: Expiring cache of per-event template data
- TemplateRenderer / TemplateDataBuilder: Email and webhook rendering
- EmailSender: SMTP delivery
- WebhookSender: HTTP delivery
"""

from hubnotify.services.delivery import DeliveryOutcome, DeliveryResult
from hubnotify.services.email import (
    EmailData,
    EmailDeliveryError,
    EmailError,
    EmailSender,
    SenderNotAvailableError,
    TransientEmailError,
    build_email_sender,
)
from hubnotify.services.notifications import (
    InvalidNotificationError,
    NotificationManager,
    NotificationQueueError,
    PendingNotification,
    UserTarget,
    WebhookTarget,
)
from hubnotify.services.packages import (
    PackageManager,
    PackageNotFoundError,
    RepositoryManager,
    RepositoryNotFoundError,
)
from hubnotify.services.payload_cache import CacheKind, PayloadCache, cache_key
from hubnotify.services.template_data import TemplateDataBuilder
from hubnotify.services.templates import TemplateRenderer, TemplateRenderError
from hubnotify.services.webhook import WebhookSender

__all__ = [
    "CacheKind",
    "DeliveryOutcome",
    "DeliveryResult",
    "EmailData",
    "EmailDeliveryError",
    "EmailError",
    "EmailSender",
    "InvalidNotificationError",
    "NotificationManager",
    "NotificationQueueError",
    "PackageManager",
    "PackageNotFoundError",
    "PayloadCache",
    "PendingNotification",
    "RepositoryManager",
    "RepositoryNotFoundError",
    "SenderNotAvailableError",
    "TemplateDataBuilder",
    "TemplateRenderError",
    "TemplateRenderer",
    "TransientEmailError",
    "UserTarget",
    "WebhookSender",
    "WebhookTarget",
    "build_email_sender",
    "cache_key",
]
