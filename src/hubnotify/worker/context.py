"""Collaborators shared by the delivery handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hubnotify.services.email import EmailSender
    from hubnotify.services.template_data import TemplateDataBuilder
    from hubnotify.services.templates import TemplateRenderer
    from hubnotify.services.webhook import WebhookSender


@dataclass(frozen=True, slots=True)
class DeliveryContext:
    """Everything a handler needs to deliver a notification.

    Attributes:
        template_data: Builds (cached) template context for events.
        renderer: Renders emails and webhook payloads.
        webhook_sender: Posts webhook payloads.
        email_sender: Sends emails, None when no SMTP relay is configured.
    """

    template_data: TemplateDataBuilder
    renderer: TemplateRenderer
    webhook_sender: WebhookSender
    email_sender: EmailSender | None = None
