"""Webhook delivery handler.

Renders the payload of an event with the webhook's own template (or the
default CloudEvents envelope) and posts it to the webhook.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from hubnotify.services.delivery import DeliveryResult
from hubnotify.services.notifications import WebhookTarget
from hubnotify.services.templates import TemplateRenderError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hubnotify.services.notifications import PendingNotification
    from hubnotify.worker.context import DeliveryContext

logger = logging.getLogger(__name__)


async def deliver_webhook_notification(
    session: AsyncSession,
    notification: PendingNotification,
    context: DeliveryContext,
) -> DeliveryResult:
    """Deliver a notification by calling a webhook.

    Only package events can be delivered to webhooks, and only to active ones.

    Args:
        session: Session of the transaction holding the claim.
        notification: The claimed notification, targeting a webhook.
        context: Delivery collaborators.

    Returns:
        DeliveryResult of the attempt.
    """
    target = notification.target
    if not isinstance(target, WebhookTarget):
        msg = f"Notification {notification.notification_id} does not target a webhook"
        raise TypeError(msg)

    if not target.active:
        return DeliveryResult.terminal("webhook is not active")

    event = notification.event
    if not event.kind.is_package_event:
        return DeliveryResult.terminal(f"event kind {event.kind.type_name} not supported by webhooks")

    try:
        template_context = await context.template_data.context(session, event)
    except SQLAlchemyError as e:
        return DeliveryResult.retryable(f"error preparing webhook payload: {e}")
    except LookupError as e:
        return DeliveryResult.terminal(f"error preparing webhook payload: {e}")

    try:
        payload = context.renderer.render_webhook_payload(template_context, target.template)
    except TemplateRenderError as e:
        return DeliveryResult.terminal(str(e))

    result = await context.webhook_sender.send(target, payload)
    if not result.succeeded:
        logger.info(
            "Webhook delivery failed: notification_id=%s, webhook_id=%s, outcome=%s, error=%s",
            notification.notification_id,
            target.webhook_id,
            result.outcome.value,
            result.error,
        )
    return result
