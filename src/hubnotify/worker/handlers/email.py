"""Email delivery handler.

Sends the notification email of an event to a user. The email content is
rendered once per event and shared by all recipients.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from hubnotify.services.delivery import DeliveryResult
from hubnotify.services.email import EmailDeliveryError, SenderNotAvailableError, TransientEmailError
from hubnotify.services.notifications import UserTarget
from hubnotify.services.templates import TemplateRenderError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hubnotify.services.notifications import PendingNotification
    from hubnotify.worker.context import DeliveryContext

logger = logging.getLogger(__name__)


async def deliver_email_notification(
    session: AsyncSession,
    notification: PendingNotification,
    context: DeliveryContext,
) -> DeliveryResult:
    """Deliver a notification by email.

    Args:
        session: Session of the transaction holding the claim.
        notification: The claimed notification, targeting a user.
        context: Delivery collaborators.

    Returns:
        DeliveryResult of the attempt.
    """
    target = notification.target
    if not isinstance(target, UserTarget):
        msg = f"Notification {notification.notification_id} does not target a user"
        raise TypeError(msg)

    if context.email_sender is None:
        return DeliveryResult.terminal(str(SenderNotAvailableError()))

    try:
        data = await context.template_data.email_data(session, notification.event)
    except SQLAlchemyError as e:
        return DeliveryResult.retryable(f"error preparing email data: {e}")
    except (LookupError, TemplateRenderError) as e:
        return DeliveryResult.terminal(f"error preparing email data: {e}")

    try:
        await context.email_sender.send_email(dataclasses.replace(data, to=target.email))
    except TransientEmailError as e:
        logger.warning(
            "Email delivery failed, will retry: notification_id=%s, error=%s",
            notification.notification_id,
            e,
        )
        return DeliveryResult.retryable(str(e))
    except EmailDeliveryError as e:
        return DeliveryResult.terminal(str(e))

    return DeliveryResult.delivered()
