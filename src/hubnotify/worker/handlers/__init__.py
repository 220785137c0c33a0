"""Delivery handlers for the notification worker.

Each handler delivers a claimed notification over one channel and
classifies the attempt:
- email: Send the event email to a user
- webhook: Post the event payload to a webhook
"""

from hubnotify.worker.handlers.email import deliver_email_notification
from hubnotify.worker.handlers.webhook import deliver_webhook_notification

__all__ = [
    "deliver_email_notification",
    "deliver_webhook_notification",
]
