"""Notification worker entry point.

This module provides the Worker class that:
- Claims pending notifications from the PostgreSQL queue
- Dispatches them to the email or webhook handler
- Records the outcome, or leaves the notification for a later retry
- Pauses when the queue is empty or after errors, waking up on shutdown

Several Worker instances run concurrently in one process. They share the
payload cache, the HTTP client and the session factory; SELECT ... FOR
UPDATE SKIP LOCKED keeps them from delivering the same notification.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, NoReturn, assert_never

from sqlalchemy.exc import SQLAlchemyError

from hubnotify.core.settings import get_settings
from hubnotify.db import create_engine, create_session_factory
from hubnotify.services.delivery import DeliveryResult
from hubnotify.services.email import build_email_sender
from hubnotify.services.notifications import NotificationManager, UserTarget, WebhookTarget
from hubnotify.services.packages import PackageManager, RepositoryManager
from hubnotify.services.payload_cache import PayloadCache
from hubnotify.services.template_data import TemplateDataBuilder
from hubnotify.services.templates import TemplateRenderer
from hubnotify.services.webhook import WebhookSender
from hubnotify.worker.context import DeliveryContext
from hubnotify.worker.handlers import deliver_email_notification, deliver_webhook_notification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from hubnotify.core.config import Settings
    from hubnotify.services.notifications import PendingNotification

logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    """Result of one pass of the dequeue transaction."""

    NO_PENDING = "no_pending"
    RETRY = "retry"
    PROCESSED = "processed"


@dataclass
class WorkerConfig:
    """Configuration for a worker loop.

    Attributes:
        name: Identifier of the loop instance, used in logs.
        pause_on_empty_queue: Seconds to wait when there is nothing to deliver.
        pause_on_error: Seconds to wait after a failed or retryable attempt.
        shutdown_timeout: Seconds the entry point waits for loops to stop.
    """

    name: str = "worker"
    pause_on_empty_queue: float = 30.0
    pause_on_error: float = 10.0
    shutdown_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings, name: str = "worker") -> WorkerConfig:
        return cls(
            name=name,
            pause_on_empty_queue=settings.worker.pause_on_empty_queue,
            pause_on_error=settings.worker.pause_on_error,
            shutdown_timeout=settings.worker.shutdown_timeout,
        )


class _RetryLater(Exception):
    """Aborts the dequeue transaction so the claim is released untouched."""

    def __init__(self, notification: PendingNotification, result: DeliveryResult) -> None:
        super().__init__(result.error)
        self.notification = notification
        self.result = result


class Worker:
    """Delivers notifications from the PostgreSQL queue.

    Example:
        worker = Worker(session_factory, NotificationManager(), context, cache)
        await worker.run(shutdown_event)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notification_manager: NotificationManager,
        context: DeliveryContext,
        cache: PayloadCache,
        config: WorkerConfig | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            session_factory: Factory of database sessions.
            notification_manager: Queue access.
            context: Collaborators used by the delivery handlers.
            cache: Payload cache, purged while the queue is empty.
            config: Loop configuration.
        """
        self.session_factory = session_factory
        self.notification_manager = notification_manager
        self.context = context
        self.cache = cache
        self.config = config or WorkerConfig()
        self._started_at: datetime | None = None
        self._delivered = 0
        self._failed = 0
        self._retried = 0

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Process notifications until shutdown is requested.

        Never raises: errors are logged and followed by a pause.
        """
        self._started_at = datetime.now(UTC)
        logger.info("Worker started: name=%s", self.config.name)

        while not shutdown_event.is_set():
            try:
                outcome = await self.process_one()
            except Exception as e:
                logger.exception("Error processing notification: worker=%s, error=%s", self.config.name, e)
                outcome = ProcessOutcome.RETRY

            if outcome is ProcessOutcome.PROCESSED:
                continue

            if outcome is ProcessOutcome.NO_PENDING:
                self.cache.purge_expired()
                pause = self.config.pause_on_empty_queue
            else:
                pause = self.config.pause_on_error

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(shutdown_event.wait(), timeout=pause)

        logger.info(
            "Worker stopped: name=%s, delivered=%d, failed=%d, retried=%d, uptime=%s",
            self.config.name,
            self._delivered,
            self._failed,
            self._retried,
            self._get_uptime(),
        )

    async def process_one(self) -> ProcessOutcome:
        """Claim and deliver one notification in a single transaction.

        The claim lock is held until the transaction ends. Successful and
        terminally failed deliveries are recorded and committed; retryable
        failures roll back so the notification can be claimed again.

        Returns:
            What happened during this pass.

        Raises:
            NotificationQueueError: If claiming or recording fails.
        """
        try:
            async with self.session_factory() as session, session.begin():
                notification = await self.notification_manager.get_pending(session)
                if notification is None:
                    return ProcessOutcome.NO_PENDING

                result = await self._deliver(session, notification)
                if result.is_retryable:
                    raise _RetryLater(notification, result)

                await self.notification_manager.update_status(
                    session,
                    notification.notification_id,
                    processed=True,
                    error=result.error,
                )
        except _RetryLater as retry:
            self._retried += 1
            logger.warning(
                "Notification delivery will be retried: notification_id=%s, event_id=%s, error=%s",
                retry.notification.notification_id,
                retry.notification.event.event_id,
                retry.result.error,
            )
            return ProcessOutcome.RETRY

        if result.succeeded:
            self._delivered += 1
            logger.info(
                "Notification delivered: notification_id=%s, event_id=%s",
                notification.notification_id,
                notification.event.event_id,
            )
        else:
            self._failed += 1
            logger.warning(
                "Notification delivery failed: notification_id=%s, event_id=%s, error=%s",
                notification.notification_id,
                notification.event.event_id,
                result.error,
            )
        return ProcessOutcome.PROCESSED

    async def _deliver(self, session: AsyncSession, notification: PendingNotification) -> DeliveryResult:
        """Run the handler of the notification's target.

        Database errors propagate and roll the transaction back. Any other
        unexpected error is recorded as a terminal failure.
        """
        target = notification.target
        try:
            if isinstance(target, UserTarget):
                return await deliver_email_notification(session, notification, self.context)
            if isinstance(target, WebhookTarget):
                return await deliver_webhook_notification(session, notification, self.context)
            assert_never(target)
        except SQLAlchemyError:
            raise
        except Exception as e:
            logger.exception(
                "Unexpected error delivering notification: notification_id=%s, event_id=%s, error=%s",
                notification.notification_id,
                notification.event.event_id,
                e,
            )
            return DeliveryResult.terminal(f"unexpected delivery error: {e!r}")

    def _get_uptime(self) -> str:
        """Calculate worker uptime as a human-readable string."""
        if self._started_at is None:
            return "0s"
        delta = datetime.now(UTC) - self._started_at
        hours, remainder = divmod(int(delta.total_seconds()), 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours > 0:
            return f"{hours}h {minutes}m {seconds}s"
        elif minutes > 0:
            return f"{minutes}m {seconds}s"
        else:
            return f"{seconds}s"


def _request_shutdown(shutdown_event: asyncio.Event, signum: int) -> None:
    logger.info("Received signal %s, initiating graceful shutdown", signal.Signals(signum).name)
    shutdown_event.set()


async def _async_main(settings: Settings) -> None:
    """Async entry point: run the worker loops until a shutdown signal arrives."""
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, _request_shutdown, shutdown_event, signum)

    engine = create_engine(settings.database)
    session_factory = create_session_factory(engine)

    cache = PayloadCache(ttl=settings.cache.ttl_seconds)
    renderer = TemplateRenderer(namespace=settings.webhook.namespace)
    webhook_sender = WebhookSender(
        namespace=settings.webhook.namespace,
        timeout=settings.webhook.timeout,
        default_content_type=settings.webhook.default_content_type,
    )
    context = DeliveryContext(
        template_data=TemplateDataBuilder(
            PackageManager(),
            RepositoryManager(),
            cache,
            renderer,
            settings.base_url,
        ),
        renderer=renderer,
        webhook_sender=webhook_sender,
        email_sender=build_email_sender(settings.smtp),
    )

    notification_manager = NotificationManager()
    tasks = []
    for i in range(settings.worker.instances):
        config = WorkerConfig.from_settings(settings, name=f"worker-{i + 1}")
        worker = Worker(session_factory, notification_manager, context, cache, config)
        tasks.append(asyncio.create_task(worker.run(shutdown_event), name=config.name))

    logger.info("Started %d worker loops", len(tasks))

    try:
        await shutdown_event.wait()

        _, pending = await asyncio.wait(tasks, timeout=settings.worker.shutdown_timeout)
        if pending:
            logger.warning("%d worker loops did not stop within timeout, cancelling", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
    finally:
        await webhook_sender.close()
        await engine.dispose()


def run() -> NoReturn:
    """Run the worker process.

    This is the main entry point for the worker. It:
    - Loads and validates configuration (exits on invalid settings)
    - Sets up logging
    - Runs the worker loops until SIGTERM/SIGINT
    """
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("%s worker starting...", settings.app_name)

    try:
        asyncio.run(_async_main(settings))
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
    except Exception as e:
        logger.exception("Worker failed: %s", e)
        sys.exit(1)

    logger.info("%s worker shutdown complete", settings.app_name)
    sys.exit(0)


if __name__ == "__main__":
    run()
