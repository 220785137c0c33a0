"""hubnotify worker service.

PostgreSQL-backed notification delivery:
- Email notifications to users
- Webhook calls with CloudEvents (or custom) payloads
- Retries of transient failures until they succeed

Usage:
    # Run as module
    python -m hubnotify.worker

    # Or through the console script
    hubnotify-worker
"""

from hubnotify.worker.main import ProcessOutcome, Worker, WorkerConfig, run

__all__ = ["ProcessOutcome", "Worker", "WorkerConfig", "run"]
