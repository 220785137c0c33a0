"""Allow running the worker with ``python -m hubnotify.worker``."""

from hubnotify.worker.main import run

run()
