"""hubnotify - notification delivery worker for the package hub.

Delivers queued notifications about hub events (new package releases,
repository scanning and tracking errors, ownership claims) to users by
email and to user configured webhooks.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
