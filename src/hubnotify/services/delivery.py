"""Delivery outcome classification.

Every delivery attempt ends in exactly one of three outcomes. The outcome
decides what happens to the notification row:

- DELIVERED: marked processed, no error.
- TERMINAL: marked processed, the error message is kept for operators.
- RETRYABLE: nothing is written, the row stays claimable and is picked up
  again on a later iteration (by this or another worker).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DeliveryOutcome(str, Enum):
    """Classification of a delivery attempt."""

    DELIVERED = "delivered"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Result of a delivery attempt.

    Attributes:
        outcome: How the attempt ended.
        error: Error message for failed attempts, None when delivered.
    """

    outcome: DeliveryOutcome
    error: str | None = None

    @classmethod
    def delivered(cls) -> DeliveryResult:
        return cls(DeliveryOutcome.DELIVERED)

    @classmethod
    def retryable(cls, error: str) -> DeliveryResult:
        return cls(DeliveryOutcome.RETRYABLE, error)

    @classmethod
    def terminal(cls, error: str) -> DeliveryResult:
        return cls(DeliveryOutcome.TERMINAL, error)

    @property
    def is_retryable(self) -> bool:
        return self.outcome is DeliveryOutcome.RETRYABLE

    @property
    def succeeded(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED
