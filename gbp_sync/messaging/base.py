from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol


class MessagePublisher(Protocol):
    """
    Protocol for an outbound queue publisher.

    Delivery is fire-and-forget and at-least-once; callers must not rely on
    ordering between messages.
    """

    def send_batch(self, messages: Sequence[Mapping[str, Any]], queue_key: str) -> None:
        """Send every message to the queue registered under `queue_key`."""
