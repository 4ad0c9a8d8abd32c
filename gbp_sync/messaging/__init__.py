"""
Messaging package.

Publishes downstream work messages (keyword-stuffing checks, review sync,
media sync) to queues. SQS is the only backend; others can be added by
implementing `MessagePublisher`.
"""

from .base import MessagePublisher
from .sqs import SqsPublisher

__all__ = [
    "MessagePublisher",
    "SqsPublisher",
]
