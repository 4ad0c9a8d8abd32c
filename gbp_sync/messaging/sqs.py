from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import boto3

from .base import MessagePublisher

logger = logging.getLogger(__name__)

# SendMessageBatch accepts at most 10 entries
SQS_MAX_BATCH_SIZE = 10


class SqsPublisher(MessagePublisher):
    """
    SQS-backed publisher.

    Messages are JSON-encoded and sent with SendMessageBatch, ten at a time.
    Entries SQS reports as failed are logged and not retried.

    Configuration via environment variables:
      - AWS_REGION (optional; boto3's default resolution applies otherwise)
    """

    def __init__(
        self,
        queue_url_resolver: Callable[[str], str],
        client: Any | None = None,
        region_name: str | None = None,
    ) -> None:
        """
        Args:
            queue_url_resolver: Maps a queue key to its URL (e.g., SyncConfig.queue_url)
            client: Existing SQS client to reuse
            region_name: AWS region (defaults to AWS_REGION env var)
        """
        self._resolve_queue_url = queue_url_resolver
        self._client = client or boto3.client(
            "sqs", region_name=region_name or os.getenv("AWS_REGION")
        )

    def send_batch(self, messages: Sequence[Mapping[str, Any]], queue_key: str) -> None:
        """
        Send messages to a queue.

        Raises:
            KeyError: If the queue key has no URL configured
            botocore.exceptions.ClientError: If SQS rejects the whole request
        """
        if not messages:
            return

        queue_url = self._resolve_queue_url(queue_key)
        failed = 0

        for start in range(0, len(messages), SQS_MAX_BATCH_SIZE):
            chunk = messages[start:start + SQS_MAX_BATCH_SIZE]
            entries = [
                {"Id": str(index), "MessageBody": json.dumps(message, default=str)}
                for index, message in enumerate(chunk)
            ]
            response = self._client.send_message_batch(QueueUrl=queue_url, Entries=entries)

            for failure in response.get("Failed", []):
                failed += 1
                logger.warning(
                    "SQS rejected message",
                    extra={
                        "queue": queue_key,
                        "entry_id": failure.get("Id"),
                        "code": failure.get("Code"),
                        "error": failure.get("Message"),
                    },
                )

        logger.info(
            "Sent messages to queue",
            extra={"queue": queue_key, "sent": len(messages) - failed, "failed": failed},
        )
