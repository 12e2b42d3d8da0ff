from typing import Protocol

import pika
from pika.exceptions import AMQPError

from sms_service.config import get_settings
from sms_service.errors import QueuePublishError


class QueuePublisher(Protocol):
    def publish(self, body: bytes) -> None: ...


class RabbitPublisher:
    """Publishes envelopes to the durable SMS request queue.

    A fresh blocking connection is opened per publish; pika connections are
    not thread-safe and publishing runs on executor threads.
    """

    def __init__(self, url: str, queue: str):
        self.url = url
        self.queue = queue

    def _get_connection(self) -> pika.BlockingConnection:
        return pika.BlockingConnection(pika.URLParameters(self.url))

    def publish(self, body: bytes) -> None:
        try:
            self._publish(body)
        except AMQPError as e:
            raise QueuePublishError(f"RabbitMQ publish to '{self.queue}' failed: {e!r}") from e

    def _publish(self, body: bytes) -> None:
        conn = self._get_connection()
        try:
            ch = conn.channel()
            ch.queue_declare(queue=self.queue, durable=True)
            ch.basic_publish(
                exchange="",
                routing_key=self.queue,
                body=body,
                properties=pika.BasicProperties(delivery_mode=2, content_type="application/json"),
            )
            ch.close()
        finally:
            conn.close()


_publisher: RabbitPublisher | None = None


def get_publisher() -> QueuePublisher:
    global _publisher
    if _publisher is None:
        settings = get_settings()
        _publisher = RabbitPublisher(settings.RABBITMQ_URL, settings.RABBITMQ_QUEUE)
    return _publisher
