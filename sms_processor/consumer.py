import logging
from concurrent.futures import Executor
from functools import partial
from typing import Callable

import pika

from sms_common.envelope import Envelope
from sms_common.metrics import MetricsSink
from sms_processor.dedup import RedeliveryGuard
from sms_processor.process import decode_envelope

logger = logging.getLogger(__name__)


class EnvelopeDispatcher:
    """Decodes deliveries and hands processing off to an executor.

    Runs on the consuming thread and returns as soon as the envelope is
    submitted. ``on_done`` fires on the executor thread once processing has
    finished, successfully or not; it is how the delivery gets acked.
    """

    def __init__(
        self,
        executor: Executor,
        handler: Callable[[Envelope], None],
        metrics: MetricsSink,
        guard: RedeliveryGuard | None = None,
    ):
        self.executor = executor
        self.handler = handler
        self.metrics = metrics
        self.guard = guard

    def dispatch(self, body: bytes, on_done: Callable[[], None] | None = None) -> bool:
        """Return True when the envelope was submitted; ``on_done`` then fires later."""
        envelope = decode_envelope(body, self.metrics)
        if envelope is None:
            return False
        if self.guard is not None and self.guard.is_duplicate(envelope):
            logger.info("Skipping redelivered envelope for message %s", envelope.message_id)
            self.metrics.increment("sms_envelope_duplicate_total")
            return False
        logger.info("Received SMS request for message ID: %s", envelope.message_id)
        self.executor.submit(self._run, envelope, on_done)
        return True

    def _run(self, envelope: Envelope, on_done: Callable[[], None] | None) -> None:
        try:
            self.handler(envelope)
        except Exception:
            logger.exception("Processing task crashed for message %s", envelope.message_id)
        if on_done is None:
            return
        try:
            on_done()
        except Exception:
            # connection gone; the broker redelivers the unacked envelope
            logger.exception("Could not ack message %s", envelope.message_id)


def build_message_callback(connection, dispatcher: EnvelopeDispatcher):
    """pika ``on_message_callback`` that acks once processing has finished.

    Acks are scheduled back onto the connection thread, so prefetch bounds
    the envelopes in flight. Dropped deliveries (undecodable or redelivered)
    are acked at once; a failed handoff is nacked without requeue.
    """

    def on_message(channel, method, properties, body):
        tag = method.delivery_tag
        ack = partial(connection.add_callback_threadsafe, partial(channel.basic_ack, delivery_tag=tag))
        try:
            submitted = dispatcher.dispatch(body, on_done=ack)
        except Exception as e:
            logger.exception("Consumer error: %s", e)
            channel.basic_nack(delivery_tag=tag, requeue=False)
            return
        if not submitted:
            channel.basic_ack(delivery_tag=tag)

    return on_message


def run_consumer(url: str, queue: str, prefetch_count: int, dispatcher: EnvelopeDispatcher) -> None:
    conn = pika.BlockingConnection(pika.URLParameters(url))
    ch = conn.channel()
    ch.queue_declare(queue=queue, durable=True)
    ch.basic_qos(prefetch_count=prefetch_count)

    ch.basic_consume(queue=queue, on_message_callback=build_message_callback(conn, dispatcher))
    logger.info("Consuming from %s (prefetch=%d)", queue, prefetch_count)
    try:
        ch.start_consuming()
    finally:
        if conn.is_open:
            conn.close()
