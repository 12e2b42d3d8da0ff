import logging
import time
from typing import Callable

from sms_common.envelope import Envelope, EnvelopeDecodeError
from sms_common.metrics import MetricsSink
from sms_common.status import MessageStatus
from sms_processor.callback import CallbackDeliveryError, CallbackInvoker
from sms_processor.simulator import DeliverySimulator

logger = logging.getLogger(__name__)


def decode_envelope(body: bytes, metrics: MetricsSink) -> Envelope | None:
    try:
        return Envelope.from_json(body)
    except EnvelopeDecodeError as e:
        # No DLQ: the message stays PENDING in the SMS service.
        logger.error("Dropping undecodable envelope: %s body=%r", e, body[:200])
        metrics.increment("sms_envelope_decode_failed_total")
        return None


def process_envelope(
    envelope: Envelope,
    simulator: DeliverySimulator,
    invoker: CallbackInvoker,
    metrics: MetricsSink,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    logger.info("Starting processing for message ID: %s (retry=%s)", envelope.message_id, envelope.is_retry)
    try:
        with metrics.timer("sms_processing_duration"):
            sleep(simulator.draw_delay_seconds())
            report = simulator.draw_outcome(envelope)
    except Exception:
        logger.exception("Unexpected error processing message ID: %s", envelope.message_id)
        metrics.increment("sms_processing_error_total")
        return

    if report.status is MessageStatus.SENT:
        logger.info("Message %s processed successfully", envelope.message_id)
        metrics.increment("sms_processing_success_total")
    else:
        logger.info("Message %s processing failed: %s", envelope.message_id, report.failure_reason)
        metrics.increment("sms_processing_failure_total")

    try:
        invoker.send(report)
    except CallbackDeliveryError as e:
        # Not retried or re-published; the message remains PENDING upstream.
        logger.error("Failed to send delivery report for message %s: %s", envelope.message_id, e)
        metrics.increment("callback_failure_total")
        return
    except Exception:
        logger.exception("Failed to send delivery report for message %s", envelope.message_id)
        metrics.increment("callback_failure_total")
        return
    logger.info("Delivery report sent successfully for message %s", envelope.message_id)
    metrics.increment("callback_success_total")
