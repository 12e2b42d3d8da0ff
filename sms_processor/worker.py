import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from prometheus_client import start_http_server

from sms_common.metrics import PrometheusMetrics
from sms_processor.callback import HttpCallbackInvoker
from sms_processor.consumer import EnvelopeDispatcher, run_consumer
from sms_processor.dedup import RedeliveryGuard
from sms_processor.env import (
    CALLBACK_TIMEOUT,
    CALLBACK_URL,
    DEDUP_WINDOW_SECONDS,
    LOG_LEVEL,
    METRICS_PORT,
    PREFETCH_COUNT,
    PROCESSING_MAX_DELAY_MS,
    PROCESSING_MIN_DELAY_MS,
    PROCESSING_WORKERS,
    RABBITMQ_QUEUE,
    RABBITMQ_URL,
    REDIS_URL,
    SUCCESS_RATE,
)
from sms_processor.process import process_envelope
from sms_processor.simulator import DeliverySimulator

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


def main() -> None:
    metrics = PrometheusMetrics()
    if METRICS_PORT > 0:
        start_http_server(METRICS_PORT)
        logger.info("Metrics exposed on :%d", METRICS_PORT)

    simulator = DeliverySimulator(PROCESSING_MIN_DELAY_MS, PROCESSING_MAX_DELAY_MS, SUCCESS_RATE)
    invoker = HttpCallbackInvoker(CALLBACK_URL, timeout=CALLBACK_TIMEOUT)
    guard = RedeliveryGuard(REDIS_URL, DEDUP_WINDOW_SECONDS)
    logger.info(
        "Processor starting: delay=[%d, %d]ms success_rate=%.2f workers=%d dedup=%s",
        PROCESSING_MIN_DELAY_MS,
        PROCESSING_MAX_DELAY_MS,
        SUCCESS_RATE,
        PROCESSING_WORKERS,
        guard.enabled,
    )

    handler = partial(process_envelope, simulator=simulator, invoker=invoker, metrics=metrics)
    try:
        with ThreadPoolExecutor(max_workers=PROCESSING_WORKERS, thread_name_prefix="sms-process") as executor:
            dispatcher = EnvelopeDispatcher(executor, handler, metrics, guard=guard if guard.enabled else None)
            run_consumer(RABBITMQ_URL, RABBITMQ_QUEUE, PREFETCH_COUNT, dispatcher)
    finally:
        # executor exit waits for in-flight callbacks first
        invoker.close()


if __name__ == "__main__":
    main()
