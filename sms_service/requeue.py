"""Operator tool: republish envelopes for messages stuck in PENDING.

Nothing runs this automatically and it never changes a message's status; it
only puts a retry-flagged envelope back on the queue so the processor gets
another chance to report an outcome.

    python -m sms_service.requeue --older-than 600 --limit 50
"""
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from sms_common.envelope import format_local_datetime
from sms_service.config import get_settings
from sms_service.rabbit import QueuePublisher, get_publisher
from sms_service.repository import MessageRepository
from sms_service.service import build_envelope

logger = logging.getLogger(__name__)


async def requeue_stuck_messages(
    db: AsyncSession,
    publisher: QueuePublisher,
    older_than_seconds: int,
    limit: int = 100,
    now: datetime | None = None,
) -> int:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=older_than_seconds)
    messages = await MessageRepository(db).find_pending_before(cutoff, limit)
    retry_at = format_local_datetime(now)

    requeued = 0
    for message in messages:
        try:
            publisher.publish(build_envelope(message, retry_at=retry_at).to_json())
        except Exception:
            logger.exception("Failed to requeue message %s", message.id)
            continue
        logger.info("Requeued stuck message %s (created_at=%s)", message.id, message.created_at)
        requeued += 1
    return requeued


async def _main(older_than: int, limit: int) -> None:
    from sms_service.db import async_session_factory, dispose_engine

    try:
        async with async_session_factory() as session:
            count = await requeue_stuck_messages(session, get_publisher(), older_than, limit)
        logger.info("Requeued %d message(s)", count)
    finally:
        await dispose_engine()


if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    parser = argparse.ArgumentParser(description="Republish SMS messages stuck in PENDING")
    parser.add_argument("--older-than", type=int, default=settings.STUCK_PENDING_SECONDS, help="age in seconds")
    parser.add_argument("--limit", type=int, default=100)
    args = parser.parse_args()

    asyncio.run(_main(args.older_than, args.limit))
