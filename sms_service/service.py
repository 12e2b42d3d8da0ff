"""Send Coordinator: submit, query and delivery-outcome handling for SMS messages.

Submit persists the message, publishes an envelope, and commits once, so a
concurrent reader sees either nothing or the final PENDING/FAILED row. A
publish failure never surfaces as a request error; the message is stored as
FAILED instead.

ApplyDeliveryOutcome overwrites the status unconditionally unless
``reject_duplicate_outcomes`` is enabled. Messages whose callback never
arrives stay PENDING; nothing here times them out.
"""
import asyncio
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from sms_common.envelope import DeliveryReport, Envelope, format_local_datetime
from sms_common.metrics import MetricsSink
from sms_common.status import MessageStatus, can_transition
from sms_service.errors import MessageNotFoundError, OutcomeConflictError
from sms_service.models import FAILURE_REASON_MAX_LENGTH, Message
from sms_service.rabbit import QueuePublisher
from sms_service.repository import MessageRepository
from sms_service.schemas import (
    MessageListResponse,
    MessageResponse,
    MessageStatsResponse,
    SendMessageRequest,
)

logger = logging.getLogger(__name__)

QUEUE_FAILURE_PREFIX = "Failed to queue message for processing: "


def build_envelope(message: Message, retry_at: str | None = None) -> Envelope:
    return Envelope(
        message_id=message.id,
        sender=message.sender,
        recipient=message.recipient,
        text=message.text,
        status=MessageStatus(message.status),
        created_at=format_local_datetime(message.created_at),
        is_retry=retry_at is not None,
        retry_at=retry_at,
    )


class MessageService:
    def __init__(
        self,
        db: AsyncSession,
        publisher: QueuePublisher,
        metrics: MetricsSink,
        reject_duplicate_outcomes: bool = False,
    ):
        self.db = db
        self.repo = MessageRepository(db)
        self.publisher = publisher
        self.metrics = metrics
        self.reject_duplicate_outcomes = reject_duplicate_outcomes

    async def _publish(self, body: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.publisher.publish, body)

    async def send_message(self, request: SendMessageRequest) -> MessageResponse:
        with self.metrics.timer("sms_send_duration"):
            logger.info("Sending SMS from %s to %s", request.sender, request.recipient)
            message = Message(
                sender=request.sender,
                recipient=request.recipient,
                text=request.text,
                status=MessageStatus.PENDING.value,
            )
            self.db.add(message)
            # flush assigns id and timestamps without making the row visible yet
            await self.db.flush()

            try:
                await self._publish(build_envelope(message).to_json())
                logger.info("Message %s sent to processing queue", message.id)
                self.metrics.increment("sms_queued_total")
            except Exception as e:
                logger.exception("Failed to send message %s to processing queue", message.id)
                message.mark_as_failed(f"{QUEUE_FAILURE_PREFIX}{e}"[:FAILURE_REASON_MAX_LENGTH])
                self.metrics.increment("sms_queue_failed_total")

            await self.db.commit()
            return MessageResponse.model_validate(message)

    async def get_message(self, message_id: UUID) -> MessageResponse:
        message = await self.repo.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return MessageResponse.model_validate(message)

    async def get_user_messages(
        self, user_id: str, page: int, size: int, status: MessageStatus | None = None
    ) -> MessageListResponse:
        logger.debug("Retrieving messages for user %s page=%d size=%d status=%s", user_id, page, size, status)
        messages = await self.repo.find_by_user(user_id, page, size, status)
        total = await self.repo.count_by_user(user_id, status)
        return MessageListResponse.build([MessageResponse.model_validate(m) for m in messages], total, page, size)

    async def get_failed_messages(self, page: int, size: int) -> MessageListResponse:
        messages = await self.repo.find_failed(page, size)
        total = await self.repo.count(MessageStatus.FAILED)
        return MessageListResponse.build([MessageResponse.model_validate(m) for m in messages], total, page, size)

    async def get_stats(self) -> MessageStatsResponse:
        by_status = await self.repo.count_by_status()
        return MessageStatsResponse.build(
            total=sum(by_status.values()),
            pending=by_status[MessageStatus.PENDING],
            sent=by_status[MessageStatus.SENT],
            failed=by_status[MessageStatus.FAILED],
        )

    async def apply_delivery_outcome(self, report: DeliveryReport) -> MessageResponse:
        with self.metrics.timer("sms_callback_duration"):
            logger.info("Processing delivery report for message %s with status %s", report.message_id, report.status.value)
            message = await self.repo.get(report.message_id)
            if message is None:
                logger.warning("Message not found for delivery report: %s", report.message_id)
                raise MessageNotFoundError(report.message_id)

            if not can_transition(message.status_enum, report.status):
                if self.reject_duplicate_outcomes:
                    logger.warning("Rejecting outcome %s for message %s already %s", report.status.value, message.id, message.status)
                    raise OutcomeConflictError(message.id, message.status)
                logger.warning("Overwriting terminal status %s of message %s with %s", message.status, message.id, report.status.value)

            if report.status is MessageStatus.SENT:
                message.mark_as_sent()
                logger.info("Message %s marked as SENT", message.id)
                self.metrics.increment("sms_sent_total")
            else:
                message.mark_as_failed(report.failure_reason or "")
                logger.info("Message %s marked as FAILED: %s", message.id, message.failure_reason)
                self.metrics.increment("sms_failed_total")

            await self.db.commit()
            return MessageResponse.model_validate(message)
