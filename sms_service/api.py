import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession

from sms_common.envelope import DeliveryReport
from sms_common.metrics import MetricsSink, PrometheusMetrics
from sms_common.status import MessageStatus
from sms_service.config import Settings, get_settings
from sms_service.db import get_db
from sms_service.rabbit import QueuePublisher, get_publisher
from sms_service.schemas import (
    PHONE_PATTERN,
    MessageListResponse,
    MessageResponse,
    MessageStatsResponse,
    SendMessageRequest,
)
from sms_service.service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")
_metrics: PrometheusMetrics | None = None


def get_metrics() -> MetricsSink:
    global _metrics
    if _metrics is None:
        _metrics = PrometheusMetrics()
    return _metrics


def get_message_service(
    db: AsyncSession = Depends(get_db),
    publisher: QueuePublisher = Depends(get_publisher),
    metrics: MetricsSink = Depends(get_metrics),
    settings: Settings = Depends(get_settings),
) -> MessageService:
    return MessageService(db, publisher, metrics, reject_duplicate_outcomes=settings.REJECT_DUPLICATE_OUTCOMES)


PageParam = Query(0, ge=0, description="Page number (0-based)")
SizeParam = Query(20, ge=1, le=100, description="Page size")


@router.post("/messages", status_code=status.HTTP_202_ACCEPTED, response_model=MessageResponse)
async def send_message(
    request: SendMessageRequest,
    response: Response,
    service: MessageService = Depends(get_message_service),
):
    message = await service.send_message(request)
    response.headers["Location"] = f"/v1/messages/{message.id}"
    return message


@router.get("/messages/stats", response_model=MessageStatsResponse)
async def get_stats(service: MessageService = Depends(get_message_service)):
    return await service.get_stats()


@router.get("/messages/failed", response_model=MessageListResponse)
async def get_failed_messages(
    page: int = PageParam,
    size: int = SizeParam,
    service: MessageService = Depends(get_message_service),
):
    return await service.get_failed_messages(page, size)


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(message_id: UUID, service: MessageService = Depends(get_message_service)):
    return await service.get_message(message_id)


@router.get("/users/{user_id}/messages", response_model=MessageListResponse)
async def get_user_messages(
    user_id: str = Path(..., pattern=PHONE_PATTERN, description="User phone number"),
    page: int = PageParam,
    size: int = SizeParam,
    status: MessageStatus | None = Query(None, description="Filter by message status"),
    service: MessageService = Depends(get_message_service),
):
    return await service.get_user_messages(user_id, page, size, status)


@router.post("/internal/delivery-report", status_code=status.HTTP_200_OK)
async def process_delivery_report(
    report: DeliveryReport,
    service: MessageService = Depends(get_message_service),
):
    logger.info("Received delivery report for message %s with status %s", report.message_id, report.status.value)
    message = await service.apply_delivery_outcome(report)
    return {"message_id": str(message.id), "status": message.status.value}


metrics_router = APIRouter()


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
