import logging
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sms_service.schemas import ErrorResponse, FieldViolation

logger = logging.getLogger(__name__)


class SmsServiceError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    title = "Internal server error"


class MessageNotFoundError(SmsServiceError):
    status_code = 404
    error_code = "MESSAGE_NOT_FOUND"
    title = "Message not found"

    def __init__(self, message_id: UUID):
        self.message_id = message_id
        super().__init__(f"Message not found: {message_id}")


class OutcomeConflictError(SmsServiceError):
    status_code = 409
    error_code = "OUTCOME_CONFLICT"
    title = "Message already in a terminal state"

    def __init__(self, message_id: UUID, current_status: str):
        self.message_id = message_id
        self.current_status = current_status
        super().__init__(f"Message {message_id} is already {current_status}")


class QueuePublishError(SmsServiceError):
    """Raised by the RabbitMQ publisher; Submit converts it into a FAILED message."""

    error_code = "QUEUE_PUBLISH_FAILED"
    title = "Failed to publish message"


def _problem(status: int, title: str, detail: str, error_code: str, request: Request, **extra) -> JSONResponse:
    body = ErrorResponse(
        title=title,
        status=status,
        detail=detail,
        instance=request.url.path,
        error_code=error_code,
        **extra,
    )
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or str(loc[0] if loc else "request")


async def _handle_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    violations = [
        FieldViolation(field=_field_name(tuple(err.get("loc", ()))), message=err.get("msg", "invalid value"))
        for err in exc.errors()
    ]
    logger.info("Rejected invalid request to %s: %d violation(s)", request.url.path, len(violations))
    return _problem(
        400,
        "Invalid request",
        "Request validation failed",
        "VALIDATION_ERROR",
        request,
        violations=violations,
    )


async def _handle_service_error(request: Request, exc: SmsServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc)
    return _problem(exc.status_code, exc.title, str(exc), exc.error_code, request)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return _problem(500, "Internal server error", "Failed to process request", "INTERNAL_ERROR", request)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _handle_validation)
    app.add_exception_handler(SmsServiceError, _handle_service_error)
    app.add_exception_handler(Exception, _handle_unexpected)
