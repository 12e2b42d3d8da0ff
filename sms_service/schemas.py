import math
import re
import unicodedata
from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sms_common.status import MessageStatus

PHONE_PATTERN = r"^\+?[1-9][0-9]{1,14}$"
_PHONE_RE = re.compile(PHONE_PATTERN)
_ALLOWED_CONTROL_CHARS = {"\n", "\r", "\t"}
MAX_TEXT_CHARS = 1600


def validate_phone(phone: str, field_name: str = "phone") -> str:
    if not (phone or "").strip():
        raise ValueError(f"{field_name} phone number is required")
    if not _PHONE_RE.fullmatch(phone):
        raise ValueError(
            f"Invalid {field_name} phone number format. Use international format (e.g., +1234567890)"
        )
    return phone


class SendMessageRequest(BaseModel):
    sender: str = Field(..., max_length=20)
    recipient: str = Field(..., max_length=20)
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_CHARS)

    @field_validator("sender")
    @classmethod
    def _validate_sender(cls, v: str) -> str:
        return validate_phone(v, "sender")

    @field_validator("recipient")
    @classmethod
    def _validate_recipient(cls, v: str) -> str:
        return validate_phone(v, "recipient")

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message text is required")
        for ch in v:
            if ch not in _ALLOWED_CONTROL_CHARS and unicodedata.category(ch) == "Cc":
                raise ValueError("Message text must contain printable characters only")
        return v


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender: str
    recipient: str
    text: str
    status: MessageStatus
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, messages: list[MessageResponse], total_count: int, page: int, page_size: int) -> "MessageListResponse":
        return cls(
            messages=messages,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if page_size else 0,
        )


class MessageStatsResponse(BaseModel):
    total_messages: int
    pending_messages: int
    sent_messages: int
    failed_messages: int
    success_rate: float

    @classmethod
    def build(cls, total: int, pending: int, sent: int, failed: int) -> "MessageStatsResponse":
        processed = sent + failed
        return cls(
            total_messages=total,
            pending_messages=pending,
            sent_messages=sent,
            failed_messages=failed,
            success_rate=sent / processed if processed > 0 else 0.0,
        )


class FieldViolation(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """RFC 7807 problem details, plus a machine-readable error code."""

    type: str | None = None
    title: str
    status: int
    detail: str
    instance: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None).isoformat())
    error_code: str | None = None
    violations: list[FieldViolation] | None = None
