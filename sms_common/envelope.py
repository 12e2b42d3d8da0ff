"""Wire schemas shared by the SMS service and the processor.

The envelope travels producer -> queue -> consumer and is a snapshot of the
stored message at publish time. The delivery report travels back over HTTP.
"""
import json
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from sms_common.status import MessageStatus, TERMINAL_STATUSES

# failure_reason column width
FAILURE_REASON_MAX_LENGTH = 500

FAILURE_REASONS = (
    "Invalid phone number",
    "Network timeout",
    "Carrier rejected message",
    "Daily quota exceeded",
    "Phone number blocked",
    "Message content violation",
    "Temporary service unavailable",
)


class EnvelopeDecodeError(ValueError):
    pass


def format_local_datetime(value: datetime) -> str:
    return value.replace(tzinfo=None).isoformat()


class Envelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    message_id: UUID = Field(..., alias="messageId")
    sender: str
    recipient: str
    text: str
    status: MessageStatus
    created_at: str = Field(..., alias="createdAt")
    is_retry: bool = Field(False, alias="isRetry")
    retry_at: str | None = Field(None, alias="retryAt")

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes | str) -> "Envelope":
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EnvelopeDecodeError(f"envelope is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise EnvelopeDecodeError("envelope must be a JSON object")
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise EnvelopeDecodeError(f"envelope failed validation: {e.error_count()} error(s)") from e


class DeliveryReport(BaseModel):
    message_id: UUID
    status: MessageStatus
    failure_reason: str | None = Field(None, max_length=FAILURE_REASON_MAX_LENGTH)
    processed_at: str | None = None

    @field_validator("status")
    @classmethod
    def _terminal_only(cls, v: MessageStatus) -> MessageStatus:
        if v not in TERMINAL_STATUSES:
            raise ValueError("status must be SENT or FAILED")
        return v

    @model_validator(mode="after")
    def _reason_iff_failed(self) -> "DeliveryReport":
        has_reason = bool(self.failure_reason and self.failure_reason.strip())
        if self.status is MessageStatus.FAILED and not has_reason:
            raise ValueError("failure_reason is required when status is FAILED")
        if self.status is MessageStatus.SENT and has_reason:
            raise ValueError("failure_reason is only allowed when status is FAILED")
        return self

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
