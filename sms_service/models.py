import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from sms_common.envelope import FAILURE_REASON_MAX_LENGTH
from sms_common.status import MessageStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC in and out, whether or not the backend keeps offsets."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sender: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    recipient: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    text: Mapped[str] = mapped_column(String(1600), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=MessageStatus.PENDING.value, index=True)
    failure_reason: Mapped[str | None] = mapped_column(String(FAILURE_REASON_MAX_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow, index=True
    )

    @property
    def status_enum(self) -> MessageStatus:
        return MessageStatus(self.status)

    def mark_as_sent(self) -> None:
        self.status = MessageStatus.SENT.value
        self.failure_reason = None
        self.updated_at = _utcnow()

    def mark_as_failed(self, reason: str) -> None:
        # callers bound the length; reports are validated, queue errors are cut in Submit
        self.status = MessageStatus.FAILED.value
        self.failure_reason = reason
        self.updated_at = _utcnow()


# newest-first user listing, with and without a status filter
Index("idx_messages_user_created", Message.sender, Message.created_at.desc())
Index("idx_messages_user_created_2", Message.recipient, Message.created_at.desc())
Index("idx_messages_status_user", Message.status, Message.sender)
Index("idx_messages_status_user_2", Message.status, Message.recipient)
