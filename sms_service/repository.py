from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sms_common.status import MessageStatus
from sms_service.models import Message


class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, message_id: UUID) -> Message | None:
        return await self.db.get(Message, message_id)

    @staticmethod
    def _user_filter(stmt: Select, phone: str, status: MessageStatus | None) -> Select:
        stmt = stmt.where(or_(Message.sender == phone, Message.recipient == phone))
        if status is not None:
            stmt = stmt.where(Message.status == status.value)
        return stmt

    async def find_by_user(
        self, phone: str, page: int, size: int, status: MessageStatus | None = None
    ) -> list[Message]:
        stmt = self._user_filter(select(Message), phone, status)
        stmt = stmt.order_by(Message.created_at.desc()).offset(page * size).limit(size)
        res = await self.db.execute(stmt)
        return list(res.scalars().all())

    async def count_by_user(self, phone: str, status: MessageStatus | None = None) -> int:
        stmt = self._user_filter(select(func.count()).select_from(Message), phone, status)
        return int((await self.db.execute(stmt)).scalar_one())

    async def count_by_status(self) -> dict[MessageStatus, int]:
        res = await self.db.execute(select(Message.status, func.count()).group_by(Message.status))
        counts = {status: 0 for status in MessageStatus}
        for status, cnt in res.all():
            counts[MessageStatus(status)] = int(cnt)
        return counts

    async def count(self, status: MessageStatus | None = None) -> int:
        stmt = select(func.count()).select_from(Message)
        if status is not None:
            stmt = stmt.where(Message.status == status.value)
        return int((await self.db.execute(stmt)).scalar_one())

    async def find_failed(self, page: int, size: int) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.status == MessageStatus.FAILED.value)
            .order_by(Message.updated_at.desc())
            .offset(page * size)
            .limit(size)
        )
        res = await self.db.execute(stmt)
        return list(res.scalars().all())

    async def find_pending_before(self, cutoff: datetime, limit: int) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.status == MessageStatus.PENDING.value, Message.created_at < cutoff)
            .order_by(Message.created_at)
            .limit(limit)
        )
        res = await self.db.execute(stmt)
        return list(res.scalars().all())
