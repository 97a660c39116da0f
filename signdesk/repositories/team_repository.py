from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.database.models import WorkOrderChatMessage, WorkOrderTeamMember
from signdesk.repositories.base_repository import BaseRepository


class TeamMemberRepository(BaseRepository[WorkOrderTeamMember]):
    """Repository for the per-work-order team roster."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkOrderTeamMember)

    async def list_members(self, work_order_id: UUID) -> List[WorkOrderTeamMember]:
        query = (
            select(WorkOrderTeamMember)
            .where(WorkOrderTeamMember.work_order_id == work_order_id)
            .order_by(WorkOrderTeamMember.added_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def add_members(
        self, work_order_id: UUID, user_profile_ids: Sequence[UUID]
    ) -> List[WorkOrderTeamMember]:
        """Add users to the roster, ignoring ones already on it.

        Returns:
            Only the newly created memberships
        """
        existing = {member.user_profile_id for member in await self.list_members(work_order_id)}
        rows = []
        for user_profile_id in dict.fromkeys(user_profile_ids):
            if user_profile_id in existing:
                continue
            rows.append(
                WorkOrderTeamMember(work_order_id=work_order_id, user_profile_id=user_profile_id)
            )
        if not rows:
            return []
        try:
            self.session.add_all(rows)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return rows

    async def remove_member(self, work_order_id: UUID, user_profile_id: UUID) -> bool:
        stmt = delete(WorkOrderTeamMember).where(
            WorkOrderTeamMember.work_order_id == work_order_id,
            WorkOrderTeamMember.user_profile_id == user_profile_id,
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return result.rowcount > 0

    async def is_member(self, work_order_id: UUID, user_profile_id: UUID) -> bool:
        query = select(WorkOrderTeamMember.id).where(
            WorkOrderTeamMember.work_order_id == work_order_id,
            WorkOrderTeamMember.user_profile_id == user_profile_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none() is not None


class ChatMessageRepository(BaseRepository[WorkOrderChatMessage]):
    """Repository for team chat messages."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkOrderChatMessage)

    async def list_messages(
        self,
        work_order_id: UUID,
        since: Optional[datetime] = None,
        limit: int = 200,
    ) -> List[WorkOrderChatMessage]:
        """Messages in chronological order, optionally only those created after ``since``."""
        query = select(WorkOrderChatMessage).where(
            WorkOrderChatMessage.work_order_id == work_order_id
        )
        if since is not None:
            query = query.where(WorkOrderChatMessage.created_at > since)
        query = query.order_by(WorkOrderChatMessage.created_at.asc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_changed_since(
        self, work_order_id: UUID, since: datetime
    ) -> List[WorkOrderChatMessage]:
        """Messages created or edited after ``since``, used by the chat stream."""
        query = (
            select(WorkOrderChatMessage)
            .where(
                WorkOrderChatMessage.work_order_id == work_order_id,
                or_(
                    WorkOrderChatMessage.created_at > since,
                    WorkOrderChatMessage.edited_at > since,
                ),
            )
            .order_by(WorkOrderChatMessage.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, message: WorkOrderChatMessage) -> WorkOrderChatMessage:
        """Commit changes made to a loaded message."""
        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return message
