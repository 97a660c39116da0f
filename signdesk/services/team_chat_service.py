"""Team roster and chat for a work order."""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from signdesk.database.models import WorkOrder, WorkOrderChatMessage
from signdesk.repositories.team_repository import ChatMessageRepository, TeamMemberRepository
from signdesk.repositories.work_order_repository import WorkOrderRepository
from signdesk.schemas.team import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatMessageUpdate,
    TeamMemberResponse,
)
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TeamChatService:
    """Roster management and chat posting rules.

    Only the work order owner and roster members may post. Only the author
    may edit or delete a message, and deletion is soft.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.work_order_repo = WorkOrderRepository(session)
        self.team_repo = TeamMemberRepository(session)
        self.chat_repo = ChatMessageRepository(session)

    async def _get_work_order(self, work_order_id: UUID) -> WorkOrder:
        work_order = await self.work_order_repo.get_by_id(work_order_id)
        if work_order is None:
            raise NotFoundError(f"Work order {work_order_id} not found")
        return work_order

    async def list_team(self, work_order_id: UUID) -> List[TeamMemberResponse]:
        await self._get_work_order(work_order_id)
        members = await self.team_repo.list_members(work_order_id)
        return [TeamMemberResponse.model_validate(member) for member in members]

    async def add_team_members(
        self, work_order_id: UUID, user_profile_ids: Sequence[UUID]
    ) -> List[TeamMemberResponse]:
        """Add users to the roster; users already on it are ignored."""
        await self._get_work_order(work_order_id)
        added = await self.team_repo.add_members(work_order_id, user_profile_ids)
        LOGGER.info(
            f"Added {len(added)} team member(s) to work order {work_order_id}",
            extra={"requested": len(user_profile_ids)},
        )
        return [TeamMemberResponse.model_validate(member) for member in added]

    async def remove_team_member(self, work_order_id: UUID, user_profile_id: UUID) -> None:
        await self._get_work_order(work_order_id)
        if not await self.team_repo.remove_member(work_order_id, user_profile_id):
            raise NotFoundError(
                f"User {user_profile_id} is not on the team of work order {work_order_id}"
            )

    async def can_post(self, work_order: WorkOrder, user_profile_id: UUID) -> bool:
        if work_order.owner_id == user_profile_id:
            return True
        return await self.team_repo.is_member(work_order.id, user_profile_id)

    async def list_messages(
        self, work_order_id: UUID, since: Optional[datetime] = None
    ) -> List[ChatMessageResponse]:
        await self._get_work_order(work_order_id)
        messages = await self.chat_repo.list_messages(work_order_id, since=since)
        return [ChatMessageResponse.from_model(message) for message in messages]

    async def post_message(
        self, work_order_id: UUID, payload: ChatMessageCreate
    ) -> ChatMessageResponse:
        """Post a message.

        Raises:
            NotFoundError: If the work order does not exist
            PermissionDeniedError: If the author is neither owner nor team member
            ValidationError: If the message is blank
        """
        work_order = await self._get_work_order(work_order_id)
        if not await self.can_post(work_order, payload.user_profile_id):
            raise PermissionDeniedError(
                f"User {payload.user_profile_id} is not a member of this work order's team"
            )
        if not payload.message.strip():
            raise ValidationError("Message must not be empty")

        message = await self.chat_repo.create(
            work_order_id=work_order_id,
            user_profile_id=payload.user_profile_id,
            message=payload.message,
            file_references=[str(file_id) for file_id in payload.file_references],
            is_deleted=False,
        )
        return ChatMessageResponse.from_model(message)

    async def _get_own_message(self, message_id: UUID, user_profile_id: UUID) -> WorkOrderChatMessage:
        message = await self.chat_repo.get_by_id(message_id)
        if message is None or message.is_deleted:
            raise NotFoundError(f"Message {message_id} not found")
        if message.user_profile_id != user_profile_id:
            raise PermissionDeniedError("Only the author can change this message")
        return message

    async def edit_message(self, message_id: UUID, payload: ChatMessageUpdate) -> ChatMessageResponse:
        message = await self._get_own_message(message_id, payload.user_profile_id)
        if not payload.message.strip():
            raise ValidationError("Message must not be empty")

        message.message = payload.message
        message.edited_at = datetime.now(timezone.utc)
        await self.chat_repo.save(message)
        return ChatMessageResponse.from_model(message)

    async def delete_message(self, message_id: UUID, user_profile_id: UUID) -> None:
        """Soft-delete a message; the row stays so the stream can report it."""
        message = await self._get_own_message(message_id, user_profile_id)
        message.is_deleted = True
        message.edited_at = datetime.now(timezone.utc)
        await self.chat_repo.save(message)
