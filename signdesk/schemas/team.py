from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

MAX_MESSAGE_LENGTH = 2000


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    user_profile_id: UUID
    added_at: Optional[datetime] = None


class AddTeamMembersRequest(BaseModel):
    user_profile_ids: List[UUID] = Field(..., min_length=1)


class ChatMessageCreate(BaseModel):
    user_profile_id: UUID
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    file_references: List[UUID] = Field(default_factory=list)


class ChatMessageUpdate(BaseModel):
    user_profile_id: UUID
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class ChatMessageResponse(BaseModel):
    """A chat message as shown to clients; deleted messages have an empty body."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    user_profile_id: UUID
    message: str
    file_references: List[UUID] = Field(default_factory=list)
    edited_at: Optional[datetime] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, message) -> "ChatMessageResponse":
        response = cls.model_validate(message)
        if response.is_deleted:
            response.message = ""
            response.file_references = []
        return response
