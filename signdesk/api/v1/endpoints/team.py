"""Team roster and chat endpoints for work orders."""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.core.database import get_async_session as get_session
from signdesk.core.exceptions import AppError
from signdesk.schemas.common import ApiResponse
from signdesk.schemas.team import AddTeamMembersRequest, ChatMessageCreate, ChatMessageUpdate
from signdesk.services.chat_stream import ChatStreamManager
from signdesk.services.team_chat_service import TeamChatService
from signdesk.utils.logging import get_logger
from signdesk.utils.responses import create_api_response, http_exception_for

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_team_chat_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> TeamChatService:
    return TeamChatService(db_session)


def get_chat_stream_manager() -> ChatStreamManager:
    return ChatStreamManager()


@router.get(
    "/{work_order_id}/team",
    response_model=ApiResponse,
    summary="List the work order team",
    operation_id="list_work_order_team",
)
async def list_team(
    request: Request,
    work_order_id: UUID,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
) -> ApiResponse:
    try:
        members = await service.list_team(work_order_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data={"total": len(members), "members": members},
        message="Team retrieved successfully",
        request=request
    )


@router.post(
    "/{work_order_id}/team",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add users to the work order team",
    operation_id="add_work_order_team_members",
)
async def add_team_members(
    request: Request,
    work_order_id: UUID,
    payload: AddTeamMembersRequest,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
) -> ApiResponse:
    try:
        added = await service.add_team_members(work_order_id, payload.user_profile_ids)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data={"added": added},
        message=f"Added {len(added)} team member(s)",
        request=request
    )


@router.delete(
    "/{work_order_id}/team/{user_profile_id}",
    response_model=ApiResponse,
    summary="Remove a user from the work order team",
    operation_id="remove_work_order_team_member",
)
async def remove_team_member(
    request: Request,
    work_order_id: UUID,
    user_profile_id: UUID,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
) -> ApiResponse:
    try:
        await service.remove_team_member(work_order_id, user_profile_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=None, message="Team member removed", request=request)


@router.get(
    "/{work_order_id}/chat",
    response_model=ApiResponse,
    summary="List chat messages",
    operation_id="list_work_order_chat_messages",
)
async def list_messages(
    request: Request,
    work_order_id: UUID,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
    since: Optional[datetime] = Query(None, description="Only messages created after this time"),
) -> ApiResponse:
    try:
        messages = await service.list_messages(work_order_id, since=since)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data={"total": len(messages), "messages": messages},
        message="Messages retrieved successfully",
        request=request
    )


@router.post(
    "/{work_order_id}/chat",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a chat message",
    operation_id="post_work_order_chat_message",
)
async def post_message(
    request: Request,
    work_order_id: UUID,
    payload: ChatMessageCreate,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
) -> ApiResponse:
    try:
        message = await service.post_message(work_order_id, payload)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=message, message="Message posted", request=request)


@router.get(
    "/{work_order_id}/chat/stream",
    summary="Stream chat messages",
    operation_id="stream_work_order_chat",
)
async def stream_chat(
    work_order_id: UUID,
    manager: Annotated[ChatStreamManager, Depends(get_chat_stream_manager)],
) -> StreamingResponse:
    """Stream new and changed chat messages as Server-Sent Events."""
    return StreamingResponse(
        manager.stream_chat_events(work_order_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable proxy buffering (Nginx)
        },
    )


@router.patch(
    "/chat/{message_id}",
    response_model=ApiResponse,
    summary="Edit a chat message",
    operation_id="edit_work_order_chat_message",
)
async def edit_message(
    request: Request,
    message_id: UUID,
    payload: ChatMessageUpdate,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
) -> ApiResponse:
    try:
        message = await service.edit_message(message_id, payload)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=message, message="Message updated", request=request)


@router.delete(
    "/chat/{message_id}",
    response_model=ApiResponse,
    summary="Delete a chat message",
    operation_id="delete_work_order_chat_message",
)
async def delete_message(
    request: Request,
    message_id: UUID,
    service: Annotated[TeamChatService, Depends(get_team_chat_service)],
    user_profile_id: UUID = Query(..., description="Author of the message"),
) -> ApiResponse:
    try:
        await service.delete_message(message_id, user_profile_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=None, message="Message deleted", request=request)
