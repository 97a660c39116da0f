from datetime import datetime, timezone
from uuid import uuid4

import pytest
from unittest.mock import AsyncMock, MagicMock

from signdesk.api.v1.endpoints.team import get_chat_stream_manager, get_team_chat_service
from signdesk.core.exceptions import NotFoundError, PermissionDeniedError
from signdesk.main import app
from signdesk.schemas.team import ChatMessageResponse, TeamMemberResponse

BASE = "/api/v1/work-orders"


@pytest.fixture
def chat_service():
    service = MagicMock()
    app.dependency_overrides[get_team_chat_service] = lambda: service
    return service


def make_response(work_order_id, user_profile_id, text="Crew on site"):
    return ChatMessageResponse(
        id=uuid4(),
        work_order_id=work_order_id,
        user_profile_id=user_profile_id,
        message=text,
        created_at=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
    )


def test_add_team_members(test_client, chat_service):
    work_order_id, user_id = uuid4(), uuid4()
    chat_service.add_team_members = AsyncMock(
        return_value=[TeamMemberResponse(id=uuid4(), work_order_id=work_order_id, user_profile_id=user_id)]
    )

    response = test_client.post(f"{BASE}/{work_order_id}/team", json={"user_profile_ids": [str(user_id)]})

    assert response.status_code == 201
    assert response.json()["data"]["added"][0]["user_profile_id"] == str(user_id)


def test_add_team_members_requires_ids(test_client, chat_service):
    response = test_client.post(f"{BASE}/{uuid4()}/team", json={"user_profile_ids": []})

    assert response.status_code == 422


def test_post_message(test_client, chat_service):
    work_order_id, user_id = uuid4(), uuid4()
    chat_service.post_message = AsyncMock(return_value=make_response(work_order_id, user_id))

    response = test_client.post(
        f"{BASE}/{work_order_id}/chat",
        json={"user_profile_id": str(user_id), "message": "Crew on site"},
    )

    assert response.status_code == 201
    assert response.json()["data"]["message"] == "Crew on site"
    payload = chat_service.post_message.call_args.args[1]
    assert payload.user_profile_id == user_id


def test_post_message_too_long(test_client, chat_service):
    response = test_client.post(
        f"{BASE}/{uuid4()}/chat",
        json={"user_profile_id": str(uuid4()), "message": "x" * 2001},
    )

    assert response.status_code == 422


def test_post_message_forbidden(test_client, chat_service):
    chat_service.post_message = AsyncMock(side_effect=PermissionDeniedError("not on the team"))

    response = test_client.post(
        f"{BASE}/{uuid4()}/chat",
        json={"user_profile_id": str(uuid4()), "message": "hello"},
    )

    assert response.status_code == 403
    assert response.json()["detail"]["title"] == "Forbidden"


def test_list_messages(test_client, chat_service):
    work_order_id = uuid4()
    chat_service.list_messages = AsyncMock(return_value=[make_response(work_order_id, uuid4())])

    response = test_client.get(f"{BASE}/{work_order_id}/chat")

    data = response.json()["data"]
    assert data["total"] == 1
    assert data["messages"][0]["work_order_id"] == str(work_order_id)


def test_delete_missing_message(test_client, chat_service):
    chat_service.delete_message = AsyncMock(side_effect=NotFoundError("Message not found"))

    response = test_client.delete(f"{BASE}/chat/{uuid4()}", params={"user_profile_id": str(uuid4())})

    assert response.status_code == 404


def test_chat_stream(test_client):
    async def events(work_order_id):
        yield "event: heartbeat\ndata: {}\n\n"

    manager = MagicMock()
    manager.stream_chat_events = events
    app.dependency_overrides[get_chat_stream_manager] = lambda: manager

    response = test_client.get(f"{BASE}/{uuid4()}/chat/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text == "event: heartbeat\ndata: {}\n\n"
