import asyncio
import json
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signdesk.core.config import settings
from signdesk.core.database import async_session_maker
from signdesk.database.models import WorkOrderChatMessage
from signdesk.repositories.team_repository import ChatMessageRepository
from signdesk.schemas.sse_schemas import SSEEvent, SSEEventType
from signdesk.schemas.team import ChatMessageResponse
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ChatStreamManager:
    """Streams a work order's chat as Server-Sent Events by polling the database."""

    def __init__(
        self,
        poll_interval: Optional[float] = None,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    ):
        self.poll_interval = (
            settings.extraction.chat_poll_interval if poll_interval is None else poll_interval
        )
        self.session_maker = session_maker
        # Track emitted message states to avoid duplicates
        self._emitted: Set[str] = set()

    async def stream_chat_events(self, work_order_id: UUID) -> AsyncGenerator[str, None]:
        """Emit existing messages, then new or changed ones, with a heartbeat per poll."""
        started_at = datetime.now(timezone.utc)

        async with self.session_maker() as session:
            messages = await ChatMessageRepository(session).list_messages(work_order_id)
        for message in messages:
            event = self._message_event(work_order_id, message)
            if event:
                yield self._format_sse(event)

        try:
            while True:
                yield self._format_sse(SSEEvent(
                    event_type=SSEEventType.HEARTBEAT,
                    work_order_id=work_order_id,
                    data={"message": "keep-alive"}
                ))

                async with self.session_maker() as session:
                    changed = await ChatMessageRepository(session).list_changed_since(
                        work_order_id, started_at
                    )
                for message in changed:
                    event = self._message_event(work_order_id, message)
                    if event:
                        yield self._format_sse(event)

                await asyncio.sleep(self.poll_interval)

        except asyncio.CancelledError:
            LOGGER.info(f"Chat stream cancelled for work order {work_order_id}")
        except Exception as e:
            LOGGER.error(f"Error in chat stream for {work_order_id}: {e}", exc_info=True)
            yield self._format_sse(SSEEvent(
                event_type=SSEEventType.STREAM_ERROR,
                work_order_id=work_order_id,
                data={"message": f"Stream error: {str(e)}"}
            ))

    def _message_event(
        self, work_order_id: UUID, message: WorkOrderChatMessage
    ) -> Optional[SSEEvent]:
        """Build the event for a message state not emitted yet."""
        state_key = f"{message.id}:{message.edited_at}:{message.is_deleted}"
        if state_key in self._emitted:
            return None
        self._emitted.add(state_key)

        if message.is_deleted:
            event_type = SSEEventType.MESSAGE_DELETED
        elif message.edited_at is not None:
            event_type = SSEEventType.MESSAGE_UPDATED
        else:
            event_type = SSEEventType.MESSAGE_CREATED

        return SSEEvent(
            event_type=event_type,
            work_order_id=work_order_id,
            timestamp=message.edited_at or message.created_at or datetime.now(timezone.utc),
            data=ChatMessageResponse.from_model(message).model_dump(mode="json"),
        )

    def _format_sse(self, event: SSEEvent) -> str:
        """Format an SSEEvent as a raw SSE message."""
        data = event.model_dump(mode="json")
        return f"event: {data['event_type']}\ndata: {json.dumps(data)}\n\n"
