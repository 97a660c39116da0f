from datetime import datetime, timezone
from enum import Enum
from typing import Dict
from uuid import UUID

from pydantic import BaseModel, Field


class SSEEventType(str, Enum):
    MESSAGE_CREATED = "message:created"
    MESSAGE_UPDATED = "message:updated"
    MESSAGE_DELETED = "message:deleted"
    STREAM_ERROR = "stream:error"
    HEARTBEAT = "heartbeat"


class SSEEvent(BaseModel):
    event_type: SSEEventType
    work_order_id: UUID
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict
