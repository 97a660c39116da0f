from signdesk.repositories.base_repository import BaseRepository
from signdesk.repositories.team_repository import ChatMessageRepository, TeamMemberRepository
from signdesk.repositories.work_order_file_repository import WorkOrderFileRepository
from signdesk.repositories.work_order_repository import WorkOrderRepository
from signdesk.repositories.work_order_task_repository import WorkOrderTaskRepository

__all__ = [
    "BaseRepository",
    "ChatMessageRepository",
    "TeamMemberRepository",
    "WorkOrderFileRepository",
    "WorkOrderRepository",
    "WorkOrderTaskRepository",
]
