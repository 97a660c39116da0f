from signdesk.database.models import (
    JobStatus,
    TaskPriority,
    TaskStatus,
    WorkOrder,
    WorkOrderChatMessage,
    WorkOrderFile,
    WorkOrderTask,
    WorkOrderTeamMember,
)

__all__ = [
    "JobStatus",
    "TaskPriority",
    "TaskStatus",
    "WorkOrder",
    "WorkOrderChatMessage",
    "WorkOrderFile",
    "WorkOrderTask",
    "WorkOrderTeamMember",
]
