from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.database.models import WorkOrderTask
from signdesk.repositories.base_repository import BaseRepository


class WorkOrderTaskRepository(BaseRepository[WorkOrderTask]):
    """Repository for work order tasks."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkOrderTask)

    async def bulk_create(self, work_order_id: UUID, tasks: List[Dict[str, Any]]) -> List[WorkOrderTask]:
        """Insert all tasks for a work order in one commit.

        Args:
            work_order_id: Parent work order
            tasks: Column values per task (name, description, priority, status)

        Returns:
            The created task rows
        """
        rows = [WorkOrderTask(work_order_id=work_order_id, **task) for task in tasks]
        try:
            self.session.add_all(rows)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return rows

    async def list_for_work_order(self, work_order_id: UUID) -> List[WorkOrderTask]:
        query = (
            select(WorkOrderTask)
            .where(WorkOrderTask.work_order_id == work_order_id)
            .order_by(WorkOrderTask.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
