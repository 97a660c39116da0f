from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.database.models import WorkOrderFile
from signdesk.repositories.base_repository import BaseRepository


class WorkOrderFileRepository(BaseRepository[WorkOrderFile]):
    """Repository for uploaded work order files."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkOrderFile)

    async def list_for_work_order(self, work_order_id: UUID) -> List[WorkOrderFile]:
        """Return the file records of a work order in upload order."""
        query = (
            select(WorkOrderFile)
            .where(WorkOrderFile.work_order_id == work_order_id)
            .order_by(WorkOrderFile.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_file(
        self,
        work_order_id: UUID,
        file_url: str,
        file_name: Optional[str],
        file_size: Optional[int],
        mime_type: Optional[str],
    ) -> WorkOrderFile:
        return await self.create(
            work_order_id=work_order_id,
            file_url=file_url,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
        )
