from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from signdesk.database.models import JobStatus, WorkOrder
from signdesk.repositories.base_repository import BaseRepository
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


class WorkOrderRepository(BaseRepository[WorkOrder]):
    """Repository for work order rows, including the extraction write-back."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WorkOrder)

    async def create_work_order(self, uploaded_by: Optional[UUID] = None) -> WorkOrder:
        """Create an unprocessed work order owned by its uploader."""
        return await self.create(
            uploaded_by=uploaded_by,
            owner_id=uploaded_by,
            processed=False,
            analysis=None,
            job_status=JobStatus.OPEN.value,
        )

    async def get_with_details(self, work_order_id: UUID) -> Optional[WorkOrder]:
        """Load a work order together with its files and tasks."""
        query = (
            select(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .options(selectinload(WorkOrder.files), selectinload(WorkOrder.tasks))
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_work_orders(
        self,
        processed: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[WorkOrder]:
        """List work orders newest first."""
        query = select(WorkOrder).order_by(WorkOrder.created_at.desc())
        if processed is not None:
            query = query.where(WorkOrder.processed == processed)
        query = query.offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def claim_for_processing(self, work_order_id: UUID) -> bool:
        """Atomically flip ``processed`` from false to true.

        Returns:
            True when this caller won the claim, False when the row was
            already processed (or claimed) or does not exist.
        """
        stmt = (
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id, WorkOrder.processed.is_(False))
            .values(processed=True)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            self.logger.error(f"Failed to claim work order {work_order_id}", exc_info=True)
            raise
        return result.rowcount == 1

    async def get_stored_analysis(self, work_order_id: UUID) -> Optional[Dict[str, Any]]:
        """Read the stored analysis column directly, bypassing loaded instances."""
        query = select(WorkOrder.analysis).where(WorkOrder.id == work_order_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def release_claim(self, work_order_id: UUID) -> None:
        """Reset ``processed`` after a failed extraction that held the claim."""
        stmt = (
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .values(processed=False)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            self.logger.error(f"Failed to release claim on work order {work_order_id}", exc_info=True)
            raise

    async def apply_analysis(self, work_order_id: UUID, values: Dict[str, Any]) -> bool:
        """Partially update a work order with extracted values.

        Only the keys in ``values`` are written; every other column keeps its
        stored value. ``processed`` is always set to true.

        Returns:
            True if a row was updated
        """
        stmt = (
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .values(processed=True, **values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return result.rowcount > 0

    async def count_pending(self) -> int:
        """Count work orders that have not been processed yet."""
        return await self.count(filters={"processed": False})
