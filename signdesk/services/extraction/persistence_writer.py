"""Write a normalized analysis back to the work order and create its tasks."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from signdesk.core.exceptions import PersistenceError
from signdesk.repositories.work_order_repository import WorkOrderRepository
from signdesk.repositories.work_order_task_repository import WorkOrderTaskRepository
from signdesk.services.extraction.response_normalizer import NormalizedAnalysis
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class PersistenceResult:
    tasks_created: int = 0
    tasks_failed: bool = False


class PersistenceWriter:
    """Applies extraction output as two independent writes.

    The work order update is fatal on failure. The task insert is not: a
    failed insert is logged and swallowed, leaving the work order processed
    without its tasks. ``PersistenceResult.tasks_failed`` reports that case.
    """

    def __init__(
        self,
        work_order_repository: WorkOrderRepository,
        task_repository: WorkOrderTaskRepository,
    ):
        self.work_order_repository = work_order_repository
        self.task_repository = task_repository

    async def apply(self, work_order_id: UUID, normalized: NormalizedAnalysis) -> PersistenceResult:
        """Persist ``normalized`` for ``work_order_id``.

        Raises:
            PersistenceError: If the work order update fails
        """
        values = {"analysis": normalized.analysis, **normalized.fields}
        try:
            updated = await self.work_order_repository.apply_analysis(work_order_id, values)
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Failed to update work order {work_order_id}: {e}",
                exc_info=True,
                extra={"work_order_id": str(work_order_id)},
            )
            raise PersistenceError(details=str(e), original_error=e)

        if not updated:
            raise PersistenceError(details=f"Work order {work_order_id} no longer exists")

        LOGGER.info(
            f"Updated work order {work_order_id}",
            extra={"work_order_id": str(work_order_id), "fields": sorted(normalized.fields)},
        )

        if not normalized.tasks:
            return PersistenceResult()

        try:
            rows = await self.task_repository.bulk_create(
                work_order_id, [task.to_row() for task in normalized.tasks]
            )
        except SQLAlchemyError as e:
            # Work order stays processed; tasks are not retried
            LOGGER.error(
                f"Failed to insert suggested tasks for work order {work_order_id}: {e}",
                exc_info=True,
                extra={"work_order_id": str(work_order_id), "tasks": len(normalized.tasks)},
            )
            return PersistenceResult(tasks_created=0, tasks_failed=True)

        return PersistenceResult(tasks_created=len(rows))
