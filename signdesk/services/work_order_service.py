"""Work order intake and management."""

import time
import uuid
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.core.config import settings
from signdesk.core.exceptions import AppError, NotFoundError, StorageError, ValidationError
from signdesk.repositories.work_order_file_repository import WorkOrderFileRepository
from signdesk.repositories.work_order_repository import WorkOrderRepository
from signdesk.repositories.work_order_task_repository import WorkOrderTaskRepository
from signdesk.schemas.work_orders import (
    FailedUpload,
    WorkOrderDetailResponse,
    WorkOrderFileResponse,
    WorkOrderResponse,
    WorkOrderTaskResponse,
    WorkOrderUploadResponse,
)
from signdesk.services.base_service import BaseService
from signdesk.services.storage_service import StorageService, storage_key_from_url
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


def generate_storage_name(filename: str) -> str:
    """Unique object name that keeps the original extension."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{extension}"


class WorkOrderService(BaseService):
    """Service for work order uploads, listing and deletion."""

    def __init__(self, session: AsyncSession, storage: Optional[StorageService] = None):
        super().__init__()
        self.session = session
        self.work_order_repo = WorkOrderRepository(session)
        self.file_repo = WorkOrderFileRepository(session)
        self.task_repo = WorkOrderTaskRepository(session)
        self.storage_service = storage or StorageService()
        self.bucket = settings.work_order_bucket
        self.repository = self.work_order_repo

    def validate(self, *args, **kwargs):
        if kwargs.get("action") in ("upload_work_order", "add_files") and not kwargs.get("files"):
            raise ValidationError("At least one file is required")

    async def run(self, *args, **kwargs) -> Any:
        """Route to the handler for ``action``."""
        action = kwargs.get("action")

        if action == "upload_work_order":
            work_order = await self.work_order_repo.create_work_order(kwargs.get("uploaded_by"))
            LOGGER.info(f"Work order created: work_order_id={work_order.id}")
            return await self._upload_files_logic(work_order.id, kwargs["files"])
        elif action == "add_files":
            work_order_id = kwargs["work_order_id"]
            if await self.work_order_repo.get_by_id(work_order_id) is None:
                raise NotFoundError(f"Work order {work_order_id} not found")
            return await self._upload_files_logic(work_order_id, kwargs["files"])
        else:
            raise AppError(f"Unknown action: {action}")

    async def upload_work_order(
        self, files: List[UploadFile], uploaded_by: Optional[UUID] = None
    ) -> WorkOrderUploadResponse:
        """Create a work order from its first batch of files."""
        return await self.execute(action="upload_work_order", files=files, uploaded_by=uploaded_by)

    async def add_files(self, work_order_id: UUID, files: List[UploadFile]) -> WorkOrderUploadResponse:
        return await self.execute(action="add_files", work_order_id=work_order_id, files=files)

    async def _upload_files_logic(
        self, work_order_id: UUID, files: List[UploadFile]
    ) -> WorkOrderUploadResponse:
        uploaded: List[WorkOrderFileResponse] = []
        failed: List[FailedUpload] = []

        for file in files:
            if not file.filename:
                failed.append(FailedUpload(filename="unknown", error="File has no filename"))
                continue

            storage_name = generate_storage_name(file.filename)
            try:
                await self.storage_service.upload_file(
                    file,
                    bucket=self.bucket,
                    path=storage_name,
                    content_type=file.content_type or "application/octet-stream",
                )
                record = await self.file_repo.create_file(
                    work_order_id=work_order_id,
                    file_url=self.storage_service.get_public_url(self.bucket, storage_name),
                    file_name=file.filename,
                    file_size=file.size,
                    mime_type=file.content_type,
                )
            except StorageError as e:
                LOGGER.error(
                    f"File upload failed: filename={file.filename}, error={str(e)}",
                    extra={"work_order_id": str(work_order_id), "file_name": file.filename},
                )
                failed.append(FailedUpload(filename=file.filename, error=str(e)))
                continue
            except SQLAlchemyError as e:
                LOGGER.error(
                    f"File record creation failed: filename={file.filename}, error={str(e)}",
                    exc_info=True,
                    extra={"work_order_id": str(work_order_id), "error_type": type(e).__name__},
                )
                failed.append(FailedUpload(filename=file.filename, error=str(e)))
                continue

            uploaded.append(WorkOrderFileResponse.model_validate(record))

        LOGGER.info(
            f"Upload batch completed: total={len(files)}, successful={len(uploaded)}, "
            f"failed={len(failed)}, work_order_id={work_order_id}"
        )
        return WorkOrderUploadResponse(
            work_order_id=work_order_id,
            files=uploaded,
            total_uploaded=len(uploaded),
            failed_uploads=failed,
        )

    async def list_work_orders(
        self, processed: Optional[bool] = None, limit: int = 50, offset: int = 0
    ) -> Dict[str, Any]:
        work_orders = await self.work_order_repo.list_work_orders(
            processed=processed, limit=limit, offset=offset
        )
        filters = {"processed": processed} if processed is not None else None
        total = await self.work_order_repo.count(filters=filters)
        return {
            "total": total,
            "work_orders": [WorkOrderResponse.model_validate(wo) for wo in work_orders],
        }

    async def get_pending_count(self) -> int:
        return await self.work_order_repo.count_pending()

    async def get_work_order(self, work_order_id: UUID) -> WorkOrderDetailResponse:
        work_order = await self.work_order_repo.get_with_details(work_order_id)
        if work_order is None:
            raise NotFoundError(f"Work order {work_order_id} not found")
        return WorkOrderDetailResponse.model_validate(work_order)

    async def list_tasks(self, work_order_id: UUID) -> List[WorkOrderTaskResponse]:
        if await self.work_order_repo.get_by_id(work_order_id) is None:
            raise NotFoundError(f"Work order {work_order_id} not found")
        tasks = await self.task_repo.list_for_work_order(work_order_id)
        return [WorkOrderTaskResponse.model_validate(task) for task in tasks]

    async def delete_work_order(self, work_order_id: UUID) -> None:
        """Delete stored objects, then the work order and everything it owns.

        Storage cleanup is best effort; the row is deleted even if it fails.
        """
        if await self.work_order_repo.get_by_id(work_order_id) is None:
            raise NotFoundError(f"Work order {work_order_id} not found")

        files = await self.file_repo.list_for_work_order(work_order_id)
        await self._remove_objects([storage_key_from_url(f.file_url) for f in files])

        await self.work_order_repo.delete(work_order_id)
        LOGGER.info(
            f"Work order deleted: work_order_id={work_order_id}",
            extra={"files": len(files)},
        )

    async def delete_file(self, file_id: UUID) -> None:
        record = await self.file_repo.get_by_id(file_id)
        if record is None:
            raise NotFoundError(f"File {file_id} not found")

        await self._remove_objects([storage_key_from_url(record.file_url)])
        await self.file_repo.delete(file_id)

    async def _remove_objects(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            await self.storage_service.remove_files(self.bucket, keys)
        except StorageError as e:
            LOGGER.warning(
                f"Error deleting files from storage: {e}",
                extra={"bucket": self.bucket, "keys": keys},
            )
