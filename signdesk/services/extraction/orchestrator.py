"""End-to-end work order extraction.

received -> files-collected -> prompt-built -> model-called ->
response-normalized -> persisted -> responded
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.core.config import settings
from signdesk.core.exceptions import (
    ExtractionInProgressError,
    InvalidRequestError,
    NoFilesFoundError,
    NoSupportedFilesError,
    WorkOrderNotFoundError,
)
from signdesk.repositories.work_order_file_repository import WorkOrderFileRepository
from signdesk.repositories.work_order_repository import WorkOrderRepository
from signdesk.repositories.work_order_task_repository import WorkOrderTaskRepository
from signdesk.services.base_service import BaseService
from signdesk.services.extraction.file_collector import CollectedFile, FileCollector, FileKind
from signdesk.services.extraction.persistence_writer import PersistenceWriter
from signdesk.services.extraction.prompt_builder import build_prompt
from signdesk.services.extraction.response_normalizer import normalize
from signdesk.services.extraction.vision_client import (
    VisionModelClient,
    VisionPart,
    create_vision_client,
)
from signdesk.services.storage_service import StorageService
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ExtractionOutcome:
    analysis: Optional[Dict[str, Any]]
    already_processed: bool = False
    tasks_created: int = 0
    tasks_failed: bool = False


class WorkOrderExtractionService(BaseService):
    """Runs one extraction for one work order within a single request.

    With the claim guard on, the work order is claimed by flipping
    ``processed`` from false to true before any external call, so only one
    concurrent caller proceeds. The claim is released if the run fails.
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[StorageService] = None,
        client_factory: Callable[[Optional[str]], VisionModelClient] = create_vision_client,
        claim_guard: Optional[bool] = None,
    ):
        self.work_orders = WorkOrderRepository(session)
        self.files = WorkOrderFileRepository(session)
        self.tasks = WorkOrderTaskRepository(session)
        super().__init__(self.work_orders)

        self.collector = FileCollector(storage or StorageService())
        self.writer = PersistenceWriter(self.work_orders, self.tasks)
        self.client_factory = client_factory
        self.claim_guard = (
            settings.extraction.claim_guard if claim_guard is None else claim_guard
        )

    def validate(self, work_order_id: UUID, provider: Optional[str] = None):
        if not isinstance(work_order_id, UUID):
            raise InvalidRequestError()

    async def run(self, work_order_id: UUID, provider: Optional[str] = None) -> ExtractionOutcome:
        work_order = await self.work_orders.get_by_id(work_order_id)
        if work_order is None:
            raise WorkOrderNotFoundError()

        if work_order.processed:
            if work_order.analysis is not None or not self.claim_guard:
                return ExtractionOutcome(analysis=work_order.analysis, already_processed=True)
            raise ExtractionInProgressError()

        if self.claim_guard and not await self.work_orders.claim_for_processing(work_order_id):
            # Lost the race: either the winner already finished or it is still running
            stored = await self.work_orders.get_stored_analysis(work_order_id)
            if stored is not None:
                return ExtractionOutcome(analysis=stored, already_processed=True)
            raise ExtractionInProgressError()

        succeeded = False
        try:
            outcome = await self._extract(work_order_id, provider)
            succeeded = True
            return outcome
        finally:
            # Also covers cancellation, which is not an Exception
            if self.claim_guard and not succeeded:
                await asyncio.shield(self._release(work_order_id))

    async def _extract(self, work_order_id: UUID, provider: Optional[str]) -> ExtractionOutcome:
        records = await self.files.list_for_work_order(work_order_id)
        if not records:
            raise NoFilesFoundError()

        client = self.client_factory(provider)

        collection = await self.collector.collect(records)
        if not collection.files:
            details = None
            if collection.failed:
                details = f"Failed to download: {', '.join(collection.failed)}"
            raise NoSupportedFilesError(details=details)

        parts, notes = self._prepare_parts(client, collection.files)
        if not parts:
            raise NoSupportedFilesError(
                details=f"No files the {client.provider} provider can inspect"
            )

        prompt = build_prompt(client.provider, notes)
        raw_text = await client.extract(prompt, parts)
        normalized = normalize(raw_text)
        result = await self.writer.apply(work_order_id, normalized)

        LOGGER.info(
            f"Processed work order {work_order_id}",
            extra={
                "work_order_id": str(work_order_id),
                "provider": client.provider,
                "files": len(parts),
                "tasks_created": result.tasks_created,
                "tasks_failed": result.tasks_failed,
            },
        )
        return ExtractionOutcome(
            analysis=normalized.analysis,
            tasks_created=result.tasks_created,
            tasks_failed=result.tasks_failed,
        )

    @staticmethod
    def _prepare_parts(
        client: VisionModelClient, files: List[CollectedFile]
    ) -> Tuple[List[VisionPart], List[str]]:
        parts: List[VisionPart] = []
        notes: List[str] = []
        for collected in files:
            if collected.kind == FileKind.PDF and not client.supports_pdf:
                notes.append(
                    f"The PDF file '{collected.file_name}' could not be visually inspected "
                    "and was not included. Base the analysis on the other files."
                )
                continue
            parts.append(
                VisionPart(
                    mime_type=collected.mime_type,
                    data=collected.data,
                    name=collected.file_name,
                )
            )
        return parts, notes

    async def _release(self, work_order_id: UUID) -> None:
        try:
            await self.work_orders.release_claim(work_order_id)
            LOGGER.info(f"Released extraction claim on work order {work_order_id}")
        except SQLAlchemyError:
            LOGGER.error(
                f"Could not release extraction claim on work order {work_order_id}",
                exc_info=True,
            )
