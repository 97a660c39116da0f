import asyncio
import json
from types import SimpleNamespace
from uuid import uuid4

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError

from signdesk.core.exceptions import (
    APIClientError,
    ExtractionInProgressError,
    InvalidRequestError,
    NoFilesFoundError,
    NoSupportedFilesError,
    ResponseParseError,
    StorageError,
    VisionServiceError,
    WorkOrderNotFoundError,
)
from signdesk.services.extraction.orchestrator import ExtractionOutcome, WorkOrderExtractionService
from signdesk.services.extraction.persistence_writer import PersistenceWriter
from signdesk.services.extraction.vision_client import VisionModelClient

ANALYSIS = {
    "work_order_number": "WO-2024-001",
    "site_address": "12 Main St",
    "skills_required": ["Electrical"],
    "suggested_tasks": [{"name": "Install faces", "priority": "High"}],
}


class FakeWorkOrderRepository:
    """In-memory work order row with the same claim semantics as the database."""

    def __init__(self, row):
        self.row = row
        self.claims = 0
        self.releases = 0
        self.updates = []

    async def get_by_id(self, work_order_id):
        await asyncio.sleep(0)
        if self.row is None or self.row["id"] != work_order_id:
            return None
        return SimpleNamespace(**self.row)

    async def claim_for_processing(self, work_order_id):
        await asyncio.sleep(0)
        self.claims += 1
        if self.row["processed"]:
            return False
        self.row["processed"] = True
        return True

    async def get_stored_analysis(self, work_order_id):
        return self.row["analysis"]

    async def release_claim(self, work_order_id):
        self.releases += 1
        self.row["processed"] = False

    async def apply_analysis(self, work_order_id, values):
        await asyncio.sleep(0)
        self.updates.append(values)
        self.row.update(values, processed=True)
        return True


class FakeFileRepository:
    def __init__(self, records):
        self.records = records

    async def list_for_work_order(self, work_order_id):
        return list(self.records)


class FakeTaskRepository:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def bulk_create(self, work_order_id, rows):
        if self.error:
            raise self.error
        self.calls.append((work_order_id, rows))
        return rows


class FakeVisionClient(VisionModelClient):
    provider = "gemini"
    supports_pdf = True

    def __init__(self, response=json.dumps(ANALYSIS), error=None, delay=0):
        super().__init__("fake-model")
        self.response = response
        self.error = error
        self.delay = delay
        self.calls = []

    async def _generate(self, prompt, parts):
        self.calls.append((prompt, list(parts)))
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


class ImageOnlyVisionClient(FakeVisionClient):
    provider = "openai"
    supports_pdf = False


@pytest.fixture
def row():
    return {"id": uuid4(), "processed": False, "analysis": None}


@pytest.fixture
def storage(sample_pdf_content):
    service = MagicMock()
    service.download_file = AsyncMock(return_value=sample_pdf_content)
    return service


def build_service(row, records, client, storage, claim_guard=True, tasks=None, repository=None):
    service = WorkOrderExtractionService(
        MagicMock(),
        storage=storage,
        client_factory=lambda provider: client,
        claim_guard=claim_guard,
    )
    service.work_orders = repository or FakeWorkOrderRepository(row)
    service.files = FakeFileRepository(records)
    service.tasks = tasks or FakeTaskRepository()
    service.writer = PersistenceWriter(service.work_orders, service.tasks)
    return service


@pytest.mark.asyncio
async def test_successful_extraction(row, storage, make_file):
    client = FakeVisionClient()
    service = build_service(row, [make_file("order.pdf", work_order_id=row["id"])], client, storage)

    outcome = await service.execute(row["id"])

    assert outcome == ExtractionOutcome(analysis=ANALYSIS, tasks_created=1)
    assert row["processed"] is True
    assert row["analysis"] == ANALYSIS
    assert row["work_order_number"] == "WO-2024-001"
    assert row["skills_required"] == ["Electrical"]
    assert service.tasks.calls[0][1] == [
        {"name": "Install faces", "description": None, "priority": "High", "status": "Pending"}
    ]
    prompt, parts = client.calls[0]
    assert "work_order_number" in prompt
    assert [p.mime_type for p in parts] == ["application/pdf"]


@pytest.mark.asyncio
async def test_invalid_id_is_rejected(row, storage):
    service = build_service(row, [], FakeVisionClient(), storage)

    with pytest.raises(InvalidRequestError):
        await service.execute("not-a-uuid")


@pytest.mark.asyncio
async def test_missing_work_order(row, storage):
    service = build_service(row, [], FakeVisionClient(), storage)

    with pytest.raises(WorkOrderNotFoundError) as exc_info:
        await service.execute(uuid4())

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_already_processed_returns_stored_analysis(row, storage, make_file):
    row.update(processed=True, analysis={"work_order_number": "OLD"})
    client = FakeVisionClient()
    service = build_service(row, [make_file("order.pdf")], client, storage)

    outcome = await service.execute(row["id"])

    assert outcome.already_processed is True
    assert outcome.analysis == {"work_order_number": "OLD"}
    assert client.calls == []
    storage.download_file.assert_not_awaited()


@pytest.mark.asyncio
async def test_processed_without_analysis_is_in_progress(row, storage):
    row["processed"] = True
    service = build_service(row, [], FakeVisionClient(), storage)

    with pytest.raises(ExtractionInProgressError) as exc_info:
        await service.execute(row["id"])

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_processed_without_analysis_and_no_guard(row, storage):
    row["processed"] = True
    service = build_service(row, [], FakeVisionClient(), storage, claim_guard=False)

    outcome = await service.execute(row["id"])

    assert outcome.already_processed is True
    assert outcome.analysis is None


@pytest.mark.asyncio
async def test_no_files_releases_claim(row, storage):
    service = build_service(row, [], FakeVisionClient(), storage)

    with pytest.raises(NoFilesFoundError) as exc_info:
        await service.execute(row["id"])

    assert exc_info.value.to_payload() == {"error": "No files found for this work order"}
    assert row["processed"] is False
    assert service.work_orders.releases == 1


@pytest.mark.asyncio
async def test_failed_downloads_leave_work_order_unprocessed(row, storage, make_file):
    storage.download_file.side_effect = StorageError("Download failed (500)")
    client = FakeVisionClient()
    service = build_service(row, [make_file("a.pdf"), make_file("b.png")], client, storage)

    with pytest.raises(NoSupportedFilesError) as exc_info:
        await service.execute(row["id"])

    assert exc_info.value.status_code == 400
    assert exc_info.value.details == "Failed to download: a.pdf, b.png"
    assert row["processed"] is False
    assert client.calls == []


@pytest.mark.asyncio
async def test_only_unsupported_files(row, storage, make_file):
    service = build_service(row, [make_file("notes.docx"), make_file("sheet.xlsx")], FakeVisionClient(), storage)

    with pytest.raises(NoSupportedFilesError) as exc_info:
        await service.execute(row["id"])

    assert exc_info.value.to_payload() == {"error": "No supported files found (PDF or images only)"}
    storage.download_file.assert_not_awaited()


@pytest.mark.asyncio
async def test_pdfs_become_notes_for_image_only_provider(row, storage, make_file, sample_png_content):
    async def download(bucket, key):
        return sample_png_content if key.endswith(".png") else b"%PDF"

    storage.download_file.side_effect = download
    client = ImageOnlyVisionClient()
    service = build_service(row, [make_file("order.pdf"), make_file("site.png")], client, storage)

    await service.execute(row["id"], provider="openai")

    prompt, parts = client.calls[0]
    assert [p.name for p in parts] == ["site.png"]
    assert "order.pdf" in prompt


@pytest.mark.asyncio
async def test_image_only_provider_with_only_pdfs(row, storage, make_file):
    service = build_service(row, [make_file("order.pdf")], ImageOnlyVisionClient(), storage)

    with pytest.raises(NoSupportedFilesError):
        await service.execute(row["id"], provider="openai")

    assert row["processed"] is False


@pytest.mark.asyncio
async def test_vision_failure_releases_claim(row, storage, make_file):
    client = FakeVisionClient(error=APIClientError("503 Service Unavailable"))
    service = build_service(row, [make_file("order.pdf")], client, storage)

    with pytest.raises(VisionServiceError):
        await service.execute(row["id"])

    assert row["processed"] is False
    assert row["analysis"] is None


@pytest.mark.asyncio
async def test_cancelled_extraction_releases_claim(row, storage, make_file):
    client = FakeVisionClient(delay=5)
    service = build_service(row, [make_file("order.pdf")], client, storage)

    task = asyncio.create_task(service.execute(row["id"]))
    while not client.calls and not task.done():
        await asyncio.sleep(0)
    assert row["processed"] is True

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)

    assert service.work_orders.releases == 1
    assert row["processed"] is False
    assert row["analysis"] is None
    assert service.work_orders.updates == []


@pytest.mark.asyncio
async def test_unparseable_response_is_not_persisted(row, storage, make_file):
    client = FakeVisionClient(response="I could not read these files.")
    service = build_service(row, [make_file("order.pdf")], client, storage)

    with pytest.raises(ResponseParseError) as exc_info:
        await service.execute(row["id"])

    assert exc_info.value.raw_response == "I could not read these files."
    assert service.work_orders.updates == []
    assert row["processed"] is False


@pytest.mark.asyncio
async def test_task_failure_keeps_work_order_processed(row, storage, make_file):
    tasks = FakeTaskRepository(error=OperationalError("INSERT", {}, Exception("boom")))
    service = build_service(row, [make_file("order.pdf")], FakeVisionClient(), storage, tasks=tasks)

    outcome = await service.execute(row["id"])

    assert outcome.tasks_failed is True
    assert outcome.analysis == ANALYSIS
    assert row["processed"] is True


@pytest.mark.asyncio
async def test_guard_off_skips_claim(row, storage, make_file):
    service = build_service(row, [make_file("order.pdf")], FakeVisionClient(), storage, claim_guard=False)

    await service.execute(row["id"])

    assert service.work_orders.claims == 0
    assert row["processed"] is True


@pytest.mark.asyncio
async def test_lost_claim_after_winner_finished(row, storage, make_file):
    repository = FakeWorkOrderRepository(row)
    original_get = repository.get_by_id

    async def stale_read(work_order_id):
        snapshot = await original_get(work_order_id)
        # Another request completes between the read and the claim
        row.update(processed=True, analysis={"work_order_number": "WINNER"})
        return snapshot

    repository.get_by_id = stale_read
    client = FakeVisionClient()
    service = build_service(row, [make_file("order.pdf")], client, storage, repository=repository)

    outcome = await service.execute(row["id"])

    assert outcome.already_processed is True
    assert outcome.analysis == {"work_order_number": "WINNER"}
    assert client.calls == []


@pytest.mark.asyncio
async def test_concurrent_requests_extract_once(row, storage, make_file):
    repository = FakeWorkOrderRepository(row)
    tasks = FakeTaskRepository()
    records = [make_file("order.pdf")]
    clients = [FakeVisionClient(delay=0.01), FakeVisionClient(delay=0.01)]
    services = [
        build_service(row, records, client, storage, repository=repository, tasks=tasks)
        for client in clients
    ]

    results = await asyncio.gather(
        *(service.execute(row["id"]) for service in services), return_exceptions=True
    )

    assert len(tasks.calls) == 1
    assert sum(len(client.calls) for client in clients) == 1
    winners = [r for r in results if isinstance(r, ExtractionOutcome) and not r.already_processed]
    assert len(winners) == 1
    loser = next(r for r in results if r is not winners[0])
    assert isinstance(loser, ExtractionInProgressError) or loser.already_processed
    assert row["processed"] is True
