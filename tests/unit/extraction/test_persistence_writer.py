from datetime import date
from uuid import uuid4

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError

from signdesk.core.exceptions import PersistenceError
from signdesk.services.extraction.persistence_writer import PersistenceWriter
from signdesk.services.extraction.response_normalizer import normalize


@pytest.fixture
def work_order_repository():
    repository = MagicMock()
    repository.apply_analysis = AsyncMock(return_value=True)
    return repository


@pytest.fixture
def task_repository():
    repository = MagicMock()
    repository.bulk_create = AsyncMock(side_effect=lambda work_order_id, rows: [MagicMock() for _ in rows])
    return repository


@pytest.fixture
def writer(work_order_repository, task_repository):
    return PersistenceWriter(work_order_repository, task_repository)


@pytest.mark.asyncio
async def test_minimal_analysis_only_writes_present_columns(writer, work_order_repository, task_repository):
    work_order_id = uuid4()

    result = await writer.apply(work_order_id, normalize('{"work_order_number":"WO-1"}'))

    work_order_repository.apply_analysis.assert_awaited_once_with(
        work_order_id,
        {"analysis": {"work_order_number": "WO-1"}, "work_order_number": "WO-1"},
    )
    task_repository.bulk_create.assert_not_awaited()
    assert result.tasks_created == 0
    assert result.tasks_failed is False


@pytest.mark.asyncio
async def test_tasks_are_inserted_with_defaults(writer, work_order_repository, task_repository):
    work_order_id = uuid4()
    normalized = normalize(
        '{"work_order_date": "2024-03-05", "suggested_tasks": ['
        '{"name": "Survey", "priority": "High"}, {"name": "Install", "description": "Mount faces"}]}'
    )

    result = await writer.apply(work_order_id, normalized)

    values = work_order_repository.apply_analysis.await_args.args[1]
    assert values["work_order_date"] == date(2024, 3, 5)
    task_repository.bulk_create.assert_awaited_once_with(
        work_order_id,
        [
            {"name": "Survey", "description": None, "priority": "High", "status": "Pending"},
            {"name": "Install", "description": "Mount faces", "priority": "Medium", "status": "Pending"},
        ],
    )
    assert result.tasks_created == 2


@pytest.mark.asyncio
async def test_task_insert_failure_is_swallowed(writer, task_repository):
    task_repository.bulk_create.side_effect = OperationalError("INSERT", {}, Exception("deadlock"))

    result = await writer.apply(uuid4(), normalize('{"suggested_tasks":[{"name":"Install"}]}'))

    assert result.tasks_created == 0
    assert result.tasks_failed is True


@pytest.mark.asyncio
async def test_update_failure_raises(writer, work_order_repository, task_repository):
    work_order_repository.apply_analysis.side_effect = OperationalError("UPDATE", {}, Exception("connection lost"))

    with pytest.raises(PersistenceError) as exc_info:
        await writer.apply(uuid4(), normalize('{"suggested_tasks":[{"name":"Install"}]}'))

    assert exc_info.value.to_payload()["error"] == "Failed to update work order"
    assert "connection lost" in exc_info.value.details
    task_repository.bulk_create.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_row_raises(writer, work_order_repository):
    work_order_repository.apply_analysis.return_value = False

    with pytest.raises(PersistenceError):
        await writer.apply(uuid4(), normalize("{}"))
