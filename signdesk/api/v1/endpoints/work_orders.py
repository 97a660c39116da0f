from fastapi import APIRouter, Depends, status, UploadFile, File, Form, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
from typing import Annotated, List, Optional

from signdesk.core.database import get_async_session as get_session
from signdesk.core.exceptions import AppError
from signdesk.schemas.common import ApiResponse
from signdesk.services.work_order_service import WorkOrderService
from signdesk.utils.logging import get_logger
from signdesk.utils.responses import create_api_response, http_exception_for

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_work_order_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> WorkOrderService:
    return WorkOrderService(db_session)


@router.post(
    "/upload",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a work order from uploaded files",
    operation_id="upload_work_order",
)
async def upload_work_order(
    request: Request,
    files: List[UploadFile] = File(..., description="Work order PDFs and images"),
    uploaded_by: Optional[UUID] = Form(None),
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    """Create a work order and attach the uploaded files."""
    try:
        result = await work_order_service.upload_work_order(files, uploaded_by)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data=result,
        message=f"Work order created with {result.total_uploaded} file(s)",
        request=request
    )


@router.post(
    "/{work_order_id}/files",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add files to a work order",
    operation_id="add_work_order_files",
)
async def add_work_order_files(
    request: Request,
    work_order_id: UUID,
    files: List[UploadFile] = File(...),
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    try:
        result = await work_order_service.add_files(work_order_id, files)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data=result,
        message=f"Uploaded {result.total_uploaded} file(s)",
        request=request
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List work orders",
    operation_id="list_work_orders",
)
async def list_work_orders(
    request: Request,
    processed: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    result = await work_order_service.list_work_orders(processed=processed, limit=limit, offset=offset)
    return create_api_response(
        data=result,
        message="Work orders retrieved successfully",
        request=request
    )


@router.get(
    "/pending-count",
    response_model=ApiResponse,
    summary="Count unprocessed work orders",
    operation_id="get_pending_work_order_count",
)
async def get_pending_count(
    request: Request,
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    count = await work_order_service.get_pending_count()
    return create_api_response(
        data={"count": count},
        message="Pending work order count retrieved successfully",
        request=request
    )


@router.get(
    "/{work_order_id}",
    response_model=ApiResponse,
    summary="Get work order details",
    operation_id="get_work_order",
)
async def get_work_order(
    request: Request,
    work_order_id: UUID,
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    """Retrieve a work order with its files and tasks."""
    try:
        work_order = await work_order_service.get_work_order(work_order_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data=work_order,
        message="Work order details retrieved successfully",
        request=request
    )


@router.get(
    "/{work_order_id}/tasks",
    response_model=ApiResponse,
    summary="List work order tasks",
    operation_id="list_work_order_tasks",
)
async def list_work_order_tasks(
    request: Request,
    work_order_id: UUID,
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    try:
        tasks = await work_order_service.list_tasks(work_order_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(
        data={"total": len(tasks), "tasks": tasks},
        message="Work order tasks retrieved successfully",
        request=request
    )


@router.delete(
    "/files/{file_id}",
    response_model=ApiResponse,
    summary="Delete a work order file",
    operation_id="delete_work_order_file",
)
async def delete_work_order_file(
    request: Request,
    file_id: UUID,
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    try:
        await work_order_service.delete_file(file_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=None, message="File deleted successfully", request=request)


@router.delete(
    "/{work_order_id}",
    response_model=ApiResponse,
    summary="Delete work order",
    operation_id="delete_work_order",
)
async def delete_work_order(
    request: Request,
    work_order_id: UUID,
    work_order_service: Annotated[WorkOrderService, Depends(get_work_order_service)] = None,
) -> ApiResponse:
    """Delete a work order, its stored files and all dependent records."""
    try:
        await work_order_service.delete_work_order(work_order_id)
    except AppError as e:
        raise http_exception_for(e, request)

    return create_api_response(data=None, message="Work order deleted successfully", request=request)
