"""AI extraction endpoint.

Responses use a flat ``{"error": ...}`` body instead of the v1 envelope,
since existing dashboard clients read ``error``, ``details`` and
``rawResponse`` directly.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from signdesk.core.database import get_async_session as get_session
from signdesk.core.exceptions import AppError, ExtractionError, InvalidRequestError
from signdesk.schemas.work_orders import ProcessWorkOrderRequest
from signdesk.services.extraction.orchestrator import WorkOrderExtractionService
from signdesk.services.extraction.vision_client import SUPPORTED_PROVIDERS
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_extraction_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> WorkOrderExtractionService:
    return WorkOrderExtractionService(db_session)


async def _parse_request(request: Request) -> ProcessWorkOrderRequest:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError()
    if not isinstance(body, dict):
        raise InvalidRequestError()
    try:
        payload = ProcessWorkOrderRequest.model_validate(body)
    except PydanticValidationError:
        raise InvalidRequestError()
    if not payload.work_order_id:
        raise InvalidRequestError()
    if payload.provider is not None and payload.provider.lower() not in SUPPORTED_PROVIDERS:
        raise InvalidRequestError(f"Unsupported AI provider: {payload.provider}")
    return payload


@router.post(
    "/process-work-order",
    summary="Extract structured fields and tasks from a work order's files",
    operation_id="process_work_order",
)
async def process_work_order(
    request: Request,
    service: Annotated[WorkOrderExtractionService, Depends(get_extraction_service)],
) -> JSONResponse:
    """Run AI extraction for one work order."""
    try:
        payload = await _parse_request(request)
        try:
            work_order_id = UUID(payload.work_order_id)
        except ValueError:
            raise InvalidRequestError("Invalid work order ID")

        outcome = await service.execute(
            work_order_id,
            provider=payload.provider.lower() if payload.provider else None,
        )

    except ExtractionError as e:
        LOGGER.warning(
            f"Work order extraction failed: {e.error}",
            extra={"status_code": e.status_code, "details": e.details},
        )
        return JSONResponse(status_code=e.status_code, content=e.to_payload())

    except AppError as e:
        LOGGER.error(f"Error processing work order: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Internal server error"},
        )

    if outcome.already_processed:
        return JSONResponse(
            content={"message": "Work order already processed", "analysis": outcome.analysis}
        )
    return JSONResponse(content={"success": True, "analysis": outcome.analysis})
