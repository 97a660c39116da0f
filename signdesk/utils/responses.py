from datetime import datetime, timezone
from typing import Any, Optional, Dict
from uuid import uuid4
from fastapi import HTTPException, Request

from signdesk.core.exceptions import AppError, NotFoundError, PermissionDeniedError, ValidationError
from signdesk.schemas.common import ApiResponse, ResponseMeta, ErrorDetail


def _request_id(request: Optional[Request]) -> str:
    if request is not None and hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1"
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary.

    Lists are wrapped as ``{"items": [...]}``; pydantic models are dumped.
    """
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version
    )

    data_dict: Dict[str, Any]
    if isinstance(data, dict):
        data_dict = data
    elif hasattr(data, "model_dump"):
        data_dict = data.model_dump()
    elif isinstance(data, list):
        data_dict = {"items": [item.model_dump() if hasattr(item, "model_dump") else item for item in data]}
    elif data is None:
        data_dict = {}
    else:
        data_dict = {"value": data}

    response = ApiResponse(
        status=status,
        message=message,
        data=data_dict,
        meta=meta
    )
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc)
    )


_ERROR_STATUS = (
    (NotFoundError, 404, "Not Found"),
    (PermissionDeniedError, 403, "Forbidden"),
    (ValidationError, 422, "Validation Error"),
)


def http_exception_for(error: AppError, request: Optional[Request] = None) -> HTTPException:
    """Map an application error to an HTTPException carrying an ErrorDetail body."""
    status_code, title = 500, "Internal Server Error"
    for error_type, code, error_title in _ERROR_STATUS:
        if isinstance(error, error_type):
            status_code, title = code, error_title
            break

    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=str(error),
        request=request
    )
    return HTTPException(status_code=status_code, detail=error_detail.model_dump(mode="json"))
