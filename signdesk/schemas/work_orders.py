from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProcessWorkOrderRequest(BaseModel):
    """Body of ``POST /api/process-work-order``."""
    model_config = ConfigDict(populate_by_name=True)

    work_order_id: Optional[str] = Field(default=None, alias="workOrderId")
    provider: Optional[str] = None


class WorkOrderFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    file_url: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: Optional[datetime] = None


class WorkOrderTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    name: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class WorkOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    uploaded_by: Optional[UUID] = None
    owner_id: Optional[UUID] = None
    processed: bool
    job_status: str
    work_order_number: Optional[str] = None
    site_address: Optional[str] = None
    work_order_date: Optional[date] = None
    planned_date: Optional[date] = None
    skills_required: Optional[List[str]] = None
    permits_required: Optional[List[str]] = None
    equipment_required: Optional[List[str]] = None
    materials_required: Optional[List[str]] = None
    recommended_techs: Optional[int] = None
    scope_of_work: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkOrderDetailResponse(WorkOrderResponse):
    analysis: Optional[Dict[str, Any]] = None
    files: List[WorkOrderFileResponse] = Field(default_factory=list)
    tasks: List[WorkOrderTaskResponse] = Field(default_factory=list)


class FailedUpload(BaseModel):
    filename: str
    error: str


class WorkOrderUploadResponse(BaseModel):
    work_order_id: UUID
    files: List[WorkOrderFileResponse] = Field(default_factory=list)
    total_uploaded: int = 0
    failed_uploads: List[FailedUpload] = Field(default_factory=list)
