"""SQLAlchemy models for work orders and their dependent records."""

import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from signdesk.core.database import Base


class JobStatus(str, Enum):
    """Workflow status of a work order."""
    OPEN = "Open"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    SUBMITTED = "Submitted"
    INVOICED = "Invoiced"
    CANCELLED = "Cancelled"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    BLOCKED = "Blocked"
    DONE = "Done"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    EMERGENCY = "Emergency"


class WorkOrder(Base):
    """A job record created when the first file for a job is uploaded."""

    __tablename__ = "work_orders"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    owner_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    # False until an extraction attempt writes its analysis back
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    analysis: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    work_order_number: Mapped[str | None] = mapped_column(String, nullable=True)
    site_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    planned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    skills_required: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    permits_required: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    equipment_required: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    materials_required: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    recommended_techs: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scope_of_work: Mapped[str | None] = mapped_column(Text, nullable=True)

    job_status: Mapped[str] = mapped_column(
        String, nullable=False, default=JobStatus.OPEN.value
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    files: Mapped[list["WorkOrderFile"]] = relationship(
        "WorkOrderFile",
        back_populates="work_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WorkOrderFile.created_at",
    )
    tasks: Mapped[list["WorkOrderTask"]] = relationship(
        "WorkOrderTask",
        back_populates="work_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WorkOrderTask.created_at",
    )
    team_members: Mapped[list["WorkOrderTeamMember"]] = relationship(
        "WorkOrderTeamMember",
        back_populates="work_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    chat_messages: Mapped[list["WorkOrderChatMessage"]] = relationship(
        "WorkOrderChatMessage",
        back_populates="work_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class WorkOrderFile(Base):
    """One uploaded artifact, exclusively owned by its work order."""

    __tablename__ = "work_order_files"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    work_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="files")


class WorkOrderTask(Base):
    """A user-actionable task, bulk-created from the model's suggestions."""

    __tablename__ = "work_order_tasks"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    work_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskStatus.PENDING.value
    )
    priority: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskPriority.MEDIUM.value
    )
    due_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="tasks")


class WorkOrderTeamMember(Base):
    """Office staff member on a work order's team roster."""

    __tablename__ = "work_order_team"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("work_order_id", "user_profile_id", name="uq_work_order_team_member"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    work_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    added_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="team_members")


class WorkOrderChatMessage(Base):
    """Team chat message attached to a work order."""

    __tablename__ = "work_order_chat_messages"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    work_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_profile_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    file_references: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    edited_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="chat_messages")
