"""
Workflow Infrastructure Models
===============================

SQLAlchemy ORM models for the workflow module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    String, DateTime, Boolean, Integer, JSON, Uuid, ForeignKey, Index, UniqueConstraint, text
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base
from src.config import InstanceStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowDefinitionModel(Base):
    """
    Database model for WorkflowDefinition.

    Maps to the 'workflow_definitions' table. Steps and transitions are kept
    as JSON lists in declared order.
    """
    __tablename__ = "workflow_definitions"
    __table_args__ = (UniqueConstraint("name", "version", name="uq_workflow_definition_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    transitions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)


class WorkflowConfigurationModel(Base):
    """
    Database model for WorkflowConfiguration.

    Maps to the 'workflow_configurations' table. NULL device_type_id or
    customer_tier means "any value".
    """
    __tablename__ = "workflow_configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    device_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    customer_tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    workflow_definition_id: Mapped[int] = mapped_column(
        ForeignKey("workflow_definitions.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)


class WorkflowInstanceModel(Base):
    """
    Database model for WorkflowInstance.

    Maps to the 'workflow_instances' table. At most one running instance
    per case.
    """
    __tablename__ = "workflow_instances"
    __table_args__ = (
        Index(
            "uq_workflow_instances_running_case",
            "case_id",
            unique=True,
            postgresql_where=text("status = 'running'"),
            sqlite_where=text("status = 'running'"),
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    definition_id: Mapped[int] = mapped_column(ForeignKey("workflow_definitions.id"), nullable=False)
    case_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    current_step_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=InstanceStatus.RUNNING, index=True)
    variables: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Timestamps
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now
    )


class StateHistoryModel(Base):
    """
    Database model for StateHistoryEntry.

    Maps to the 'workflow_state_history' table. Rows are only ever inserted.
    """
    __tablename__ = "workflow_state_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    instance_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("workflow_instances.id"), nullable=False, index=True
    )
    from_step_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    to_step_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
