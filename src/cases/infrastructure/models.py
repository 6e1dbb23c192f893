"""
Case Infrastructure Models
===========================

SQLAlchemy ORM models for cases and the device/customer records they
reference.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import String, DateTime, Integer, Text, Uuid, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base
from src.config import Priority, CaseStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeviceTypeModel(Base):
    """Maps to the 'device_types' table."""
    __tablename__ = "device_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class DeviceModel(Base):
    """Maps to the 'devices' table."""
    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_type_id: Mapped[Optional[int]] = mapped_column(ForeignKey("device_types.id"), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    model_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class CustomerModel(Base):
    """Maps to the 'customers' table."""
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class CaseModel(Base):
    """
    Database model for Case entity.

    Maps to the 'cases' table.
    """
    __tablename__ = "cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_number: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("devices.id"), nullable=False)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=CaseStatus.OPEN, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Workflow / SLA attachment
    workflow_instance_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    workflow_configuration_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sla_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    sla_due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
