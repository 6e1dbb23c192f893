"""
Case Infrastructure Layer
==========================

- Models: SQLAlchemy ORM models (cases, devices, device types, customers)
- Repositories: Data access layer
"""

from src.cases.infrastructure.models import (
    DeviceTypeModel,
    DeviceModel,
    CustomerModel,
    CaseModel,
)
from src.cases.infrastructure.repositories import (
    SQLAlchemyCaseRepository,
    SQLAlchemyDeviceRepository,
    SQLAlchemyCustomerRepository,
)

__all__ = [
    "DeviceTypeModel",
    "DeviceModel",
    "CustomerModel",
    "CaseModel",
    "SQLAlchemyCaseRepository",
    "SQLAlchemyDeviceRepository",
    "SQLAlchemyCustomerRepository",
]
