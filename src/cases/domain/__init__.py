"""
Case Domain Layer
=================

Contains the Case entity, the device/customer facts it depends on and the
resolver context derived from them.
"""

from src.cases.domain.entities import Case, CaseContext, Device, Customer

__all__ = ["Case", "CaseContext", "Device", "Customer"]
