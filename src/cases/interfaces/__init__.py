"""
Case Interfaces Layer
======================

Interface adapters (controllers) for the case intake module.
"""

from src.cases.interfaces.controllers import case_router

__all__ = ["case_router"]
