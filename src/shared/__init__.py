"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Workflow, SLA and Cases).

Architecture Pattern: Modular Monolith
- Each module (workflow, sla, cases) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add workflow, SLA or case business logic to the shared kernel.
"""

__version__ = "1.0.0"
