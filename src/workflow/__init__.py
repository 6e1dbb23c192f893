"""
Workflow Module
===============

Bounded Context for repair case workflow orchestration.

Responsibilities:
- Select the workflow configuration that best fits a new case
- Start a workflow instance on the chosen definition
- Advance instances step by step, or fail/cancel them
- Keep an append-only state history of every transition
"""

__version__ = "1.0.0"
