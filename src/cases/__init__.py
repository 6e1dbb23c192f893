"""
Repair Cases Module
===================

Bounded Context for repair case intake.

Responsibilities:
- Validate and persist new repair cases
- Look up the device type and customer tier of a case
- Attach a workflow instance and an SLA record to every new case,
  all-or-nothing with the case row itself
"""

__version__ = "1.0.0"
