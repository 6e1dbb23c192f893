"""
SLA Monitoring Module
=====================

Bounded Context for repair case Service Level Agreements.

Responsibilities:
- Compute the due date of a case from its priority
- Scan open SLA records for warnings, breaches and escalations
- Hot-reload the monitoring policy via watchdog
- Deliver SLA events to Slack
- Run the monitor on a schedule (APScheduler)
"""

__version__ = "1.0.0"
