"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="repair-case-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/repair_cases",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    create_tables_on_startup: bool = Field(
        default=True,
        description="Create tables at startup (development only, use migrations in production)"
    )

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_scan_interval_minutes: int = Field(
        default=15,
        description="Minutes between SLA monitor scans (0 disables the scheduler)",
        ge=0
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA notifications"
    )
    slack_channel: str = Field(
        default="#repair-sla-alerts",
        description="Default Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class Priority(str):
    """Case priority levels."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CaseStatus(str):
    """Repair case lifecycle statuses."""
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InstanceStatus(str):
    """Workflow instance states."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepType(str):
    """Workflow step types."""
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    APPROVAL = "approval"
    SYSTEM = "system"
    START_EVENT = "start_event"
    END_EVENT = "end_event"


class StepOutcome(str):
    """Outcome reported when a step is completed."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class HistoryAction(str):
    """Actions recorded in the workflow state history."""
    START = "start"
    ADVANCE = "advance"
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"


class SLAEventType(str):
    """Events emitted by the SLA monitor."""
    WARNING = "SLAWarning"
    BREACHED = "SLABreached"
    ESCALATED = "SLAEscalated"


# ========== Lists for validation ==========

CLOSED_CASE_STATUSES = [CaseStatus.COMPLETED, CaseStatus.CANCELLED]
TERMINAL_INSTANCE_STATUSES = [
    InstanceStatus.COMPLETED, InstanceStatus.FAILED, InstanceStatus.CANCELLED
]
VALID_STEP_OUTCOMES = [StepOutcome.COMPLETED, StepOutcome.FAILED, StepOutcome.SKIPPED]
