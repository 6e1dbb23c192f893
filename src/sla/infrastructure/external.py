"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- YAML policy file watcher
- Slack webhook notifications for SLA events
- APScheduler for the recurring monitor scan
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import yaml
import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from src.config import Settings, SLAEventType
from src.core import ConfigurationException
from src.shared.infrastructure.logging import get_logger
from src.sla.application import ISLAConfigProvider, ISLAEventSink
from src.sla.domain import SLAEvent, SLAPolicy

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("SLA policy file changed", extra={"path": str(event.src_path)})
            self.config_manager.reload()


class SLAConfigManager(ISLAConfigProvider):
    """
    Thread-safe SLA policy provider with hot-reload support.

    Uses watchdog to monitor file changes and reload the policy
    without restarting the service. A broken edit keeps the last good policy.
    """

    def __init__(self, path: Path):
        self._path = path
        self._policy: Optional[SLAPolicy] = None
        self._lock = threading.Lock()
        self._observer = None

    def load(self) -> SLAPolicy:
        """
        Initial policy load.

        Raises:
            ConfigurationException: file exists but is not a valid policy
        """
        try:
            policy = self._load_from_file()
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {self._path}: {e}",
                details={"path": str(self._path)}
            ) from e

        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self) -> SLAPolicy:
        if not self._path.exists():
            logger.warning(
                "SLA policy file not found, using defaults",
                extra={"path": str(self._path)}
            )
            return SLAPolicy()

        with open(self._path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAPolicy(**data)

    def reload(self) -> bool:
        """Reload the policy from file, keeping the current one on error."""
        try:
            new_policy = self._load_from_file()
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.error(
                "Failed to reload SLA policy, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = new_policy
        logger.info("SLA policy reloaded successfully")
        return True

    def get_policy(self) -> SLAPolicy:
        """Get current policy, loading it on first use."""
        with self._lock:
            policy = self._policy
        if policy is None:
            policy = self.load()
        return policy

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skipped when the file doesn't exist or inotify is unavailable
        (some containers).
        """
        if not self._path.exists():
            logger.info(
                "SLA policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(
                "File watching not available, using static SLA policy",
                extra={"error": str(e)}
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


_EVENT_HEADERS = {
    SLAEventType.WARNING: (":warning:", "SLA Warning"),
    SLAEventType.BREACHED: (":rotating_light:", "SLA Breached"),
    SLAEventType.ESCALATED: (":fire:", "SLA Escalated"),
}


class SlackNotifier(ISLAEventSink):
    """
    Slack webhook sink for SLA events, with circuit breaker and retry.

    Handles sending structured alerts to Slack with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_base_delay: float = 1.0
    ):
        self._webhook_url = settings.slack_webhook_url
        self._default_channel = settings.slack_channel
        self._timeout = settings.slack_timeout_seconds
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._retry_base_delay = retry_base_delay

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def build_message(self, event: SLAEvent, channel: str) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        emoji, header_text = _EVENT_HEADERS.get(event.event_type, (":bell:", event.event_type))

        fields = [
            {"type": "mrkdwn", "text": f"*Case:*\n{event.case_id}"},
            {"type": "mrkdwn", "text": f"*Priority:*\n{event.priority.title()}"},
            {"type": "mrkdwn", "text": f"*Due:*\n{event.due_date.isoformat()}"},
        ]
        if event.event_type != SLAEventType.WARNING:
            fields.append({"type": "mrkdwn", "text": f"*Overdue:*\n{event.hours_overdue:.1f}h"})
        if event.event_type == SLAEventType.ESCALATED:
            fields.append({"type": "mrkdwn", "text": f"*Escalation Level:*\n{event.escalation_level}"})

        return {
            "channel": channel,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f"{emoji} {header_text}", "emoji": True}
                },
                {"type": "section", "fields": fields},
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"SLA record {event.sla_record_id} | {event.occurred_at.isoformat()}"}
                    ]
                }
            ]
        }

    async def notify(self, events: List[SLAEvent]) -> int:
        """
        Deliver events to their channels.

        Returns:
            Number of messages delivered
        """
        if not self.enabled:
            if events:
                logger.debug(
                    "Slack webhook URL not configured, skipping notifications",
                    extra={"events": len(events)}
                )
            return 0

        delivered = 0
        for event in events:
            for channel in event.channels or (self._default_channel,):
                if await self.send(event, channel):
                    delivered += 1
        return delivered

    async def send(self, event: SLAEvent, channel: str, max_retries: int = 3) -> bool:
        """
        Send one event to one channel.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"case_id": event.case_id, "event_type": event.event_type}
            )
            return False

        message = self.build_message(event, channel)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={
                            "case_id": event.case_id,
                            "event_type": event.event_type,
                            "channel": channel
                        }
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "case_id": event.case_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA monitor scan.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_minutes: int = 15):
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            minutes=self.interval_minutes,
            id="sla_scan",
            name="SLA Monitor Scan",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_minutes": self.interval_minutes}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
