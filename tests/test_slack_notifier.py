import json
from datetime import timedelta

import httpx
import pytest

from src.config import Settings
from src.sla.domain import SLAEvent
from src.sla.infrastructure import CircuitBreaker, CircuitState, SlackNotifier

from tests.conftest import utc

pytestmark = pytest.mark.anyio

DUE = utc(2024, 1, 15, 14, 0)
WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXXX"


def _event(event_type="SLABreached", channels=(), escalation_level=0) -> SLAEvent:
    return SLAEvent(
        event_type=event_type,
        sla_record_id="0f8c1c1e-7a0b-4d7e-9d1f-3c1b2a9e4f55",
        case_id=42,
        priority="urgent",
        due_date=DUE,
        occurred_at=DUE + timedelta(hours=2),
        escalation_level=escalation_level,
        channels=channels
    )


def _notifier(handler, webhook=WEBHOOK, breaker=None) -> SlackNotifier:
    settings = Settings(environment="test", slack_webhook_url=webhook, slack_channel="#default")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SlackNotifier(settings, http_client=client, circuit_breaker=breaker, retry_base_delay=0)


class Recorder:

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, text="ok")


async def test_events_go_to_their_channels():
    recorder = Recorder()
    notifier = _notifier(recorder)

    delivered = await notifier.notify([
        _event(),
        _event("SLAEscalated", channels=("#repair-sla-alerts", "#service-managers"), escalation_level=2),
    ])

    assert delivered == 3
    assert [p["channel"] for p in recorder.payloads] == ["#default", "#repair-sla-alerts", "#service-managers"]
    await notifier.close()


def test_message_blocks():
    notifier = _notifier(Recorder())

    message = notifier.build_message(_event("SLAEscalated", escalation_level=2), "#ops")

    assert message["channel"] == "#ops"
    assert message["blocks"][0]["text"]["text"] == ":fire: SLA Escalated"
    field_texts = [field["text"] for field in message["blocks"][1]["fields"]]
    assert "*Overdue:*\n2.0h" in field_texts
    assert "*Escalation Level:*\n2" in field_texts


def test_warning_message_has_no_overdue_field():
    notifier = _notifier(Recorder())

    message = notifier.build_message(_event("SLAWarning"), "#ops")

    assert all("Overdue" not in field["text"] for field in message["blocks"][1]["fields"])


async def test_disabled_without_webhook():
    recorder = Recorder()
    notifier = _notifier(recorder, webhook=None)

    assert notifier.enabled is False
    assert await notifier.notify([_event()]) == 0
    assert recorder.payloads == []


async def test_retries_then_gives_up():
    recorder = Recorder(status_code=500)
    notifier = _notifier(recorder)

    sent = await notifier.send(_event(), "#ops", max_retries=3)

    assert sent is False
    assert len(recorder.payloads) == 3


async def test_transport_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200)

    notifier = _notifier(handler)

    assert await notifier.send(_event(), "#ops") is True
    assert len(attempts) == 2


async def test_open_circuit_skips_requests():
    recorder = Recorder(status_code=503)
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    notifier = _notifier(recorder, breaker=breaker)

    await notifier.send(_event(), "#ops", max_retries=1)
    skipped = await notifier.send(_event(), "#ops", max_retries=1)

    assert breaker.state == CircuitState.OPEN
    assert skipped is False
    assert len(recorder.payloads) == 1


def test_circuit_half_opens_after_timeout():
    now = [0.0]
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=30, clock=lambda: now[0])

    breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED
    breaker.record_failure()
    assert breaker.allow_request() is False

    now[0] = 31.0
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.allow_request() is True

    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED
