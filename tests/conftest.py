"""Shared fixtures for building telemetry records, stores and fake channels."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from adapters.storage.memory import InMemoryTriageStore
from core.domain.errors import ChannelError
from core.domain.models import ChannelCredentials, ChannelReceipt, TelemetryRecord

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

RecordFactory = Callable[..., TelemetryRecord]


def build_record(
    variables: dict[str, Any] | None = None,
    *,
    record_id: int = 1,
    patient_id: str = "P1",
    name: str = "Jane Doe",
    age: int = 70,
    batch_id: str = "batch-1",
    alert_reasons: list[str] | None = None,
    is_alert: Any = False,
    health_status: str | None = None,
    minutes: int = 0,
) -> TelemetryRecord:
    """Build a validated record; usable outside fixtures (hypothesis tests)."""
    return TelemetryRecord.model_validate(
        {
            "id": record_id,
            "batchId": batch_id,
            "patientId": patient_id,
            "name": name,
            "age": age,
            "condition": "Diabetes",
            "createdAt": BASE_TIME + timedelta(minutes=minutes),
            "isAlert": is_alert,
            "healthStatus": health_status,
            "rawData": {
                "variables": variables or {},
                "alertReasons": alert_reasons or [],
            },
        }
    )


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory building records with auto-incrementing storage ids."""
    counter = {"id": 0}

    def _make(variables: dict[str, Any] | None = None, **kwargs: Any) -> TelemetryRecord:
        counter["id"] += 1
        kwargs.setdefault("record_id", counter["id"])
        return build_record(variables, **kwargs)

    return _make


@pytest.fixture
def credentials() -> ChannelCredentials:
    return ChannelCredentials(account_sid="AC123", auth_token="secret", from_address="+15550199")


@pytest.fixture
def store(credentials: ChannelCredentials) -> InMemoryTriageStore:
    return InMemoryTriageStore(destination_address="+15550100", credentials=credentials)


class FakeChannel:
    """Test double implementing the NotificationChannel protocol."""

    def __init__(self, fail_for: set[str] | None = None, delay_seconds: float = 0.0) -> None:
        self.fail_for = fail_for or set()
        self.delay_seconds = delay_seconds
        self.sent: list[tuple[str, str]] = []

    async def send(self, message: str, to: str) -> ChannelReceipt:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if any(marker in message for marker in self.fail_for):
            raise ChannelError("carrier rejected message")
        self.sent.append((to, message))
        return ChannelReceipt(id=f"SM{len(self.sent):04d}")


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()
