"""
Alert dispatch to the external notification channel.

Single sends surface every failure to the caller. Bulk sends are sequential,
log and skip individual failures, and report only how many alerts went out.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field

from core.domain.errors import (
    AlertNotFoundError,
    ChannelError,
    ConfigurationError,
    TriageError,
)
from core.domain.models import AlertRecord, ChannelCredentials, DispatchReceipt
from core.services.aggregation import AlertSetBuilder
from core.services.ports import ChannelFactory, NotificationChannel, TelemetryStore

logger = structlog.get_logger(__name__)


class DispatcherConfig(BaseModel):
    send_timeout_seconds: float = Field(default=15.0, gt=0.0)
    circuit_failure_threshold: int = Field(default=5, gt=0)
    circuit_recovery_seconds: float = Field(default=60.0, gt=0.0)
    ledger_size: int = Field(default=1000, gt=0)


class CircuitBreakerState:
    """Simple circuit breaker for notification channel calls."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: datetime | None = None
        self.state = "closed"  # closed, open, half-open

    def can_execute(self) -> bool:
        if self.state == "closed":
            return True

        if self.state == "open":
            if self.last_failure_time:
                elapsed = (datetime.now(UTC) - self.last_failure_time).total_seconds()
                if elapsed >= self.recovery_timeout:
                    self.state = "half-open"
                    return True
            return False

        return self.state == "half-open"

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = "closed"

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = datetime.now(UTC)

        if self.failure_count >= self.failure_threshold or self.state == "half-open":
            self.state = "open"


@dataclass
class DispatchAttempt:
    """One recorded send attempt for a patient's alert."""

    alert_id: str
    patient_id: str
    batch_id: str
    succeeded: bool
    error: str | None = None
    channel_message_id: str | None = None
    attempted_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class DispatchLedger:
    """
    Bounded in-process history of dispatch attempts.

    Keyed by (patient_id, batch_id) rather than alert id, since alert ids are
    derived from storage row ids and change when a patient's data is re-ingested.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        self._attempts: deque[DispatchAttempt] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._attempts)

    def record(self, attempt: DispatchAttempt) -> None:
        self._attempts.append(attempt)

    def history(self, patient_id: str, batch_id: str) -> list[DispatchAttempt]:
        return [
            a for a in self._attempts if a.patient_id == patient_id and a.batch_id == batch_id
        ]

    def last_success(self, patient_id: str, batch_id: str) -> DispatchAttempt | None:
        for attempt in reversed(self.history(patient_id, batch_id)):
            if attempt.succeeded:
                return attempt
        return None


class AlertDispatcher:
    """Sends formatted alerts through the configured notification channel."""

    def __init__(
        self,
        builder: AlertSetBuilder,
        store: TelemetryStore,
        channel_factory: ChannelFactory,
        config: DispatcherConfig | None = None,
        ledger: DispatchLedger | None = None,
    ) -> None:
        self.builder = builder
        self.store = store
        self.channel_factory = channel_factory
        self.config = config or DispatcherConfig()
        self.ledger = ledger or DispatchLedger(self.config.ledger_size)
        self.circuit_breaker = CircuitBreakerState(
            failure_threshold=self.config.circuit_failure_threshold,
            recovery_timeout=self.config.circuit_recovery_seconds,
        )
        self.logger = logger.bind(component="alert_dispatcher")
        self._channel: tuple[ChannelCredentials, NotificationChannel] | None = None

    def _channel_for(self, credentials: ChannelCredentials) -> NotificationChannel:
        # Reuse the channel until the stored credentials change
        if self._channel is None or self._channel[0] != credentials:
            self._channel = (credentials, self.channel_factory(credentials))
        return self._channel[1]

    async def send_alert(self, alert_id: str, batch_id: str | None = None) -> DispatchReceipt:
        """
        Send one alert, recomputing the alert set to find it.

        Raises:
            AlertNotFoundError: no alert with this id in the resolved batch.
            ConfigurationError: destination address or credentials missing.
            ChannelError: the channel failed, timed out, or its circuit is open.

        A timeout stops waiting but cannot cancel a send already running in a
        worker thread, so a message reported as timed out may still arrive.
        Channels that block should bound their own I/O as well.
        """
        alert = await self.builder.find(alert_id, batch_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert not found: {alert_id}")

        try:
            receipt = await self._deliver(alert)
        except TriageError as e:
            self.ledger.record(
                DispatchAttempt(
                    alert_id=alert.alert_id,
                    patient_id=alert.patient_id,
                    batch_id=alert.batch_id,
                    succeeded=False,
                    error=str(e),
                )
            )
            raise

        self.ledger.record(
            DispatchAttempt(
                alert_id=alert.alert_id,
                patient_id=alert.patient_id,
                batch_id=alert.batch_id,
                succeeded=True,
                channel_message_id=receipt.channel_message_id,
            )
        )
        return receipt

    async def _deliver(self, alert: AlertRecord) -> DispatchReceipt:
        destination = await self.store.get_configured_destination_address()
        if not destination:
            raise ConfigurationError("No alert destination address is configured")

        credentials = await self.store.get_channel_credentials()
        if credentials is None:
            raise ConfigurationError("Notification channel credentials are not configured")

        if not self.circuit_breaker.can_execute():
            self.logger.warning("channel_circuit_open", alert_id=alert.alert_id)
            raise ChannelError("Notification channel unavailable after repeated failures")

        try:
            channel = self._channel_for(credentials)
            channel_receipt = await asyncio.wait_for(
                channel.send(alert.message, destination),
                timeout=self.config.send_timeout_seconds,
            )
        except TimeoutError as e:
            self.circuit_breaker.record_failure()
            self.logger.error(
                "alert_send_timeout",
                alert_id=alert.alert_id,
                timeout_seconds=self.config.send_timeout_seconds,
            )
            raise ChannelError(
                f"Notification channel timed out after {self.config.send_timeout_seconds}s"
            ) from e
        except Exception as e:
            self.circuit_breaker.record_failure()
            self.logger.error("alert_send_failed", alert_id=alert.alert_id, error=str(e))
            if isinstance(e, ChannelError):
                raise
            raise ChannelError(f"Failed to send alert: {e}") from e

        self.circuit_breaker.record_success()
        self.logger.info(
            "alert_dispatched",
            alert_id=alert.alert_id,
            patient_id=alert.patient_id,
            severity=alert.severity.value,
            channel_message_id=channel_receipt.id,
        )
        return DispatchReceipt(
            alert_id=alert.alert_id,
            patient_id=alert.patient_id,
            patient_name=alert.patient_name,
            batch_id=alert.batch_id,
            message=alert.message,
            destination=destination,
            channel_message_id=channel_receipt.id,
        )

    async def send_all_alerts(self, alert_ids: list[str], batch_id: str | None = None) -> int:
        """
        Send alerts one at a time in list order.

        Failures are logged and skipped; the return value is the number of
        alerts sent, so callers cannot tell which ids failed.
        """
        sent = 0
        for alert_id in alert_ids:
            try:
                await self.send_alert(alert_id, batch_id)
                sent += 1
            except TriageError as e:
                self.logger.warning(
                    "bulk_alert_not_sent",
                    alert_id=alert_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            except Exception as e:
                self.logger.exception("unexpected_bulk_alert_error", alert_id=alert_id, error=str(e))

        self.logger.info("bulk_dispatch_completed", requested=len(alert_ids), sent=sent)
        return sent
