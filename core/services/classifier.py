"""
Severity classification for a single telemetry record.

Priority of signals, strongest first:
1. explicit "healthy" status on the record (always green)
2. threshold table severity computed from the readings
3. reasons pre-computed upstream at ingestion
4. the record's explicit alert flag
5. green
"""

import structlog

from core.domain.models import (
    Classification,
    HealthStatus,
    Severity,
    TelemetryRecord,
)
from core.domain.telemetry import parse_reading
from core.services.thresholds import ThresholdTable

logger = structlog.get_logger(__name__)

IDENTITY_FIELDS = frozenset({"patientid", "patient_id", "name", "age", "condition"})

NORMAL_REASON = "All readings within normal range"
HEALTHY_OVERRIDE_REASON = "Marked healthy by care team"
ALERT_FLAG_REASON = "Flagged for follow-up"

_URGENT_KEYWORDS = ("critical", "severe", "emergency")


def format_reading(value: float) -> str:
    """Render a reading without a trailing ".0": 320.0 -> "320"."""
    return f"{value:g}"


class SeverityClassifier:
    """Turns one patient's readings into a severity plus human-readable reasons."""

    def __init__(self, thresholds: ThresholdTable | None = None) -> None:
        self.thresholds = thresholds or ThresholdTable()
        self.logger = logger.bind(component="severity_classifier")

    def classify(self, record: TelemetryRecord) -> Classification:
        severity = Severity.GREEN
        reasons: list[str] = []
        displayed: list[tuple[str, int | float | str]] = []

        for name, value in record.raw_data.variables.items():
            if name.lower() in IDENTITY_FIELDS:
                continue
            displayed.append((name, value))

            parsed = parse_reading(name, value)
            if parsed.is_err():
                # Opaque readings are shown but never drive severity
                self.logger.debug(
                    "reading_not_numeric",
                    patient_id=record.patient_id,
                    variable=name,
                    error=str(parsed.unwrap_err()),
                )
                continue

            number = parsed.unwrap()
            band = self.thresholds.evaluate(name, number)
            if band is Severity.RED:
                reasons.append(f"CRITICAL: {name} is {format_reading(number)}")
            elif band is Severity.YELLOW:
                reasons.append(f"WARNING: {name} is {format_reading(number)}")
            else:
                continue
            # Escalation only ever moves towards red
            severity = severity.escalate(band)

        has_abnormal_value = bool(reasons)

        if not has_abnormal_value and record.raw_data.alert_reasons:
            reasons = list(record.raw_data.alert_reasons)
            severity = (
                Severity.RED
                if any(_is_urgent(reason) for reason in reasons)
                else Severity.YELLOW
            )

        if not reasons:
            reasons = [NORMAL_REASON]

        if record.health_status is HealthStatus.HEALTHY:
            return Classification(
                severity=Severity.GREEN,
                reasons=[HEALTHY_OVERRIDE_REASON],
                has_abnormal_value=has_abnormal_value,
                status="healthy",
                variables=displayed,
            )

        if record.is_alert and severity is Severity.GREEN:
            severity = Severity.YELLOW
            reasons = [ALERT_FLAG_REASON]

        self.logger.debug(
            "record_classified",
            patient_id=record.patient_id,
            record_id=record.id,
            severity=severity.value,
            reasons=len(reasons),
        )

        return Classification(
            severity=severity,
            reasons=reasons,
            has_abnormal_value=has_abnormal_value,
            status="healthy" if severity is Severity.GREEN else "pending",
            variables=displayed,
        )


def _is_urgent(reason: str) -> bool:
    text = reason.lower()
    return any(keyword in text for keyword in _URGENT_KEYWORDS)
