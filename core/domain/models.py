"""
Domain models for patient triage.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; JSON field names are camelCase to match the
payloads produced by ingestion and consumed by the browser UI.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_TRUTHY = {"1", "true", "yes", "on", "y"}


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from spreadsheets are taken as UTC so rows stay comparable
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class Severity(str, Enum):
    """Alert severity. Total order red < yellow < green, most urgent first."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def escalate(self, other: "Severity") -> "Severity":
        """Return the more urgent of the two severities."""
        return self if self.rank <= other.rank else other


_SEVERITY_RANK = {Severity.RED: 0, Severity.YELLOW: 1, Severity.GREEN: 2}


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    ALERT = "alert"


AlertStatus = Literal["pending", "healthy"]


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting snake_case too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TelemetryPayload(CamelModel):
    """Validated rawData blob of a telemetry row."""

    variables: dict[str, int | float | str] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    alert_reasons: list[str] = Field(default_factory=list)

    @field_validator("variables", mode="before")
    @classmethod
    def clean_variables(cls, v: Any) -> Any:
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        cleaned: dict[str, int | float | str] = {}
        for name, value in v.items():
            if value is None:
                continue
            # Spreadsheet cells can hold booleans or dates; keep them as display text
            if isinstance(value, bool) or not isinstance(value, int | float | str):
                value = str(value)
            cleaned[str(name)] = value
        return cleaned

    @field_validator("issues", "alert_reasons", mode="before")
    @classmethod
    def clean_text_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        if isinstance(v, list):
            return [str(item) for item in v if item is not None and str(item).strip()]
        return v


class TelemetryRecord(CamelModel):
    """One ingested row of patient health data for a batch."""

    id: int = Field(ge=0, description="Surrogate storage id")
    batch_id: str
    patient_id: str = Field(min_length=1)
    name: str
    age: int = Field(ge=0)
    condition: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_alert: bool = False
    health_status: HealthStatus | None = None
    raw_data: TelemetryPayload = Field(default_factory=TelemetryPayload)

    @field_validator("patient_id", mode="before")
    @classmethod
    def stringify_patient_id(cls, v: Any) -> Any:
        return str(v).strip() if isinstance(v, int | float) and not isinstance(v, bool) else v

    @field_validator("is_alert", mode="before")
    @classmethod
    def parse_boolish(cls, v: Any) -> bool:
        if v is None:
            return False
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in _TRUTHY

    @field_validator("health_status", mode="before")
    @classmethod
    def normalise_health_status(cls, v: Any) -> Any:
        if v is None or isinstance(v, HealthStatus):
            return v
        text = str(v).strip().lower()
        return text if text in {s.value for s in HealthStatus} else None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("raw_data", mode="before")
    @classmethod
    def decode_raw_data(cls, v: Any) -> Any:
        if v is None or v == "":
            return {}
        if isinstance(v, str | bytes):
            decoded = json.loads(v)  # JSONDecodeError is a ValueError
            if not isinstance(decoded, dict):
                raise ValueError("rawData must decode to an object")
            return decoded
        return v


class BatchContext(CamelModel):
    """A named group of telemetry rows ingested together."""

    batch_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class AlertVariable(CamelModel):
    name: str
    value: int | float | str
    timestamp: datetime


class Classification(BaseModel):
    """Outcome of classifying a single telemetry record."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    reasons: list[str]
    has_abnormal_value: bool
    status: AlertStatus
    variables: list[tuple[str, int | float | str]] = Field(default_factory=list)


class AlertRecord(CamelModel):
    """Derived per-patient triage decision plus its rendered message."""

    alert_id: str
    patient_id: str
    patient_name: str
    age: int
    condition: str
    batch_id: str
    severity: Severity
    alert_reasons: list[str]
    variables: list[AlertVariable]
    status: AlertStatus
    message: str = ""
    alert_count: int = 0
    created_at: datetime


class ChannelCredentials(BaseModel):
    """Credentials for the external notification channel."""

    model_config = ConfigDict(frozen=True)

    account_sid: str = Field(min_length=1)
    auth_token: str = Field(min_length=1, repr=False)
    from_address: str = Field(min_length=1)


class ChannelReceipt(BaseModel):
    """Acknowledgement returned by a notification channel."""

    id: str


class DispatchReceipt(BaseModel):
    """Successful delivery of one alert."""

    alert_id: str
    patient_id: str
    patient_name: str
    batch_id: str
    message: str
    destination: str
    channel_message_id: str
    sent_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
