"""Request and response bodies for the triage HTTP API."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# E.164: "+", country code, up to 15 digits in total
_E164 = re.compile(r"^\+[1-9]\d{7,14}$")
_PHONE_PUNCTUATION = re.compile(r"[\s\-().]")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendAlertRequest(ApiModel):
    alert_id: str | None = None
    batch_id: str | None = None


class SendAlertsRequest(ApiModel):
    alert_ids: list[str] | None = None
    batch_id: str | None = None


class SendAlertResponse(ApiModel):
    success: bool = True
    patient_name: str
    message: str


class SendAlertsResponse(ApiModel):
    success: bool = True
    sent: int
    message: str


class CarePromptResponse(ApiModel):
    success: bool = True
    patient_name: str
    prompt: str


class PhoneSettings(ApiModel):
    """Alert destination number, normalised to E.164."""

    phone_number: str

    @field_validator("phone_number", mode="before")
    @classmethod
    def normalise_phone_number(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        number = _PHONE_PUNCTUATION.sub("", v)
        if not _E164.match(number):
            raise ValueError("phone number must be in E.164 format, e.g. +15551234567")
        return number


class PhoneSettingsResponse(ApiModel):
    success: bool = True
    message: str | None = None
    phone_number: str | None


class DispatchAttemptView(ApiModel):
    model_config = ConfigDict(from_attributes=True)

    alert_id: str
    succeeded: bool
    error: str | None = None
    channel_message_id: str | None = None
    attempted_at: datetime


class DispatchHistoryResponse(ApiModel):
    success: bool = True
    patient_id: str
    batch_id: str | None
    last_sent_at: datetime | None = None
    attempts: list[DispatchAttemptView] = Field(default_factory=list)


class ErrorResponse(ApiModel):
    success: bool = False
    message: str
