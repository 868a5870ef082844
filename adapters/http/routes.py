"""Triage API routes: alerts, dispatch, dispatch history, care prompts, phone settings."""

import secrets
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from adapters.http.schemas import (
    CarePromptResponse,
    DispatchAttemptView,
    DispatchHistoryResponse,
    ErrorResponse,
    PhoneSettings,
    PhoneSettingsResponse,
    SendAlertRequest,
    SendAlertResponse,
    SendAlertsRequest,
    SendAlertsResponse,
)
from core.config import APIConfig
from core.domain.errors import AlertNotFoundError
from core.domain.models import AlertRecord
from core.services.aggregation import AlertSetBuilder
from core.services.care_prompts import CarePromptDrafter
from core.services.dispatcher import AlertDispatcher
from core.services.ports import TelemetryStore


@dataclass
class TriageServices:
    """Everything the routes need, built once per application."""

    store: TelemetryStore
    builder: AlertSetBuilder
    dispatcher: AlertDispatcher
    api: APIConfig
    drafter: CarePromptDrafter | None = None


def get_services(request: Request) -> TriageServices:
    return request.app.state.services


def require_api_key(
    request: Request, services: TriageServices = Depends(get_services)
) -> None:
    presented = request.headers.get(services.api.api_key_header)
    if not presented or not any(
        secrets.compare_digest(presented, key) for key in services.api.api_keys
    ):
        raise HTTPException(status_code=401, detail="Authentication required")


ERROR_RESPONSES: dict[int | str, dict] = {
    status: {"model": ErrorResponse} for status in (400, 401, 500)
}

router = APIRouter(
    prefix="/api/triage", dependencies=[Depends(require_api_key)], responses=ERROR_RESPONSES
)
settings_router = APIRouter(
    prefix="/api/settings", dependencies=[Depends(require_api_key)], responses=ERROR_RESPONSES
)


@router.get("/alerts", response_model=list[AlertRecord])
async def list_alerts(
    batch_id: str | None = Query(default=None, alias="batchId"),
    services: TriageServices = Depends(get_services),
) -> list[AlertRecord]:
    return await services.builder.build(batch_id)


@router.post("/send-alert", response_model=SendAlertResponse)
async def send_alert(
    payload: SendAlertRequest | None = None,
    services: TriageServices = Depends(get_services),
) -> SendAlertResponse:
    if payload is None or not payload.alert_id:
        raise HTTPException(status_code=400, detail="Alert ID is required")

    receipt = await services.dispatcher.send_alert(payload.alert_id, payload.batch_id)
    return SendAlertResponse(patient_name=receipt.patient_name, message="Alert sent successfully")


@router.post("/send-alerts", response_model=SendAlertsResponse)
async def send_alerts(
    payload: SendAlertsRequest | None = None,
    services: TriageServices = Depends(get_services),
) -> SendAlertsResponse:
    if payload is None or not payload.alert_ids:
        raise HTTPException(status_code=400, detail="Alert IDs array is required")

    sent = await services.dispatcher.send_all_alerts(payload.alert_ids, payload.batch_id)
    return SendAlertsResponse(sent=sent, message=f"Successfully sent {sent} alerts")


@router.get("/dispatches", response_model=DispatchHistoryResponse)
async def dispatch_history(
    patient_id: str | None = Query(default=None, alias="patientId"),
    batch_id: str | None = Query(default=None, alias="batchId"),
    services: TriageServices = Depends(get_services),
) -> DispatchHistoryResponse:
    """Send attempts for one patient in a batch (default: most recent batch)."""
    if not patient_id:
        raise HTTPException(status_code=400, detail="Patient ID is required")

    resolved = await services.builder.resolve_batch_id(batch_id)
    if resolved is None:
        return DispatchHistoryResponse(patient_id=patient_id, batch_id=None)

    ledger = services.dispatcher.ledger
    last = ledger.last_success(patient_id, resolved)
    return DispatchHistoryResponse(
        patient_id=patient_id,
        batch_id=resolved,
        last_sent_at=last.attempted_at if last else None,
        attempts=[
            DispatchAttemptView.model_validate(attempt)
            for attempt in ledger.history(patient_id, resolved)
        ],
    )


@router.post("/care-prompt", response_model=CarePromptResponse)
async def draft_care_prompt(
    payload: SendAlertRequest | None = None,
    services: TriageServices = Depends(get_services),
) -> CarePromptResponse:
    if payload is None or not payload.alert_id:
        raise HTTPException(status_code=400, detail="Alert ID is required")
    if services.drafter is None:
        raise HTTPException(status_code=503, detail="Care prompt drafting is not configured")

    alert = await services.builder.find(payload.alert_id, payload.batch_id)
    if alert is None:
        raise AlertNotFoundError(f"Alert not found: {payload.alert_id}")

    prompt = await services.drafter.draft(alert)
    return CarePromptResponse(patient_name=alert.patient_name, prompt=prompt)


@settings_router.get("/phone", response_model=PhoneSettingsResponse)
async def get_phone_settings(
    services: TriageServices = Depends(get_services),
) -> PhoneSettingsResponse:
    return PhoneSettingsResponse(
        phone_number=await services.store.get_configured_destination_address()
    )


@settings_router.post("/phone", response_model=PhoneSettingsResponse)
async def update_phone_settings(
    payload: PhoneSettings,
    services: TriageServices = Depends(get_services),
) -> PhoneSettingsResponse:
    await services.store.set_destination_address(payload.phone_number)
    return PhoneSettingsResponse(
        message="Phone configuration updated successfully", phone_number=payload.phone_number
    )
