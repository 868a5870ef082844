"""
AI-drafted care-call prompts for triage alerts, using Pydantic AI.

Drafts are cached in a bounded, injected `DraftCache` owned by whoever builds
the drafter, keyed by the alert's content so a changed alert is re-drafted.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Any, cast

import structlog
from pydantic import BaseModel, Field
from pydantic_ai import Agent

from core.domain.errors import DraftError
from core.domain.models import AlertRecord, Severity

logger = structlog.get_logger(__name__)

DraftKey = tuple[str, str, tuple[str, ...]]


class DraftCache:
    """LRU cache with a size limit and per-entry time-to-live."""

    def __init__(self, max_entries: int = 256, ttl_seconds: float = 3600.0) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._entries: OrderedDict[DraftKey, tuple[float, str]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: DraftKey) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, text = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return text

    def put(self, key: DraftKey, text: str) -> None:
        self._entries[key] = (time.monotonic(), text)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class CarePromptConfig(BaseModel):
    model_name: str = "openai:gpt-4o-mini"
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)


def draft_key(alert: AlertRecord) -> DraftKey:
    return (alert.alert_id, alert.severity.value, tuple(alert.alert_reasons))


class CarePromptDrafter:
    """
    Drafts the talking points a nurse or voice agent uses on a check-in call.

    The drafter only writes; it never changes an alert's severity.
    """

    def __init__(self, config: CarePromptConfig, cache: DraftCache) -> None:
        self.config = config
        self.cache = cache
        self.logger = logger.bind(component="care_prompt_drafter")
        self.agent = Agent(
            model=self.config.model_name,
            output_type=str,
            system_prompt=self._build_system_prompt(),
            retries=self.config.max_retries,
            model_settings={"temperature": self.config.temperature},
            defer_model_check=True,
        )

    def _build_system_prompt(self) -> str:
        return """You are an experienced care coordinator preparing a short check-in
call script for a patient flagged by remote health monitoring.

Rules:
1. Address the patient by first name and keep the tone calm and plain.
2. Ask about each abnormal reading listed, one question per reading.
3. Never diagnose and never change medication advice.
4. For RED alerts, the first line must tell the caller to escalate to a clinician.
5. Keep the script under 150 words."""

    def _build_user_prompt(self, alert: AlertRecord) -> str:
        readings = "\n".join(f"- {v.name}: {v.value}" for v in alert.variables) or "- none"
        reasons = "\n".join(f"- {r}" for r in alert.alert_reasons)
        return f"""PATIENT: {alert.patient_name}, age {alert.age}
CONDITION: {alert.condition or "not recorded"}
SEVERITY: {alert.severity.value.upper()}

READINGS:
{readings}

TRIAGE REASONS:
{reasons}

Write the check-in call script."""

    async def draft(self, alert: AlertRecord) -> str:
        key = draft_key(alert)
        cached = self.cache.get(key)
        if cached is not None:
            self.logger.debug("care_prompt_cache_hit", alert_id=alert.alert_id)
            return cached

        try:
            result = await asyncio.wait_for(
                self.agent.run(self._build_user_prompt(alert)),
                timeout=self.config.timeout_seconds,
            )
        except TimeoutError as e:
            self.logger.error("care_prompt_timeout", alert_id=alert.alert_id)
            raise DraftError("Care prompt drafting timed out") from e
        except Exception as e:
            self.logger.error("care_prompt_failed", alert_id=alert.alert_id, error=str(e))
            raise DraftError(f"Care prompt drafting failed: {e}") from e

        text = cast(str, cast(Any, result).output).strip()
        if not text:
            raise DraftError("Care prompt drafting returned no text")

        if alert.severity is Severity.RED and not text.lower().startswith("escalate"):
            text = f"Escalate to the on-call clinician before continuing.\n{text}"

        self.cache.put(key, text)
        self.logger.info(
            "care_prompt_drafted",
            alert_id=alert.alert_id,
            severity=alert.severity.value,
            length=len(text),
        )
        return text
