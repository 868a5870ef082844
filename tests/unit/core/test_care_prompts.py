"""
Tests for care prompt drafting.

The Pydantic AI agent is replaced with a stub exposing `run`, so no model
provider or API key is needed.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from conftest import RecordFactory

from core.domain.errors import DraftError
from core.services.aggregation import PatientAggregator
from core.services.care_prompts import (
    CarePromptConfig,
    CarePromptDrafter,
    DraftCache,
    draft_key,
)


@pytest.fixture
def drafter() -> CarePromptDrafter:
    return CarePromptDrafter(CarePromptConfig(timeout_seconds=0.5), DraftCache(max_entries=8))


def stub_agent(
    drafter: CarePromptDrafter, output: str = "Hi Jane, how are you feeling?"
) -> AsyncMock:
    run = AsyncMock(return_value=SimpleNamespace(output=output))
    drafter.agent = SimpleNamespace(run=run)  # type: ignore[assignment]
    return run


class TestDraftCache:
    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            DraftCache(max_entries=0)

    def test_least_recently_used_entry_is_evicted(self) -> None:
        cache = DraftCache(max_entries=2)
        a, b, c = ("a", "red", ()), ("b", "red", ()), ("c", "red", ())
        cache.put(a, "A")
        cache.put(b, "B")
        assert cache.get(a) == "A"  # touch a so b is the oldest

        cache.put(c, "C")

        assert cache.get(b) is None
        assert cache.get(a) == "A"
        assert cache.get(c) == "C"
        assert len(cache) == 2

    def test_expired_entries_are_dropped(self) -> None:
        cache = DraftCache(ttl_seconds=-1.0)
        key = ("a", "red", ())
        cache.put(key, "A")

        assert cache.get(key) is None
        assert len(cache) == 0

    def test_clear(self) -> None:
        cache = DraftCache()
        cache.put(("a", "red", ()), "A")
        cache.clear()

        assert len(cache) == 0


class TestCarePromptDrafter:
    async def test_draft_returns_agent_output(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        run = stub_agent(drafter)
        alert = PatientAggregator().to_alert(make_record({"heartRate": 110}))

        text = await drafter.draft(alert)

        assert text == "Hi Jane, how are you feeling?"
        prompt = run.await_args.args[0]
        assert "SEVERITY: YELLOW" in prompt
        assert "heartRate: 110" in prompt

    async def test_second_draft_is_served_from_cache(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        run = stub_agent(drafter)
        alert = PatientAggregator().to_alert(make_record({"heartRate": 110}))

        first = await drafter.draft(alert)
        second = await drafter.draft(alert)

        assert first == second
        assert run.await_count == 1
        assert drafter.cache.get(draft_key(alert)) == first

    async def test_changed_reasons_are_redrafted(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        run = stub_agent(drafter)
        aggregator = PatientAggregator()
        before = aggregator.to_alert(make_record({"heartRate": 110}, record_id=5))
        after = aggregator.to_alert(make_record({"heartRate": 130}, record_id=5))

        await drafter.draft(before)
        await drafter.draft(after)

        assert run.await_count == 2

    async def test_red_drafts_start_with_escalation(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        stub_agent(drafter)
        alert = PatientAggregator().to_alert(make_record({"glucose": 420}))

        text = await drafter.draft(alert)

        assert text.startswith("Escalate to the on-call clinician")

    async def test_existing_escalation_line_is_not_duplicated(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        stub_agent(drafter, output="Escalate now. Then ask about glucose.")
        alert = PatientAggregator().to_alert(make_record({"glucose": 420}))

        assert await drafter.draft(alert) == "Escalate now. Then ask about glucose."

    async def test_empty_output_is_draft_error(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        stub_agent(drafter, output="   ")
        alert = PatientAggregator().to_alert(make_record({"glucose": 100}))

        with pytest.raises(DraftError, match="no text"):
            await drafter.draft(alert)
        assert len(drafter.cache) == 0

    async def test_agent_failure_is_draft_error(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        drafter.agent = SimpleNamespace(  # type: ignore[assignment]
            run=AsyncMock(side_effect=RuntimeError("rate limited"))
        )
        alert = PatientAggregator().to_alert(make_record({"glucose": 100}))

        with pytest.raises(DraftError, match="rate limited"):
            await drafter.draft(alert)

    async def test_slow_agent_times_out(
        self, drafter: CarePromptDrafter, make_record: RecordFactory
    ) -> None:
        async def slow_run(prompt: str) -> SimpleNamespace:
            await asyncio.sleep(5)
            return SimpleNamespace(output="late")

        drafter.agent = SimpleNamespace(run=slow_run)  # type: ignore[assignment]
        alert = PatientAggregator().to_alert(make_record({"glucose": 100}))

        with pytest.raises(DraftError, match="timed out"):
            await drafter.draft(alert)
