"""Tests for severity-scaled alert message text."""

from conftest import RecordFactory, build_record
from hypothesis import given
from hypothesis import strategies as st

from core.domain.models import AlertRecord, Severity
from core.services.aggregation import PatientAggregator
from core.services.formatter import (
    GREEN_REASSURANCE,
    HEADERS,
    RED_SUFFIX,
    format_alert_message,
    select_reasons,
    select_variables,
)

aggregator = PatientAggregator()


def alert_for(record) -> AlertRecord:
    return aggregator.to_alert(record)


class TestRed:
    def test_red_message_layout(self, make_record: RecordFactory) -> None:
        alert = alert_for(make_record({"glucose": 350, "heartRate": 72}, name="Ann Lee", age=81))

        lines = format_alert_message(alert).split("\n")

        assert lines[0] == HEADERS[Severity.RED]
        assert lines[1] == "Patient: Ann Lee, 81"
        assert lines[2] == "- glucose: 350"
        assert lines[3] == "Reasons: CRITICAL: glucose is 350"
        assert lines[-1] == RED_SUFFIX
        assert len(lines) == 5

    def test_red_lists_only_variables_named_in_reasons(self, make_record: RecordFactory) -> None:
        alert = alert_for(make_record({"mood": "low", "glucose": 400, "oxygenSaturation": 80}))

        names = [v.name for v in select_variables(alert)]

        assert names == ["glucose", "oxygenSaturation"]

    def test_red_keeps_only_critical_reasons(self, make_record: RecordFactory) -> None:
        alert = alert_for(make_record({"glucose": 400, "heartRate": 110}))

        assert select_reasons(alert) == ["CRITICAL: glucose is 400"]

    def test_upstream_red_without_critical_prefix_has_no_reason_line(
        self, make_record: RecordFactory
    ) -> None:
        alert = alert_for(make_record({}, alert_reasons=["severe fall reported"]))

        message = format_alert_message(alert)

        assert alert.severity is Severity.RED
        assert "Reasons:" not in message
        assert message.endswith(RED_SUFFIX)


class TestYellow:
    def test_yellow_caps_variables_and_reasons(self, make_record: RecordFactory) -> None:
        alert = alert_for(
            make_record(
                {"heartRate": 110, "temperature": 100.2, "glucose": 190, "bloodPressure": 150}
            )
        )

        message = format_alert_message(alert)

        assert message.startswith(HEADERS[Severity.YELLOW])
        assert len(select_variables(alert)) == 3
        assert "- bloodPressure" not in message
        assert "Reasons: WARNING: heartRate is 110; WARNING: temperature is 100.2" in message
        assert RED_SUFFIX not in message


class TestGreen:
    def test_green_shows_one_reading_and_reassurance(self, make_record: RecordFactory) -> None:
        alert = alert_for(make_record({"glucose": 110, "heartRate": 70}, name="Bo", age=40))

        assert format_alert_message(alert) == "\n".join(
            [
                HEADERS[Severity.GREEN],
                "Patient: Bo, 40",
                "- glucose: 110",
                f"Status: {GREEN_REASSURANCE}",
            ]
        )

    def test_green_without_readings(self, make_record: RecordFactory) -> None:
        alert = alert_for(make_record({}))

        assert format_alert_message(alert).split("\n")[2] == f"Status: {GREEN_REASSURANCE}"


@given(
    variables=st.dictionaries(
        keys=st.sampled_from(["glucose", "heartRate", "temperature", "mood"]),
        values=st.one_of(
            st.floats(min_value=0, max_value=500, allow_nan=False),
            st.text(alphabet="abc", max_size=5),
        ),
    )
)
def test_formatting_is_deterministic(variables: dict) -> None:
    alert = alert_for(build_record(variables))

    assert format_alert_message(alert) == format_alert_message(alert)
    assert format_alert_message(alert).startswith(HEADERS[alert.severity])
