"""
Severity-scaled notification text.

Red alerts carry every critical reading and reason, yellow a short digest,
green a single reading and a reassurance line. The size difference is
intentional: red messages must be actionable on their own, green ones cheap.
"""

from core.domain.models import AlertRecord, AlertVariable, Severity

HEADERS = {
    Severity.RED: "🔴 URGENT ACTION REQUIRED",
    Severity.YELLOW: "🟡 ATTENTION NEEDED",
    Severity.GREEN: "🟢 Routine check",
}

GREEN_REASSURANCE = "No concerns detected. Continue routine monitoring."
RED_SUFFIX = "This patient requires immediate clinical attention."

YELLOW_MAX_VARIABLES = 3
YELLOW_MAX_REASONS = 2
GREEN_MAX_VARIABLES = 1


def _render_value(value: int | float | str) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def select_variables(alert: AlertRecord) -> list[AlertVariable]:
    """Readings worth surfacing for the alert's severity."""
    if alert.severity is Severity.RED:
        reasons = [reason.lower() for reason in alert.alert_reasons]
        return [v for v in alert.variables if any(v.name.lower() in r for r in reasons)]
    if alert.severity is Severity.YELLOW:
        return alert.variables[:YELLOW_MAX_VARIABLES]
    return alert.variables[:GREEN_MAX_VARIABLES]


def select_reasons(alert: AlertRecord) -> list[str]:
    if alert.severity is Severity.RED:
        return [reason for reason in alert.alert_reasons if "CRITICAL" in reason]
    if alert.severity is Severity.YELLOW:
        return alert.alert_reasons[:YELLOW_MAX_REASONS]
    return [GREEN_REASSURANCE]


def format_alert_message(alert: AlertRecord) -> str:
    """Render the notification text for an alert. Pure and deterministic."""
    lines = [HEADERS[alert.severity], f"Patient: {alert.patient_name}, {alert.age}"]

    lines.extend(f"- {v.name}: {_render_value(v.value)}" for v in select_variables(alert))

    reasons = select_reasons(alert)
    if reasons:
        label = "Status" if alert.severity is Severity.GREEN else "Reasons"
        lines.append(f"{label}: {'; '.join(reasons)}")

    if alert.severity is Severity.RED:
        lines.append(RED_SUFFIX)

    return "\n".join(lines)
