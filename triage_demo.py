"""
End-to-end demo of the triage pipeline.

This script:
1. Ingests a sample batch into the in-memory store (one malformed row included)
2. Builds the severity-sorted alert set
3. Prints it as a table
4. Dispatches the red alerts to the console channel

Run with: uv run python triage_demo.py
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.table import Table

from adapters.notifications.console import console_channel_factory
from adapters.storage.memory import InMemoryTriageStore
from core.config import get_config
from core.domain.models import ChannelCredentials, Severity
from core.logging_config import configure_logging
from core.services.aggregation import AlertSetBuilder
from core.services.dispatcher import AlertDispatcher

console = Console()

_SEVERITY_STYLES = {Severity.RED: "bold red", Severity.YELLOW: "yellow", Severity.GREEN: "green"}


def sample_rows(now: datetime) -> list[dict]:
    earlier = now - timedelta(hours=2)
    return [
        {
            "patientId": "P-100",
            "name": "Ada Byrne",
            "age": 71,
            "condition": "Type 2 diabetes",
            "createdAt": earlier.isoformat(),
            "rawData": {"variables": {"glucose": 150, "heartRate": 82}},
        },
        {
            "patientId": "P-100",
            "name": "Ada Byrne",
            "age": 71,
            "condition": "Type 2 diabetes",
            "createdAt": now.isoformat(),
            "rawData": {"variables": {"glucose": 320, "heartRate": 88, "mood": "tired"}},
        },
        {
            "patientId": "P-200",
            "name": "Tomas Reyes",
            "age": 64,
            "condition": "CHF",
            "rawData": {"variables": {"heartRate": 45, "bloodPressure": "95/60"}},
        },
        {
            "patientId": "P-300",
            "name": "Mei Chen",
            "age": 58,
            "condition": "Hypertension",
            "rawData": '{"variables": {"bloodPressure": "128/82", "temperature": 98.4}}',
        },
        {
            "patientId": "P-400",
            "name": "Sam Okafor",
            "age": 80,
            "condition": "COPD",
            "isAlert": "true",
            "rawData": {"variables": {"oxygenSaturation": 94}},
        },
        {
            "patientId": "P-500",
            "name": "Broken Row",
            "age": "unknown",
            "rawData": "{not json",
        },
    ]


async def main() -> None:
    config = get_config()
    configure_logging(config.logging)

    console.rule("[bold]Patient triage demo")

    store = InMemoryTriageStore(
        destination_address="+15550100",
        credentials=ChannelCredentials(
            account_sid="demo", auth_token="demo", from_address="+15550199"
        ),
    )
    now = datetime.now(UTC)
    await store.add_batch("demo-batch", sample_rows(now), created_at=now)

    builder = AlertSetBuilder(store)
    dispatcher = AlertDispatcher(
        builder=builder,
        store=store,
        channel_factory=console_channel_factory(console),
        config=config.dispatcher_config(),
    )

    alerts = await builder.build()

    table = Table(title="Alerts (most urgent first)")
    table.add_column("Alert")
    table.add_column("Patient")
    table.add_column("Severity")
    table.add_column("Reasons")
    for alert in alerts:
        table.add_row(
            alert.alert_id,
            f"{alert.patient_name} ({alert.age})",
            f"[{_SEVERITY_STYLES[alert.severity]}]{alert.severity.value.upper()}[/]",
            "\n".join(alert.alert_reasons),
        )
    console.print(table)

    red_ids = [a.alert_id for a in alerts if a.severity is Severity.RED]
    sent = await dispatcher.send_all_alerts(red_ids)
    console.print(f"\n[bold]Dispatched {sent} of {len(red_ids)} red alerts[/]")


if __name__ == "__main__":
    asyncio.run(main())
