"""
Patient aggregation and alert set building.

A batch may hold several telemetry rows per patient. Rows are ordered by an
explicit recency key, `(created_at, id)`, and collapsed last-write-wins so the
alert for each patient reflects their most recent row. Storage iteration order
only breaks exact ties.
"""

import time

import structlog

from core.domain.models import AlertRecord, AlertVariable, TelemetryRecord
from core.services.classifier import SeverityClassifier
from core.services.formatter import format_alert_message
from core.services.ports import TelemetryStore

logger = structlog.get_logger(__name__)


def alert_id_for(record: TelemetryRecord) -> str:
    return f"alert-{record.id}"


class PatientAggregator:
    """Collapses telemetry rows into one classified alert per patient id."""

    def __init__(self, classifier: SeverityClassifier | None = None) -> None:
        self.classifier = classifier or SeverityClassifier()
        self.logger = logger.bind(component="patient_aggregator")

    def aggregate(self, records: list[TelemetryRecord]) -> dict[str, AlertRecord]:
        ordered = sorted(records, key=lambda r: (r.created_at, r.id))
        alerts: dict[str, AlertRecord] = {}

        for record in ordered:
            if record.patient_id in alerts:
                self.logger.debug(
                    "duplicate_patient_row_superseded",
                    patient_id=record.patient_id,
                    superseded=alerts[record.patient_id].alert_id,
                    record_id=record.id,
                )
            alerts[record.patient_id] = self.to_alert(record)

        return alerts

    def to_alert(self, record: TelemetryRecord) -> AlertRecord:
        result = self.classifier.classify(record)
        return AlertRecord(
            alert_id=alert_id_for(record),
            patient_id=record.patient_id,
            patient_name=record.name,
            age=record.age,
            condition=record.condition,
            batch_id=record.batch_id,
            severity=result.severity,
            alert_reasons=result.reasons,
            variables=[
                AlertVariable(name=name, value=value, timestamp=record.created_at)
                for name, value in result.variables
            ],
            status=result.status,
            created_at=record.created_at,
        )


class AlertSetBuilder:
    """
    Builds the ordered alert list for a batch.

    Alerts are recomputed from the store on every call; nothing is cached, so
    two calls can disagree if telemetry changed in between.
    """

    def __init__(self, store: TelemetryStore, aggregator: PatientAggregator | None = None) -> None:
        self.store = store
        self.aggregator = aggregator or PatientAggregator()
        self.logger = logger.bind(component="alert_set_builder")

    async def resolve_batch_id(self, batch_id: str | None = None) -> str | None:
        if batch_id:
            return batch_id
        return await self.store.get_most_recent_batch_id()

    async def build(self, batch_id: str | None = None) -> list[AlertRecord]:
        start_time = time.perf_counter()

        resolved = await self.resolve_batch_id(batch_id)
        if resolved is None:
            self.logger.info("no_batch_available")
            return []

        records = await self.store.list_telemetry_records(resolved)
        by_patient = self.aggregator.aggregate(records)

        # sorted() is stable, so equal severities keep aggregation order
        ordered = sorted(by_patient.values(), key=lambda a: a.severity.rank)
        alerts = [
            alert.model_copy(
                update={
                    "message": format_alert_message(alert),
                    "alert_count": len(alert.alert_reasons),
                }
            )
            for alert in ordered
        ]

        self.logger.info(
            "alert_set_built",
            batch_id=resolved,
            records=len(records),
            patients=len(alerts),
            red=sum(1 for a in alerts if a.severity.value == "red"),
            yellow=sum(1 for a in alerts if a.severity.value == "yellow"),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return alerts

    async def find(self, alert_id: str, batch_id: str | None = None) -> AlertRecord | None:
        for alert in await self.build(batch_id):
            if alert.alert_id == alert_id:
                return alert
        return None
