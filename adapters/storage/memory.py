"""
In-process record store for development, demos and tests.

Implements the `TelemetryStore` protocol. Rows are validated once on the way
in; rows that fail validation are logged and skipped so one bad spreadsheet
line never blocks the rest of the batch.
"""

import asyncio
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from core.config import NotificationConfig
from core.domain.models import BatchContext, ChannelCredentials, TelemetryRecord
from core.domain.telemetry import parse_telemetry_row

logger = structlog.get_logger(__name__)


class InMemoryTriageStore:
    def __init__(
        self,
        destination_address: str | None = None,
        credentials: ChannelCredentials | None = None,
    ) -> None:
        self.destination_address = destination_address
        self.credentials = credentials
        self.batches: dict[str, BatchContext] = {}
        self.records: list[TelemetryRecord] = []
        self._next_id = 1
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="memory_store")

    @classmethod
    def from_config(cls, config: NotificationConfig) -> "InMemoryTriageStore":
        return cls(
            destination_address=config.destination_address,
            credentials=config.credentials(),
        )

    async def add_batch(
        self,
        batch_id: str,
        rows: Iterable[Mapping[str, Any]],
        created_at: datetime | None = None,
    ) -> BatchContext:
        """Register a batch and ingest its rows; returns the (immutable) batch."""
        async with self._lock:
            if batch_id in self.batches:
                raise ValueError(f"Batch already exists: {batch_id}")
            batch = BatchContext(batch_id=batch_id, created_at=created_at or datetime.now(UTC))
            self.batches[batch_id] = batch

            accepted = skipped = 0
            for index, row in enumerate(rows):
                candidate = {**row, "id": self._next_id, "batchId": batch_id}
                if "createdAt" not in candidate and "created_at" not in candidate:
                    candidate["createdAt"] = batch.created_at
                result = parse_telemetry_row(candidate)
                if result.is_err():
                    skipped += 1
                    self.logger.warning(
                        "telemetry_row_skipped",
                        batch_id=batch_id,
                        row=index,
                        error=str(result.unwrap_err()),
                    )
                    continue
                self.records.append(result.unwrap())
                self._next_id += 1
                accepted += 1

            self.logger.info(
                "batch_ingested", batch_id=batch_id, accepted=accepted, skipped=skipped
            )
            return batch

    async def list_telemetry_records(self, batch_id: str) -> list[TelemetryRecord]:
        return [r for r in self.records if r.batch_id == batch_id]

    async def get_most_recent_batch_id(self) -> str | None:
        if not self.batches:
            return None
        # max() keeps the first of equal timestamps; prefer the later registration
        latest = max(
            enumerate(self.batches.values()), key=lambda item: (item[1].created_at, item[0])
        )
        return latest[1].batch_id

    async def get_configured_destination_address(self) -> str | None:
        return self.destination_address

    async def set_destination_address(self, address: str) -> None:
        """Replace the alert destination; later sends read the new value."""
        self.destination_address = address
        self.logger.info("destination_address_updated", suffix=address[-4:])

    async def get_channel_credentials(self) -> ChannelCredentials | None:
        return self.credentials
