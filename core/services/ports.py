"""
Protocols for the collaborators the triage core depends on.

Why Protocol over ABC: structural typing keeps adapters and test doubles free
of any import from the core.
"""

from collections.abc import Callable
from typing import Protocol

from core.domain.models import ChannelCredentials, ChannelReceipt, TelemetryRecord


class TelemetryStore(Protocol):
    """Opaque record store holding ingested telemetry and channel settings."""

    async def list_telemetry_records(self, batch_id: str) -> list[TelemetryRecord]: ...

    async def get_most_recent_batch_id(self) -> str | None: ...

    async def get_configured_destination_address(self) -> str | None: ...

    async def set_destination_address(self, address: str) -> None: ...

    async def get_channel_credentials(self) -> ChannelCredentials | None: ...


class NotificationChannel(Protocol):
    """External channel (SMS, pager, console) that delivers alert text."""

    async def send(self, message: str, to: str) -> ChannelReceipt:
        """Deliver `message` to `to`; raise on failure."""
        ...


ChannelFactory = Callable[[ChannelCredentials], NotificationChannel]
