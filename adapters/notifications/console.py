"""Development channel that renders alerts to the terminal with rich."""

import uuid

from rich.console import Console
from rich.panel import Panel

from core.domain.models import ChannelCredentials, ChannelReceipt

_BORDER_STYLES = {
    "🔴": "red",
    "🟡": "yellow",
    "🟢": "green",
}


class ConsoleChannel:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.sent: list[tuple[str, str]] = []

    async def send(self, message: str, to: str) -> ChannelReceipt:
        style = _BORDER_STYLES.get(message[:1], "blue")
        self.console.print(Panel(message, title=f"to {to}", border_style=style))
        self.sent.append((to, message))
        return ChannelReceipt(id=f"console-{uuid.uuid4().hex[:12]}")


def console_channel_factory(console: Console | None = None):
    """Factory ignoring credentials; every send goes to the same console."""
    channel = ConsoleChannel(console)

    def _factory(credentials: ChannelCredentials) -> ConsoleChannel:
        return channel

    return _factory
