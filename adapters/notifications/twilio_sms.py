"""
SMS notification channel via Twilio.

The Twilio REST client is blocking, so sends run in a worker thread to keep
the event loop free. A worker thread cannot be cancelled, so the client's own
HTTP timeout is what actually bounds a stuck request.
"""

import asyncio

import structlog
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from core.domain.errors import ChannelError
from core.domain.models import ChannelCredentials, ChannelReceipt
from core.services.ports import ChannelFactory

logger = structlog.get_logger(__name__)

# Twilio concatenates segments up to this many characters
MAX_SMS_LENGTH = 1600


class TwilioSmsChannel:
    def __init__(
        self,
        credentials: ChannelCredentials,
        client: TwilioClient | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.from_number = credentials.from_address
        self.client = client or TwilioClient(
            credentials.account_sid,
            credentials.auth_token,
            http_client=TwilioHttpClient(timeout=timeout_seconds),
        )
        self.logger = logger.bind(component="twilio_sms_channel")

    async def send(self, message: str, to: str) -> ChannelReceipt:
        body = message if len(message) <= MAX_SMS_LENGTH else message[: MAX_SMS_LENGTH - 1] + "…"
        try:
            sent = await asyncio.to_thread(
                self.client.messages.create, body=body, from_=self.from_number, to=to
            )
        except TwilioException as e:
            self.logger.error("sms_send_failed", error=str(e))
            raise ChannelError(f"SMS delivery failed: {e}") from e

        self.logger.info("sms_sent", sid=sent.sid, length=len(body))
        return ChannelReceipt(id=sent.sid)


def make_twilio_channel_factory(timeout_seconds: float | None = None) -> ChannelFactory:
    """Channel factory whose Twilio clients give up after `timeout_seconds`."""

    def _factory(credentials: ChannelCredentials) -> TwilioSmsChannel:
        return TwilioSmsChannel(credentials, timeout_seconds=timeout_seconds)

    return _factory
