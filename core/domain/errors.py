"""Error taxonomy for triage classification and alert dispatch."""


class TriageError(Exception):
    """Base class for all triage errors."""


class ParseError(TriageError):
    """A variable reading or a telemetry row could not be parsed.

    Always recovered locally: the reading is treated as non-numeric or the
    row is skipped, the rest of the batch carries on.
    """


class ConfigurationError(TriageError):
    """Destination address or channel credentials are not configured."""


class ChannelError(TriageError):
    """The external notification channel failed to deliver a message."""


class AlertNotFoundError(TriageError):
    """No alert with the requested id exists in the resolved batch."""


class DraftError(TriageError):
    """The AI service could not draft a care prompt."""
