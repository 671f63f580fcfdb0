"""Error taxonomy for the triage action.

Fatal errors raised before any mutation is attempted. API failures live in
src/triage/github/client.py next to the client that raises them.
"""

from typing import Optional


class TriageError(Exception):
    """Base class for fatal triage errors."""


class ConfigurationError(TriageError):
    """Raised when the action configuration is missing or invalid.

    Covers missing tokens, invalid enum or boolean inputs, malformed
    project URLs and board fields or statuses that cannot be found.

    Attributes:
        message: Human-readable error description.
        setting: Name of the offending setting, when known.
    """

    def __init__(self, message: str, setting: Optional[str] = None):
        self.message = message
        self.setting = setting
        super().__init__(message)


class UnsupportedEventError(TriageError):
    """Raised when the action is triggered by an event it cannot evaluate.

    Attributes:
        event_name: The GitHub event name that triggered the run.
    """

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"Unsupported event type: {event_name!r}")


class MalformedPayloadError(TriageError):
    """Raised when a webhook payload does not resolve to an issue."""
