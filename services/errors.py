"""Exception hierarchy for the alert worker."""

from __future__ import annotations

from typing import Optional


class AlertsError(Exception):
    """Base class for failures raised by the alert pipeline."""


class TransportError(AlertsError):
    """The measurement source or the channel could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(TransportError):
    """A request exceeded its configured deadline."""


class FormatError(AlertsError):
    """The measurement source answered with an unexpected payload shape."""


class CredentialError(AlertsError):
    """The channel credential is not configured or could not be fetched."""


class ChannelTransportError(TransportError):
    """The channel answered with a non-success HTTP status or was unreachable."""


class ChannelApiError(AlertsError):
    """The channel reported the send as unsuccessful."""


class ChannelProtocolError(AlertsError):
    """A successful channel response lacked the message identifier."""


class PersistenceError(AlertsError):
    """An audit record could not be written."""


class AlertStoreError(AlertsError):
    """Alert definitions could not be loaded; fatal to the run."""
