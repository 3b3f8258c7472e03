"""
Exception types raised while handling pushed location events.
"""


class CmxPushError(Exception):
    """Base class for all cmxpush errors."""


class MalformedPayload(CmxPushError):
    """The pushed body could not be parsed into an event batch."""


class AuthenticationFailure(CmxPushError):
    """The batch carried a secret that does not match the configured one."""


class ObservationSkipped(CmxPushError):
    """A single probe entry was unusable and is dropped from its batch."""

    def __init__(self, reason: str, mac: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.mac = mac
