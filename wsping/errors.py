"""Exceptions raised by the wsping session engine."""


class ProbeError(Exception):
    """Base class for wsping errors."""

    pass


class ReadError(ProbeError):
    """Raised when the configuration frame cannot be read or decoded."""

    pass


class InvalidOptionError(ProbeError, ValueError):
    """Raised when a resolved option fails validation."""

    pass


class ChannelWriteError(ProbeError):
    """Raised when a frame cannot be written to the peer."""

    pass
