"""
reStrike Error Types

Only BindError and ListenerError are meant to reach the caller of the
UDP server. Everything else is recovered per datagram or per section.
"""


class UdpError(Exception):
    """Base class for all UDP ingest errors."""


class BindError(UdpError):
    """The UDP socket could not be bound."""

    def __init__(self, address, cause: OSError):
        self.address = address
        self.cause = cause
        super().__init__(f"Failed to bind UDP socket to {address[0]}:{address[1]}: {cause}")


class ParseError(UdpError):
    """A protocol grammar section or document could not be parsed."""


class InvalidFormat(UdpError):
    """A datagram could not be turned into a message."""


class ListenerError(UdpError):
    """The socket became unusable while the listener was running."""
