"""
Faults raised by the bridge components and recovered by the frame gate.
"""


class BridgeError(Exception):
    """Base class for bridge faults."""


class TransportError(BridgeError):
    """Connect, write or read failure on the control connection. The connection is already torn down."""


class RemoteClosedError(TransportError):
    """The agent closed the connection (zero-byte read)."""

    def __init__(self) -> None:
        super().__init__("Agent closed the connection")


class ProtocolError(BridgeError):
    """Malformed or unrecognized message. The connection is left open."""

    def __init__(self, reason: str, payload: str = "") -> None:
        self.reason = reason
        self.payload = payload
        msg = reason if not payload else f"{reason}: {payload[:200]!r}"
        super().__init__(msg)
