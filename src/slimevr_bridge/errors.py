"""Exceptions raised by the bridge.

All of them derive from :class:`BridgeError`; the boolean helpers on
:class:`~slimevr_bridge.bridge.BridgeSession` catch that base, log it and
return ``False``.
"""


class BridgeError(Exception):
    """Base class for every bridge failure."""


class TransportError(BridgeError):
    """Socket-layer failure during accept, send or receive."""


class ConnectionClosed(TransportError):
    """The peer closed the stream."""


class ProtocolError(BridgeError):
    """Malformed header, empty frame or a frame larger than the buffer."""


class EncodingError(BridgeError):
    """The payload could not be serialized or parsed."""
