"""slimevr-bridge — stream tracker events from a driver process to SlimeVR.

Quick start::

    from slimevr_bridge import BridgeSession, BridgeStatus, TrackerRole

    session = BridgeSession()
    if session.start() == BridgeStatus.CONNECTED:
        session.add_tracker(1, "human://WAIST", TrackerRole.WAIST)
        session.send_position(1, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0)

For the consumer end, use :class:`BridgePeer`.
"""

from .bridge import BridgeSession, BridgeStatus
from .connection import Connection
from .errors import (
    BridgeError, ConnectionClosed, EncodingError, ProtocolError, TransportError,
)
from .messages import (
    Confidence, DataSource, ProtobufMessage, Status, TrackerRole, message_kind,
)
from .peer import BridgePeer
from .protocol import BUFFER_SIZE, HEADER_SIZE, SOCKET_NAME, default_socket_path

__version__ = "0.1.0"

__all__ = [
    "BridgeSession",
    "BridgeStatus",
    "BridgePeer",
    "Connection",
    "BridgeError",
    "TransportError",
    "ConnectionClosed",
    "ProtocolError",
    "EncodingError",
    "ProtobufMessage",
    "TrackerRole",
    "Status",
    "Confidence",
    "DataSource",
    "message_kind",
    "BUFFER_SIZE",
    "HEADER_SIZE",
    "SOCKET_NAME",
    "default_socket_path",
    "__version__",
]
