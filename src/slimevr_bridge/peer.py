"""Consumer end of the bridge — connects to the driver socket and reads frames.

This is the side the SlimeVR server plays.  It is handy for tests, for
inspecting what a driver sends, and for injecting server-side messages such
as user actions.
"""

import logging
from typing import Optional

from google.protobuf.message import DecodeError

from .connection import Connection
from .errors import EncodingError, ProtocolError
from .messages import ProtobufMessage
from .protocol import BUFFER_SIZE, HEADER_SIZE, default_socket_path, read_header, write_header

log = logging.getLogger(__name__)


class BridgePeer:
    """Connects to a listening :class:`~slimevr_bridge.bridge.BridgeSession`.

    Usage::

        with BridgePeer.connect("/tmp/SlimeVRDriver", timeout=5) as peer:
            message = peer.recv(timeout=1.0)   # ProtobufMessage or None
    """

    def __init__(self, connection: Connection, buffer_size: int = BUFFER_SIZE):
        self._connection = connection
        self._buffer = bytearray(buffer_size)
        self._view = memoryview(self._buffer)

    @classmethod
    def connect(cls, socket_path: Optional[str] = None,
                timeout: Optional[float] = None, **kwargs) -> "BridgePeer":
        """Connect to the driver at *socket_path*, retrying for *timeout* seconds."""
        path = socket_path or default_socket_path()
        connection = Connection.connect(path, timeout=timeout)
        log.info("Connected to bridge at %s", path)
        return cls(connection, **kwargs)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._connection.is_open

    def recv(self, timeout: Optional[float] = None) -> Optional[ProtobufMessage]:
        """Block for the next message.

        With *timeout* (seconds), returns ``None`` if no frame starts within
        that time.  Raises the same errors as
        :meth:`BridgeSession.receive <slimevr_bridge.bridge.BridgeSession.receive>`.
        """
        conn = self._connection
        timeout_ms = None if timeout is None else int(timeout * 1000)
        if not conn.poll(timeout_ms):
            return None

        conn.recv_exact(self._view, HEADER_SIZE)
        offset, size = read_header(self._view, HEADER_SIZE)
        if size <= 0:
            raise ProtocolError("empty message")
        if offset + size > len(self._buffer):
            raise ProtocolError(f"message of {offset + size} bytes is too big")
        conn.recv_exact(self._view[offset:], size)

        message = ProtobufMessage()
        try:
            message.ParseFromString(bytes(self._view[offset:offset + size]))
        except DecodeError as e:
            raise EncodingError(f"failed to parse: {e}") from e
        return message

    def send(self, message: ProtobufMessage):
        """Frame and send *message*, raising on failure."""
        payload = message.SerializeToString()
        if not payload:
            raise ProtocolError("empty message")
        offset = write_header(self._buffer, len(payload))
        self._view[offset:offset + len(payload)] = payload
        self._connection.send_all(self._view[:offset + len(payload)])

    def send_raw(self, data: bytes):
        """Write *data* unframed.  For exercising the driver's error paths."""
        self._connection.send_all(data)

    def close(self):
        self._connection.close()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
