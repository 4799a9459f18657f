"""High-level API — feed tracker events to the SlimeVR server with one object.

``BridgeSession`` listens on the driver socket, waits for the server to
connect, and then frames typed messages over that single connection.

Example::

    from slimevr_bridge import BridgeSession, BridgeStatus, TrackerRole
    from slimevr_bridge import Status, Confidence

    session = BridgeSession()
    if session.start() == BridgeStatus.CONNECTED:
        session.add_tracker(1, "human://WAIST", TrackerRole.WAIST)
        session.send_status(1, Status.OK, Confidence.HIGH)

        while session.send_position(1, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0):
            session.drain()
            time.sleep(0.001)

    session.close()
"""

import logging
import socket
from enum import IntEnum
from typing import Optional

import numpy as np
from google.protobuf.message import DecodeError, EncodeError

from . import messages
from .connection import Connection
from .errors import BridgeError, EncodingError, ProtocolError, TransportError
from .messages import ProtobufMessage
from .protocol import (
    BACKLOG, BUFFER_SIZE, DEFAULT_TRACKER_NAME, HEADER_SIZE,
    default_socket_path, read_header, write_header,
)

log = logging.getLogger(__name__)


class BridgeStatus(IntEnum):
    CONNECTED = 0
    DISCONNECTED = 1
    ERROR = 2


class BridgeSession:
    """One driver-side bridge connection plus its reusable frame buffer.

    Parameters
    ----------
    buffer_size : int
        Capacity of the frame buffer shared by the send and receive paths.
        No frame, header included, may be larger than this.

    Not thread-safe: one caller thread drives both :meth:`send` and
    :meth:`receive`.
    """

    def __init__(self, buffer_size: int = BUFFER_SIZE):
        if buffer_size <= HEADER_SIZE:
            raise ValueError(f"buffer_size must exceed {HEADER_SIZE} bytes")
        self._buffer = bytearray(buffer_size)
        self._view = memoryview(self._buffer)
        self._connection: Optional[Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, socket_path: Optional[str] = None,
              backlog: int = BACKLOG) -> BridgeStatus:
        """Listen on *socket_path* and block until the server connects.

        *socket_path* defaults to :func:`~slimevr_bridge.protocol.default_socket_path`.
        Returns :attr:`BridgeStatus.CONNECTED`, or :attr:`BridgeStatus.ERROR`
        if the socket cannot be bound or accept fails.  Nothing is retried.

        Raises
        ------
        RuntimeError
            If the session is already connected.
        """
        if self.is_connected:
            raise RuntimeError("Bridge already started")
        path = socket_path or default_socket_path()
        try:
            self._connection = Connection.listen_and_accept(path, backlog)
        except TransportError as e:
            log.error("bridge accept error: %s", e)
            return BridgeStatus.ERROR
        return BridgeStatus.CONNECTED

    def attach(self, sock: socket.socket) -> BridgeStatus:
        """Adopt an already connected stream socket instead of accepting one."""
        if self.is_connected:
            raise RuntimeError("Bridge already started")
        self._connection = Connection(sock)
        return BridgeStatus.CONNECTED

    def close(self):
        """Close the connection.  A later :meth:`start` accepts a new peer."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_open

    @property
    def status(self) -> BridgeStatus:
        """``CONNECTED`` while the socket is open, ``DISCONNECTED`` otherwise.

        A peer that closes the stream mid-operation moves the session to
        ``DISCONNECTED``; call :meth:`start` again to accept a new peer.
        """
        return BridgeStatus.CONNECTED if self.is_connected else BridgeStatus.DISCONNECTED

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def receive(self) -> Optional[ProtobufMessage]:
        """Next inbound message, or ``None`` when nothing is pending.

        Never blocks while no header bytes have arrived.  Once a header is
        seen, blocks until its payload has been read.

        Raises
        ------
        TransportError
            Socket failure, or :class:`ConnectionClosed` if the peer hung up.
        ProtocolError
            Partial or malformed header, empty or oversize frame.
        EncodingError
            The payload is not a valid ``ProtobufMessage``.
        """
        if not self.is_connected:
            return None
        conn = self._connection
        n = conn.recv_once(self._view, HEADER_SIZE)
        if n == 0:
            return None

        offset, size = read_header(self._view, n)
        if size <= 0:
            raise ProtocolError("empty message")
        if offset + size > len(self._buffer):
            self._skip(conn, size)
            raise ProtocolError(
                f"message of {offset + size} bytes exceeds {len(self._buffer)}-byte buffer"
            )
        conn.recv_exact(self._view[offset:], size)

        message = ProtobufMessage()
        try:
            message.ParseFromString(bytes(self._view[offset:offset + size]))
        except DecodeError as e:
            raise EncodingError(f"failed to parse: {e}") from e
        return message

    def send(self, message: ProtobufMessage) -> bool:
        """Frame and send *message*.  Returns ``False`` on any failure.

        Failures are logged, never raised.  Sending on a session that is not
        connected fails without touching the buffer or the socket.
        """
        if not self.is_connected:
            return False
        try:
            self._send(self._connection, message)
        except BridgeError as e:
            log.error("bridge send error: %s", e)
            return False
        return True

    def drain(self) -> int:
        """Discard pending inbound messages.  Returns how many were read.

        Stops at the first receive error, which is logged.
        """
        count = 0
        while True:
            try:
                message = self.receive()
            except BridgeError as e:
                log.error("bridge recv error: %s", e)
                return count
            if message is None:
                return count
            count += 1

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def add_tracker(self, tracker_id: int, serial: str, role: int,
                    display_name: str = DEFAULT_TRACKER_NAME) -> bool:
        """Announce a tracker.  *serial* identifies it across restarts."""
        return self._send_built(messages.tracker_added,
                                tracker_id, serial, role, display_name)

    def send_position(self, tracker_id: int, x: float, y: float, z: float,
                      qx: float, qy: float, qz: float, qw: float) -> bool:
        return self._send_built(messages.position,
                                tracker_id, x, y, z, qx, qy, qz, qw)

    def send_pose(self, tracker_id: int, position, rotation) -> bool:
        """Like :meth:`send_position`, from array-likes.

        *position* is ``(x, y, z)`` and *rotation* the quaternion
        ``(qx, qy, qz, qw)``; both are narrowed to float32 and must be finite.
        """
        try:
            pos = _as_vector(position, 3, "position")
            rot = _as_vector(rotation, 4, "rotation")
        except EncodingError as e:
            log.error("bridge send error: %s", e)
            return False
        return self.send_position(tracker_id, *pos.tolist(), *rot.tolist())

    def send_status(self, tracker_id: int, status: int, confidence: int) -> bool:
        return self._send_built(messages.tracker_status,
                                tracker_id, status, confidence)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _send(self, conn: Connection, message: ProtobufMessage):
        size = message.ByteSize()
        offset = write_header(self._buffer, size)
        try:
            payload = message.SerializeToString()
        except EncodeError as e:
            raise EncodingError(f"failed to serialize: {e}") from e
        if len(payload) != size:
            raise EncodingError("failed to serialize")
        self._view[offset:offset + size] = payload

        total = offset + size
        if size <= 0:
            raise ProtocolError("empty message")
        if total > len(self._buffer):
            raise ProtocolError("message too big")
        conn.send_all(self._view[:total])

    def _send_built(self, builder, *args) -> bool:
        try:
            message = builder(*args)
        except EncodingError as e:
            log.error("bridge send error: %s", e)
            return False
        return self.send(message)

    def _skip(self, conn: Connection, count: int):
        # Keeps the stream aligned on the next header.
        while count > 0:
            chunk = min(count, len(self._buffer))
            conn.recv_exact(self._view, chunk)
            count -= chunk


def _as_vector(values, length: int, name: str) -> np.ndarray:
    try:
        vec = np.asarray(values, dtype=np.float32).reshape(-1)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"invalid {name}: {e}") from e
    if vec.shape != (length,):
        raise EncodingError(f"{name} must have {length} components, got {vec.size}")
    if not np.all(np.isfinite(vec)):
        raise EncodingError(f"{name} is not finite")
    return vec
