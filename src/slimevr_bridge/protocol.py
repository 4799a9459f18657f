"""Wire protocol for the SlimeVR driver bridge.

Shared between the driver (listening side) and the consumer (connecting side).
Each frame is a 4-byte little-endian header holding the total frame length,
header included, followed by one serialized ``ProtobufMessage``.
"""

import logging
import os
import struct

from .errors import ProtocolError

log = logging.getLogger(__name__)

HEADER_FORMAT = "<I"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 4 bytes
MAX_FRAME_SIZE = 0xFFFFFFFF

BUFFER_SIZE = 1024
BACKLOG = 16

SOCKET_NAME = "SlimeVRDriver"
TMP_DIR = "/tmp"

DEFAULT_TRACKER_NAME = "External Tracker"


def default_socket_path(environ=None) -> str:
    """``$XDG_RUNTIME_DIR/SlimeVRDriver``, or ``/tmp/SlimeVRDriver`` when unset."""
    if environ is None:
        environ = os.environ
    runtime_dir = environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return os.path.join(runtime_dir, SOCKET_NAME)
    log.warning("XDG_RUNTIME_DIR is unset, this may not be expected")
    return os.path.join(TMP_DIR, SOCKET_NAME)


def write_header(buffer, payload_size: int) -> int:
    """Write the frame header for *payload_size* bytes at the start of *buffer*.

    Returns the offset where the payload starts.  Raises
    :class:`ProtocolError` without touching *buffer* when the frame would not
    fit.
    """
    if payload_size < 0:
        raise ProtocolError(f"negative payload size {payload_size}")
    total = payload_size + HEADER_SIZE
    if total > len(buffer) or total > MAX_FRAME_SIZE:
        raise ProtocolError(
            f"frame of {total} bytes does not fit in {len(buffer)}-byte buffer"
        )
    struct.pack_into(HEADER_FORMAT, buffer, 0, total)
    return HEADER_SIZE


def read_header(buffer, available: int):
    """Decode the header at the start of *buffer*.

    Returns ``(offset, payload_size)``.  The payload size is not checked
    against the buffer capacity; callers do that before reading the payload.
    """
    if available < HEADER_SIZE:
        raise ProtocolError(
            f"invalid message header: {available} of {HEADER_SIZE} bytes"
        )
    (total,) = struct.unpack_from(HEADER_FORMAT, buffer, 0)
    if total < HEADER_SIZE:
        raise ProtocolError(f"invalid message size {total}")
    return HEADER_SIZE, total - HEADER_SIZE
