"""Stream-socket connection used by both ends of the bridge.

Owns exactly one connected AF_UNIX socket plus a ``zmq.Poller`` registered on
its descriptor.  The poller gives :meth:`Connection.recv_once` its
non-blocking contract; :meth:`Connection.recv_exact` and
:meth:`Connection.send_all` block until the whole frame has moved.
"""

import logging
import os
import socket
import stat
import time
from typing import Optional

import zmq

from .errors import ConnectionClosed, TransportError
from .protocol import BACKLOG

log = logging.getLogger(__name__)


class Connection:
    """One connected local stream socket.

    Usage::

        conn = Connection.listen_and_accept("/tmp/SlimeVRDriver")
        n = conn.recv_once(view, 4)   # 0 when nothing is pending
        conn.close()
    """

    connect_retry_interval = 0.05

    def __init__(self, sock: socket.socket):
        sock.setblocking(True)
        self._sock: Optional[socket.socket] = sock
        self._poller = zmq.Poller()
        self._poller.register(sock, zmq.POLLIN)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def listen_and_accept(cls, path: str, backlog: int = BACKLOG) -> "Connection":
        """Bind *path*, block until exactly one client connects, and return it.

        The listening socket is closed and *path* removed once the client is
        accepted; further connection attempts are refused.

        Raises
        ------
        TransportError
            If the path cannot be bound or accept fails.
        """
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        bound = False
        try:
            _remove_stale_socket(path)
            listener.bind(path)
            bound = True
            listener.listen(backlog)
            log.info("Waiting to accept a connection at %s...", path)
            sock, _ = listener.accept()
        except OSError as e:
            raise TransportError(f"cannot accept on {path}: {e}") from e
        finally:
            listener.close()
            if bound:
                _unlink_quietly(path)
        log.info("Connection accepted!")
        return cls(sock)

    @classmethod
    def connect(cls, path: str, timeout: Optional[float] = None) -> "Connection":
        """Connect to a listening bridge at *path*.

        With *timeout* set, keeps retrying while the path does not exist yet
        or refuses connections, until *timeout* seconds have elapsed.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.connect(path)
                return cls(sock)
            except (FileNotFoundError, ConnectionRefusedError) as e:
                sock.close()
                if deadline is None or time.monotonic() >= deadline:
                    raise TransportError(f"cannot connect to {path}: {e}") from e
            except OSError as e:
                sock.close()
                raise TransportError(f"cannot connect to {path}: {e}") from e
            time.sleep(cls.connect_retry_interval)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def fileno(self) -> int:
        return self._sock.fileno() if self._sock is not None else -1

    def poll(self, timeout_ms: Optional[int] = 0) -> bool:
        """``True`` if a read would not block.  ``None`` waits indefinitely."""
        sock = self._require_open()
        try:
            events = dict(self._poller.poll(timeout=timeout_ms))
        except zmq.ZMQError as e:
            raise TransportError(str(e)) from e
        return sock.fileno() in events

    def recv_once(self, view: memoryview, max_bytes: int) -> int:
        """Read whatever is available, up to *max_bytes*, without waiting.

        Returns 0 when nothing is pending.
        """
        sock = self._require_open()
        if not self.poll(0):
            return 0
        try:
            n = sock.recv_into(view, max_bytes)
        except ConnectionResetError:
            self._closed_by_peer()
        except OSError as e:
            raise TransportError(str(e)) from e
        if n == 0:
            self._closed_by_peer()
        return n

    def recv_exact(self, view: memoryview, count: int) -> None:
        """Block until exactly *count* bytes have been read into *view*."""
        sock = self._require_open()
        got = 0
        while got < count:
            try:
                n = sock.recv_into(view[got:count], count - got)
            except ConnectionResetError:
                self._closed_by_peer()
            except OSError as e:
                raise TransportError(str(e)) from e
            if n == 0:
                self._closed_by_peer()
            got += n

    def send_all(self, data) -> None:
        """Block until every byte of *data* has been sent."""
        sock = self._require_open()
        try:
            sock.sendall(data)
        except (BrokenPipeError, ConnectionResetError):
            self._closed_by_peer()
        except OSError as e:
            raise TransportError(str(e)) from e

    def close(self):
        """Close the socket.  Safe to call more than once."""
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        self._poller.unregister(sock)
        sock.close()

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

    def _require_open(self) -> socket.socket:
        if self._sock is None:
            raise TransportError("connection is closed")
        return self._sock

    def _closed_by_peer(self):
        log.warning("client closed")
        self.close()
        raise ConnectionClosed("client closed")


def _unlink_quietly(path: str):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _remove_stale_socket(path: str):
    # Only sockets left behind by a previous run; anything else makes bind fail.
    try:
        mode = os.stat(path).st_mode
    except FileNotFoundError:
        return
    if stat.S_ISSOCK(mode):
        os.unlink(path)
