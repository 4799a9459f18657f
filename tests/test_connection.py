"""Connection: non-blocking header reads, blocking frame reads, accept/connect."""

import os
import socket
import threading
import time

import pytest

from slimevr_bridge import Connection, ConnectionClosed, TransportError


def test_recv_once_returns_zero_when_nothing_pending(socket_pair):
    left, _ = socket_pair
    conn = Connection(left)
    buffer = memoryview(bytearray(16))
    for _ in range(3):
        assert conn.recv_once(buffer, 4) == 0
    assert conn.is_open


def test_recv_once_reads_at_most_max_bytes(socket_pair):
    left, right = socket_pair
    conn = Connection(left)
    right.sendall(b"abcdefgh")
    buffer = bytearray(16)
    assert conn.recv_once(memoryview(buffer), 4) == 4
    assert bytes(buffer[:4]) == b"abcd"


def test_recv_exact_waits_for_every_byte(socket_pair):
    left, right = socket_pair
    conn = Connection(left)

    def trickle():
        for chunk in (b"he", b"ll", b"o!"):
            time.sleep(0.02)
            right.sendall(chunk)

    t = threading.Thread(target=trickle)
    t.start()
    buffer = bytearray(6)
    conn.recv_exact(memoryview(buffer), 6)
    t.join(timeout=5)
    assert bytes(buffer) == b"hello!"


def test_recv_exact_reports_peer_closure(socket_pair):
    left, right = socket_pair
    conn = Connection(left)
    right.sendall(b"abc")
    right.close()
    with pytest.raises(ConnectionClosed):
        conn.recv_exact(memoryview(bytearray(8)), 8)
    assert not conn.is_open


def test_recv_once_reports_peer_closure(socket_pair):
    left, right = socket_pair
    conn = Connection(left)
    right.close()
    with pytest.raises(ConnectionClosed):
        conn.recv_once(memoryview(bytearray(4)), 4)
    assert not conn.is_open


def test_send_all_to_closed_peer(socket_pair):
    left, right = socket_pair
    conn = Connection(left)
    right.close()
    with pytest.raises(ConnectionClosed):
        conn.send_all(b"x" * 4096)
    assert not conn.is_open


def test_closed_connection_rejects_io(socket_pair):
    left, _ = socket_pair
    conn = Connection(left)
    conn.close()
    conn.close()
    assert not conn.is_open
    assert conn.fileno() == -1
    with pytest.raises(TransportError):
        conn.recv_once(memoryview(bytearray(4)), 4)
    with pytest.raises(TransportError):
        conn.send_all(b"x")


def test_accept_single_client(socket_path):
    accepted = {}

    def accept():
        accepted["conn"] = Connection.listen_and_accept(socket_path)

    t = threading.Thread(target=accept)
    t.start()
    client = Connection.connect(socket_path, timeout=5)
    t.join(timeout=5)

    server = accepted["conn"]
    client.send_all(b"ping")
    buffer = bytearray(4)
    server.recv_exact(memoryview(buffer), 4)
    assert bytes(buffer) == b"ping"
    assert not os.path.exists(socket_path)

    client.close()
    server.close()


def test_accept_replaces_stale_socket_file(socket_path):
    stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    stale.bind(socket_path)
    stale.close()
    assert os.path.exists(socket_path)

    accepted = {}
    t = threading.Thread(
        target=lambda: accepted.update(conn=Connection.listen_and_accept(socket_path)))
    t.start()
    client = Connection.connect(socket_path, timeout=5)
    t.join(timeout=5)
    assert accepted["conn"].is_open
    client.close()
    accepted["conn"].close()


def test_accept_bind_failure(socket_path):
    with pytest.raises(TransportError):
        Connection.listen_and_accept(os.path.join(socket_path, "missing", "sock"))


def test_accept_refuses_to_replace_regular_file(socket_path):
    with open(socket_path, "w") as f:
        f.write("not a socket")
    with pytest.raises(TransportError):
        Connection.listen_and_accept(socket_path)
    assert os.path.exists(socket_path)


def test_connect_gives_up_after_timeout(socket_path):
    start = time.monotonic()
    with pytest.raises(TransportError):
        Connection.connect(socket_path, timeout=0.2)
    assert time.monotonic() - start < 2.0


def test_poll_sees_pending_bytes(socket_pair):
    left, right = socket_pair
    conn = Connection(left)
    assert not conn.poll(0)
    right.sendall(b"\x08\x00\x00\x00abcd")
    assert conn.poll(0)
    buffer = bytearray(8)
    assert conn.recv_once(memoryview(buffer), 4) == 4
    assert bytes(buffer[:4]) == b"\x08\x00\x00\x00"


def test_peer_closure_is_logged_as_warning(socket_pair, caplog):
    left, right = socket_pair
    conn = Connection(left)
    right.close()
    with pytest.raises(ConnectionClosed):
        conn.recv_once(memoryview(bytearray(4)), 4)
    warnings = [r for r in caplog.records if r.levelname == "WARNING"]
    assert [r.getMessage() for r in warnings] == ["client closed"]


def _reset(*args, **kwargs):
    raise ConnectionResetError("connection reset by peer")


def test_reset_during_recv_once_closes(socket_pair, monkeypatch):
    left, right = socket_pair
    conn = Connection(left)
    right.sendall(b"abcd")
    monkeypatch.setattr(socket.socket, "recv_into", _reset)
    with pytest.raises(ConnectionClosed):
        conn.recv_once(memoryview(bytearray(4)), 4)
    assert not conn.is_open


def test_reset_during_recv_exact_closes(socket_pair, monkeypatch):
    left, _ = socket_pair
    conn = Connection(left)
    monkeypatch.setattr(socket.socket, "recv_into", _reset)
    with pytest.raises(ConnectionClosed):
        conn.recv_exact(memoryview(bytearray(4)), 4)
    assert not conn.is_open
