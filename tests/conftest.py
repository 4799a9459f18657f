import shutil
import socket
import tempfile

import pytest

from slimevr_bridge import BridgePeer, BridgeSession, Connection


@pytest.fixture
def socket_path():
    # AF_UNIX paths are limited to ~108 bytes, so keep clear of pytest's tmp_path.
    directory = tempfile.mkdtemp(prefix="svr-", dir="/tmp")
    yield f"{directory}/SlimeVRDriver"
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def socket_pair():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def session_and_peer(socket_pair):
    """A connected session and the peer on the other end of the stream."""
    driver_sock, server_sock = socket_pair
    session = BridgeSession()
    session.attach(driver_sock)
    peer = BridgePeer(Connection(server_sock))
    yield session, peer
    session.close()
    peer.close()
