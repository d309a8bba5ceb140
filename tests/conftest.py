import socket

import pytest

from support import free_port


@pytest.fixture
def port():
    """A UDP port that was free a moment ago."""
    return free_port()


@pytest.fixture
def peer():
    """A plain UDP socket bound to an ephemeral loopback port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()
