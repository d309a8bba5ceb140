"""
Shared helpers for the udpchannel test suite.
"""

import socket
import threading
import time
from typing import List, Optional, Tuple

from udpchannel import ChannelHandler

WAIT = 2.0


def free_port(family: int = socket.AF_INET) -> int:
    """Ask the kernel for a currently unused UDP port."""
    host = "::" if family == socket.AF_INET6 else "0.0.0.0"
    with socket.socket(family, socket.SOCK_DGRAM) as probe:
        probe.bind((host, 0))
        return probe.getsockname()[1]


def ipv6_available() -> bool:
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_DGRAM) as probe:
            probe.bind(("::1", 0))
    except OSError:
        return False
    return True


class RecordingHandler(ChannelHandler):
    """Handler that records every event for later assertions."""

    def __init__(self):
        self.events: List[str] = []
        self.packets: List[Tuple[bytes, Optional[tuple]]] = []
        self.errors: List[Exception] = []
        self.threads = set()
        self.started = threading.Event()
        self.closed = threading.Event()
        self.packet_arrived = threading.Event()
        self.error_arrived = threading.Event()
        self.open_during_close: Optional[bool] = None

    def on_start(self, channel):
        self.threads.add(threading.current_thread().name)
        self.events.append("start")
        self.started.set()

    def on_packet(self, channel, payload, sender):
        self.threads.add(threading.current_thread().name)
        self.events.append("packet")
        self.packets.append((payload, sender))
        self.packet_arrived.set()

    def on_error(self, channel, error):
        self.threads.add(threading.current_thread().name)
        self.events.append("error")
        self.errors.append(error)
        self.error_arrived.set()

    def on_close(self, channel):
        self.threads.add(threading.current_thread().name)
        self.events.append("close")
        self.open_during_close = channel.is_open()
        self.closed.set()

    def wait_for_packets(self, count: int, timeout: float = WAIT) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if len(self.packets) >= count:
                return True
            time.sleep(0.01)
        return len(self.packets) >= count
