"""
UDP port availability probe.

This is a best-effort heuristic, independent of UdpChannel: it answers
"could a fresh socket bind this port right now". Sockets that share ports via
SO_REUSEADDR, and ports grabbed between the probe and the caller's own bind,
can make the answer wrong.
"""

import logging
import socket

logger = logging.getLogger(__name__)

_WILDCARD = {
    socket.AF_INET: "0.0.0.0",
    socket.AF_INET6: "::",
}


def is_available(port: int, family: int = socket.AF_INET) -> bool:
    """
    Check whether a UDP port is currently free.

    Args:
        port: Port number to probe (1-65535)
        family: socket.AF_INET or socket.AF_INET6

    Returns:
        True if a throwaway socket could bind the wildcard address on port
    """
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")
    if family not in _WILDCARD:
        raise ValueError(f"Unsupported address family: {family}")

    try:
        probe = socket.socket(family, socket.SOCK_DGRAM)
    except OSError as e:
        logger.debug(f"Cannot create probe socket: {e}")
        return False

    with probe:
        try:
            probe.bind((_WILDCARD[family], port))
        except OSError:
            return False
    return True
