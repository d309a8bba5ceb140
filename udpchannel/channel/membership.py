"""
Multicast group membership.

A Membership is the live association between a channel's socket and one
multicast group (optionally restricted to one source). Dropping it leaves
the group; closing the channel drops every membership it still holds.
"""

import logging
import socket
import struct
import sys
import threading
from typing import Optional

from .errors import MembershipError
from .interface import NetworkInterface
from ..utils.address import is_multicast, parse_ip

logger = logging.getLogger(__name__)

# Source-specific multicast option numbers, per platform headers
_SSM_OPTIONS = {
    "linux": (39, 40),
    "darwin": (70, 71),
    "win32": (15, 16),
}


def _ssm_options():
    add = getattr(socket, "IP_ADD_SOURCE_MEMBERSHIP", None)
    drop = getattr(socket, "IP_DROP_SOURCE_MEMBERSHIP", None)
    if add is not None and drop is not None:
        return add, drop
    platform = "linux" if sys.platform.startswith("linux") else sys.platform
    if platform not in _SSM_OPTIONS:
        raise MembershipError(f"Source-specific multicast is not supported on {sys.platform}")
    return _SSM_OPTIONS[platform]


def _ipv4_request(group: str, interface: Optional[NetworkInterface]) -> bytes:
    local = "0.0.0.0"
    if interface is not None:
        local = interface.address(socket.AF_INET)
        if local is None:
            raise MembershipError(f"Interface {interface.name} has no IPv4 address")
    return socket.inet_aton(group) + socket.inet_aton(local)


def _ipv4_source_request(group: str, interface: Optional[NetworkInterface], source: str) -> bytes:
    request = _ipv4_request(group, interface)
    group_bytes, local_bytes = request[:4], request[4:]
    source_bytes = socket.inet_aton(source)
    if sys.platform.startswith("linux"):
        return group_bytes + local_bytes + source_bytes
    return group_bytes + source_bytes + local_bytes


def _ipv6_request(group: str, interface: Optional[NetworkInterface]) -> bytes:
    index = interface.index if interface is not None else 0
    return socket.inet_pton(socket.AF_INET6, group) + struct.pack("@I", index)


class Membership:
    """
    Handle for one joined multicast group.

    Attributes:
        group: Multicast group address
        interface: Interface the group was joined on, None for the default
        source: Source address for a source-specific join, else None
    """

    def __init__(self, channel, group: str, interface: Optional[NetworkInterface],
                 source: Optional[str] = None):
        self.channel = channel
        self.group = group
        self.interface = interface
        self.source = source
        self._valid = False
        self._lock = threading.Lock()

    def _request(self):
        family = self.channel.family
        if family == socket.AF_INET6:
            if self.source is not None:
                raise MembershipError("Source-specific join is only supported for IPv4 channels")
            return (socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP, socket.IPV6_LEAVE_GROUP,
                    _ipv6_request(self.group, self.interface))
        if self.source is not None:
            add, drop = _ssm_options()
            return (socket.IPPROTO_IP, add, drop,
                    _ipv4_source_request(self.group, self.interface, self.source))
        return (socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, socket.IP_DROP_MEMBERSHIP,
                _ipv4_request(self.group, self.interface))

    def join(self) -> 'Membership':
        """
        Join the group.

        Raises:
            MembershipError: If the platform rejects the join
        """
        level, add, _, request = self._request()
        sock = self.channel._live_socket()
        with self._lock:
            try:
                sock.setsockopt(level, add, request)
            except OSError as e:
                raise MembershipError(f"Cannot join {self.group}: {e}") from e
            self._valid = True
        logger.info(f"Joined multicast group {self.group} on {self.interface or 'default interface'}"
                    + (f" from {self.source}" if self.source else ""))
        return self

    def drop(self) -> None:
        """Leave the group. Idempotent."""
        with self._lock:
            if not self._valid:
                return
            self._valid = False
            if not self.channel.is_open():
                return
            level, _, leave, request = self._request()
            try:
                self.channel._live_socket().setsockopt(level, leave, request)
            except OSError as e:
                raise MembershipError(f"Cannot leave {self.group}: {e}") from e
        logger.info(f"Left multicast group {self.group}")

    close = drop

    def is_valid(self) -> bool:
        return self._valid and self.channel.is_open()

    def matches(self, group: str, interface: Optional[NetworkInterface], source: Optional[str]) -> bool:
        return (self.group == group and self.interface == interface and self.source == source)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.drop()

    def __repr__(self):
        status = "valid" if self.is_valid() else "dropped"
        source = f", source={self.source}" if self.source else ""
        return f"Membership({self.group}, interface={self.interface}{source}, {status})"


def check_group(group: str, family: int, interface: Optional[NetworkInterface],
                source: Optional[str]) -> None:
    """
    Validate a join request before touching the socket.

    Raises:
        MembershipError: If the group is not multicast, the interface cannot
            carry multicast, or the source is not a unicast literal
    """
    if not is_multicast(group):
        raise MembershipError(f"{group} is not a multicast address")
    if family == socket.AF_INET6 and parse_ip(group).version == 4:
        raise MembershipError(f"IPv4 group {group} cannot be joined on an INET6 channel")
    if interface is not None and not interface.supports_multicast:
        raise MembershipError(f"Interface {interface.name} does not support multicast")
    if source is not None:
        try:
            source_ip = parse_ip(source)
        except ValueError as e:
            raise MembershipError(f"Invalid source address {source}: {e}") from e
        if source_ip.is_multicast:
            raise MembershipError(f"Source {source} must be a unicast address")
        if source_ip.version != parse_ip(group).version:
            raise MembershipError(f"Source {source} and group {group} differ in address family")
