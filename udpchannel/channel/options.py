"""
Typed socket option accessors for UdpChannel.

Every setter returns the channel so configuration can be chained:

    >>> channel.set_broadcast(True).set_time_to_live(4).set_payload_size(512)

Getters query the socket each time, so they report the value currently in
effect rather than whatever was last requested.
"""

import socket
from typing import Optional, Union

from .errors import ConfigurationError
from .interface import InterfaceError, NetworkInterface
from ..config import MAX_PAYLOAD_SIZE


class SocketOptions:
    """
    Option controller mixed into UdpChannel.

    The host class provides ``family``, ``_payload_size`` and
    ``_live_socket()``, which raises ChannelClosedError once closed.
    """

    def _get_option(self, level: int, option: int, name: str) -> int:
        sock = self._live_socket()
        try:
            return sock.getsockopt(level, option)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {name}: {e}") from e

    def _set_option(self, level: int, option: int, value, name: str):
        sock = self._live_socket()
        try:
            sock.setsockopt(level, option, value)
        except OSError as e:
            raise ConfigurationError(f"Cannot set {name} to {value!r}: {e}") from e
        return self

    def _multicast_level(self):
        if self.family == socket.AF_INET6:
            return socket.IPPROTO_IPV6
        return socket.IPPROTO_IP

    # SO_REUSEADDR

    def get_reuse_address(self) -> bool:
        return bool(self._get_option(socket.SOL_SOCKET, socket.SO_REUSEADDR, "SO_REUSEADDR"))

    def set_reuse_address(self, on: bool):
        return self._set_option(socket.SOL_SOCKET, socket.SO_REUSEADDR, int(bool(on)), "SO_REUSEADDR")

    # IP_TOS / IPV6_TCLASS (read-only, diagnostics)

    def get_traffic_class(self) -> int:
        """Type-of-service byte stamped on outgoing datagrams."""
        if self.family == socket.AF_INET6:
            return self._get_option(socket.IPPROTO_IPV6, socket.IPV6_TCLASS, "IPV6_TCLASS")
        return self._get_option(socket.IPPROTO_IP, socket.IP_TOS, "IP_TOS")

    # SO_BROADCAST

    def get_broadcast(self) -> bool:
        return bool(self._get_option(socket.SOL_SOCKET, socket.SO_BROADCAST, "SO_BROADCAST"))

    def set_broadcast(self, on: bool):
        return self._set_option(socket.SOL_SOCKET, socket.SO_BROADCAST, int(bool(on)), "SO_BROADCAST")

    # Multicast loopback

    def _loop_option(self) -> int:
        if self.family == socket.AF_INET6:
            return socket.IPV6_MULTICAST_LOOP
        return socket.IP_MULTICAST_LOOP

    def get_loopback_mode(self) -> bool:
        """Whether multicast datagrams sent by this socket loop back to local listeners."""
        return bool(self._get_option(self._multicast_level(), self._loop_option(), "multicast loopback"))

    def set_loopback_mode(self, on: bool):
        return self._set_option(self._multicast_level(), self._loop_option(), int(bool(on)),
                                "multicast loopback")

    # Multicast TTL / hop limit

    def _ttl_option(self) -> int:
        if self.family == socket.AF_INET6:
            return socket.IPV6_MULTICAST_HOPS
        return socket.IP_MULTICAST_TTL

    def get_time_to_live(self) -> int:
        return self._get_option(self._multicast_level(), self._ttl_option(), "multicast TTL")

    def set_time_to_live(self, ttl: int):
        """
        Set the multicast TTL (hop limit).

        Args:
            ttl: 0-255

        Raises:
            ConfigurationError: If ttl is out of range or rejected by the platform
        """
        if isinstance(ttl, bool) or not isinstance(ttl, int) or not 0 <= ttl <= 255:
            raise ConfigurationError(f"Multicast TTL must be an integer in 0..255, got {ttl!r}")
        return self._set_option(self._multicast_level(), self._ttl_option(), ttl, "multicast TTL")

    # Buffer sizes

    def get_receive_buffer_size(self) -> int:
        return self._get_option(socket.SOL_SOCKET, socket.SO_RCVBUF, "SO_RCVBUF")

    def set_receive_buffer_size(self, size: int):
        if size <= 0:
            raise ConfigurationError(f"Receive buffer size must be positive, got {size}")
        return self._set_option(socket.SOL_SOCKET, socket.SO_RCVBUF, size, "SO_RCVBUF")

    def get_send_buffer_size(self) -> int:
        return self._get_option(socket.SOL_SOCKET, socket.SO_SNDBUF, "SO_SNDBUF")

    def set_send_buffer_size(self, size: int):
        if size <= 0:
            raise ConfigurationError(f"Send buffer size must be positive, got {size}")
        return self._set_option(socket.SOL_SOCKET, socket.SO_SNDBUF, size, "SO_SNDBUF")

    # Multicast egress interface

    def get_multicast_interface(self) -> Optional[NetworkInterface]:
        """
        Interface used for outgoing multicast, or None for the routing default.
        """
        try:
            if self.family == socket.AF_INET6:
                index = self._get_option(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_IF,
                                         "IPV6_MULTICAST_IF")
                return NetworkInterface.by_index(index) if index else None

            sock = self._live_socket()
            try:
                raw = sock.getsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, 4)
            except OSError as e:
                raise ConfigurationError(f"Cannot read IP_MULTICAST_IF: {e}") from e
            address = socket.inet_ntoa(raw[:4])
            if address == "0.0.0.0":
                return None
            return NetworkInterface.by_address(address)
        except InterfaceError as e:
            raise ConfigurationError(str(e)) from e

    def set_multicast_interface(self, interface: Union[NetworkInterface, str, int, None]):
        """
        Select the interface for outgoing multicast datagrams.

        Args:
            interface: NetworkInterface, name or index; None is a no-op

        Raises:
            ConfigurationError: If the interface is unknown or unusable
        """
        try:
            interface = NetworkInterface.resolve(interface)
        except InterfaceError as e:
            raise ConfigurationError(str(e)) from e
        if interface is None:
            return self

        if self.family == socket.AF_INET6:
            return self._set_option(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_IF,
                                    interface.index, "IPV6_MULTICAST_IF")

        address = interface.address(socket.AF_INET)
        if address is None:
            raise ConfigurationError(f"Interface {interface.name} has no IPv4 address")
        return self._set_option(socket.IPPROTO_IP, socket.IP_MULTICAST_IF,
                                socket.inet_aton(address), "IP_MULTICAST_IF")

    # Receive timeout

    def get_receive_timeout(self) -> Optional[float]:
        """Socket-level timeout in seconds, None when receives block."""
        return self._live_socket().gettimeout()

    def set_receive_timeout(self, seconds: Optional[float]):
        if seconds is not None and seconds < 0:
            raise ConfigurationError(f"Receive timeout must not be negative, got {seconds}")
        self._live_socket().settimeout(seconds)
        return self

    # Payload size

    def get_payload_size(self) -> int:
        return self._payload_size

    def set_payload_size(self, size: int):
        """
        Set the receive buffer size used per datagram.

        Takes effect from the next receive; datagrams longer than this are
        truncated by the kernel.
        """
        if isinstance(size, bool) or not isinstance(size, int) or not 0 < size <= MAX_PAYLOAD_SIZE:
            raise ConfigurationError(f"Payload size must be in 1..{MAX_PAYLOAD_SIZE}, got {size!r}")
        self._live_socket()
        self._payload_size = size
        return self
