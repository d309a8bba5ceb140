"""
UDP datagram channel.

UdpChannel wraps one UDP socket and gives unicast, broadcast and multicast
traffic the same lifecycle:

    open -> configure -> send / receive -> close

Example:
    >>> with UdpChannel(("127.0.0.1", 9099)) as channel:
    ...     channel.receive(CallbackHandler(on_packet=lambda ch, data, addr: print(data, addr)))
    ...     channel.send(b"hi")
"""

import ctypes
import errno
import logging
import os
import socket
import struct
import sys
import threading
from typing import List, Optional, Tuple, Union

from .errors import (
    BindError,
    ChannelClosedError,
    ChannelStateError,
    ConfigurationError,
    ConnectError,
    ConstructionError,
    MembershipError,
    SendError,
)
from .family import Mode, family_name, resolve_family, resolve_remote
from .handler import ChannelHandler
from .interface import InterfaceError, NetworkInterface
from .membership import Membership, check_group
from .options import SocketOptions
from .receiver import Receiver
from ..config import ChannelConfig
from ..utils.address import address_type, is_multicast, parse_ip, seems_broadcast

logger = logging.getLogger(__name__)

_WILDCARD = {
    socket.AF_INET: "0.0.0.0",
    socket.AF_INET6: "::",
}


def _dissolve_association(sock: socket.socket) -> None:
    """Drop the peer association of a connected datagram socket."""
    if sys.platform == "win32":
        sock.connect((_WILDCARD[sock.family], 0))
        return

    # connect() with an AF_UNSPEC address disconnects; Python's connect()
    # cannot build one, so go through libc.
    if sys.platform == "darwin":
        address = struct.pack("BB14x", 16, socket.AF_UNSPEC)
    else:
        address = struct.pack("=H14x", socket.AF_UNSPEC)
    libc = ctypes.CDLL(None, use_errno=True)
    buffer = ctypes.create_string_buffer(address, len(address))
    if libc.connect(sock.fileno(), buffer, len(address)) != 0:
        code = ctypes.get_errno()
        # BSD stacks disconnect but still report the bogus address family
        if sys.platform == "darwin" and code == errno.EAFNOSUPPORT:
            return
        raise OSError(code, os.strerror(code))


class UdpChannel(SocketOptions):
    """
    A UDP socket with a uniform open/configure/send/receive/close lifecycle.

    Attributes:
        mode: Mode the channel was opened with
        family: Resolved socket family (AF_INET or AF_INET6)
        remote_address: Default destination, and the group for multicast
        interface: Interface for multicast and local addresses, or None
        handler: Handler of the active receive session, or None
    """

    def __init__(self, remote: Tuple[str, int],
                 interface: Union[NetworkInterface, str, int, None] = None,
                 mode: Union[Mode, str] = Mode.AUTO,
                 config: Optional[ChannelConfig] = None):
        """
        Open a channel.

        Args:
            remote: (host, port) of the default destination or multicast group
            interface: Interface by NetworkInterface, name or index
            mode: Mode.AUTO, Mode.DEFAULT or a family name ("INET", "INET6")
            config: Construction defaults, ChannelConfig() if omitted

        Raises:
            ConstructionError: Bad mode, unknown interface, unresolvable or
                mismatched remote address
        """
        self.config = config or ChannelConfig()
        host, port = remote[0], remote[1]
        resolved_family, address = resolve_remote(host, port)
        self._remote = (address, port)
        try:
            self.interface = NetworkInterface.resolve(interface)
        except InterfaceError as e:
            raise ConstructionError(str(e)) from e

        self.handler: Optional[ChannelHandler] = None
        self._lock = threading.RLock()
        self._receiver: Optional[Receiver] = None
        self._memberships: List[Membership] = []
        self._closing = False
        self._closed = False
        self._socket: Optional[socket.socket] = None
        self._payload_size = self.config.payload_size

        self._open(mode, resolved_family)

    def _open(self, mode: Union[Mode, str], resolved_family: int) -> None:
        self.family = resolve_family(mode, self._remote[0], resolved_family)
        self.mode = mode
        try:
            self._socket = socket.socket(self.family, socket.SOCK_DGRAM)
        except OSError as e:
            raise ConstructionError(f"Cannot create {family_name(self.family)} socket: {e}") from e

        try:
            if self.family == socket.AF_INET6 and parse_ip(self._remote[0]).version == 4:
                self._socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            self.set_reuse_address(self.config.reuse_address)
            self.set_broadcast(self.config.broadcast or seems_broadcast(self._remote[0]))
            self.set_loopback_mode(self.config.loopback)
            if self.config.time_to_live is not None:
                self.set_time_to_live(self.config.time_to_live)
            self.set_multicast_interface(self.interface)
            if self.is_multicast():
                self.bind()
        except (OSError, ConfigurationError, BindError) as e:
            self._socket.close()
            raise ConstructionError(f"Cannot open channel to {self._remote}: {e}") from e

        logger.debug(f"Opened {family_name(self.family)} channel to {self._remote}")

    def reopen(self, mode: Union[Mode, str]) -> 'UdpChannel':
        """
        Replace the socket with a fresh one for another mode or family.

        Options, bindings and memberships of the old socket are lost; the
        construction defaults are applied again.

        Raises:
            ChannelStateError: While receiving
            ConstructionError: If the new socket cannot be opened
        """
        with self._lock:
            self._check_open()
            if self._receiver is not None:
                raise ChannelStateError("Cannot reopen while receiving")
            self._drop_memberships()
            self._socket.close()
            try:
                resolved_family, _ = resolve_remote(self._remote[0], self._remote[1])
                self._open(mode, resolved_family)
            except ConstructionError:
                self._closed = True
                raise
        return self

    # Inspection

    @property
    def remote_address(self) -> Tuple[str, int]:
        return self._remote

    @property
    def socket(self) -> socket.socket:
        return self._socket

    @property
    def local_address(self) -> Optional[Tuple]:
        """Bound local address, None when unbound or closed."""
        if not self.is_bound():
            return None
        return self._socket.getsockname()

    def is_open(self) -> bool:
        return not self._closed

    def is_bound(self) -> bool:
        if self._closed:
            return False
        try:
            return self._socket.getsockname()[1] != 0
        except OSError:
            return False

    def is_connected(self) -> bool:
        if self._closed:
            return False
        try:
            self._socket.getpeername()
        except OSError:
            return False
        return True

    def is_multicast(self) -> bool:
        return is_multicast(self._remote[0])

    def is_receiving(self) -> bool:
        receiver = self._receiver
        return receiver is not None and receiver.is_running()

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosedError("Channel is closed")

    def _live_socket(self):
        self._check_open()
        return self._socket

    def _sockaddr(self, address: Tuple) -> Tuple:
        """Adapt an IPv4 destination to an IPv6 socket by mapping it."""
        host = address[0]
        if self.family == socket.AF_INET6:
            try:
                if parse_ip(host).version == 4:
                    return ("::ffff:" + str(host),) + tuple(address[1:])
            except ValueError:
                pass
        return tuple(address)

    # Binding and association

    def local_bind_address(self) -> Tuple[str, int]:
        """
        Local address on the configured interface for the remote port.

        Returns the interface's first address of the channel family on the
        remote port, or the wildcard address when no interface is set.

        Raises:
            ConfigurationError: If the interface has no address of this family
        """
        port = self._remote[1]
        if self.interface is None:
            return (_WILDCARD[self.family], port)
        address = self.interface.address(self.family)
        if address is None:
            raise ConfigurationError(
                f"Interface {self.interface.name} has no {family_name(self.family)} address")
        return (address, port)

    def bind(self, local: Optional[Tuple] = None) -> 'UdpChannel':
        """
        Bind the socket.

        Without arguments, binds the wildcard address on the remote port
        unless already bound. With an explicit address, always attempts the
        bind.

        Raises:
            BindError: If the address is in use, not permitted, or the
                socket is already bound
        """
        with self._lock:
            sock = self._live_socket()
            if local is None:
                if self.is_bound():
                    return self
                local = (_WILDCARD[self.family], self._remote[1])
            try:
                sock.bind(self._sockaddr(local))
            except OSError as e:
                raise BindError(f"Failed to bind UDP socket to {local}: {e}") from e
        logger.info(f"Channel bound to {sock.getsockname()}")
        return self

    def connect(self) -> 'UdpChannel':
        """
        Associate the socket with the remote address.

        The kernel then drops datagrams from any other sender.
        """
        with self._lock:
            sock = self._live_socket()
            try:
                sock.connect(self._sockaddr(self._remote))
            except OSError as e:
                raise ConnectError(f"Failed to connect to {self._remote}: {e}") from e
        return self

    def disconnect(self) -> 'UdpChannel':
        with self._lock:
            sock = self._live_socket()
            if not self.is_connected():
                return self
            try:
                _dissolve_association(sock)
            except OSError as e:
                raise ConnectError(f"Failed to disconnect: {e}") from e
        return self

    # Group membership

    def join_group(self, source: Optional[str] = None) -> Membership:
        """
        Join the multicast group given by the remote address.

        Args:
            source: Only accept datagrams from this sender (source-specific
                join, IPv4 only)

        Returns:
            Membership handle; dropping it leaves the group

        Raises:
            MembershipError: Remote address not multicast, interface without
                multicast, or the platform rejected the join
        """
        group = self._remote[0]
        with self._lock:
            self._check_open()
            check_group(group, self.family, self.interface, source)
            for membership in self._memberships:
                if membership.is_valid() and membership.matches(group, self.interface, source):
                    return membership
            membership = Membership(self, group, self.interface, source).join()
            self._memberships = [m for m in self._memberships if m.is_valid()]
            self._memberships.append(membership)
        return membership

    def _drop_memberships(self) -> None:
        for membership in self._memberships:
            try:
                membership.drop()
            except MembershipError as e:
                logger.debug(f"Ignoring failure to leave {membership.group}: {e}")
        self._memberships = []

    # Send path

    def send(self, payload, target: Optional[Tuple] = None) -> int:
        """
        Send one datagram.

        Args:
            payload: Bytes-like payload
            target: (host, port) overriding the remote address for this call

        Returns:
            Number of bytes accepted by the local transport

        Raises:
            SendError: If the datagram was rejected or only partly written
            ChannelClosedError: After close()
        """
        sock = self._live_socket()
        self.bind()
        length = memoryview(payload).nbytes
        destination = self._remote if target is None else target

        try:
            if target is None and self.is_connected():
                sent = sock.send(payload)
            else:
                sent = sock.sendto(payload, self._sockaddr(destination))
        except OSError as e:
            raise SendError(f"Failed to send {length} bytes to {destination}: {e}") from e

        if sent < length:
            raise SendError(f"Short write to {destination}: {sent} of {length} bytes")
        return sent

    # Receive path

    def receive(self, handler: ChannelHandler, connected: bool = False) -> 'UdpChannel':
        """
        Start delivering incoming datagrams to handler on a background thread.

        Args:
            handler: Receives on_start, on_packet, on_error and on_close
            connected: Connect to the remote address first and deliver
                packets without sender addresses

        Raises:
            ValueError: If handler is None
            ChannelStateError: If a receive session is already active
            ChannelClosedError: After close()
        """
        if handler is None:
            raise ValueError("No handler")
        with self._lock:
            self._check_open()
            if self._receiver is not None:
                raise ChannelStateError("Already receiving")
            self.bind()
            if connected:
                self.connect()
            receiver = Receiver(self, handler, with_sender=not connected,
                                error_pause=self.config.error_pause)
            self._receiver = receiver
            self.handler = handler
            receiver.start()
        logger.info(f"Receiving on {self._socket.getsockname()}")
        return self

    def _receiver_finished(self, receiver: Receiver) -> None:
        with self._lock:
            if self._receiver is receiver:
                self._receiver = None
                self.handler = None
            release = self._closing
        if release:
            self._release()

    # Closing

    def close(self) -> None:
        """
        Close the channel. Idempotent.

        An active receiver is stopped first and its handler's on_close runs
        while the socket is still open; the socket is released afterwards,
        even if on_close fails.
        """
        with self._lock:
            if self._closing or self._closed:
                return
            self._closing = True
            receiver = self._receiver

        if receiver is not None:
            receiver.stop()
            if receiver is threading.current_thread():
                # Called from a handler; the receiver releases the socket
                # once on_close has run.
                return
            receiver.join(self.config.close_timeout)
            if receiver.is_alive():
                # The receiver releases the socket once on_close has run.
                logger.warning(f"Receiver did not stop within {self.config.close_timeout}s")
                return
        self._release()

    def _release(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._drop_memberships()
            self._closed = True
            self._receiver = None
            self.handler = None
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Ignoring error while closing socket: {e}")
        logger.info(f"Channel to {self._remote} closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Diagnostics

    def describe(self) -> str:
        """Multi-line summary of addresses and live option values."""
        lines = [f"{family_name(self.family)} UdpChannel remote: "
                 f"{address_type(self._remote[0])} {self._remote[0]}:{self._remote[1]} "
                 f"bound to: {self.local_address}"]
        if self._closed:
            lines.append("closed")
            return "\n".join(lines)
        try:
            interface = self.get_multicast_interface()
            lines.append("Options:")
            lines.append(f"SO_SNDBUF: {self.get_send_buffer_size()} "
                         f"SO_RCVBUF: {self.get_receive_buffer_size()} "
                         f"SO_REUSEADDR: {self.get_reuse_address()} "
                         f"SO_BROADCAST: {self.get_broadcast()}")
            lines.append(f"MULTICAST_IF: {interface.name if interface else None} "
                         f"MULTICAST_TTL: {self.get_time_to_live()} "
                         f"MULTICAST_LOOP: {self.get_loopback_mode()} "
                         f"IP_TOS: {self.get_traffic_class()} "
                         f"PAYLOAD_SIZE: {self._payload_size}")
        except ConfigurationError as e:
            lines.append(type(e).__name__)
        return "\n".join(lines)

    __str__ = describe

    def __repr__(self):
        if self._closed:
            status = "closed"
        elif self.is_receiving():
            status = "receiving"
        elif self.is_bound():
            status = "bound"
        else:
            status = "unbound"
        return f"UdpChannel({self._remote[0]}:{self._remote[1]}, {family_name(self.family)}, {status})"
