"""
Lifecycle Tests for UdpChannel.

Tests construction, binding, association, sending and closing.
"""

import socket

import pytest

from udpchannel import (
    BindError,
    ChannelClosedError,
    ChannelConfig,
    ConstructionError,
    Mode,
    SendError,
    UdpChannel,
    is_available,
)
from support import free_port, ipv6_available


class TestConstruction:
    """Test opening channels in the different modes."""

    def test_auto_mode_ipv4(self, port):
        """AUTO picks INET for an IPv4 literal."""
        with UdpChannel(("127.0.0.1", port)) as channel:
            assert channel.family == socket.AF_INET
            assert channel.mode is Mode.AUTO
            assert channel.remote_address == ("127.0.0.1", port)
            assert channel.is_open()

    @pytest.mark.skipif(not ipv6_available(), reason="IPv6 not available")
    def test_auto_mode_ipv6(self):
        """AUTO picks INET6 for an IPv6 literal."""
        port = free_port(socket.AF_INET6)
        with UdpChannel(("::1", port)) as channel:
            assert channel.family == socket.AF_INET6

    def test_default_mode(self, port):
        """DEFAULT follows the resolver."""
        with UdpChannel(("127.0.0.1", port), mode=Mode.DEFAULT) as channel:
            assert channel.family == socket.AF_INET

    def test_explicit_family_name(self, port):
        """Explicit family names are case-insensitive."""
        with UdpChannel(("127.0.0.1", port), mode="inet") as channel:
            assert channel.family == socket.AF_INET

    def test_mode_given_as_string(self, port):
        with UdpChannel(("127.0.0.1", port), mode="AUTO") as channel:
            assert channel.family == socket.AF_INET

    def test_unknown_family_name(self, port):
        """An unknown family name fails construction."""
        with pytest.raises(ConstructionError):
            UdpChannel(("127.0.0.1", port), mode="IPX")

    def test_construction_error_is_value_error(self, port):
        with pytest.raises(ValueError):
            UdpChannel(("127.0.0.1", port), mode="APPLETALK")

    def test_family_mismatch(self, port):
        """An IPv6 remote cannot be used on an INET channel."""
        with pytest.raises(ConstructionError):
            UdpChannel(("::1", port), mode="INET")

    def test_unknown_interface(self, port):
        with pytest.raises(ConstructionError):
            UdpChannel(("127.0.0.1", port), interface="no-such-if0")

    def test_unresolvable_host(self, port):
        with pytest.raises(ConstructionError):
            UdpChannel(("host.invalid", port))

    def test_defaults_applied(self, port):
        """Reuse-address, broadcast and loopback are on by default."""
        with UdpChannel(("127.0.0.1", port)) as channel:
            assert channel.get_reuse_address() is True
            assert channel.get_broadcast() is True
            assert channel.get_loopback_mode() is True
            assert channel.get_payload_size() == 1500

    def test_config_defaults(self, port):
        """Construction follows the supplied configuration."""
        config = ChannelConfig(payload_size=512, broadcast=False, loopback=False, time_to_live=7)
        with UdpChannel(("127.0.0.1", port), config=config) as channel:
            assert channel.get_payload_size() == 512
            assert channel.get_broadcast() is False
            assert channel.get_loopback_mode() is False
            assert channel.get_time_to_live() == 7

    def test_broadcast_forced_for_broadcast_address(self, port):
        """A .255 remote enables broadcast regardless of configuration."""
        config = ChannelConfig(broadcast=False)
        with UdpChannel(("127.255.255.255", port), config=config) as channel:
            assert channel.get_broadcast() is True


class TestBinding:
    """Test deferred and explicit binding."""

    def test_unicast_binding_is_deferred(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            assert not channel.is_bound()
            assert channel.local_address is None

    def test_multicast_binds_immediately(self, port):
        """A multicast channel binds the wildcard address on the group port."""
        with UdpChannel(("224.0.1.191", port)) as channel:
            assert channel.is_multicast()
            assert channel.is_bound()
            assert channel.local_address == ("0.0.0.0", port)

    def test_bind_uses_remote_port(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind()
            assert channel.local_address == ("0.0.0.0", port)

    def test_bind_is_idempotent(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            assert channel.bind() is channel
            assert channel.bind() is channel
            assert channel.is_bound()

    def test_explicit_bind(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind(("127.0.0.1", 0))
            host, local_port = channel.local_address
            assert host == "127.0.0.1"
            assert local_port != 0

    def test_explicit_bind_when_bound(self, port):
        """An explicit bind always attempts the bind."""
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind()
            with pytest.raises(BindError):
                channel.bind(("127.0.0.1", 0))

    def test_bind_address_in_use(self, port):
        """Binding a port held by a socket without SO_REUSEADDR fails."""
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as holder:
            holder.bind(("0.0.0.0", port))
            with UdpChannel(("127.0.0.1", port)) as channel:
                with pytest.raises(BindError):
                    channel.bind()

    def test_local_bind_address_without_interface(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            assert channel.local_bind_address() == ("0.0.0.0", port)


class TestConnect:
    """Test kernel-level peer association."""

    def test_connect_and_disconnect(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind()
            assert not channel.is_connected()
            assert channel.connect() is channel
            assert channel.is_connected()
            assert channel.disconnect() is channel
            assert not channel.is_connected()
            assert channel.is_bound()

    def test_disconnect_when_not_connected(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.disconnect()
            assert not channel.is_connected()


class TestSend:
    """Test the synchronous send path."""

    def test_send_to_remote(self, peer):
        """send() delivers to the remote address and reports the byte count."""
        remote = peer.getsockname()
        with UdpChannel(remote) as channel:
            channel.bind(("127.0.0.1", 0))
            assert channel.send(b"hello") == 5
            data, sender = peer.recvfrom(1500)
            assert data == b"hello"
            assert sender == channel.local_address

    def test_send_auto_binds(self, peer):
        """The first send binds the remote's port on the wildcard address."""
        port = free_port()
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.send(b"x", peer.getsockname())
            assert channel.is_bound()
            assert channel.local_address[1] == port
            data, sender = peer.recvfrom(1500)
            assert sender[1] == port

    def test_send_to_explicit_target(self, port, peer):
        """An explicit target does not change the remote address."""
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind(("127.0.0.1", 0))
            channel.send(b"detour", peer.getsockname())
            data, _ = peer.recvfrom(1500)
            assert data == b"detour"
            assert channel.remote_address == ("127.0.0.1", port)

    def test_send_bytes_like(self, peer):
        with UdpChannel(peer.getsockname()) as channel:
            channel.bind(("127.0.0.1", 0))
            assert channel.send(bytearray(b"abc")) == 3
            assert channel.send(memoryview(b"defg")) == 4
            assert peer.recvfrom(1500)[0] == b"abc"
            assert peer.recvfrom(1500)[0] == b"defg"

    def test_send_connected(self, peer):
        with UdpChannel(peer.getsockname()) as channel:
            channel.bind(("127.0.0.1", 0))
            channel.connect()
            channel.send(b"via connect")
            assert peer.recvfrom(1500)[0] == b"via connect"

    def test_oversized_datagram(self, peer):
        """A datagram larger than UDP allows is an error, not a truncation."""
        with UdpChannel(peer.getsockname()) as channel:
            channel.bind(("127.0.0.1", 0))
            with pytest.raises(SendError):
                channel.send(b"X" * 70000)

    @pytest.mark.skipif(not ipv6_available(), reason="IPv6 not available")
    def test_ipv4_remote_on_inet6_channel(self, peer):
        """An INET6 channel reaches IPv4 peers through mapped addresses."""
        with UdpChannel(peer.getsockname(), mode="INET6") as channel:
            assert channel.family == socket.AF_INET6
            channel.bind(("::", 0))
            channel.send(b"mapped")
            assert peer.recvfrom(1500)[0] == b"mapped"


class TestClose:
    """Test closing and the terminal state."""

    def test_close_releases_port(self, port):
        """open + bind + close leaves the port free."""
        channel = UdpChannel(("127.0.0.1", port))
        channel.bind()
        channel.close()
        assert is_available(port)

    def test_multicast_close_releases_port(self, port):
        channel = UdpChannel(("224.0.1.191", port))
        channel.close()
        assert is_available(port)

    def test_close_is_idempotent(self, port):
        channel = UdpChannel(("127.0.0.1", port))
        channel.close()
        channel.close()
        assert not channel.is_open()

    def test_operations_after_close(self, port):
        """Everything but inspection raises ChannelClosedError after close."""
        channel = UdpChannel(("127.0.0.1", port))
        channel.close()

        with pytest.raises(ChannelClosedError):
            channel.send(b"late")
        with pytest.raises(ChannelClosedError):
            channel.bind()
        with pytest.raises(ChannelClosedError):
            channel.connect()
        with pytest.raises(ChannelClosedError):
            channel.set_broadcast(True)
        with pytest.raises(ChannelClosedError):
            channel.get_reuse_address()
        with pytest.raises(ChannelClosedError):
            channel.set_payload_size(100)
        with pytest.raises(ChannelClosedError):
            channel.join_group()

        assert not channel.is_open()
        assert not channel.is_bound()
        assert not channel.is_connected()
        assert not channel.is_receiving()
        assert channel.remote_address == ("127.0.0.1", port)
        assert "closed" in repr(channel)

    def test_context_manager_closes(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            pass
        assert not channel.is_open()


class TestReopen:
    """Test explicit re-creation of the socket."""

    def test_reopen_same_family(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            channel.bind()
            old = channel.socket
            channel.reopen(Mode.DEFAULT)
            assert channel.socket is not old
            assert channel.mode is Mode.DEFAULT
            assert not channel.is_bound()
            assert channel.get_reuse_address() is True

    def test_reopen_bad_mode_closes(self, port):
        channel = UdpChannel(("127.0.0.1", port))
        with pytest.raises(ConstructionError):
            channel.reopen("IPX")
        assert not channel.is_open()


class TestDiagnostics:
    """Test describe() and repr()."""

    def test_describe(self, port):
        with UdpChannel(("127.0.0.1", port)) as channel:
            text = channel.describe()
            assert f"INET UdpChannel remote: LO 127.0.0.1:{port}" in text
            assert "SO_REUSEADDR: True" in text
            assert "MULTICAST_LOOP: True" in text
            assert "IP_TOS: 0" in text
            assert str(channel) == text

    def test_repr_states(self, port):
        channel = UdpChannel(("127.0.0.1", port))
        assert repr(channel) == f"UdpChannel(127.0.0.1:{port}, INET, unbound)"
        channel.bind()
        assert "bound" in repr(channel)
        channel.close()
        assert repr(channel) == f"UdpChannel(127.0.0.1:{port}, INET, closed)"
