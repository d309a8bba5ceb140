"""
udpchannel: unicast, broadcast and multicast UDP behind one channel object.

A UdpChannel owns one UDP socket. It is opened for a remote address, tuned
through typed option accessors, and then used to send datagrams and/or
receive them asynchronously through a handler.

Basic Usage:
    >>> from udpchannel import UdpChannel, CallbackHandler
    >>>
    >>> channel = UdpChannel(("127.0.0.1", 9099))
    >>> channel.receive(CallbackHandler(on_packet=lambda ch, data, sender: print(data, sender)))
    >>> channel.send(b"hi")
    >>> channel.close()
"""

__version__ = "1.0.1"

from .channel import (
    BindError,
    CallbackHandler,
    ChannelClosedError,
    ChannelError,
    ChannelHandler,
    ChannelStateError,
    ConfigurationError,
    ConnectError,
    ConstructionError,
    Membership,
    MembershipError,
    Mode,
    NetworkInterface,
    SendError,
    UdpChannel,
)
from .config import ChannelConfig, ConfigError
from .utils import address_type, is_available, is_multicast, seems_broadcast

__all__ = [
    'UdpChannel',
    'Mode',
    'ChannelConfig',
    'ConfigError',
    'ChannelHandler',
    'CallbackHandler',
    'Membership',
    'NetworkInterface',
    'ChannelError',
    'ConstructionError',
    'ConfigurationError',
    'BindError',
    'ConnectError',
    'MembershipError',
    'SendError',
    'ChannelStateError',
    'ChannelClosedError',
    'is_available',
    'address_type',
    'is_multicast',
    'seems_broadcast'
]
