"""
Datagram channel components.

- UdpChannel: one UDP socket with lifecycle, options, send and receive
- Handler dispatch protocol and the asynchronous receiver
- Multicast group membership
- Network interface lookup
"""

from .errors import (
    BindError,
    ChannelClosedError,
    ChannelError,
    ChannelStateError,
    ConfigurationError,
    ConnectError,
    ConstructionError,
    MembershipError,
    SendError,
)
from .family import Mode
from .handler import CallbackHandler, ChannelHandler
from .interface import InterfaceError, NetworkInterface
from .membership import Membership
from .receiver import Receiver, ReceiverState
from .udp import UdpChannel

__all__ = [
    'UdpChannel',
    'Mode',
    'ChannelHandler',
    'CallbackHandler',
    'Membership',
    'NetworkInterface',
    'InterfaceError',
    'Receiver',
    'ReceiverState',
    'ChannelError',
    'ConstructionError',
    'ConfigurationError',
    'BindError',
    'ConnectError',
    'MembershipError',
    'SendError',
    'ChannelStateError',
    'ChannelClosedError'
]
