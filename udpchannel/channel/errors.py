"""
Error taxonomy for datagram channels.

Synchronous operations raise these directly. Failures inside the receive loop
never propagate; they reach the application through ChannelHandler.on_error.
"""


class ChannelError(Exception):
    """Base class for all channel failures."""
    pass


class ConstructionError(ChannelError, ValueError):
    """Raised when a channel cannot be created (bad mode, interface or address)."""
    pass


class ConfigurationError(ChannelError):
    """Raised when the platform rejects a socket option."""
    pass


class BindError(ChannelError):
    """Raised when binding the socket fails."""
    pass


class ConnectError(ChannelError):
    """Raised when connecting or disconnecting the socket fails."""
    pass


class MembershipError(ChannelError):
    """Raised when a multicast group cannot be joined or left."""
    pass


class SendError(ChannelError):
    """Raised when a datagram is not accepted by the local transport."""
    pass


class ChannelStateError(ChannelError):
    """Raised when an operation is not valid in the channel's current state."""
    pass


class ChannelClosedError(ChannelStateError):
    """Raised on any non-inspection operation after close()."""
    pass
