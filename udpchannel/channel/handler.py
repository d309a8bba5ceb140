"""
Handler dispatch protocol.

A handler receives four kinds of events from a channel's receiver, always
on the receiver thread and in this order for one receive session:

    on_start        exactly once
    on_packet       per datagram   } interleaved in arrival order
    on_error        per failure    }
    on_close        exactly once, before the socket is released

``sender`` in on_packet is the (host, port) of the datagram's origin, or
None when the channel receives in connected mode (every datagram then comes
from the channel's remote address).
"""

from typing import Callable, Optional, Tuple

Address = Tuple  # (host, port) or (host, port, flowinfo, scope_id)


class ChannelHandler:
    """
    Base class for channel handlers. Override the events you need.
    """

    def on_start(self, channel) -> None:
        pass

    def on_packet(self, channel, payload: bytes, sender: Optional[Address]) -> None:
        pass

    def on_error(self, channel, error: Exception) -> None:
        pass

    def on_close(self, channel) -> None:
        pass


class CallbackHandler(ChannelHandler):
    """
    Adapts plain callables to the handler protocol.

    Example:
        >>> channel.receive(CallbackHandler(on_packet=lambda ch, data, addr: print(data)))
    """

    def __init__(self,
                 on_packet: Optional[Callable[[object, bytes, Optional[Address]], None]] = None,
                 on_error: Optional[Callable[[object, Exception], None]] = None,
                 on_start: Optional[Callable[[object], None]] = None,
                 on_close: Optional[Callable[[object], None]] = None):
        self._on_packet = on_packet
        self._on_error = on_error
        self._on_start = on_start
        self._on_close = on_close

    def on_start(self, channel) -> None:
        if self._on_start:
            self._on_start(channel)

    def on_packet(self, channel, payload: bytes, sender: Optional[Address]) -> None:
        if self._on_packet:
            self._on_packet(channel, payload, sender)

    def on_error(self, channel, error: Exception) -> None:
        if self._on_error:
            self._on_error(channel, error)

    def on_close(self, channel) -> None:
        if self._on_close:
            self._on_close(channel)
