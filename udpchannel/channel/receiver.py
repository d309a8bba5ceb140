"""
Asynchronous receiver for UdpChannel.

One Receiver thread per receive session owns the blocking receive call and
turns everything that happens on the socket into handler events. The
receive is cancellable: the thread waits on a selector over the channel
socket and a wake-up socket pair, so stop() can end the wait without
closing the channel socket first.
"""

import enum
import logging
import selectors
import socket
import threading

from .handler import ChannelHandler

logger = logging.getLogger(__name__)


class ReceiverState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECEIVING = "receiving"
    STOPPING = "stopping"
    CLOSED = "closed"


class Receiver(threading.Thread):
    """
    Worker thread delivering datagrams from one channel to one handler.

    The receiver holds the channel it serves; the channel keeps this thread
    only as a handle for stop() and join().
    """

    def __init__(self, channel, handler: ChannelHandler, with_sender: bool = True,
                 error_pause: float = 0.1):
        """
        Initialize receiver.

        Args:
            channel: UdpChannel to read from
            handler: Handler receiving the events
            with_sender: Deliver the sender address with each packet; False
                for connected channels, where packets carry sender=None
            error_pause: Seconds to pause after reporting a receive error
        """
        super().__init__(name=f"udpchannel-receiver-{channel.remote_address[1]}", daemon=True)
        self.channel = channel
        self.handler = handler
        self.with_sender = with_sender
        self.error_pause = error_pause
        self.state = ReceiverState.IDLE
        self._stopping = threading.Event()
        self._waker_r, self._waker_w = socket.socketpair()
        self._waker_r.setblocking(False)

    def start(self):
        self.state = ReceiverState.STARTING
        super().start()

    def is_running(self) -> bool:
        """True from start() until stop() or the end of the loop."""
        return (not self._stopping.is_set()
                and self.state in (ReceiverState.STARTING, ReceiverState.RECEIVING))

    def stop(self) -> None:
        """Ask the loop to end and wake it if it is blocked."""
        self._stopping.set()
        try:
            self._waker_w.send(b"\0")
        except OSError:
            pass

    def run(self):
        try:
            self._dispatch_start()
            if self._stopping.is_set():
                return
            self.state = ReceiverState.RECEIVING
            self._loop()
        finally:
            self.state = ReceiverState.STOPPING
            self._dispatch_close()
            self.state = ReceiverState.CLOSED
            self._waker_r.close()
            self._waker_w.close()
            self.channel._receiver_finished(self)

    def _loop(self):
        sock = self.channel.socket
        with selectors.DefaultSelector() as selector:
            selector.register(sock, selectors.EVENT_READ)
            selector.register(self._waker_r, selectors.EVENT_READ)

            while not self._stopping.is_set() and self.channel.is_open():
                try:
                    ready = selector.select()
                    if self._stopping.is_set():
                        break
                    for key, _ in ready:
                        if key.fileobj is sock:
                            self._receive_one(sock)
                except (socket.timeout, BlockingIOError, InterruptedError):
                    continue
                except Exception as e:
                    if self._stopping.is_set() or not self.channel.is_open():
                        break
                    logger.warning(f"Error in receive loop: {e}")
                    self._dispatch_error(e)
                    self._stopping.wait(self.error_pause)

    def _receive_one(self, sock: socket.socket):
        size = self.channel.get_payload_size()
        if self.with_sender:
            payload, sender = sock.recvfrom(size)
        else:
            payload, sender = sock.recv(size), None
        if self._stopping.is_set():
            return
        try:
            self.handler.on_packet(self.channel, payload, sender)
        except Exception as e:
            logger.error(f"Handler failed on packet from {sender}: {e}")
            self._dispatch_error(e)

    def _dispatch_start(self):
        try:
            self.handler.on_start(self.channel)
        except Exception as e:
            logger.error(f"Handler failed on start: {e}")
            self._dispatch_error(e)

    def _dispatch_error(self, error: Exception):
        try:
            self.handler.on_error(self.channel, error)
        except Exception as e:
            logger.debug(f"Discarding on_error failure: {e}")

    def _dispatch_close(self):
        try:
            self.handler.on_close(self.channel)
        except Exception as e:
            logger.debug(f"Discarding on_close failure: {e}")
