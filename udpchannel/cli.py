"""
Command-line test harness for udpchannel.

    udpchannel listen 224.0.1.191 9099 --join
    udpchannel send 127.0.0.1 9099 "hello" --count 5
    udpchannel probe 9099
    udpchannel info 255.255.255.255 9099
"""

import argparse
import logging
import signal
import sys
import threading
import time

from . import __version__
from .channel import CallbackHandler, ChannelError, Mode, UdpChannel
from .config import ChannelConfig, ConfigError
from .utils.ports import is_available


def _open_channel(args) -> UdpChannel:
    config = ChannelConfig.from_env()
    return UdpChannel((args.host, args.port), interface=args.interface,
                      mode=args.mode, config=config)


def _print_packet(channel, payload, sender):
    origin = f"{sender[0]}:{sender[1]}" if sender else "peer"
    print(f"rcv: {len(payload)} {origin} {payload[:64]!r}")


def _print_error(channel, error):
    print(f"err: {error}", file=sys.stderr)


def cmd_listen(args) -> int:
    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())

    with _open_channel(args) as channel:
        if args.join or args.source:
            print(channel.join_group(args.source))
        handler = CallbackHandler(
            on_packet=_print_packet,
            on_error=_print_error,
            on_close=lambda ch: print("Channel closed"),
        )
        channel.receive(handler, connected=args.connected)
        print(f"Listening on {channel.local_address}, Ctrl-C to stop")
        done.wait(args.duration)
    return 0


def cmd_send(args) -> int:
    errors = 0
    with _open_channel(args) as channel:
        if args.ttl is not None:
            channel.set_time_to_live(args.ttl)
        payload = args.message.encode("utf-8")
        for _ in range(args.count):
            try:
                sent = channel.send(payload)
                print(f"snt: {sent} {channel.remote_address[0]}:{channel.remote_address[1]}")
            except ChannelError as e:
                errors += 1
                print(f"err: {e}", file=sys.stderr)
            time.sleep(args.interval)
    print(f"Packets sent: {args.count - errors} Errors: {errors}")
    return 1 if errors else 0


def cmd_probe(args) -> int:
    available = is_available(args.port)
    print(f"UDP port {args.port} is {'available' if available else 'in use'}")
    return 0 if available else 1


def cmd_info(args) -> int:
    with _open_channel(args) as channel:
        print(channel.describe())
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="udpchannel",
                                     description="UDP unicast/broadcast/multicast test harness")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    remote = argparse.ArgumentParser(add_help=False)
    remote.add_argument("host", help="Remote host, broadcast or multicast group")
    remote.add_argument("port", type=int, help="Remote UDP port")
    remote.add_argument("--interface", help="Network interface name")
    remote.add_argument("--mode", default=Mode.AUTO.value,
                        help="AUTO, DEFAULT, INET or INET6 (default: AUTO)")

    sub = parser.add_subparsers(dest="cmd")

    p_listen = sub.add_parser("listen", parents=[remote], help="Print incoming datagrams")
    p_listen.add_argument("--join", action="store_true", help="Join the multicast group")
    p_listen.add_argument("--source", help="Source-specific join from this sender")
    p_listen.add_argument("--connected", action="store_true",
                          help="Only accept datagrams from the remote address")
    p_listen.add_argument("--duration", type=float, default=None,
                          help="Stop after this many seconds")

    p_send = sub.add_parser("send", parents=[remote], help="Send datagrams")
    p_send.add_argument("message")
    p_send.add_argument("--count", type=int, default=1)
    p_send.add_argument("--interval", type=float, default=0.3, help="Seconds between sends")
    p_send.add_argument("--ttl", type=int, help="Multicast TTL")

    p_probe = sub.add_parser("probe", help="Check whether a UDP port is free")
    p_probe.add_argument("port", type=int)

    sub.add_parser("info", parents=[remote], help="Show channel addresses and options")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    commands = {
        "listen": cmd_listen,
        "send": cmd_send,
        "probe": cmd_probe,
        "info": cmd_info,
    }
    if args.cmd not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.cmd](args)
    except (ChannelError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
