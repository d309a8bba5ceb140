"""
Protocol family selection.

A channel is opened in one of three modes: AUTO picks the family from the
remote address literal, DEFAULT lets the platform resolver choose, and an
explicit family name forces one.
"""

import enum
import socket
from typing import Tuple, Union

from .errors import ConstructionError
from ..utils.address import is_ipv6_literal


class Mode(enum.Enum):
    AUTO = "AUTO"
    DEFAULT = "DEFAULT"


FAMILY_NAMES = {
    "INET": socket.AF_INET,
    "AF_INET": socket.AF_INET,
    "IPV4": socket.AF_INET,
    "INET6": socket.AF_INET6,
    "AF_INET6": socket.AF_INET6,
    "IPV6": socket.AF_INET6,
}


def family_name(family: int) -> str:
    return "INET6" if family == socket.AF_INET6 else "INET"


def resolve_remote(host: str, port: int) -> Tuple[int, str]:
    """
    Resolve a remote host to (family, address literal).

    The first answer of the platform resolver wins.

    Raises:
        ConstructionError: If the host cannot be resolved
    """
    if not 0 <= port < 65536:
        raise ConstructionError(f"Port out of range: {port}")
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise ConstructionError(f"Cannot resolve {host}: {e}") from e
    if not infos:
        raise ConstructionError(f"Cannot resolve {host}")
    family, _, _, _, sockaddr = infos[0]
    return family, sockaddr[0]


def resolve_family(mode: Union[Mode, str], address: str, resolved_family: int) -> int:
    """
    Map a channel mode to a concrete socket family.

    Args:
        mode: Mode.AUTO, Mode.DEFAULT or a family name such as "INET6"
        address: Resolved remote address literal
        resolved_family: Family the resolver returned for the remote host

    Returns:
        socket.AF_INET or socket.AF_INET6

    Raises:
        ConstructionError: On an unknown mode name or a family/address mismatch
    """
    if isinstance(mode, str) and mode.upper() in Mode.__members__:
        mode = Mode[mode.upper()]

    if mode is Mode.AUTO:
        return socket.AF_INET6 if is_ipv6_literal(address) else socket.AF_INET
    if mode is Mode.DEFAULT:
        return resolved_family

    if not isinstance(mode, str):
        raise ConstructionError(f"Invalid channel mode: {mode!r}")
    family = FAMILY_NAMES.get(mode.upper())
    if family is None:
        raise ConstructionError(f"Unknown protocol family: {mode}")
    if family == socket.AF_INET and is_ipv6_literal(address):
        raise ConstructionError(f"IPv6 address {address} cannot be used with an INET channel")
    return family
