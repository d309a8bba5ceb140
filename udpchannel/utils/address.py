"""
Address classification helpers.

Used by the channel to decide default behaviour (multicast auto-binding,
broadcast enabling) and by describe() for diagnostics.
"""

import ipaddress
from typing import Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_SITE_LOCAL_V4 = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)
_SITE_LOCAL_V6 = ipaddress.ip_network("fec0::/10")
_MC_ORG_LOCAL_V4 = ipaddress.ip_network("239.192.0.0/14")
_MC_SITE_LOCAL_V4 = ipaddress.ip_network("239.255.0.0/16")
_MC_LINK_LOCAL_V4 = ipaddress.ip_network("224.0.0.0/24")

# IPv6 multicast scope nibble (RFC 4291)
_SCOPE_NODE = 0x1
_SCOPE_LINK = 0x2
_SCOPE_SITE = 0x5
_SCOPE_ORG = 0x8
_SCOPE_GLOBAL = 0xE


def parse_ip(address) -> IPAddress:
    """
    Parse an address literal.

    IPv6 zone suffixes ("fe80::1%eth0") are accepted and ignored.

    Raises:
        ValueError: If address is not an IP literal
    """
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return address
    text = str(address).split('%', 1)[0]
    return ipaddress.ip_address(text)


def is_ipv6_literal(address: str) -> bool:
    """True if address is an IPv6 literal, False for IPv4 literals and host names."""
    try:
        return parse_ip(address).version == 6
    except ValueError:
        return False


def is_multicast(address) -> bool:
    try:
        return parse_ip(address).is_multicast
    except ValueError:
        return False


def seems_broadcast(address) -> bool:
    """
    Guess whether an address is an IPv4 broadcast address.

    Without the netmask the subnet broadcast address cannot be known, so any
    non-multicast IPv4 address ending in .255 is treated as broadcast.
    """
    try:
        ip = parse_ip(address)
    except ValueError:
        return False
    if ip.version != 4 or ip.is_multicast:
        return False
    return ip.packed[3] == 255


def _multicast_scope(ip: ipaddress.IPv6Address) -> int:
    return ip.packed[1] & 0x0F


def _v4_multicast_type(ip: ipaddress.IPv4Address) -> str:
    first, second, third = ip.packed[0], ip.packed[1], ip.packed[2]
    if 224 <= first <= 238 and not (first == 224 and second == 0 and third == 0):
        return "MCG"
    if ip in _MC_LINK_LOCAL_V4:
        return "MCL"
    if ip in _MC_ORG_LOCAL_V4:
        return "MCO"
    if ip in _MC_SITE_LOCAL_V4:
        return "MCS"
    return "MC"


def _v6_multicast_type(ip: ipaddress.IPv6Address) -> str:
    return {
        _SCOPE_GLOBAL: "MCG",
        _SCOPE_LINK: "MCL",
        _SCOPE_NODE: "MCN",
        _SCOPE_ORG: "MCO",
        _SCOPE_SITE: "MCS",
    }.get(_multicast_scope(ip), "MC")


def address_type(address) -> str:
    """
    Short classification code of an address, for diagnostics.

    Codes:
        SL  site-local (private)     AL  any-local (wildcard)
        LO  loopback                 LL  link-local
        MCG multicast global         MCL multicast link-local
        MCN multicast node-local     MCO multicast organization-local
        MCS multicast site-local     MC  other multicast
        G   global

    Args:
        address: IP literal or ipaddress object

    Returns:
        Classification code
    """
    ip = parse_ip(address)
    if ip.version == 4:
        if any(ip in net for net in _SITE_LOCAL_V4):
            return "SL"
    elif ip in _SITE_LOCAL_V6:
        return "SL"
    if ip.is_unspecified:
        return "AL"
    if ip.is_loopback:
        return "LO"
    if ip.is_link_local:
        return "LL"
    if ip.is_multicast:
        if ip.version == 4:
            return _v4_multicast_type(ip)
        return _v6_multicast_type(ip)
    return "G"
