"""
Network interface lookup.

Wraps psutil's interface tables so a channel can be given an interface by
name, index or address and still get at its index (for IPv6 options) and its
addresses (for IPv4 options and local bind addresses).
"""

import socket
from typing import Dict, List, Optional, Union

import psutil


class InterfaceError(LookupError):
    """Raised when a network interface cannot be found."""
    pass


def _strip_zone(address: str) -> str:
    return address.split('%', 1)[0]


class NetworkInterface:
    """
    A snapshot of one network interface.

    Attributes:
        name: Interface name ("eth0", "lo")
        index: Kernel interface index
        addresses: IP addresses keyed by socket family
    """

    def __init__(self, name: str, index: int, addresses: Dict[int, List[str]]):
        self.name = name
        self.index = index
        self.addresses = addresses

    @classmethod
    def by_name(cls, name: str) -> 'NetworkInterface':
        """
        Look up an interface by name.

        Raises:
            InterfaceError: If no interface has this name
        """
        table = psutil.net_if_addrs()
        if name not in table:
            raise InterfaceError(f"No such network interface: {name}")
        try:
            index = socket.if_nametoindex(name)
        except OSError as e:
            raise InterfaceError(f"Cannot get index of interface {name}: {e}")

        addresses: Dict[int, List[str]] = {}
        for entry in table[name]:
            if entry.family in (socket.AF_INET, socket.AF_INET6):
                addresses.setdefault(entry.family, []).append(_strip_zone(entry.address))
        return cls(name, index, addresses)

    @classmethod
    def by_index(cls, index: int) -> 'NetworkInterface':
        try:
            name = socket.if_indextoname(index)
        except OSError:
            raise InterfaceError(f"No network interface with index {index}")
        return cls.by_name(name)

    @classmethod
    def by_address(cls, address: str) -> Optional['NetworkInterface']:
        """Find the interface that owns address, or None."""
        address = _strip_zone(address)
        for name, entries in psutil.net_if_addrs().items():
            for entry in entries:
                if _strip_zone(entry.address) == address:
                    return cls.by_name(name)
        return None

    @classmethod
    def resolve(cls, interface: Union['NetworkInterface', str, int, None]) -> Optional['NetworkInterface']:
        """
        Normalise an interface argument.

        Args:
            interface: NetworkInterface, interface name, interface index or None

        Returns:
            NetworkInterface, or None when interface is None

        Raises:
            InterfaceError: If the interface does not exist
        """
        if interface is None or isinstance(interface, NetworkInterface):
            return interface
        if isinstance(interface, bool):
            raise InterfaceError(f"Invalid interface: {interface!r}")
        if isinstance(interface, int):
            return cls.by_index(interface)
        return cls.by_name(str(interface))

    @classmethod
    def all(cls) -> List['NetworkInterface']:
        return [cls.by_name(name) for name in psutil.net_if_addrs()]

    def address(self, family: int) -> Optional[str]:
        """First address of the given family, or None."""
        found = self.addresses.get(family)
        return found[0] if found else None

    @property
    def is_up(self) -> bool:
        stats = psutil.net_if_stats().get(self.name)
        return bool(stats and stats.isup)

    @property
    def supports_multicast(self) -> bool:
        """
        Whether the interface carries the multicast flag.

        Platforms where psutil reports no flags are assumed to support it.
        """
        stats = psutil.net_if_stats().get(self.name)
        if stats is None:
            return False
        if not stats.flags:
            return True
        return "multicast" in stats.flags.split(",")

    def __eq__(self, other):
        if not isinstance(other, NetworkInterface):
            return NotImplemented
        return self.name == other.name and self.index == other.index

    def __hash__(self):
        return hash((self.name, self.index))

    def __repr__(self):
        return f"NetworkInterface({self.name!r}, index={self.index})"

    def __str__(self):
        return self.name
