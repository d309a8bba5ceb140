"""
Utilities that live outside the channel core.

- Address classification
- Port availability probing
"""

from .address import address_type, is_multicast, seems_broadcast
from .ports import is_available

__all__ = [
    'address_type',
    'is_multicast',
    'seems_broadcast',
    'is_available'
]
