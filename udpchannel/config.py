"""
Configuration management for udpchannel.

Holds the defaults a UdpChannel applies at construction time. Values can be
overridden per instance or loaded from UDPCHANNEL_* environment variables.
"""

import os
from typing import Mapping, Optional


class ConfigError(Exception):
    """Raised when configuration values are invalid."""
    pass


DEFAULT_PAYLOAD_SIZE = 1500
MAX_PAYLOAD_SIZE = 65535
DEFAULT_CLOSE_TIMEOUT = 5.0
DEFAULT_ERROR_PAUSE = 0.1

ENV_PREFIX = "UDPCHANNEL_"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_number(name: str, value: str, kind):
    try:
        return kind(value.strip())
    except ValueError:
        raise ConfigError(f"{name} must be {kind.__name__}, got {value!r}")


class ChannelConfig:
    """
    Construction-time defaults for a datagram channel.

    Attributes:
        payload_size: Receive buffer size in bytes
        reuse_address: Enable SO_REUSEADDR
        broadcast: Enable SO_BROADCAST
        loopback: Enable multicast loopback
        time_to_live: Multicast TTL, None keeps the platform default
        close_timeout: Seconds close() waits for the receiver to finish
        error_pause: Seconds the receiver pauses after reporting an error
    """

    def __init__(self, payload_size: int = DEFAULT_PAYLOAD_SIZE,
                 reuse_address: bool = True, broadcast: bool = True,
                 loopback: bool = True, time_to_live: Optional[int] = None,
                 close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
                 error_pause: float = DEFAULT_ERROR_PAUSE):
        self.payload_size = payload_size
        self.reuse_address = reuse_address
        self.broadcast = broadcast
        self.loopback = loopback
        self.time_to_live = time_to_live
        self.close_timeout = close_timeout
        self.error_pause = error_pause
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If any value is out of range
        """
        if not 0 < self.payload_size <= MAX_PAYLOAD_SIZE:
            raise ConfigError(f"payload_size must be in 1..{MAX_PAYLOAD_SIZE}, got {self.payload_size}")
        if self.time_to_live is not None and not 0 <= self.time_to_live <= 255:
            raise ConfigError(f"time_to_live must be in 0..255, got {self.time_to_live}")
        if self.close_timeout is not None and self.close_timeout < 0:
            raise ConfigError("close_timeout must not be negative")
        if self.error_pause < 0:
            raise ConfigError("error_pause must not be negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ChannelConfig':
        """
        Build a configuration from UDPCHANNEL_* environment variables.

        Recognised variables: UDPCHANNEL_PAYLOAD_SIZE, UDPCHANNEL_TTL,
        UDPCHANNEL_CLOSE_TIMEOUT, UDPCHANNEL_REUSE_ADDRESS,
        UDPCHANNEL_BROADCAST, UDPCHANNEL_LOOPBACK. Unset variables keep
        their defaults.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            ChannelConfig instance

        Raises:
            ConfigError: If a variable cannot be parsed
        """
        if environ is None:
            environ = os.environ

        kwargs = {}
        numbers = {
            "PAYLOAD_SIZE": ("payload_size", int),
            "TTL": ("time_to_live", int),
            "CLOSE_TIMEOUT": ("close_timeout", float),
        }
        for suffix, (attr, kind) in numbers.items():
            name = ENV_PREFIX + suffix
            if name in environ:
                kwargs[attr] = _parse_number(name, environ[name], kind)

        flags = {
            "REUSE_ADDRESS": "reuse_address",
            "BROADCAST": "broadcast",
            "LOOPBACK": "loopback",
        }
        for suffix, attr in flags.items():
            name = ENV_PREFIX + suffix
            if name in environ:
                kwargs[attr] = _parse_bool(name, environ[name])

        return cls(**kwargs)

    def __repr__(self):
        return (f"ChannelConfig(payload_size={self.payload_size}, "
                f"reuse_address={self.reuse_address}, broadcast={self.broadcast}, "
                f"loopback={self.loopback}, time_to_live={self.time_to_live})")
