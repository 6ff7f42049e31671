"""Device connection state."""

from .session import DeviceSession


__all__ = ["DeviceSession"]
