"""Exceptions raised by the AxiDraw controller and its drivers."""

from __future__ import annotations


class AxiDrawError(RuntimeError):
    """Base class for all controller errors."""


class NotConnectedError(AxiDrawError):
    """Raised when a device operation is invoked without a connection."""

    def __init__(self, operation: str = "operation") -> None:
        super().__init__(f"Cannot {operation}: AxiDraw is not connected")
        self.operation = operation


class InvalidArgumentError(AxiDrawError, ValueError):
    """Raised for out-of-range channels, pins or addresses."""


class ChannelNotEnabledError(AxiDrawError):
    """Raised when reading an analog channel that was never enabled."""

    def __init__(self, channel: int) -> None:
        super().__init__(f"Analog channel {channel} is not enabled")
        self.channel = channel


class DriverError(AxiDrawError):
    """Raised when the EBB rejects a command or the serial link fails."""


__all__ = [
    "AxiDrawError",
    "NotConnectedError",
    "InvalidArgumentError",
    "ChannelNotEnabledError",
    "DriverError",
]
