"""Top-level package for the axiplot AxiDraw controller.

This package drives an AxiDraw CoreXY pen plotter over its EiBotBoard serial
link, queueing every device command so it executes in issue order, and can
serve the controller over HTTP.
"""

from .command_queue import CommandQueue
from .config import (
    MAX_MM_PER_SEC,
    MIN_MM_PER_SEC,
    STEPS_PER_MM,
    AxiDrawSettings,
    ServoCalibration,
)
from .controller import AxiDraw
from .errors import (
    AxiDrawError,
    ChannelNotEnabledError,
    DriverError,
    InvalidArgumentError,
    NotConnectedError,
)

__all__ = [
    "AxiDraw",
    "CommandQueue",
    "AxiDrawSettings",
    "ServoCalibration",
    "STEPS_PER_MM",
    "MAX_MM_PER_SEC",
    "MIN_MM_PER_SEC",
    "AxiDrawError",
    "NotConnectedError",
    "InvalidArgumentError",
    "ChannelNotEnabledError",
    "DriverError",
]
