"""Configuration models and machine constants for the AxiDraw controller."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

# Motor steps per millimetre at 1/16 microstepping.
STEPS_PER_MM = 80

# Maximum carriage speed in mm/s.
MAX_MM_PER_SEC = 380.0

# The EBB cannot step slower than 1.31 steps/s.
MIN_MM_PER_SEC = 1.31 / STEPS_PER_MM

# EM command motor modes.
MOTOR_DISABLE = 0
MOTOR_STEP_DIV16 = 1

ANALOG_CHANNELS = range(0, 13)
SERVO_PINS = range(0, 25)
MEMORY_ADDRESSES = range(0, 4096)
ANALOG_FULL_SCALE = 1023


@dataclass
class ServoCalibration:
    """Servo calibration expressed in EBB S2 units (1/12 MHz)."""

    up: int = 27831
    down: int = 9855

    def clamp(self, value: float) -> float:
        return max(0.0, min(1.0, value))

    def to_position(self, value: float) -> int:
        value = self.clamp(value)
        return int(round(self.down + value * (self.up - self.down)))


@dataclass
class AxiDrawSettings:
    """Serial, kinematic and timing settings for one plotter."""

    port: Optional[str] = None  # None -> autodetect the EBB
    baudrate: int = 9600
    read_timeout_s: float = 1.0

    steps_per_mm: float = STEPS_PER_MM
    mm_per_sec: float = 25.0

    # Time for the pen lift to physically travel after SP.
    pen_settle_s: float = 1.0
    # Moves shorter than this are treated as already there.
    min_move_ms: float = 1.0

    pen_servo_pin: int = 1
    servo_rate: int = 0
    servo: ServoCalibration = field(default_factory=ServoCalibration)

    @classmethod
    def from_env(cls) -> "AxiDrawSettings":
        settings = cls()
        settings.port = os.getenv("AXIPLOT_PORT") or None
        if os.getenv("AXIPLOT_BAUDRATE"):
            settings.baudrate = int(os.environ["AXIPLOT_BAUDRATE"])
        if os.getenv("AXIPLOT_SPEED"):
            settings.mm_per_sec = float(os.environ["AXIPLOT_SPEED"])
        return settings


__all__ = [
    "STEPS_PER_MM",
    "MAX_MM_PER_SEC",
    "MIN_MM_PER_SEC",
    "MOTOR_DISABLE",
    "MOTOR_STEP_DIV16",
    "ANALOG_CHANNELS",
    "SERVO_PINS",
    "MEMORY_ADDRESSES",
    "ANALOG_FULL_SCALE",
    "ServoCalibration",
    "AxiDrawSettings",
]
