"""In-memory EBB simulation used for development and unit tests."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..config import ANALOG_FULL_SCALE, MOTOR_DISABLE
from ..errors import DriverError, NotConnectedError
from ..kinematics import motor_steps


@dataclass
class MockEiBotBoard:
    """Small simulation that mimics the :class:`EiBotBoard` API."""

    analog_inputs: Dict[int, int] = field(default_factory=dict)
    memory: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.connected = False
        self.motor_modes: Tuple[int, int] = (MOTOR_DISABLE, MOTOR_DISABLE)
        self.steps: Tuple[int, int] = (0, 0)
        self.pen_down = False
        self.servo_positions: Dict[int, int] = {}
        self.enabled_channels: set = set()
        self.moves: List[Tuple[int, int, int]] = []
        self.stops = 0

    # Connection ---------------------------------------------------------
    def connect(self) -> "MockEiBotBoard":
        self.connected = True
        return self

    def close(self) -> None:
        self.connected = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    def _require_connection(self) -> None:
        if not self.connected:
            raise NotConnectedError("talk to the EBB")

    # Motors -------------------------------------------------------------
    def set_motor_state(self, m1_mode: int, m2_mode: int) -> None:
        self._require_connection()
        self.motor_modes = (int(m1_mode), int(m2_mode))

    def query_step_position(self) -> Tuple[int, int]:
        self._require_connection()
        return self.steps

    def move_both_axes(self, duration_ms: float, steps_x: float, steps_y: float) -> None:
        self._require_connection()
        duration = max(1, int(round(duration_ms)))
        ax, ay = int(round(steps_x)), int(round(steps_y))
        # XM takes mixed-axis steps: motor1 = A + B, motor2 = A - B.
        d1, d2 = motor_steps((ax, ay), steps_per_mm=1)
        self.steps = (self.steps[0] + d1, self.steps[1] + d2)
        self.moves.append((duration, ax, ay))

    def emergency_stop(self) -> None:
        self._require_connection()
        self.stops += 1

    # Pen / servos -------------------------------------------------------
    def set_pen_state(self, down: bool) -> None:
        self._require_connection()
        self.pen_down = bool(down)

    def query_pen_state(self) -> bool:
        self._require_connection()
        return self.pen_down

    def set_servo_position(self, position: int, channel: int, rate: int = 0) -> None:
        self._require_connection()
        self.servo_positions[int(channel)] = int(position)

    # Analog / memory ----------------------------------------------------
    def configure_analog_channel(self, channel: int, enabled: bool) -> None:
        self._require_connection()
        if enabled:
            self.enabled_channels.add(int(channel))
        else:
            self.enabled_channels.discard(int(channel))

    def read_analog_values(self) -> Dict[int, int]:
        self._require_connection()
        return {
            ch: min(ANALOG_FULL_SCALE, self.analog_inputs.get(ch, 0))
            for ch in sorted(self.enabled_channels)
        }

    def read_memory(self, address: int) -> int:
        self._require_connection()
        value = self.memory.get(int(address), 0)
        if not 0 <= value <= 0xFF:
            raise DriverError(f"Memory value at {address} is not a byte: {value}")
        return value


__all__ = ["MockEiBotBoard"]
