"""High level AxiDraw control: motion, pen state and device I/O.

Every operation that touches the plotter is wrapped in a command and routed
through a :class:`~axiplot.command_queue.CommandQueue`, so commands reach the
EBB in the order they were issued no matter how many threads issue them.
Bookkeeping that only affects local state (speed, the commanded position used
to compute the next move) happens immediately at call time.

Queued operations accept ``wait``.  With ``wait=True`` (the default) the call
blocks until the command, including any settle or travel time, has finished
and returns its result.  With ``wait=False`` the :class:`~concurrent.futures.Future`
is returned instead::

    axi = AxiDraw()
    axi.connect()
    axi.pen_down()
    for x, y in points:
        axi.move_to(x, y, wait=False)
    axi.pen_up()
"""
from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .command_queue import CommandQueue
from .config import (
    ANALOG_CHANNELS,
    ANALOG_FULL_SCALE,
    MEMORY_ADDRESSES,
    MOTOR_DISABLE,
    MOTOR_STEP_DIV16,
    SERVO_PINS,
    AxiDrawSettings,
)
from .device import EiBotBoard
from .errors import ChannelNotEnabledError, InvalidArgumentError, NotConnectedError
from .kinematics import XY, clamp_speed, position_from_steps, step_delta, travel_time_ms

logger = logging.getLogger(__name__)


def _resolved(value: Any = None) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


def _finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be a finite number, got {value}")
    return value


@dataclass
class AxiDraw:
    """Queue-backed controller for an AxiDraw CoreXY pen plotter."""

    device: Any = None
    settings: AxiDrawSettings = field(default_factory=AxiDrawSettings)
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.device is None:
            self.device = EiBotBoard(self.settings)
        self.connected = False
        self._target_pos: XY = (0.0, 0.0)
        self._last_commanded_pos: XY = (0.0, 0.0)
        self._mm_per_sec = clamp_speed(self.settings.mm_per_sec)
        self._pen_is_down: Optional[bool] = None
        self._commands = CommandQueue()
        self._motion_lock = threading.Lock()

    def __enter__(self) -> "AxiDraw":
        self.connect()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def mm_per_sec(self) -> float:
        return self._mm_per_sec

    @property
    def target_pos(self) -> XY:
        return self._target_pos

    @property
    def last_commanded_pos(self) -> XY:
        return self._last_commanded_pos

    @property
    def pen_is_down(self) -> Optional[bool]:
        """Last pen state commanded through this controller (a hint only)."""

        return self._pen_is_down

    def is_busy(self) -> bool:
        return self._commands.is_busy()

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        self._commands.wait_idle(timeout)

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> None:
        if self.connected:
            return
        self.device.connect()
        self.connected = True
        logger.info("AxiDraw connected")

    def disconnect(self) -> None:
        if not self.connected:
            return
        if self.is_busy():
            logger.warning("Disconnecting with %d queued command(s)", len(self._commands))
        self.device.close()
        self.connected = False
        logger.info("AxiDraw disconnected")

    # ------------------------------------------------------------------
    # Queue plumbing
    # ------------------------------------------------------------------
    def _require_connection(self, operation: str) -> None:
        if not self.connected:
            raise NotConnectedError(operation)

    def _submit(self, label: str, fn: Callable[[], Any], wait: bool) -> Any:
        future = self._commands.enqueue(fn, label=label)
        return future.result() if wait else future

    # ------------------------------------------------------------------
    # Motors
    # ------------------------------------------------------------------
    def enable(self, *, wait: bool = True):
        """Energise both motors, locking the carriage in place.

        Moves enable the motors implicitly, so this is rarely needed.
        """

        self._require_connection("enable motors")
        return self._submit(
            "enable",
            lambda: self.device.set_motor_state(MOTOR_STEP_DIV16, MOTOR_STEP_DIV16),
            wait,
        )

    def disable(self, *, wait: bool = True):
        """Release both motors so the carriage can be moved by hand."""

        self._require_connection("disable motors")
        return self._submit(
            "disable",
            lambda: self.device.set_motor_state(MOTOR_DISABLE, MOTOR_DISABLE),
            wait,
        )

    def current_position(self, *, wait: bool = True):
        """Ask the EBB for its step counters and return the pen XY in mm."""

        self._require_connection("query position")
        steps_per_mm = self.settings.steps_per_mm

        def query() -> XY:
            m1, m2 = self.device.query_step_position()
            return position_from_steps(m1, m2, steps_per_mm)

        return self._submit("current_position", query, wait)

    # ------------------------------------------------------------------
    # Pen
    # ------------------------------------------------------------------
    def _set_pen(self, down: bool) -> None:
        was_down = self.device.query_pen_state()
        self.device.set_pen_state(down)
        self._pen_is_down = down
        if was_down != down:
            # The EBB acks SP immediately; the lift is still travelling.
            self.sleep(self.settings.pen_settle_s)

    def pen_up(self, *, wait: bool = True):
        self._require_connection("raise the pen")
        return self._submit("pen_up", lambda: self._set_pen(False), wait)

    def pen_down(self, *, wait: bool = True):
        self._require_connection("lower the pen")
        return self._submit("pen_down", lambda: self._set_pen(True), wait)

    def set_pen_height(self, height: float, *, wait: bool = True):
        """Drive the pen servo to ``height`` (1 = fully raised, 0 = fully lowered).

        No settle time is added; callers wanting one must wait themselves.
        """

        self._require_connection("set the pen height")
        position = self.settings.servo.to_position(height)
        pin, rate = self.settings.pen_servo_pin, self.settings.servo_rate
        return self._submit(
            "set_pen_height",
            lambda: self.device.set_servo_position(position, pin, rate),
            wait,
        )

    def servo_out(self, channel: int, duty: float, *, wait: bool = True):
        """Drive an auxiliary RC servo on EBB output ``channel``."""

        if channel not in SERVO_PINS:
            raise InvalidArgumentError(f"Servo channel must be in [0, 24], got {channel}")
        self._require_connection("drive a servo")
        position = self.settings.servo.to_position(duty)
        rate = self.settings.servo_rate
        return self._submit(
            "servo_out",
            lambda: self.device.set_servo_position(position, channel, rate),
            wait,
        )

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------
    def set_speed(self, mm_per_sec: float) -> None:
        self._mm_per_sec = clamp_speed(_finite("speed", mm_per_sec))

    def move_to(self, x: float, y: float, *, wait: bool = True):
        """Move the pen in a straight line to ``(x, y)`` mm at the current speed.

        The delta is taken from the last *commanded* position, which is
        updated before the move is queued, so several moves can be issued
        back to back without waiting for each other.
        """

        target = (_finite("x", x), _finite("y", y))
        self._require_connection("move")

        # Reading the origin, advancing it and queueing must not interleave
        # with another thread's move.
        with self._motion_lock:
            self._target_pos = target
            origin = self._last_commanded_pos
            duration_ms = travel_time_ms(origin, target, self._mm_per_sec)
            if duration_ms < self.settings.min_move_ms:
                # Already there.
                return None if wait else _resolved()

            steps_x, steps_y = step_delta(origin, target, self.settings.steps_per_mm)
            self._last_commanded_pos = target

            def move() -> None:
                self.device.move_both_axes(duration_ms, steps_x, steps_y)
                self.sleep(duration_ms / 1000.0)

            future = self._commands.enqueue(move, label="move_to")
        return future.result() if wait else future

    def stop(self) -> List[str]:
        """Emergency stop.

        Drops every queued command and sends ES straight to the board,
        bypassing the queue.  A command already handed to the EBB is not
        recalled, and the commanded position is no longer reliable afterwards.
        """

        dropped = self._commands.clear()
        if self.connected:
            self.device.emergency_stop()
        else:
            logger.warning("Stop requested while disconnected; only the queue was cleared")
        logger.warning("Emergency stop: dropped %d queued command(s)", len(dropped))
        return [command.label for command in dropped]

    # ------------------------------------------------------------------
    # Analog inputs / memory
    # ------------------------------------------------------------------
    @staticmethod
    def _check_channel(channel: int) -> None:
        if channel not in ANALOG_CHANNELS:
            raise InvalidArgumentError(f"Analog channel must be in [0, 12], got {channel}")

    def analog_configure(self, channel: int, enabled: bool, *, wait: bool = True):
        self._check_channel(channel)
        self._require_connection("configure an analog channel")
        return self._submit(
            "analog_configure",
            lambda: self.device.configure_analog_channel(channel, bool(enabled)),
            wait,
        )

    def analog_read(self, channel: int, *, wait: bool = True):
        """Read an enabled analog channel, normalised to [0, 1]."""

        self._check_channel(channel)
        self._require_connection("read an analog channel")

        def read() -> float:
            values = self.device.read_analog_values()
            if channel not in values:
                raise ChannelNotEnabledError(channel)
            return values[channel] / ANALOG_FULL_SCALE

        return self._submit("analog_read", read, wait)

    def memory_read(self, address: int, *, wait: bool = True):
        if address not in MEMORY_ADDRESSES:
            raise InvalidArgumentError(f"Memory address must be in [0, 4095], got {address}")
        self._require_connection("read memory")
        return self._submit("memory_read", lambda: self.device.read_memory(address), wait)


__all__ = ["AxiDraw"]
