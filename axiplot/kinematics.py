"""CoreXY kinematics and move timing.

The AxiDraw drives both carriage axes with two motors.  Motor positions relate
to the pen position through sum/difference formulas (see
https://corexy.com/theory.html).  The EBB's mixed-axis move command accepts
per-axis step counts and performs the forward mapping to motor steps on the
board, so the host only has to scale millimetres to steps.
"""
from __future__ import annotations

import math
from typing import Tuple

from .config import MAX_MM_PER_SEC, MIN_MM_PER_SEC, STEPS_PER_MM

XY = Tuple[float, float]


def distance(a: XY, b: XY) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def clamp_speed(mm_per_sec: float) -> float:
    # Never rejected; out-of-range speeds are clamped.
    return max(min(float(mm_per_sec), MAX_MM_PER_SEC), MIN_MM_PER_SEC)


def travel_time_ms(origin: XY, target: XY, mm_per_sec: float) -> float:
    """Milliseconds needed to cover ``origin -> target`` at constant speed."""

    return 1000.0 * (distance(origin, target) / mm_per_sec)


def axis_steps(delta: XY, steps_per_mm: float = STEPS_PER_MM) -> XY:
    """Scale an XY delta in millimetres to mixed-axis step counts."""

    return delta[0] * steps_per_mm, delta[1] * steps_per_mm


def step_delta(origin: XY, target: XY, steps_per_mm: float = STEPS_PER_MM) -> Tuple[int, int]:
    """Whole axis steps from ``origin`` to ``target``.

    Both ends are snapped to the step grid before subtracting, so a chain of
    moves never ends more than half a step away from its last target.
    """

    return (
        int(round(target[0] * steps_per_mm)) - int(round(origin[0] * steps_per_mm)),
        int(round(target[1] * steps_per_mm)) - int(round(origin[1] * steps_per_mm)),
    )


def motor_steps(delta: XY, steps_per_mm: float = STEPS_PER_MM) -> Tuple[int, int]:
    """Forward CoreXY map from an XY delta to (motor1, motor2) steps."""

    sx, sy = axis_steps(delta, steps_per_mm)
    return int(round(sx + sy)), int(round(sx - sy))


def position_from_steps(m1: float, m2: float, steps_per_mm: float = STEPS_PER_MM) -> XY:
    """Inverse CoreXY map from motor step counters to an XY position."""

    x = 0.5 * ((m1 + m2) / steps_per_mm)
    y = 0.5 * ((m1 - m2) / steps_per_mm)
    return x, y


__all__ = [
    "XY",
    "distance",
    "clamp_speed",
    "travel_time_ms",
    "axis_steps",
    "step_delta",
    "motor_steps",
    "position_from_steps",
]
