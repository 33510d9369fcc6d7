"""Shared fixtures for the axiplot test-suite.

``RecordingBoard`` wraps the mock EBB so tests can see exactly which driver
calls were issued, in which order, and whether two of them ever overlapped.
"""

from __future__ import annotations

import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import pytest

_root = Path(__file__).resolve().parents[1]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from axiplot.config import AxiDrawSettings
from axiplot.controller import AxiDraw
from axiplot.device.mock import MockEiBotBoard


@dataclass
class RecordingBoard(MockEiBotBoard):
    delay_s: float = 0.0
    gates: Dict[str, threading.Event] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.calls: List[tuple] = []
        self.overlaps = 0
        self._live = 0
        self._guard = threading.Lock()
        self._seen = threading.Condition(self._guard)

    @contextmanager
    def _call(self, name: str, *args):
        with self._guard:
            self._live += 1
            if self._live > 1:
                self.overlaps += 1
            self.calls.append((name,) + args)
            self._seen.notify_all()
        try:
            gate = self.gates.get(name)
            if gate is not None:
                gate.wait(timeout=5)
            if self.delay_s:
                time.sleep(self.delay_s)
            yield
        finally:
            with self._guard:
                self._live -= 1

    def wait_for_call(self, name: str, timeout: float = 5.0) -> None:
        with self._seen:
            if not self._seen.wait_for(lambda: name in self.names(), timeout):
                raise AssertionError(f"{name} was never called")

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def set_motor_state(self, m1_mode, m2_mode):
        with self._call("set_motor_state", m1_mode, m2_mode):
            return super().set_motor_state(m1_mode, m2_mode)

    def query_step_position(self):
        with self._call("query_step_position"):
            return super().query_step_position()

    def move_both_axes(self, duration_ms, steps_x, steps_y):
        with self._call("move_both_axes", duration_ms, steps_x, steps_y):
            return super().move_both_axes(duration_ms, steps_x, steps_y)

    def emergency_stop(self):
        # Issued outside the queue; recorded but not counted as an overlap.
        with self._guard:
            self.calls.append(("emergency_stop",))
        return super().emergency_stop()

    def set_pen_state(self, down):
        with self._call("set_pen_state", down):
            return super().set_pen_state(down)

    def query_pen_state(self):
        with self._call("query_pen_state"):
            return super().query_pen_state()

    def set_servo_position(self, position, channel, rate=0):
        with self._call("set_servo_position", position, channel, rate):
            return super().set_servo_position(position, channel, rate)

    def configure_analog_channel(self, channel, enabled):
        with self._call("configure_analog_channel", channel, enabled):
            return super().configure_analog_channel(channel, enabled)

    def read_analog_values(self):
        with self._call("read_analog_values"):
            return super().read_analog_values()

    def read_memory(self, address):
        with self._call("read_memory", address):
            return super().read_memory(address)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.sleeps: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def board() -> RecordingBoard:
    return RecordingBoard()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def axi(board, fake_sleep) -> AxiDraw:
    axi = AxiDraw(device=board, settings=AxiDrawSettings(), sleep=fake_sleep)
    axi.connect()
    yield axi
    axi.stop()
    axi.disconnect()
