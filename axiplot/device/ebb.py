"""Serial driver for the EiBotBoard (EBB) inside the AxiDraw.

Only the handful of EBB commands the controller needs are implemented.  Each
command is a single ASCII line terminated by ``\\r``; the board acknowledges
with ``OK`` (some queries reply with a data line first, and a few reply with
a data line only).  Replies starting with ``!`` are errors.

Command reference: https://evil-mad.github.io/EggBot/ebb.html
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import serial
from serial.tools import list_ports

from ..config import AxiDrawSettings
from ..errors import DriverError, NotConnectedError

logger = logging.getLogger(__name__)

EBB_VID = 0x04D8
EBB_PID = 0xFD92


def find_ebb_ports() -> List[str]:
    ports = []
    for p in list_ports.comports():
        if (p.vid, p.pid) == (EBB_VID, EBB_PID) or "EiBotBoard" in (p.description or ""):
            ports.append(p.device)
    return ports


def find_ebb_port() -> Optional[str]:
    ports = find_ebb_ports()
    return ports[0] if ports else None


class EiBotBoard:
    """Minimal EBB wrapper used by :class:`axiplot.controller.AxiDraw`."""

    def __init__(
        self,
        settings: Optional[AxiDrawSettings] = None,
        *,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
    ) -> None:
        self.settings = settings or AxiDrawSettings()
        self._serial_factory = serial_factory
        self._serial: Optional[serial.Serial] = None
        self._lock = threading.Lock()
        self.port: Optional[str] = None
        self.version: Optional[str] = None

    # -------- Connection --------
    def connect(self) -> "EiBotBoard":
        port = self.settings.port or find_ebb_port()
        if port is None:
            raise DriverError("No EiBotBoard found; set AxiDrawSettings.port")
        try:
            self._serial = self._serial_factory(
                port,
                baudrate=self.settings.baudrate,
                timeout=self.settings.read_timeout_s,
            )
            self._serial.reset_input_buffer()
        except serial.SerialException as exc:  # pragma: no cover - hardware dependent
            self._serial = None
            raise DriverError(str(exc)) from exc
        self.port = port
        try:
            version = self._transact("V", expect_ok=False)
        except DriverError:
            self.close()
            raise
        self.version = version[0] if version else None
        logger.info("Connected to EBB on %s (%s)", port, self.version)
        return self

    def close(self) -> None:
        with self._lock:
            if self._serial:
                try:
                    if self._serial.is_open:
                        self._serial.close()
                finally:
                    self._serial = None
                    logger.info("Disconnected from EBB on %s", self.port)

    @property
    def is_connected(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    # -------- Low level I/O --------
    def _require_connection(self) -> serial.Serial:
        if not self._serial or not self._serial.is_open:
            raise NotConnectedError("talk to the EBB")
        return self._serial

    def _transact(self, command: str, *, expect_ok: bool = True) -> List[str]:
        """Send ``command`` and return the data lines of its reply."""

        with self._lock:
            ser = self._require_connection()
            logger.debug("-> %s", command)
            try:
                ser.write((command + "\r").encode("ascii"))
                ser.flush()
                return self._read_reply(ser, command, expect_ok)
            except serial.SerialException as exc:
                raise DriverError(f"{command}: {exc}") from exc

    def _read_reply(self, ser: serial.Serial, command: str, expect_ok: bool) -> List[str]:
        lines: List[str] = []
        t0 = time.monotonic()
        while True:
            raw = ser.readline().decode(errors="ignore").strip()
            if raw:
                logger.debug("<- %s", raw)
                if raw.startswith("!"):
                    raise DriverError(f"EBB rejected {command!r}: {raw}")
                if raw == "OK":
                    return lines
                lines.append(raw)
                if not expect_ok:
                    return lines
            if time.monotonic() - t0 > self.settings.read_timeout_s:
                raise DriverError(f"EBB did not answer {command!r} in time")

    # -------- Motors --------
    def set_motor_state(self, m1_mode: int, m2_mode: int) -> None:
        self._transact(f"EM,{int(m1_mode)},{int(m2_mode)}")

    def query_step_position(self) -> Tuple[int, int]:
        reply = self._transact("QS")
        try:
            m1, m2 = (int(v) for v in reply[0].split(",")[:2])
        except (IndexError, ValueError) as exc:
            raise DriverError(f"Malformed QS reply: {reply!r}") from exc
        return m1, m2

    def move_both_axes(self, duration_ms: float, steps_x: float, steps_y: float) -> None:
        duration = max(1, int(round(duration_ms)))
        self._transact(f"XM,{duration},{int(round(steps_x))},{int(round(steps_y))}")

    def emergency_stop(self) -> None:
        self._transact("ES")

    # -------- Pen / servos --------
    def set_pen_state(self, down: bool) -> None:
        self._transact("SP,0" if down else "SP,1")

    def query_pen_state(self) -> bool:
        """Return True when the pen is down."""

        reply = self._transact("QP")
        if not reply:
            raise DriverError("Empty QP reply")
        return reply[0].strip() == "0"

    def set_servo_position(self, position: int, channel: int, rate: int = 0) -> None:
        self._transact(f"S2,{int(position)},{int(channel)},{int(rate)}")

    # -------- Analog / memory --------
    def configure_analog_channel(self, channel: int, enabled: bool) -> None:
        self._transact(f"AC,{int(channel)},{1 if enabled else 0}")

    def read_analog_values(self) -> Dict[int, int]:
        reply = self._transact("A", expect_ok=False)
        values: Dict[int, int] = {}
        if not reply:
            return values
        try:
            for item in reply[0].split(",")[1:]:
                channel, raw = item.split(":")
                values[int(channel)] = int(raw)
        except ValueError as exc:
            raise DriverError(f"Malformed A reply: {reply[0]!r}") from exc
        return values

    def read_memory(self, address: int) -> int:
        reply = self._transact(f"MR,{int(address)}", expect_ok=False)
        try:
            return int(reply[0].split(",")[1])
        except (IndexError, ValueError) as exc:
            raise DriverError(f"Malformed MR reply: {reply!r}") from exc


__all__ = ["EiBotBoard", "find_ebb_port", "find_ebb_ports", "EBB_VID", "EBB_PID"]
