"""Strictly sequential execution of device commands.

Every physically observable action on the plotter is wrapped in a callable and
submitted to a :class:`CommandQueue`.  A single worker thread owns the device
while it runs: it executes commands in submission order, resolves each
command's future, and moves on to the next one whether the command succeeded
or raised.  The worker is started on demand by :meth:`CommandQueue.enqueue`
and exits as soon as the queue runs dry.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Command:
    """A queued unit of device work and the future its caller waits on."""

    fn: Callable[[], Any]
    label: str
    future: Future = field(default_factory=Future)


class CommandQueue:
    """FIFO gate allowing at most one command in flight at a time."""

    def __init__(self, name: str = "axidraw") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending: Deque[Command] = deque()
        self._active: Optional[Command] = None
        self._worker: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def enqueue(self, fn: Callable[[], Any], *, label: Optional[str] = None) -> Future:
        """Append ``fn`` to the queue and return a future for its result.

        Returns immediately.  ``fn`` runs once every command submitted before
        it has completed.
        """

        command = Command(fn=fn, label=label or getattr(fn, "__name__", "command"))
        with self._lock:
            self._pending.append(command)
            pending = len(self._pending)
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run, name=f"{self.name}-commands", daemon=True
                )
                self._worker.start()
        logger.debug("Queued %s (%d pending)", command.label, pending)
        return command.future

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def is_busy(self) -> bool:
        with self._lock:
            return self._active is not None or bool(self._pending)

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        with self._idle:
            idle = self._idle.wait_for(
                lambda: self._active is None and not self._pending, timeout
            )
        if not idle:
            raise TimeoutError(f"{self.name} command queue did not become idle in time.")

    def clear(self) -> List[Command]:
        """Drop every command that has not started yet.

        Dropped futures are cancelled.  A command already in flight cannot be
        recalled; it is detached so the queue reports idle, but it still runs
        to completion and later submissions wait for it.
        """

        with self._lock:
            dropped = list(self._pending)
            self._pending.clear()
            self._active = None
            self._idle.notify_all()
        for command in dropped:
            command.future.cancel()
        if dropped:
            logger.debug("Dropped %d queued command(s)", len(dropped))
        return dropped

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _run(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._worker = None
                    self._idle.notify_all()
                    return
                command = self._pending.popleft()
                self._active = command
            self._execute(command)
            with self._lock:
                if self._active is command:
                    self._active = None

    @staticmethod
    def _execute(command: Command) -> None:
        if not command.future.set_running_or_notify_cancel():
            return
        logger.debug("Running %s", command.label)
        try:
            result = command.fn()
        except Exception as exc:
            logger.error("Command %s failed: %s", command.label, exc)
            command.future.set_exception(exc)
        else:
            command.future.set_result(result)


__all__ = ["Command", "CommandQueue"]
