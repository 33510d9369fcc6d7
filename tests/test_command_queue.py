"""Tests for the sequential command queue."""

from __future__ import annotations

import random
import threading
import time
from concurrent.futures import CancelledError

import pytest

from axiplot.command_queue import CommandQueue


def _recorder():
    order = []
    lock = threading.Lock()
    live = {"now": 0, "max": 0}

    def make(i, delay=0.0):
        def run():
            with lock:
                live["now"] += 1
                live["max"] = max(live["max"], live["now"])
            time.sleep(delay)
            with lock:
                order.append(i)
                live["now"] -= 1
            return i

        return run

    return order, live, make


class TestOrdering:
    def test_completes_in_submission_order(self):
        queue = CommandQueue()
        order, live, make = _recorder()
        rng = random.Random(7)
        futures = [queue.enqueue(make(i, rng.uniform(0, 0.003))) for i in range(40)]

        assert [f.result(timeout=5) for f in futures] == list(range(40))
        assert order == list(range(40))
        assert live["max"] == 1

    def test_concurrent_submitters_never_overlap(self):
        queue = CommandQueue()
        order, live, make = _recorder()
        submitted = []
        submit_lock = threading.Lock()

        def submitter(base):
            for i in range(10):
                with submit_lock:
                    submitted.append(base + i)
                    queue.enqueue(make(base + i, 0.001))

        threads = [threading.Thread(target=submitter, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        queue.wait_idle(timeout=5)

        assert order == submitted
        assert live["max"] == 1

    def test_enqueue_does_not_block(self):
        queue = CommandQueue()
        gate = threading.Event()
        first = queue.enqueue(lambda: gate.wait(5))
        t0 = time.monotonic()
        second = queue.enqueue(lambda: "second")
        assert time.monotonic() - t0 < 0.5
        assert not second.done()
        gate.set()
        assert first.result(timeout=5) is True
        assert second.result(timeout=5) == "second"


class TestFailures:
    def test_failure_reaches_its_caller_only_and_queue_advances(self):
        queue = CommandQueue()

        def boom():
            raise RuntimeError("driver fault")

        failing = queue.enqueue(boom)
        after = queue.enqueue(lambda: 42)

        with pytest.raises(RuntimeError, match="driver fault"):
            failing.result(timeout=5)
        assert after.result(timeout=5) == 42
        queue.wait_idle(timeout=5)
        assert not queue.is_busy()


class TestBusyAndClear:
    def test_busy_while_work_outstanding(self):
        queue = CommandQueue()
        gate = threading.Event()
        queue.enqueue(lambda: gate.wait(5))
        assert queue.is_busy()
        gate.set()
        queue.wait_idle(timeout=5)
        assert not queue.is_busy()

    def test_clear_cancels_pending_and_keeps_in_flight(self):
        queue = CommandQueue()
        gate = threading.Event()
        started = threading.Event()
        ran = []

        def blocker():
            started.set()
            gate.wait(5)
            return "done"

        in_flight = queue.enqueue(blocker)
        started.wait(5)
        pending = [queue.enqueue(lambda i=i: ran.append(i), label=f"p{i}") for i in range(3)]
        assert len(queue) == 3

        dropped = queue.clear()

        assert [c.label for c in dropped] == ["p0", "p1", "p2"]
        assert not queue.is_busy()
        assert all(f.cancelled() for f in pending)
        with pytest.raises(CancelledError):
            pending[0].result(timeout=1)

        gate.set()
        assert in_flight.result(timeout=5) == "done"
        queue.wait_idle(timeout=5)
        assert ran == []

    def test_submission_after_clear_waits_for_detached_command(self):
        queue = CommandQueue()
        gate = threading.Event()
        started = threading.Event()
        events = []

        def blocker():
            started.set()
            gate.wait(5)
            events.append("blocker")

        queue.enqueue(blocker)
        started.wait(5)
        queue.clear()
        follow_up = queue.enqueue(lambda: events.append("follow-up"))
        assert queue.is_busy()
        time.sleep(0.02)
        assert events == []
        gate.set()
        follow_up.result(timeout=5)
        assert events == ["blocker", "follow-up"]

    def test_wait_idle_times_out(self):
        queue = CommandQueue()
        gate = threading.Event()
        queue.enqueue(lambda: gate.wait(5))
        with pytest.raises(TimeoutError):
            queue.wait_idle(timeout=0.05)
        gate.set()
        queue.wait_idle(timeout=5)
