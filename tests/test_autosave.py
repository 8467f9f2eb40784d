"""Tests for the debounced autosave scheduler."""
import threading
import time

import pytest

from notekeeper.exceptions import StorageIOError
from notekeeper.services.autosave import AutosaveScheduler


def _eventually(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class RecordingSave:
    """Save callable that counts calls and can fail or block on demand."""

    def __init__(self, failures=0, gate=None):
        self.calls = 0
        self.failures = failures
        self.gate = gate
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            fail = self.calls <= self.failures
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if fail:
            raise StorageIOError("simulated write failure")


@pytest.fixture
def make_scheduler():
    created = []

    def factory(save, **kwargs):
        kwargs.setdefault("debounce", 0.05)
        kwargs.setdefault("max_latency", 2.0)
        kwargs.setdefault("retry_backoff", 0.001)
        scheduler = AutosaveScheduler(save, **kwargs)
        scheduler.start()
        created.append(scheduler)
        return scheduler

    yield factory
    for scheduler in created:
        scheduler.shutdown(final_save=False, timeout=5)


class TestDebounce:
    """Tests for coalescing and timing."""

    def test_rapid_changes_produce_one_save(self, make_scheduler):
        save = RecordingSave()
        scheduler = make_scheduler(save, debounce=0.2)
        for _ in range(20):
            scheduler.notify()
        assert scheduler.wait_idle(timeout=5)
        assert save.calls == 1
        assert scheduler.save_count == 1
        assert not scheduler.pending

    def test_no_save_without_changes(self, make_scheduler):
        save = RecordingSave()
        make_scheduler(save)
        time.sleep(0.2)
        assert save.calls == 0

    def test_separate_bursts_save_separately(self, make_scheduler):
        save = RecordingSave()
        scheduler = make_scheduler(save)
        scheduler.notify()
        assert scheduler.wait_idle(timeout=5)
        scheduler.notify()
        assert scheduler.wait_idle(timeout=5)
        assert save.calls == 2

    def test_max_latency_forces_save_during_continuous_edits(self, make_scheduler):
        save = RecordingSave()
        scheduler = make_scheduler(save, debounce=0.2, max_latency=0.3)
        deadline = time.monotonic() + 1.0
        while time.monotonic() < deadline and save.calls == 0:
            scheduler.notify()
            time.sleep(0.02)
        assert save.calls >= 1

    def test_change_during_save_coalesces_into_one_follow_up(self, make_scheduler):
        gate = threading.Event()
        save = RecordingSave(gate=gate)
        scheduler = make_scheduler(save, debounce=0.01)
        scheduler.notify()
        assert save.started.wait(5)
        assert scheduler.in_flight
        for _ in range(10):
            scheduler.notify()
        gate.set()
        assert scheduler.wait_idle(timeout=5)
        assert save.calls == 2

    def test_disabled_scheduler_does_not_save(self, make_scheduler):
        save = RecordingSave()
        scheduler = make_scheduler(save, enabled=False)
        scheduler.notify()
        time.sleep(0.2)
        assert save.calls == 0
        assert scheduler.pending
        scheduler.set_enabled(True)
        assert scheduler.wait_idle(timeout=5)
        assert save.calls == 1

    def test_invalid_timing(self):
        with pytest.raises(ValueError):
            AutosaveScheduler(lambda: None, debounce=1.0, max_latency=0.5)


class TestFailures:
    """Tests for retries and failure reporting."""

    def test_retry_then_success(self, make_scheduler):
        save = RecordingSave(failures=2)
        scheduler = make_scheduler(save, max_retries=3)
        scheduler.notify()
        assert scheduler.wait_idle(timeout=5)
        assert save.calls == 3
        assert scheduler.save_count == 1
        assert scheduler.failure_count == 0

    def test_exhausted_retries_report_failure(self, make_scheduler):
        failures = []
        save = RecordingSave(failures=100)
        scheduler = make_scheduler(save, max_retries=2, on_failure=failures.append)
        scheduler.notify()
        assert _eventually(lambda: failures)
        assert save.calls == 3
        assert len(failures) == 1
        assert isinstance(failures[0], StorageIOError)
        # The data is still unsaved
        assert scheduler.pending

    def test_flush_raises_after_retries(self, make_scheduler):
        save = RecordingSave(failures=100)
        scheduler = make_scheduler(save, max_retries=1)
        with pytest.raises(StorageIOError):
            scheduler.flush()
        assert scheduler.failure_count == 1


class TestFlushAndShutdown:
    """Tests for synchronous saves."""

    def test_flush_saves_immediately(self, make_scheduler):
        successes = []
        save = RecordingSave()
        scheduler = make_scheduler(save, debounce=10, max_latency=20,
                                   on_success=lambda: successes.append(1))
        scheduler.notify()
        scheduler.flush()
        assert save.calls == 1
        assert successes == [1]
        assert not scheduler.pending

    def test_flush_waits_for_in_flight_save(self, make_scheduler):
        gate = threading.Event()
        save = RecordingSave(gate=gate)
        scheduler = make_scheduler(save, debounce=0.01)
        scheduler.notify()
        assert save.started.wait(5)
        threading.Timer(0.1, gate.set).start()
        scheduler.flush()
        assert save.calls == 2

    def test_shutdown_performs_final_save(self):
        save = RecordingSave()
        scheduler = AutosaveScheduler(save, debounce=10, max_latency=20)
        scheduler.start()
        scheduler.notify()
        scheduler.shutdown(final_save=True, timeout=5)
        assert save.calls == 1
        assert not scheduler.pending
