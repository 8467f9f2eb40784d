"""Debounced background autosave.

Edits call :meth:`AutosaveScheduler.notify`; a worker thread waits until the
edits go quiet for ``debounce`` seconds (or until ``max_latency`` seconds
have passed since the first unsaved edit) and then runs the save callback.
Only one save runs at a time. Edits that arrive during a save leave the
scheduler dirty, which yields exactly one follow-up save.
"""
import logging
import threading
import time
from typing import Callable, Optional

from notekeeper.exceptions import StorageError

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Owns the pending save and the worker that performs it.

    Args:
        save: Callable that persists the current state. Raising
            ``StorageError`` triggers a retry with exponential backoff.
        debounce: Quiet period (seconds) after the last change.
        max_latency: Longest a change may wait for a save (seconds).
        max_retries: Retries after a failed save before giving up.
        retry_backoff: Delay before the first retry (seconds), doubled each time.
        enabled: Whether the worker saves on its own.
        on_success: Called after every successful save.
        on_failure: Called with the error when a save finally fails.
    """

    def __init__(
        self,
        save: Callable[[], None],
        debounce: float = 0.4,
        max_latency: float = 3.0,
        max_retries: int = 3,
        retry_backoff: float = 0.2,
        enabled: bool = True,
        on_success: Optional[Callable[[], None]] = None,
        on_failure: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        if max_latency < debounce:
            raise ValueError("max_latency must be >= debounce")
        self._save = save
        self.debounce = debounce
        self.max_latency = max_latency
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._on_success = on_success
        self._on_failure = on_failure

        self._cond = threading.Condition()
        self._enabled = enabled
        self._dirty = False
        self._unsaved_failure = False
        self._first_change = 0.0
        self._last_change = 0.0
        self._in_flight = False
        self._stopping = False
        self._thread: Optional[threading.Thread] = None

        self.save_count = 0
        self.failure_count = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending(self) -> bool:
        """True when there are changes not yet on disk."""
        with self._cond:
            return self._dirty or self._unsaved_failure

    @property
    def in_flight(self) -> bool:
        with self._cond:
            return self._in_flight

    def set_enabled(self, enabled: bool) -> None:
        with self._cond:
            self._enabled = enabled
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker thread (idempotent)."""
        with self._cond:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopping = False
            self._thread = threading.Thread(
                target=self._run, name="notekeeper-autosave", daemon=True
            )
            self._thread.start()

    def shutdown(self, final_save: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the worker, then optionally save synchronously.

        An in-flight save is allowed to finish first.

        Raises:
            StorageError: If the final save fails.
        """
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
        if final_save:
            self.flush()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def notify(self) -> None:
        """Record a change and (re)start the debounce timer."""
        with self._cond:
            now = time.monotonic()
            if not self._dirty:
                self._first_change = now
                self._dirty = True
            self._last_change = now
            self._cond.notify_all()

    def flush(self) -> None:
        """Save now on the calling thread, after any in-flight save.

        Raises:
            StorageError: If the save still fails after all retries.
        """
        with self._cond:
            while self._in_flight:
                self._cond.wait()
            self._begin_save()
        self._run_save(raise_errors=True)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or in flight.

        Returns:
            False if ``timeout`` elapsed first.
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._dirty and not self._in_flight, timeout
            )

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            with self._cond:
                while True:
                    if self._stopping:
                        return
                    if self._dirty and self._enabled and not self._in_flight:
                        remaining = self._seconds_until_due(time.monotonic())
                        if remaining <= 0:
                            break
                        self._cond.wait(remaining)
                    else:
                        self._cond.wait()
                self._begin_save()
            self._run_save(raise_errors=False)

    def _seconds_until_due(self, now: float) -> float:
        deadline = min(
            self._last_change + self.debounce,
            self._first_change + self.max_latency,
        )
        return deadline - now

    def _begin_save(self) -> None:
        # Caller holds the condition
        self._dirty = False
        self._unsaved_failure = False
        self._in_flight = True

    def _run_save(self, raise_errors: bool) -> None:
        error: Optional[Exception] = None
        try:
            self._save_with_retries()
        except Exception as e:
            error = e
        finally:
            with self._cond:
                self._in_flight = False
                if error is None:
                    self.save_count += 1
                else:
                    self.failure_count += 1
                    self._unsaved_failure = True
                self._cond.notify_all()

        if error is None:
            if self._on_success is not None:
                self._on_success()
            return

        if isinstance(error, StorageError):
            logger.error(f"Save failed after {self.max_retries} retries: {error}")
        else:
            logger.error("Save failed with an unexpected error", exc_info=error)
        if self._on_failure is not None:
            self._on_failure(error)
        if raise_errors:
            raise error

    def _save_with_retries(self) -> None:
        attempt = 0
        while True:
            try:
                self._save()
                return
            except StorageError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.retry_backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"Save attempt {attempt} failed: {e}; retrying in {delay:.2f}s"
                )
                time.sleep(delay)
