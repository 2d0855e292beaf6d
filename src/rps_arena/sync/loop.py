"""Synchronization loop — the single read path for game state.

Every view the presentation layer shows comes from ``poll``: read the
ledger, check whether a local secret exists, project. Polls for the same
intent never overlap; a per-intent lock serializes them so a slow, late
response cannot clobber a newer one. Explicit polls wait their turn,
while auto-refresh ticks skip when a poll is already in flight.

The first time a game is observed COMPLETED, exactly one completion
notification is emitted. Later polls of the same finished game stay
quiet unless the caller re-arms it with ``rerender``.

Poll failures are transient. ``poll`` raises SynchronizationError; the
auto-refresh task logs it, reports it through ``on_error`` and carries on
with the next tick.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from rps_arena.crypto.commitment import CommitmentManager
from rps_arena.engine.state_machine import GameStateMachine
from rps_arena.errors import SynchronizationError
from rps_arena.ledger.client import Ledger
from rps_arena.models.game import GameView


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0

ViewCallback = Callable[[GameView], None]
ErrorCallback = Callable[[SynchronizationError], None]


class AutoRefreshTask:
    """Cancellable background task polling one intent on a fixed interval."""

    def __init__(
        self,
        intent_id: str,
        interval: float,
        tick: Callable[[str], Optional[GameView]],
        immediate: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        self.intent_id = intent_id
        self.interval = interval
        self._tick = tick
        self._immediate = immediate
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"rps-refresh-{intent_id[:10]}",
            daemon=True,
        )

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop the task. Cancelling a stopped task is a no-op."""
        self._stopped.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        if self._immediate:
            self._safe_tick()
        while not self._stopped.wait(self.interval):
            self._safe_tick()

    def _safe_tick(self) -> None:
        try:
            self._tick(self.intent_id)
        except Exception:
            # Presentation callbacks must not kill the refresh thread.
            logger.exception("Auto-refresh tick for %s failed", self.intent_id)


class SyncLoop:
    """Polls the ledger and feeds fresh state into the game projection.

    Usage:
        loop = SyncLoop(ledger, commitments, viewer=address,
                        on_update=render, on_complete=show_result)
        view = loop.poll(intent_hash)
        loop.start_auto_refresh(intent_hash, interval=10)
        ...
        loop.stop()
    """

    def __init__(
        self,
        ledger: Ledger,
        commitments: CommitmentManager,
        viewer: str,
        *,
        on_update: Optional[ViewCallback] = None,
        on_complete: Optional[ViewCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._commitments = commitments
        self._viewer = viewer
        self._on_update = on_update
        self._on_complete = on_complete
        self._on_error = on_error
        self._clock = clock

        self._guard = threading.Lock()
        self._poll_locks: dict[str, threading.Lock] = {}
        self._views: dict[str, GameView] = {}
        self._notified: set[str] = set()
        self._task: Optional[AutoRefreshTask] = None

    @property
    def viewer(self) -> str:
        return self._viewer

    @property
    def active_intent(self) -> Optional[str]:
        task = self._task
        return task.intent_id if task is not None and task.active else None

    def last_view(self, intent_id: str) -> Optional[GameView]:
        with self._guard:
            return self._views.get(intent_id.lower())

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll(self, intent_id: str) -> GameView:
        """Fetch, project and return the current view of ``intent_id``.

        Waits for any in-flight poll of the same intent to finish first.
        """
        with self._lock_for(intent_id):
            return self._poll_locked(intent_id)

    def refresh_once(self, intent_id: str) -> Optional[GameView]:
        """One auto-refresh tick. Skips if a poll is in flight; never raises
        SynchronizationError."""
        lock = self._lock_for(intent_id)
        if not lock.acquire(blocking=False):
            logger.debug("Poll for %s still in flight; skipping tick", intent_id)
            return None
        try:
            return self._poll_locked(intent_id)
        except SynchronizationError as exc:
            logger.warning("%s", exc)
            if self._on_error is not None:
                self._on_error(exc)
            return None
        finally:
            lock.release()

    def rerender(self, intent_id: str) -> None:
        """Re-arm the completion notification for ``intent_id``."""
        with self._guard:
            self._notified.discard(intent_id.lower())

    # ------------------------------------------------------------------
    # Auto-refresh
    # ------------------------------------------------------------------

    def start_auto_refresh(
        self,
        intent_id: str,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        immediate: bool = False,
    ) -> AutoRefreshTask:
        """Poll ``intent_id`` every ``interval`` seconds until stopped.

        Replaces any task already running; only one game is displayed at
        a time.
        """
        self.stop()
        task = AutoRefreshTask(intent_id, interval, self.refresh_once, immediate=immediate)
        self._task = task
        task.start()
        logger.info("Auto-refresh every %.1fs for %s", interval, intent_id)
        return task

    def stop(self) -> None:
        """Cancel auto-refresh. Stopping a stopped loop is a no-op."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel(timeout=task.interval + 1.0)
            logger.info("Auto-refresh stopped for %s", task.intent_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, intent_id: str) -> threading.Lock:
        key = intent_id.lower()
        with self._guard:
            lock = self._poll_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._poll_locks[key] = lock
            return lock

    def _poll_locked(self, intent_id: str) -> GameView:
        try:
            raw = self._ledger.get_game(intent_id)
        except Exception as exc:
            raise SynchronizationError(intent_id, exc) from exc

        view = GameStateMachine.project(
            raw,
            self._viewer,
            now=int(self._clock()),
            has_secret=self._commitments.has_secret(intent_id),
            intent_id=intent_id,
        )

        key = intent_id.lower()
        with self._guard:
            self._views[key] = view
            first_completion = view.completed and key not in self._notified
            if first_completion:
                self._notified.add(key)

        logger.debug("Polled %s: phase=%s", intent_id, view.phase.name)
        if self._on_update is not None:
            self._on_update(view)
        if first_completion:
            logger.info("Game %s completed: %s", intent_id, view.result.name)
            if self._on_complete is not None:
                self._on_complete(view)
        return view
