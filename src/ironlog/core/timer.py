"""
Rest clock: a cancellable, pausable, adjustable countdown.

The clock never sleeps itself.  It asks a ``Scheduler`` for a repeating
one-second tick and counts down on each tick, so the same logic runs on a
real background thread (``ThreadScheduler``) or on a manually advanced
virtual clock (``VirtualScheduler``) in tests.

State machine:

    idle ──start──▶ running ⇄ paused
      ▲                │  skip / remaining hits 0
      └──── done ◀─────┘

Every run captures a generation number; tearing down the tick source
bumps it, so a tick that was already in flight when ``stop``/``skip``
ran is ignored and can never produce a second done event.

Composite modes (EMOM, work/rest intervals) are driven by an explicit
``IntervalSequence`` that the clock advances each time a run finishes.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from .config import TICK_SECONDS, WARNING_CUE_SECONDS

logger = logging.getLogger(__name__)

ClockState = Literal["idle", "running", "paused"]
ClockMode = Literal["rest", "countdown", "emom", "interval"]
Phase = Literal["work", "rest"]

TickCallback = Callable[[int, int], None]
DoneCallback = Callable[[], None]
RoundCallback = Callable[[int, int], None]


class ClockStateError(RuntimeError):
    """Raised when a clock operation is not valid in the current state."""


# ---------------------------------------------------------------------------
# Tick sources
# ---------------------------------------------------------------------------


class TickHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval: float, callback: Callable[[], None]) -> TickHandle: ...


class _ThreadTicker:
    """Repeating callback on a daemon thread.  ``cancel`` is idempotent."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self._interval = interval
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="ironlog-tick", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        next_at = time.monotonic() + self._interval
        # Event.wait returns True as soon as the ticker is cancelled
        while not self._cancelled.wait(max(0.0, next_at - time.monotonic())):
            try:
                self._callback()
            except Exception:
                logger.exception("Tick callback failed; stopping tick source")
                self._cancelled.set()
                return
            next_at += self._interval


class ThreadScheduler:
    """Runs each tick source on its own daemon thread, off the caller's thread."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        ticker = _ThreadTicker(interval, callback)
        ticker.start()
        return ticker


class _VirtualTicker:
    def __init__(self, interval: float, callback: Callable[[], None], next_at: float):
        self.interval = interval
        self.callback = callback
        self.next_at = next_at
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """
    Manually advanced scheduler.

    ``advance(seconds)`` fires every tick that falls due inside the window,
    in time order, on the caller's thread.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._tickers: list[_VirtualTicker] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        ticker = _VirtualTicker(interval, callback, self.now + interval)
        self._tickers.append(ticker)
        return ticker

    @property
    def active(self) -> int:
        """Number of tick sources that have not been cancelled."""
        return sum(1 for t in self._tickers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            self._tickers = [t for t in self._tickers if not t.cancelled]
            due = [t for t in self._tickers if t.next_at <= target + 1e-9]
            if not due:
                break
            ticker = min(due, key=lambda t: t.next_at)
            self.now = ticker.next_at
            ticker.next_at += ticker.interval
            ticker.callback()
        self.now = target


# ---------------------------------------------------------------------------
# Cues and sequences
# ---------------------------------------------------------------------------


class ClockCues(Protocol):
    """Optional audio/haptic delegate; not part of the clock's correctness."""

    def warning(self, remaining: int) -> None:
        """Short beep near the end of a run; ``remaining == 0`` marks work→rest."""
        ...

    def round_complete(self) -> None: ...

    def complete(self) -> None:
        """Strong alert when a run or sequence finishes on its own."""
        ...


@dataclass
class IntervalSequence:
    """
    Round bookkeeping for EMOM and work/rest interval modes.

    ``mode``, ``total_rounds``, ``work_seconds`` and ``rest_seconds`` are
    fixed when the sequence starts; only the round and phase advance.
    """

    mode: ClockMode
    total_rounds: int
    work_seconds: int
    rest_seconds: int = 0
    current_round: int = 1
    phase: Phase = "work"

    def __post_init__(self) -> None:
        if self.total_rounds < 1:
            raise ValueError("total_rounds must be at least 1")
        if self.work_seconds <= 0:
            raise ValueError("work_seconds must be positive")
        if self.rest_seconds < 0:
            raise ValueError("rest_seconds must be non-negative")

    @property
    def is_last_round(self) -> bool:
        return self.current_round >= self.total_rounds


# ---------------------------------------------------------------------------
# Rest clock
# ---------------------------------------------------------------------------


class RestClock:
    """
    Countdown timer emitting ``on_tick(remaining, total)`` once a second
    and exactly one ``on_done()`` per finished run.

    A per-run completion callback can also be passed to ``start``; it
    fires just before ``on_done``.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        on_tick: TickCallback | None = None,
        on_done: DoneCallback | None = None,
        on_round_complete: RoundCallback | None = None,
        cues: ClockCues | None = None,
        tick_seconds: float = TICK_SECONDS,
    ):
        self.scheduler: Scheduler = scheduler if scheduler is not None else ThreadScheduler()
        self.on_tick = on_tick
        self.on_done = on_done
        self.on_round_complete = on_round_complete
        self.cues = cues
        self.tick_seconds = tick_seconds

        self.state: ClockState = "idle"
        self.mode: ClockMode = "rest"
        self.total_seconds = 0
        self.remaining = 0
        self.sequence: IntervalSequence | None = None

        self._handle: TickHandle | None = None
        self._generation = 0
        self._run_done: DoneCallback | None = None
        self._lock = threading.RLock()

    # -- properties ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    @property
    def is_active(self) -> bool:
        return self.state != "idle"

    @property
    def elapsed(self) -> int:
        """Seconds counted down so far in the current run."""
        return max(0, self.total_seconds - self.remaining)

    @property
    def current_round(self) -> int:
        return self.sequence.current_round if self.sequence else 0

    @property
    def total_rounds(self) -> int:
        return self.sequence.total_rounds if self.sequence else 0

    # -- simple mode --------------------------------------------------------

    def start(self, seconds: int, on_done: DoneCallback | None = None) -> None:
        """Start a rest countdown, replacing whatever the clock was doing."""
        with self._lock:
            self.sequence = None
            self.mode = "rest"
            self._begin_run(seconds, on_done)

    def start_countdown(self, seconds: int, on_done: DoneCallback | None = None) -> None:
        """Single countdown for a time-capped block (AMRAP)."""
        with self._lock:
            self.sequence = None
            self.mode = "countdown"
            self._begin_run(seconds, on_done)

    def pause(self) -> None:
        with self._lock:
            if self.state == "paused":
                return
            if self.state != "running":
                raise ClockStateError("Cannot pause: clock is not running")
            self._teardown()
            self.state = "paused"
            logger.debug("Clock paused at %ds", self.remaining)

    def resume(self) -> None:
        with self._lock:
            if self.state == "running":
                return
            if self.state != "paused":
                raise ClockStateError("Cannot resume: clock is not paused")
            self.state = "running"
            self._arm()
            logger.debug("Clock resumed at %ds", self.remaining)

    def stop(self) -> None:
        """Tear down the tick source and return to idle without a done event."""
        with self._lock:
            self._teardown()
            self.sequence = None
            self.mode = "rest"
            self.state = "idle"
            self.remaining = 0
            self._run_done = None

    def skip(self) -> None:
        """
        Finish the current run immediately.

        Fires the done callbacks but not the completion cue.  Inside an
        EMOM/interval sequence only the current phase is skipped.  A no-op
        when idle.
        """
        with self._lock:
            if self.state == "idle":
                return
            self._teardown()
            self._complete(natural=False)

    def adjust(self, delta_seconds: int) -> None:
        """
        Add (or with a negative delta remove) time from the current run.

        Emits a tick with the new values right away; reaching zero finishes
        the run.
        """
        with self._lock:
            if self.state == "idle":
                raise ClockStateError("Cannot adjust: clock is not running")
            self.total_seconds = max(0, self.total_seconds + delta_seconds)
            self.remaining = max(0, self.remaining + delta_seconds)
            self._emit_tick()
            if self.remaining == 0:
                self._teardown()
                self._complete(natural=True)

    # -- composite modes ----------------------------------------------------

    def start_emom(self, interval_seconds: int, rounds: int) -> None:
        """Every minute on the minute: ``rounds`` back-to-back intervals."""
        with self._lock:
            self.sequence = IntervalSequence(
                mode="emom", total_rounds=rounds, work_seconds=interval_seconds,
            )
            self.mode = "emom"
            self._begin_run(interval_seconds, None)

    def start_interval(self, work_seconds: int, rest_seconds: int, rounds: int) -> None:
        """Alternate work and rest phases for ``rounds`` rounds."""
        with self._lock:
            self.sequence = IntervalSequence(
                mode="interval",
                total_rounds=rounds,
                work_seconds=work_seconds,
                rest_seconds=rest_seconds,
            )
            self.mode = "interval"
            self._begin_run(work_seconds, None)

    # -- internals ----------------------------------------------------------

    def _begin_run(self, seconds: int, run_done: DoneCallback | None) -> None:
        self._teardown()
        self.total_seconds = max(0, int(seconds))
        self.remaining = self.total_seconds
        self._run_done = run_done
        self.state = "running"
        logger.debug("Clock started: %ds (%s)", self.total_seconds, self.mode)
        if self.remaining == 0:
            self._complete(natural=True)
            return
        self._arm()

    def _arm(self) -> None:
        self._generation += 1
        generation = self._generation
        self._handle = self.scheduler.call_every(
            self.tick_seconds, lambda: self._tick(generation)
        )

    def _teardown(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self.state != "running":
                return
            self.remaining = max(0, self.remaining - 1)
            self._emit_tick()
            if self.cues is not None and self.remaining in WARNING_CUE_SECONDS:
                self.cues.warning(self.remaining)
            if self.remaining == 0:
                self._teardown()
                self._complete(natural=True)

    def _emit_tick(self) -> None:
        if self.on_tick is not None:
            self.on_tick(self.remaining, self.total_seconds)

    def _complete(self, natural: bool) -> None:
        self.state = "idle"
        run_done, self._run_done = self._run_done, None

        if self.sequence is not None:
            self._advance_sequence(natural)
            return

        logger.debug("Clock done (%s)", "finished" if natural else "skipped")
        if natural and self.cues is not None:
            self.cues.complete()
        if run_done is not None:
            run_done()
        if self.on_done is not None:
            self.on_done()

    def _advance_sequence(self, natural: bool) -> None:
        seq = self.sequence
        assert seq is not None

        if seq.mode == "interval" and seq.phase == "work" and seq.rest_seconds > 0:
            seq.phase = "rest"
            if natural and self.cues is not None:
                self.cues.warning(0)
            self._begin_run(seq.rest_seconds, None)
            return

        if self.on_round_complete is not None:
            self.on_round_complete(seq.current_round, seq.total_rounds)

        if not seq.is_last_round:
            seq.current_round += 1
            seq.phase = "work"
            if self.cues is not None:
                self.cues.round_complete()
            self._begin_run(seq.work_seconds, None)
            return

        logger.debug("Sequence done after %d rounds", seq.total_rounds)
        self.sequence = None
        self.mode = "rest"
        if natural and self.cues is not None:
            self.cues.complete()
        if self.on_done is not None:
            self.on_done()
