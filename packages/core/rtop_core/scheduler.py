"""Fixed-interval refresh scheduler with single-flight cycles and stale-but-valid display state."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from rtop_telemetry.errors import FetchError, MalformedPayload, ProviderUnavailable
from rtop_telemetry.fetcher import SnapshotFetcher
from rtop_telemetry.models import TelemetrySnapshot
from rtop_telemetry.provider import MetricsProvider, build_provider

from .config import DEFAULT_INTERVAL_MS, MIN_INTERVAL_MS, AppConfig
from .display_state import DisplayState, DisplayUpdate, apply_snapshot
from .history import HISTORY_LIMIT, MetricSeries, metric_series
from .logging_setup import EventRing, event_extra, get_logger


class SchedulerState(str, Enum):
    IDLE = "Idle"
    REFRESHING = "Refreshing"


@dataclass
class SchedulerStatus:
    state: SchedulerState = SchedulerState.IDLE
    cycles: int = 0
    successes: int = 0
    failures: dict[str, int] = field(default_factory=dict)
    skipped_ticks: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    last_success_utc: str | None = None
    last_duration_s: float = 0.0

    @property
    def failure_count(self) -> int:
        return sum(self.failures.values())

    def log_fields(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "cycles": self.cycles,
            "successes": self.successes,
            "failures": dict(self.failures),
            "skipped_ticks": self.skipped_ticks,
            "consecutive_failures": self.consecutive_failures,
        }


@dataclass(frozen=True)
class CycleResult:
    cycle: int
    ok: bool
    error: FetchError | None
    changed: frozenset[str]
    duration_s: float


DisplayListener = Callable[[DisplayUpdate], None]


class RefreshScheduler:
    """Owns the refresh cadence and the single current ``DisplayState``.

    ``tick`` runs one cycle synchronously and can be driven by hand, by a GUI
    timer, or by the background loop started with ``start``. At most one cycle
    is in flight; a tick that arrives while refreshing is skipped.

    Successful snapshots are kept in a rolling history (``history_limit``
    samples) for trend views.
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        initial_state: DisplayState | None = None,
        max_events: int = 1000,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.fetcher = fetcher
        self._interval_ms = max(MIN_INTERVAL_MS, int(interval_ms))
        self._display_state = initial_state or DisplayState()
        self._status = SchedulerStatus()
        self._events = EventRing(max_events)
        self._history: deque[TelemetrySnapshot] = deque(maxlen=max(1, int(history_limit)))
        self._listeners: list[DisplayListener] = []

        self._lock = threading.RLock()
        self._in_flight = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = get_logger("scheduler")

    @classmethod
    def from_config(cls, cfg: AppConfig, provider: MetricsProvider | None = None) -> "RefreshScheduler":
        provider = provider or build_provider(cfg.provider.kind, cfg.provider.library_path, cfg.provider.sysfs_root)
        return cls(
            SnapshotFetcher(provider),
            interval_ms=cfg.refresh.interval_ms,
            max_events=cfg.diagnostics.max_events,
            history_limit=cfg.ui.history_samples,
        )

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def set_interval(self, interval_ms: int) -> None:
        with self._lock:
            self._interval_ms = max(MIN_INTERVAL_MS, int(interval_ms))
            self._log_event("interval_changed", interval_ms=self._interval_ms)

    @property
    def display_state(self) -> DisplayState:
        with self._lock:
            return self._display_state

    @property
    def status(self) -> SchedulerStatus:
        with self._lock:
            return replace(self._status, failures=dict(self._status.failures))

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: DisplayListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: DisplayListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events.recent(limit)

    def history(self) -> list[TelemetrySnapshot]:
        """Successful snapshots, oldest first."""
        with self._lock:
            return list(self._history)

    def series(self, metric: str) -> MetricSeries:
        return metric_series(self.history(), metric, interval_s=self._interval_ms / 1000.0)

    def log_summary(self, message: str = "refresh summary", level: int = logging.INFO) -> None:
        status = self.status
        self._logger.log(level, message, extra=event_extra("scheduler_summary", history=len(self._history), **status.log_fields()))

    def _log_event(self, event: str, **fields: Any) -> None:
        with self._lock:
            self._events.record(event, state=self._status.state.value, **fields)

    def tick(self) -> CycleResult | None:
        if not self._in_flight.acquire(blocking=False):
            with self._lock:
                self._status.skipped_ticks += 1
                self._log_event("tick_skipped")
            self._logger.debug("tick skipped, refresh in flight", extra=event_extra("tick_skipped"))
            return None

        try:
            return self._refresh()
        finally:
            with self._lock:
                self._status.state = SchedulerState.IDLE
            self._in_flight.release()

    def _fetch(self):
        try:
            return self.fetcher.fetch()
        except Exception as exc:
            self._logger.exception("provider raised during fetch", extra=event_extra("fetch_exception"))
            return ProviderUnavailable(f"provider raised {type(exc).__name__}: {exc}")

    def _refresh(self) -> CycleResult:
        with self._lock:
            self._status.state = SchedulerState.REFRESHING
            self._status.cycles += 1
            cycle = self._status.cycles

        start = time.perf_counter()
        result = self._fetch()

        if isinstance(result, FetchError):
            elapsed = time.perf_counter() - start
            self._record_failure(cycle, result, elapsed)
            return CycleResult(cycle=cycle, ok=False, error=result, changed=frozenset(), duration_s=elapsed)

        with self._lock:
            state, changed = apply_snapshot(self._display_state, result)
            self._display_state = state
            self._history.append(result)
            recovered_after = self._status.consecutive_failures
            self._status.successes += 1
            self._status.consecutive_failures = 0
            self._status.last_success_utc = datetime.now(timezone.utc).isoformat()
            elapsed = time.perf_counter() - start
            self._status.last_duration_s = elapsed
            self._log_event("refresh_ok", cycle=cycle, changed=sorted(changed), duration_s=elapsed)

        if recovered_after:
            self._logger.info(
                f"refresh recovered after {recovered_after} failed cycles",
                extra=event_extra("refresh_recovered", cycle=cycle, consecutive_failures=recovered_after),
            )
        self._notify(DisplayUpdate(state=state, changed=changed, cycle=cycle))
        return CycleResult(cycle=cycle, ok=True, error=None, changed=changed, duration_s=elapsed)

    def _record_failure(self, cycle: int, error: FetchError, elapsed: float) -> None:
        with self._lock:
            self._status.failures[error.kind] = self._status.failures.get(error.kind, 0) + 1
            self._status.consecutive_failures += 1
            self._status.last_error = f"{error.kind}: {error.reason}"
            self._status.last_duration_s = elapsed
            streak = self._status.consecutive_failures
            self._log_event("refresh_failed", cycle=cycle, kind=error.kind, error=error.reason)

        extra = event_extra("fetch_unavailable", cycle=cycle, kind=error.kind, reason=error.reason, consecutive_failures=streak)
        if isinstance(error, MalformedPayload):
            extra["event"] = "fetch_malformed"
            self._logger.warning(f"malformed telemetry payload: {error.reason}", extra=extra)
        elif streak == 1:
            self._logger.info(f"telemetry provider unavailable: {error.reason}", extra=extra)
        else:
            self._logger.debug(f"telemetry provider still unavailable: {error.reason}", extra=extra)

    def _notify(self, update: DisplayUpdate) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(update)
            except Exception:
                self._logger.exception("display listener failed", extra=event_extra("listener_error", cycle=update.cycle))
                self._log_event("listener_error", cycle=update.cycle)

    def run(self, stop_event: threading.Event | None = None, max_cycles: int | None = None) -> int:
        """Tick every interval until stopped. The first tick fires after one interval."""
        stop = stop_event or self._stop
        count = 0
        self._log_event("loop_start", interval_ms=self._interval_ms)
        while not stop.wait(self._interval_ms / 1000.0):
            try:
                self.tick()
            except Exception:
                self._logger.exception("refresh cycle failed", extra=event_extra("cycle_exception"))
            count += 1
            if max_cycles is not None and count >= max_cycles:
                break
        self._log_event("loop_stop", cycles=count)
        return count

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self.run, name="rtop-refresh", daemon=True)
            self._thread.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
