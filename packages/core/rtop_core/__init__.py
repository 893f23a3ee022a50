"""Core services: display model, refresh scheduling, settings and diagnostics."""

from .config import AppConfig, apply_env_overrides, load_config, save_config
from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .display_state import DisplayRow, DisplayState, DisplayUpdate, apply_snapshot, display_rows
from .history import HISTORY_LIMIT, MetricSeries, metric_series, padded_bounds
from .scheduler import CycleResult, RefreshScheduler, SchedulerState, SchedulerStatus

__all__ = [
    "AppConfig",
    "CycleResult",
    "DiagnosticsExporter",
    "DisplayRow",
    "DisplayState",
    "DisplayUpdate",
    "HISTORY_LIMIT",
    "MetricSeries",
    "RefreshScheduler",
    "SchedulerState",
    "SchedulerStatus",
    "apply_env_overrides",
    "apply_snapshot",
    "build_doctor_payload",
    "display_rows",
    "load_config",
    "metric_series",
    "padded_bounds",
    "save_config",
]
