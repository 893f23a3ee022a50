"""Display model and the snapshot-to-gauge mapping table."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable

from rtop_telemetry.models import TelemetrySnapshot


HZ_PER_GHZ = 1_000_000_000
MILLIDEGREES_PER_DEGREE = 1000.0
DEFAULT_FAN_MAX_LEVEL = 4


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def format_frequency(hz: float) -> str:
    return f"{hz / HZ_PER_GHZ:.2f} GHz"


def temperature_gauge(millidegrees: float) -> float:
    return millidegrees / MILLIDEGREES_PER_DEGREE


def format_temperature(millidegrees: float) -> str:
    return f"{temperature_gauge(millidegrees):.1f} °C"


@dataclass(frozen=True)
class DisplayState:
    """Last rendered value per indicator. Labels are ``None`` until first seen."""

    cpu_gauge: float = 0.0
    cpu_label: str | None = None
    gpu_gauge: float = 0.0
    gpu_label: str | None = None
    npu_gauge: float = 0.0
    npu_label: str | None = None
    rga_gauge: float = 0.0
    rga_label: str | None = None
    memory_gauge: float = 0.0
    swap_gauge: float = 0.0
    temperature_gauge: float = 0.0
    temperature_label: str | None = None
    fan_gauge: int = 0


@dataclass(frozen=True)
class FieldMapping:
    source: str
    target: str
    transform: Callable[[Any], Any]


FIELD_MAP: tuple[FieldMapping, ...] = (
    FieldMapping("cpu_usage", "cpu_gauge", clamp_percent),
    FieldMapping("cpu_freq", "cpu_label", format_frequency),
    FieldMapping("gpu_usage", "gpu_gauge", clamp_percent),
    FieldMapping("gpu_freq", "gpu_label", format_frequency),
    FieldMapping("npu_usage", "npu_gauge", clamp_percent),
    FieldMapping("npu_freq", "npu_label", format_frequency),
    FieldMapping("rga_usage", "rga_gauge", clamp_percent),
    FieldMapping("rga_aclk_freq", "rga_label", format_frequency),
    FieldMapping("memory_usage", "memory_gauge", clamp_percent),
    FieldMapping("swap_usage", "swap_gauge", clamp_percent),
    FieldMapping("temperature", "temperature_gauge", temperature_gauge),
    FieldMapping("temperature", "temperature_label", format_temperature),
    FieldMapping("fan_state", "fan_gauge", int),
)


def apply_snapshot(state: DisplayState, snapshot: TelemetrySnapshot) -> tuple[DisplayState, frozenset[str]]:
    """Return the next display state and the names of entries whose value changed.

    Fields missing from ``snapshot`` keep their previous entry.
    """
    updates: dict[str, Any] = {}
    for mapping in FIELD_MAP:
        value = getattr(snapshot, mapping.source)
        if value is None:
            continue
        updates[mapping.target] = mapping.transform(value)

    changed = frozenset(name for name, value in updates.items() if getattr(state, name) != value)
    if not changed:
        return state, changed
    return dataclasses.replace(state, **updates), changed


@dataclass(frozen=True)
class DisplayUpdate:
    state: DisplayState
    changed: frozenset[str]
    cycle: int


@dataclass(frozen=True)
class DisplayRow:
    key: str
    title: str
    gauge: float
    gauge_max: float
    label: str | None


def display_rows(state: DisplayState, fan_max_level: int = DEFAULT_FAN_MAX_LEVEL) -> list[DisplayRow]:
    return [
        DisplayRow("cpu", "CPU", state.cpu_gauge, 100.0, state.cpu_label),
        DisplayRow("gpu", "GPU", state.gpu_gauge, 100.0, state.gpu_label),
        DisplayRow("npu", "NPU", state.npu_gauge, 100.0, state.npu_label),
        DisplayRow("rga", "RGA", state.rga_gauge, 100.0, state.rga_label),
        DisplayRow("memory", "MEM", state.memory_gauge, 100.0, None),
        DisplayRow("swap", "SWAP", state.swap_gauge, 100.0, None),
        DisplayRow("temperature", "TEMP", state.temperature_gauge, 100.0, state.temperature_label),
        DisplayRow("fan", "FAN", float(state.fan_gauge), float(max(1, fan_max_level)), None),
    ]
