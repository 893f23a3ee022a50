"""Rolling sample history and chart series for trend views."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from rtop_telemetry.models import SNAPSHOT_SCHEMA, TelemetrySnapshot


HISTORY_LIMIT = 600
HZ_PER_MHZ = 1_000_000
BOUNDS_PADDING = 0.1
FLAT_HEADROOM = 10.0


def _freq_mhz(value: float) -> float:
    return value / HZ_PER_MHZ


def _degrees(value: float) -> float:
    return value / 1000.0


# Chart units: frequencies in MHz, temperature in degrees, the rest as reported.
CHART_TRANSFORMS: dict[str, Callable[[float], float]] = {
    "cpu_freq": _freq_mhz,
    "gpu_freq": _freq_mhz,
    "npu_freq": _freq_mhz,
    "rga_aclk_freq": _freq_mhz,
    "rga_core_freq": _freq_mhz,
    "rga_hclk_freq": _freq_mhz,
    "temperature": _degrees,
}

CHART_METRICS = tuple(spec.name for spec in SNAPSHOT_SCHEMA if spec.kind is not str)


@dataclass(frozen=True)
class MetricSeries:
    metric: str
    points: tuple[tuple[float, float], ...]
    bounds: tuple[float, float]

    @property
    def latest(self) -> float | None:
        return self.points[-1][1] if self.points else None


def padded_bounds(values: Sequence[float]) -> tuple[float, float]:
    """Y-axis bounds with 10% padding, floored at zero.

    A flat series gets ``(0, value + 10)`` so the line sits inside the chart.
    """
    if not values:
        return (0.0, FLAT_HEADROOM)
    low = min(values)
    high = max(values)
    if high == low:
        return (0.0, high + FLAT_HEADROOM)
    padding = (high - low) * BOUNDS_PADDING
    return (max(low - padding, 0.0), high + padding)


def metric_series(history: Iterable[TelemetrySnapshot], metric: str, interval_s: float = 1.0) -> MetricSeries:
    """(seconds, value) points for one metric plus padded y-axis bounds.

    Samples where the metric was absent are skipped; their slot still
    advances the time axis.
    """
    if metric not in CHART_METRICS:
        raise ValueError(f"Unknown chart metric: {metric}")

    transform = CHART_TRANSFORMS.get(metric, float)
    points: list[tuple[float, float]] = []
    for index, snap in enumerate(history):
        raw = getattr(snap, metric)
        if raw is None:
            continue
        points.append((index * interval_s, float(transform(raw))))

    return MetricSeries(metric=metric, points=tuple(points), bounds=padded_bounds([v for _, v in points]))
