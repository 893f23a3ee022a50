"""Typed telemetry snapshot model and decode schema."""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: type


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One decoded poll cycle. ``None`` means the provider did not report the field."""

    cpu_usage: float | None = None
    cpu_freq: float | None = None
    gpu_usage: float | None = None
    gpu_freq: float | None = None
    npu_usage: float | None = None
    npu_freq: float | None = None
    rga_usage: float | None = None
    rga_aclk_freq: float | None = None
    rga_core_freq: float | None = None
    rga_hclk_freq: float | None = None
    memory_usage: float | None = None
    swap_usage: float | None = None
    temperature: float | None = None
    fan_state: int | None = None
    timestamp: str | None = None

    def present_fields(self) -> frozenset[str]:
        return frozenset(f.name for f in fields(self) if getattr(self, f.name) is not None)

    def as_dict(self) -> dict[str, float | int | str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


SNAPSHOT_SCHEMA: tuple[FieldSpec, ...] = (
    FieldSpec("cpu_usage", float),
    FieldSpec("cpu_freq", float),
    FieldSpec("gpu_usage", float),
    FieldSpec("gpu_freq", float),
    FieldSpec("npu_usage", float),
    FieldSpec("npu_freq", float),
    FieldSpec("rga_usage", float),
    FieldSpec("rga_aclk_freq", float),
    FieldSpec("rga_core_freq", float),
    FieldSpec("rga_hclk_freq", float),
    FieldSpec("memory_usage", float),
    FieldSpec("swap_usage", float),
    FieldSpec("temperature", float),
    FieldSpec("fan_state", int),
    FieldSpec("timestamp", str),
)
