"""Metrics providers producing the JSON snapshot payload."""

from __future__ import annotations

import ctypes
import ctypes.util
import json
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

import psutil


PROVIDER_KINDS = ("sysfs", "library")
DEFAULT_LIBRARY_NAME = "rtop_rust"
DEVICE_COMPATIBLE = "sys/firmware/devicetree/base/compatible"
UNKNOWN_DEVICE = "Unknown"

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")


@dataclass
class PayloadBuffer:
    data: bytes
    handle: Any = None


class MetricsProvider:
    """Request/release contract with a metrics source.

    ``request`` returns ``None`` when the source has nothing to report. Every
    buffer it returns must go back through ``release`` exactly once, which
    ``acquire`` guarantees on all exit paths.
    """

    name = "base"

    def request(self) -> PayloadBuffer | None:
        raise NotImplementedError

    def release(self, buffer: PayloadBuffer) -> None:
        return None

    @contextmanager
    def acquire(self) -> Iterator[PayloadBuffer | None]:
        buffer = self.request()
        try:
            yield buffer
        finally:
            if buffer is not None:
                self.release(buffer)


class NativeLibraryProvider(MetricsProvider):
    """Binds ``get_system_metrics_json`` / ``free_string`` from the native collector."""

    name = "library"

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self._lib: ctypes.CDLL | None = None

    def _load(self) -> ctypes.CDLL:
        if self._lib is not None:
            return self._lib

        path = self.path or ctypes.util.find_library(DEFAULT_LIBRARY_NAME)
        if not path:
            raise OSError(f"native metrics library '{DEFAULT_LIBRARY_NAME}' not found")

        lib = ctypes.CDLL(path)
        try:
            # c_void_p keeps the raw pointer so it can be handed back to free_string.
            lib.get_system_metrics_json.restype = ctypes.c_void_p
            lib.get_system_metrics_json.argtypes = []
            lib.free_string.restype = None
            lib.free_string.argtypes = [ctypes.c_void_p]
        except AttributeError as exc:
            raise OSError(f"{path} does not export the metrics ABI: {exc}") from exc
        self._lib = lib
        return lib

    def request(self) -> PayloadBuffer | None:
        lib = self._load()
        ptr = lib.get_system_metrics_json()
        if not ptr:
            return None
        return PayloadBuffer(data=ctypes.string_at(ptr), handle=ptr)

    def release(self, buffer: PayloadBuffer) -> None:
        if buffer.handle is None:
            return
        self._load().free_string(buffer.handle)
        buffer.handle = None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def _read_int(path: Path) -> int | None:
    text = _read_text(path)
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def _load_percent(text: str | None, marker: str) -> float | None:
    if text is None:
        return None
    for line in text.splitlines():
        if marker not in line:
            continue
        values = [float(v) for v in _PERCENT_RE.findall(line)]
        if values:
            # Multi-core NPUs report one percentage per core on the same line.
            return sum(values) / len(values)
    return None


def read_device_info(root: str | Path = "/") -> str:
    """Board identity from the devicetree ``compatible`` list, e.g. ``radxa,rock-5b, rockchip,rk3588``."""
    text = _read_text(Path(root) / DEVICE_COMPATIBLE)
    if text is None:
        return UNKNOWN_DEVICE
    entries = [entry.strip() for entry in text.split("\0") if entry.strip()]
    return ", ".join(entries) if entries else UNKNOWN_DEVICE


class SysfsProvider(MetricsProvider):
    """In-process collector for RK3588-class boards, emitting the native JSON payload.

    Sources that cannot be read are left out of the payload instead of being
    reported as zero.
    """

    name = "sysfs"

    GPU_DEVFREQ = "sys/class/devfreq/ff700000.gpu"
    NPU_DEVFREQ = "sys/class/devfreq/fdab0000.npu"
    NPU_LOAD = "sys/kernel/debug/rknpu/load"
    RGA_LOAD = "sys/kernel/debug/rkrga/load"
    CLK_SUMMARY = "sys/kernel/debug/clk/clk_summary"
    THERMAL_ZONE = "sys/class/thermal/thermal_zone0/temp"
    FAN_STATE = "sys/class/thermal/cooling_device4/cur_state"
    RGA_CLOCKS = {
        "aclk_rga2e": "rga_aclk_freq",
        "clk_core_rga2e": "rga_core_freq",
        "hclk_rga2e": "rga_hclk_freq",
    }

    def __init__(self, root: str | Path = "/", max_cpus: int = 8, min_cpu_window_s: float = 0.1) -> None:
        self.root = Path(root)
        self.max_cpus = max_cpus
        self.min_cpu_window_s = min_cpu_window_s
        # Prime non-blocking CPU measurement; the first reading needs a real window after this.
        psutil.cpu_percent(interval=None)
        self._cpu_sampled_at = time.monotonic()

    def _path(self, rel: str) -> Path:
        return self.root / rel

    def _cpu_usage(self) -> float | None:
        now = time.monotonic()
        if now - self._cpu_sampled_at < self.min_cpu_window_s:
            # Too soon after the previous sample to mean anything; leave the window open.
            return None
        self._cpu_sampled_at = now
        return float(psutil.cpu_percent(interval=None))

    def _cpu_freq_hz(self) -> float | None:
        for cpu_id in range(self.max_cpus):
            khz = _read_int(self._path(f"sys/devices/system/cpu/cpu{cpu_id}/cpufreq/scaling_cur_freq"))
            if khz is not None:
                return float(khz * 1000)
        try:
            freq = psutil.cpu_freq()
        except (OSError, NotImplementedError):
            return None
        return float(freq.current) * 1_000_000 if freq and freq.current else None

    def _gpu_usage(self) -> float | None:
        text = _read_text(self._path(f"{self.GPU_DEVFREQ}/load"))
        if text is None:
            return None
        try:
            return float(text.split("@", 1)[0].strip())
        except ValueError:
            return None

    def _rga_clocks(self) -> dict[str, float]:
        text = _read_text(self._path(self.CLK_SUMMARY))
        out: dict[str, float] = {}
        if text is None:
            return out
        for line in text.splitlines():
            parts = line.split()
            if len(parts) < 5 or parts[0] not in self.RGA_CLOCKS:
                continue
            try:
                out[self.RGA_CLOCKS[parts[0]]] = float(int(parts[4]))
            except ValueError:
                continue
        return out

    def collect(self) -> dict[str, Any]:
        gpu_freq = _read_int(self._path(f"{self.GPU_DEVFREQ}/cur_freq"))
        npu_freq = _read_int(self._path(f"{self.NPU_DEVFREQ}/cur_freq"))
        temperature = _read_int(self._path(self.THERMAL_ZONE))
        fan_state = _read_int(self._path(self.FAN_STATE))

        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()

        payload: dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "cpu_usage": self._cpu_usage(),
            "cpu_freq": self._cpu_freq_hz(),
            "gpu_usage": self._gpu_usage(),
            "gpu_freq": float(gpu_freq) if gpu_freq is not None else None,
            "npu_usage": _load_percent(_read_text(self._path(self.NPU_LOAD)), "NPU load:"),
            "npu_freq": float(npu_freq) if npu_freq is not None else None,
            "rga_usage": _load_percent(_read_text(self._path(self.RGA_LOAD)), "load:"),
            "memory_usage": float(vm.percent),
            "swap_usage": float(swap.percent) if swap.total else 0.0,
            "temperature": float(temperature) if temperature is not None else None,
            "fan_state": fan_state,
        }
        payload.update(self._rga_clocks())
        return {k: v for k, v in payload.items() if v is not None}

    def request(self) -> PayloadBuffer | None:
        payload = self.collect()
        return PayloadBuffer(data=json.dumps(payload).encode("utf-8"))


def build_provider(kind: str = "sysfs", library_path: str | None = None, sysfs_root: str = "/") -> MetricsProvider:
    if kind == "library":
        return NativeLibraryProvider(library_path)
    if kind == "sysfs":
        return SysfsProvider(root=sysfs_root)
    raise ValueError(f"Unknown provider kind: {kind}")
