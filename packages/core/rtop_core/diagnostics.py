"""Doctor check and offline diagnostics bundles."""

from __future__ import annotations

import json
import platform
import re
import tempfile
import zipfile
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rtop_telemetry.models import TelemetrySnapshot
from rtop_telemetry.provider import read_device_info

from .config import AppConfig, config_path
from .logging_setup import log_dir
from .scheduler import CycleResult


_SECRET_RE = re.compile(r"(token|secret|password|apikey|api_key|auth)", re.IGNORECASE)


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, (frozenset, set)):
        return sorted(value)
    return str(value)


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if _SECRET_RE.search(k):
                out[k] = "***REDACTED***"
            else:
                out[k] = redact(v)
        return out
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def cycle_check(cycle: CycleResult, snapshot: TelemetrySnapshot | None = None) -> dict[str, Any]:
    """Summarize one scheduler cycle; ``snapshot`` is the sample it recorded."""
    if cycle.error is not None:
        return {"ok": False, "cycle": cycle.cycle, "error_kind": cycle.error.kind, "error": cycle.error.reason}
    check: dict[str, Any] = {"ok": True, "cycle": cycle.cycle, "duration_s": round(cycle.duration_s, 6)}
    if snapshot is not None:
        check["present_fields"] = sorted(snapshot.present_fields())
        check["snapshot"] = snapshot.as_dict()
    return check


def build_doctor_payload(
    cfg: AppConfig,
    cycle: CycleResult | None = None,
    snapshot: TelemetrySnapshot | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "machine": platform.machine(),
        "python": platform.python_version(),
        "device": read_device_info(cfg.provider.sysfs_root),
        "config": redact(asdict(cfg)),
        "provider": cfg.provider.kind,
    }
    if cycle is not None:
        payload["check"] = cycle_check(cycle, snapshot)
    return payload


class DiagnosticsExporter:
    def __init__(self, app_name: str = "rtop") -> None:
        self.app_name = app_name

    def bundle(
        self,
        cfg: AppConfig,
        doctor_payload: dict[str, Any],
        scheduler_events: list[dict[str, Any]] | None = None,
        output_dir: Path | None = None,
    ) -> Path:
        output_base = output_dir or Path(tempfile.gettempdir())
        output_base.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        zip_path = output_base / f"rtop-diagnostics-{stamp}.zip"

        logs = sorted(log_dir().glob("*.log*"))

        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            manifest = {
                "app": self.app_name,
                "created_utc": datetime.now(timezone.utc).isoformat(),
                "host": platform.platform(),
                "python": platform.python_version(),
                "config_path": str(config_path()),
                "log_dir": str(log_dir()),
            }
            zf.writestr("manifest.json", json.dumps(manifest, indent=2, sort_keys=True))
            zf.writestr("doctor.json", json.dumps(redact(doctor_payload), indent=2, sort_keys=True, default=_jsonable))
            zf.writestr("config.redacted.json", json.dumps(redact(asdict(cfg)), indent=2, sort_keys=True))
            zf.writestr(
                "scheduler_events.json",
                json.dumps(redact(scheduler_events or []), indent=2, sort_keys=True, default=_jsonable),
            )

            for item in logs:
                zf.write(item, arcname=f"logs/{item.name}")

        return zip_path
