"""Persistent settings schema, load/save helpers and environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

from rtop_telemetry.provider import PROVIDER_KINDS

from .history import HISTORY_LIMIT
from .logging_setup import config_root


CONFIG_VERSION = 2
DEFAULT_INTERVAL_MS = 1000
MIN_INTERVAL_MS = 1


@dataclass
class RefreshConfig:
    interval_ms: int = DEFAULT_INTERVAL_MS


@dataclass
class ProviderConfig:
    kind: str = "sysfs"
    library_path: str | None = None
    sysfs_root: str = "/"


@dataclass
class UiConfig:
    theme: str = "Neon Slate"
    fan_max_level: int = 4
    history_samples: int = HISTORY_LIMIT


@dataclass
class DiagnosticsConfig:
    keep_log_files: int = 7
    max_events: int = 1000


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    ui: UiConfig = field(default_factory=UiConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)


def config_path() -> Path:
    return config_root() / "config.json"


def _merge(dataclass_type, raw: Any):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _normalize_refresh(cfg: AppConfig) -> None:
    try:
        interval = int(cfg.refresh.interval_ms)
    except (TypeError, ValueError):
        interval = DEFAULT_INTERVAL_MS
    cfg.refresh.interval_ms = max(MIN_INTERVAL_MS, interval)


def _normalize_provider(cfg: AppConfig) -> None:
    if cfg.provider.kind not in PROVIDER_KINDS:
        cfg.provider.kind = "sysfs"
    if not cfg.provider.library_path:
        cfg.provider.library_path = None
    if not cfg.provider.sysfs_root:
        cfg.provider.sysfs_root = "/"


def _normalize_diagnostics(cfg: AppConfig) -> None:
    cfg.diagnostics.keep_log_files = max(2, int(cfg.diagnostics.keep_log_files))
    cfg.diagnostics.max_events = max(10, int(cfg.diagnostics.max_events))


def _normalize_ui(cfg: AppConfig) -> None:
    cfg.ui.fan_max_level = max(1, int(cfg.ui.fan_max_level))
    cfg.ui.history_samples = max(1, int(cfg.ui.history_samples))


def normalize(cfg: AppConfig) -> AppConfig:
    _normalize_refresh(cfg)
    _normalize_provider(cfg)
    _normalize_ui(cfg)
    _normalize_diagnostics(cfg)
    return cfg


def _migrate(raw: dict[str, Any]) -> dict[str, Any]:
    version = int(raw.get("config_version", 1))
    data = dict(raw)

    if version < 2:
        # v1 kept the refresh period as a top-level poll_ms and only knew the native library.
        refresh = dict(data.get("refresh", {}) or {})
        if "poll_ms" in data:
            refresh.setdefault("interval_ms", data.pop("poll_ms"))
        data["refresh"] = refresh
        provider = dict(data.get("provider", {}) or {})
        if "library" in data:
            provider.setdefault("kind", "library")
            provider.setdefault("library_path", data.pop("library"))
        data["provider"] = provider
        data["config_version"] = 2

    return data


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()

    data = _migrate(raw)
    cfg = AppConfig(
        config_version=int(data.get("config_version", CONFIG_VERSION)),
        refresh=_merge(RefreshConfig, data.get("refresh", {})),
        provider=_merge(ProviderConfig, data.get("provider", {})),
        ui=_merge(UiConfig, data.get("ui", {})),
        diagnostics=_merge(DiagnosticsConfig, data.get("diagnostics", {})),
    )
    return normalize(cfg)


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path


def apply_env_overrides(cfg: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if environ is None else environ

    interval = env.get("RTOP_INTERVAL_MS")
    if interval:
        try:
            cfg.refresh.interval_ms = int(interval)
        except ValueError:
            pass

    kind = env.get("RTOP_PROVIDER")
    if kind:
        cfg.provider.kind = kind

    library = env.get("RTOP_LIBRARY")
    if library:
        cfg.provider.library_path = library

    return normalize(cfg)
