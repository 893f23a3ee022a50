import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from rtop_core.config import AppConfig, apply_env_overrides, load_config, save_config


class ConfigTests(unittest.TestCase):
    def test_load_default_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            cfg = load_config(Path(tmp) / "missing.json")
            self.assertIsInstance(cfg, AppConfig)
            self.assertEqual(cfg.refresh.interval_ms, 1000)
            self.assertEqual(cfg.provider.kind, "sysfs")

    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            cfg = load_config(path)
            cfg.refresh.interval_ms = 250
            cfg.provider.kind = "library"
            cfg.provider.library_path = "/usr/local/lib/librtop_rust.so"
            save_config(cfg, path)
            reloaded = load_config(path)
            self.assertEqual(reloaded.refresh.interval_ms, 250)
            self.assertEqual(reloaded.provider.kind, "library")
            self.assertEqual(reloaded.provider.library_path, "/usr/local/lib/librtop_rust.so")

    def test_unreadable_file_falls_back_to_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text("{not json", encoding="utf-8")
            self.assertEqual(load_config(path), AppConfig())

    def test_migrate_v1_shape(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps({"poll_ms": 500, "library": "/opt/rtop/librtop_rust.so"}), encoding="utf-8")
            cfg = load_config(path)
            self.assertEqual(cfg.config_version, 2)
            self.assertEqual(cfg.refresh.interval_ms, 500)
            self.assertEqual(cfg.provider.kind, "library")
            self.assertEqual(cfg.provider.library_path, "/opt/rtop/librtop_rust.so")

    def test_normalizes_interval_and_provider(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            raw = {"config_version": 2, "refresh": {"interval_ms": 0}, "provider": {"kind": "serial"}}
            path.write_text(json.dumps(raw), encoding="utf-8")
            cfg = load_config(path)
            self.assertEqual(cfg.refresh.interval_ms, 1)
            self.assertEqual(cfg.provider.kind, "sysfs")

    def test_history_samples_default_and_floor(self):
        self.assertEqual(AppConfig().ui.history_samples, 600)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps({"config_version": 2, "ui": {"history_samples": 0}}), encoding="utf-8")
            self.assertEqual(load_config(path).ui.history_samples, 1)

    def test_env_overrides(self):
        cfg = apply_env_overrides(
            AppConfig(),
            {"RTOP_INTERVAL_MS": "200", "RTOP_PROVIDER": "library", "RTOP_LIBRARY": "/tmp/librtop_rust.so"},
        )
        self.assertEqual(cfg.refresh.interval_ms, 200)
        self.assertEqual(cfg.provider.kind, "library")
        self.assertEqual(cfg.provider.library_path, "/tmp/librtop_rust.so")

    def test_env_override_ignores_garbage_interval(self):
        cfg = apply_env_overrides(AppConfig(), {"RTOP_INTERVAL_MS": "fast"})
        self.assertEqual(cfg.refresh.interval_ms, 1000)


if __name__ == "__main__":
    unittest.main()
