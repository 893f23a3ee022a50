import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from rtop_core.display_state import (
    DisplayState,
    apply_snapshot,
    display_rows,
    format_frequency,
    format_temperature,
    temperature_gauge,
)
from rtop_telemetry.models import TelemetrySnapshot


class TransformTests(unittest.TestCase):
    def test_frequency_label(self):
        self.assertEqual(format_frequency(2_400_000_000), "2.40 GHz")
        self.assertEqual(format_frequency(0), "0.00 GHz")
        self.assertEqual(format_frequency(1_800_000_000.0), "1.80 GHz")

    def test_temperature(self):
        self.assertEqual(temperature_gauge(45500), 45.5)
        self.assertEqual(format_temperature(45500), "45.5 °C")

    def test_usage_clamped_for_gauge(self):
        state, _ = apply_snapshot(DisplayState(), TelemetrySnapshot(cpu_usage=130.0, gpu_usage=-4.0))
        self.assertEqual(state.cpu_gauge, 100.0)
        self.assertEqual(state.gpu_gauge, 0.0)


class ApplySnapshotTests(unittest.TestCase):
    def test_present_fields_written(self):
        snap = TelemetrySnapshot(cpu_usage=37.2, cpu_freq=1_800_000_000.0, temperature=52300.0, fan_state=2)
        state, changed = apply_snapshot(DisplayState(), snap)
        self.assertEqual(state.cpu_gauge, 37.2)
        self.assertEqual(state.cpu_label, "1.80 GHz")
        self.assertEqual(state.temperature_gauge, 52.3)
        self.assertEqual(state.temperature_label, "52.3 °C")
        self.assertEqual(state.fan_gauge, 2)
        self.assertEqual(
            changed,
            frozenset({"cpu_gauge", "cpu_label", "temperature_gauge", "temperature_label", "fan_gauge"}),
        )

    def test_absent_fields_keep_previous_values(self):
        before = DisplayState(gpu_gauge=12.0, gpu_label="0.30 GHz", memory_gauge=55.0, fan_gauge=1)
        state, _ = apply_snapshot(before, TelemetrySnapshot(cpu_usage=5.0))
        self.assertEqual(state.gpu_gauge, 12.0)
        self.assertEqual(state.gpu_label, "0.30 GHz")
        self.assertEqual(state.memory_gauge, 55.0)
        self.assertEqual(state.fan_gauge, 1)
        self.assertEqual(state.cpu_gauge, 5.0)

    def test_zero_reading_is_written(self):
        before = DisplayState(npu_gauge=80.0)
        state, changed = apply_snapshot(before, TelemetrySnapshot(npu_usage=0.0))
        self.assertEqual(state.npu_gauge, 0.0)
        self.assertIn("npu_gauge", changed)

    def test_apply_is_idempotent(self):
        snaps = [
            TelemetrySnapshot(),
            TelemetrySnapshot(cpu_usage=1.0, rga_aclk_freq=800_000_000.0, swap_usage=3.0),
            TelemetrySnapshot(
                cpu_usage=99.9,
                cpu_freq=2_256_000_000.0,
                gpu_usage=50.0,
                gpu_freq=1_000_000_000.0,
                npu_usage=10.0,
                npu_freq=1_000_000_000.0,
                rga_usage=2.0,
                rga_aclk_freq=0.0,
                memory_usage=61.0,
                swap_usage=0.0,
                temperature=70250.0,
                fan_state=4,
            ),
        ]
        for snap in snaps:
            once, _ = apply_snapshot(DisplayState(), snap)
            twice, changed = apply_snapshot(once, snap)
            self.assertEqual(once, twice)
            self.assertEqual(changed, frozenset())

    def test_secondary_rga_clocks_not_displayed(self):
        state, changed = apply_snapshot(DisplayState(), TelemetrySnapshot(rga_core_freq=1.0, rga_hclk_freq=2.0))
        self.assertEqual(state, DisplayState())
        self.assertEqual(changed, frozenset())


class DisplayRowsTests(unittest.TestCase):
    def test_row_order_and_labels(self):
        rows = display_rows(DisplayState(cpu_label="1.80 GHz"), fan_max_level=5)
        self.assertEqual([r.key for r in rows], ["cpu", "gpu", "npu", "rga", "memory", "swap", "temperature", "fan"])
        self.assertEqual(rows[0].label, "1.80 GHz")
        self.assertIsNone(rows[4].label)
        self.assertEqual(rows[-1].gauge_max, 5.0)


if __name__ == "__main__":
    unittest.main()
