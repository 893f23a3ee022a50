import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from rtop_telemetry.errors import MalformedPayload, ProviderUnavailable
from rtop_telemetry.fetcher import decode_payload
from rtop_telemetry.models import SNAPSHOT_SCHEMA, TelemetrySnapshot


class SnapshotDecodeTests(unittest.TestCase):
    def test_full_native_payload(self):
        raw = {
            "timestamp": "2024-05-01 12:00:00.000000 +08:00",
            "cpu_usage": 12.5,
            "cpu_freq": 1800000000,
            "gpu_usage": 3.0,
            "gpu_freq": 300000000,
            "npu_usage": 0.0,
            "npu_freq": 1000000000,
            "rga_usage": 0.0,
            "rga_aclk_freq": 800000000,
            "rga_core_freq": 800000000,
            "rga_hclk_freq": 200000000,
            "memory_usage": 40.1,
            "swap_usage": 0.0,
            "temperature": 45500.0,
            "fan_state": 2,
        }
        snap = decode_payload(json.dumps(raw).encode("utf-8"))
        self.assertIsInstance(snap, TelemetrySnapshot)
        self.assertEqual(snap.cpu_freq, 1800000000.0)
        self.assertIsInstance(snap.cpu_freq, float)
        self.assertEqual(snap.fan_state, 2)
        self.assertEqual(snap.present_fields(), frozenset(spec.name for spec in SNAPSHOT_SCHEMA))

    def test_missing_fields_are_absent_not_zero(self):
        snap = decode_payload(b'{"cpu_usage": 0}')
        self.assertEqual(snap.cpu_usage, 0.0)
        self.assertIsNone(snap.gpu_usage)
        self.assertIsNone(snap.temperature)
        self.assertEqual(snap.present_fields(), frozenset({"cpu_usage"}))

    def test_unknown_fields_ignored(self):
        snap = decode_payload(b'{"cpu_usage": 5, "vpu_usage": 99, "extra": {"a": 1}}')
        self.assertEqual(snap.as_dict(), {"cpu_usage": 5.0})

    def test_wrong_typed_values_are_absent(self):
        snap = decode_payload(b'{"cpu_usage": "12", "gpu_usage": true, "npu_usage": null, "fan_state": [1]}')
        self.assertEqual(snap.present_fields(), frozenset())

    def test_non_finite_values_are_absent(self):
        snap = decode_payload(b'{"cpu_usage": NaN, "temperature": Infinity, "gpu_usage": 1}')
        self.assertIsNone(snap.cpu_usage)
        self.assertIsNone(snap.temperature)
        self.assertEqual(snap.gpu_usage, 1.0)

    def test_fan_state_truncates_toward_zero(self):
        self.assertEqual(decode_payload(b'{"fan_state": 2.9}').fan_state, 2)
        self.assertEqual(decode_payload(b'{"fan_state": -1.7}').fan_state, -1)

    def test_empty_payload_is_unavailable(self):
        self.assertIsInstance(decode_payload(b""), ProviderUnavailable)

    def test_whitespace_only_payload_is_malformed(self):
        err = decode_payload(b"  \n")
        self.assertIsInstance(err, MalformedPayload)
        self.assertEqual(err.reason, "payload is blank")

    def test_invalid_json_is_malformed(self):
        err = decode_payload(b'{"cpu_usage": ')
        self.assertIsInstance(err, MalformedPayload)
        self.assertEqual(err.kind, "malformed_payload")

    def test_non_object_is_malformed(self):
        self.assertIsInstance(decode_payload(b"[1, 2, 3]"), MalformedPayload)
        self.assertIsInstance(decode_payload(b"null"), MalformedPayload)

    def test_invalid_utf8_is_malformed(self):
        self.assertIsInstance(decode_payload(b"\xff\xfe{}"), MalformedPayload)


if __name__ == "__main__":
    unittest.main()
