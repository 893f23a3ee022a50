from __future__ import annotations

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

QtWidgets = pytest.importorskip("PySide6.QtWidgets")

from rtop_app.app import MonitorDialog
from rtop_core import AppConfig, RefreshScheduler
from rtop_telemetry.fetcher import SnapshotFetcher
from rtop_telemetry.provider import MetricsProvider, PayloadBuffer


class _Provider(MetricsProvider):
    def __init__(self, payloads: list[bytes | None]) -> None:
        self.payloads = payloads

    def request(self) -> PayloadBuffer | None:
        data = self.payloads.pop(0)
        return None if data is None else PayloadBuffer(data=data)


@pytest.fixture(scope="module")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


def test_dialog_keeps_last_values_on_failed_tick(qapp) -> None:
    provider = _Provider([b'{"cpu_usage": 37.2, "cpu_freq": 1800000000, "temperature": 52300, "fan_state": 2}', None])
    scheduler = RefreshScheduler(SnapshotFetcher(provider), interval_ms=60_000)
    dialog = MonitorDialog(scheduler, AppConfig())
    try:
        scheduler.tick()
        assert dialog._bars["cpu"].value() == 37
        assert dialog._labels["cpu"].text() == "1.80 GHz"
        assert dialog._bars["temperature"].value() == 52
        assert dialog._labels["temperature"].text() == "52.3 °C"
        assert dialog._bars["fan"].value() == 2
        assert dialog._labels["gpu"].text() == "--"

        scheduler.tick()
        assert dialog._bars["cpu"].value() == 37
        assert dialog._labels["cpu"].text() == "1.80 GHz"
    finally:
        dialog.shutdown()


def test_dialog_follows_interval_changes(qapp) -> None:
    provider = _Provider([b'{"cpu_usage": 5}', b'{"cpu_usage": 6}'])
    scheduler = RefreshScheduler(SnapshotFetcher(provider), interval_ms=60_000)
    dialog = MonitorDialog(scheduler, AppConfig())
    try:
        assert dialog._timer.interval() == 60_000
        scheduler.set_interval(250)
        dialog._on_timeout()
        assert dialog._timer.interval() == 250
        assert dialog._bars["cpu"].value() == 5

        dialog._on_timeout()
        assert dialog._timer.interval() == 250
        assert dialog._bars["cpu"].value() == 6
    finally:
        dialog.shutdown()


def test_dialog_title_names_the_device(qapp, tmp_path) -> None:
    compatible = tmp_path / "sys" / "firmware" / "devicetree" / "base" / "compatible"
    compatible.parent.mkdir(parents=True)
    compatible.write_bytes(b"radxa,rock-5b\0rockchip,rk3588\0")
    config = AppConfig()
    config.provider.sysfs_root = str(tmp_path)

    scheduler = RefreshScheduler(SnapshotFetcher(_Provider([])), interval_ms=60_000)
    dialog = MonitorDialog(scheduler, config)
    try:
        assert dialog.windowTitle() == "rtop - radxa,rock-5b, rockchip,rk3588"
    finally:
        dialog.shutdown()
