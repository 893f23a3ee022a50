"""Qt dialog front-end: progress bars and labels driven by the refresh scheduler."""

from __future__ import annotations

import sys

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication, QDialog, QGridLayout, QLabel, QProgressBar

from rtop_core import AppConfig, RefreshScheduler
from rtop_core.display_state import DisplayUpdate, display_rows
from rtop_core.logging_setup import event_extra, get_logger, install_crash_hooks
from rtop_telemetry import read_device_info


class MonitorDialog(QDialog):
    """One row per indicator; the GUI-thread timer drives ``scheduler.tick``."""

    def __init__(self, scheduler: RefreshScheduler, config: AppConfig) -> None:
        super().__init__()
        self.scheduler = scheduler
        self.config = config
        self.setWindowTitle(f"rtop - {read_device_info(config.provider.sysfs_root)}")

        self._bars: dict[str, QProgressBar] = {}
        self._labels: dict[str, QLabel] = {}

        layout = QGridLayout(self)
        for index, row in enumerate(display_rows(scheduler.display_state, fan_max_level=config.ui.fan_max_level)):
            layout.addWidget(QLabel(row.title), index, 0)

            bar = QProgressBar()
            bar.setRange(0, int(row.gauge_max))
            bar.setValue(0)
            if row.key == "fan":
                bar.setFormat("%v")
            layout.addWidget(bar, index, 1)
            self._bars[row.key] = bar

            if row.key in ("cpu", "gpu", "npu", "rga", "temperature"):
                label = QLabel("--")
                layout.addWidget(label, index, 2)
                self._labels[row.key] = label

        scheduler.subscribe(self.apply_update)

        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_timeout)
        self._timer.start(scheduler.interval_ms)

    def _on_timeout(self) -> None:
        interval = self.scheduler.interval_ms
        if self._timer.interval() != interval:
            self._timer.setInterval(interval)
        self.scheduler.tick()

    def apply_update(self, update: DisplayUpdate) -> None:
        for row in display_rows(update.state, fan_max_level=self.config.ui.fan_max_level):
            bar = self._bars[row.key]
            bar.setValue(int(round(min(max(row.gauge, 0.0), row.gauge_max))))
            label = self._labels.get(row.key)
            if label is not None:
                label.setText(row.label or "--")

    def shutdown(self) -> None:
        self._timer.stop()
        self.scheduler.unsubscribe(self.apply_update)


def run_gui(config: AppConfig, scheduler: RefreshScheduler | None = None) -> int:
    install_crash_hooks()
    logger = get_logger()

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("rtop")

    scheduler = scheduler or RefreshScheduler.from_config(config)
    dialog = MonitorDialog(scheduler, config)
    dialog.show()

    logger.info(
        "dialog started",
        extra=event_extra("gui_start", interval_ms=scheduler.interval_ms, provider=config.provider.kind),
    )
    exit_code = app.exec()
    dialog.shutdown()
    logger.info("app shutdown", extra=event_extra("shutdown", exit_code=int(exit_code)))
    scheduler.log_summary("dialog closed")
    return int(exit_code)
