"""CLI entrypoints for the rtop dialog, console watcher, renders and diagnostics."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

from rtop_core import (
    AppConfig,
    DiagnosticsExporter,
    RefreshScheduler,
    apply_env_overrides,
    build_doctor_payload,
    display_rows,
    load_config,
)
from rtop_core.config import normalize
from rtop_core.display_state import DisplayUpdate
from rtop_core.logging_setup import configure_logging, event_extra, get_logger
from rtop_renderer import DEFAULT_THEME_NAME, GaugeRenderer, list_themes
from rtop_renderer.gauges import row_text
from rtop_telemetry import FetchError, PROVIDER_KINDS, read_device_info


TREND_METRICS = ("cpu_usage", "cpu_freq", "gpu_usage", "npu_usage", "rga_usage", "memory_usage", "temperature")


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def resolve_config(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(Path(args.config).expanduser() if args.config else None)
    apply_env_overrides(cfg)
    if args.provider:
        cfg.provider.kind = args.provider
    if args.library:
        cfg.provider.library_path = args.library
        if not args.provider:
            cfg.provider.kind = "library"
    if getattr(args, "interval_ms", None) is not None:
        cfg.refresh.interval_ms = args.interval_ms
    return normalize(cfg)


def build_scheduler(cfg: AppConfig) -> RefreshScheduler:
    return RefreshScheduler.from_config(cfg)


def format_update(update: DisplayUpdate, fan_max_level: int = 4) -> str:
    return " | ".join(f"{row.title} {row_text(row)}" for row in display_rows(update.state, fan_max_level=fan_max_level))


def format_trends(scheduler: RefreshScheduler, metrics: tuple[str, ...] = TREND_METRICS) -> list[str]:
    lines = []
    for metric in metrics:
        series = scheduler.series(metric)
        if not series.points:
            continue
        values = [value for _, value in series.points]
        low, high = series.bounds
        lines.append(
            f"{metric:<14} min={min(values):8.1f} max={max(values):8.1f} "
            f"last={series.latest:8.1f} axis=[{low:.1f}, {high:.1f}] n={len(values)}"
        )
    return lines


def cmd_run(args: argparse.Namespace) -> int:
    from .app import run_gui

    cfg = resolve_config(args)
    return run_gui(cfg, build_scheduler(cfg))


def cmd_watch(args: argparse.Namespace) -> int:
    cfg = resolve_config(args)
    scheduler = build_scheduler(cfg)
    print(f"rtop - {read_device_info(cfg.provider.sysfs_root)}", flush=True)
    scheduler.subscribe(lambda update: print(format_update(update, cfg.ui.fan_max_level), flush=True))

    try:
        scheduler.run(max_cycles=args.cycles)
    except KeyboardInterrupt:
        pass

    status = scheduler.status
    print(
        f"cycles={status.cycles} ok={status.successes} failed={status.failure_count} skipped={status.skipped_ticks}",
        file=sys.stderr,
    )
    for line in format_trends(scheduler):
        print(line, file=sys.stderr)
    scheduler.log_summary("watch finished")
    return 0


def cmd_once(args: argparse.Namespace) -> int:
    cfg = resolve_config(args)
    result = build_scheduler(cfg).fetcher.fetch()
    if isinstance(result, FetchError):
        _print_json({"success": False, "error_kind": result.kind, "error": result.reason})
        return 2
    _print_json({"success": True, "snapshot": result.as_dict()})
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    cfg = resolve_config(args)
    scheduler = build_scheduler(cfg)
    cycle = scheduler.tick()

    renderer = GaugeRenderer(fan_max_level=cfg.ui.fan_max_level)
    out = Path(args.out).expanduser()
    renderer.save_png(scheduler.display_state, out, theme_name=args.theme or cfg.ui.theme)

    ok = cycle is not None and cycle.ok
    payload: dict[str, object] = {"success": ok, "path": str(out)}
    if cycle is not None and cycle.error is not None:
        payload["error_kind"] = cycle.error.kind
        payload["error"] = cycle.error.reason
    _print_json(payload)
    return 0 if ok else 2


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = resolve_config(args)
    scheduler = build_scheduler(cfg)
    cycle = scheduler.tick()
    history = scheduler.history()
    payload = build_doctor_payload(cfg, cycle=cycle, snapshot=history[-1] if history else None)
    payload["scheduler"] = asdict(scheduler.status)

    if args.export:
        exporter = DiagnosticsExporter()
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        bundle = exporter.bundle(
            cfg=cfg,
            doctor_payload=payload,
            scheduler_events=scheduler.recent_events(),
            output_dir=out_dir,
        )
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Path to config.json")
    common.add_argument("--provider", choices=list(PROVIDER_KINDS), default=None)
    common.add_argument("--library", default=None, help="Path to the native metrics library")
    common.add_argument("--verbose", action="store_true", help="Log debug events to the console")

    timed = argparse.ArgumentParser(add_help=False)
    timed.add_argument("--interval-ms", type=_positive_int, default=None, help="Refresh interval in milliseconds")

    parser = argparse.ArgumentParser(prog="rtop", description="Board telemetry monitor")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run", parents=[common, timed], help="Open the monitor dialog")
    run_cmd.set_defaults(func=cmd_run)

    watch_cmd = sub.add_parser("watch", parents=[common, timed], help="Print display updates to the console")
    watch_cmd.add_argument("--cycles", type=_positive_int, default=None, help="Stop after this many ticks")
    watch_cmd.set_defaults(func=cmd_watch)

    once_cmd = sub.add_parser("once", parents=[common], help="Fetch and print one decoded snapshot")
    once_cmd.set_defaults(func=cmd_once)

    render_cmd = sub.add_parser("render", parents=[common], help="Fetch once and write a PNG of the gauges")
    render_cmd.add_argument("--out", default="rtop.png")
    render_cmd.add_argument("--theme", choices=list_themes(), default=None, help=f"Default: {DEFAULT_THEME_NAME}")
    render_cmd.set_defaults(func=cmd_render)

    doctor_cmd = sub.add_parser("doctor", parents=[common], help="Run one refresh cycle and print diagnostics")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.set_defaults(func=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(console=args.verbose, verbose=args.verbose)
    get_logger().info("command start", extra=event_extra("command_start", command=args.command))
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
