#!/usr/bin/env python3
# cli.py: command line entry point for downpour load & stress runs

import argparse
import asyncio
import logging
import math
import sys

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from downpour.config import EngineSettings, LoadConfig, StressConfig
from downpour.core import LoadStressEngine
from downpour.errors import ConfigurationError
from downpour.logging_config import setup_logging
from downpour.models import LoadReport, ProgressEvent
from downpour.persistence import save_reports
from downpour.rendering import render_load_report, render_stress_report
from downpour.utils import GracefulKiller


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="downpour",
        description="Downpour: load and stress tests against a single HTTP endpoint",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "mode",
        choices=("load", "stress", "all"),
        help="load = fixed-rate bursts, stress = escalating concurrency, all = load then stress",
    )

    # Target
    parser.add_argument(
        "--base-url",
        default=None,
        help="Server base URL (defaults to $BASE_URL or http://localhost:3001)",
    )
    parser.add_argument(
        "--route",
        action="append",
        default=None,
        help="Candidate route (repeatable); overrides $DETECTED_ROUTES",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (defaults to $DOWNPOUR_PROBE_TIMEOUT_S or 5)",
    )

    # Load phase
    parser.add_argument("--duration", type=float, default=None, help="Load test duration (s)")
    parser.add_argument("--rps", type=int, default=None, help="Requests sent each second")

    # Stress phase
    parser.add_argument("--max-load", type=int, default=None, help="Highest concurrency level")
    parser.add_argument("--increment", type=int, default=None, help="Concurrency step per wave")
    parser.add_argument(
        "--error-threshold",
        type=float,
        default=None,
        help="Wave error rate (%%) above which the stress sweep stops",
    )

    # Output
    parser.add_argument("--json-out", default=None, help="Write the report(s) as JSON here")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--debug", action="store_true", help="Enable debug-level logging")
    parser.add_argument("--log-file", default=None, help="Optional file to write logs to")
    return parser


def resolve_phase_configs(
    args: argparse.Namespace, settings: EngineSettings
) -> tuple[LoadConfig | None, StressConfig | None]:
    """Build the configs for the phases ``args.mode`` runs; skipped phases come back as None."""
    # `all` runs a shorter suite so both phases finish quickly
    if args.mode == "all":
        load_defaults, stress_defaults = (5.0, 5), (50, 10)
    else:
        load_defaults, stress_defaults = (10.0, 5), (100, 20)

    load = stress = None
    if args.mode in ("load", "all"):
        load = LoadConfig(
            duration_seconds=args.duration if args.duration is not None else load_defaults[0],
            requests_per_second=args.rps if args.rps is not None else load_defaults[1],
        )
    if args.mode in ("stress", "all"):
        stress = StressConfig(
            max_load=args.max_load if args.max_load is not None else stress_defaults[0],
            increment=args.increment if args.increment is not None else stress_defaults[1],
            error_threshold=(
                args.error_threshold
                if args.error_threshold is not None
                else settings.error_threshold
            ),
        )
    return load, stress


class ProgressListener:
    """Feeds engine progress events into a rich progress bar."""

    def __init__(
        self,
        progress: Progress,
        load: LoadConfig | None = None,
        stress: StressConfig | None = None,
    ):
        self.progress = progress
        self.totals: dict[str, int] = {}
        if load is not None:
            self.totals["load"] = math.ceil(load.duration_seconds)
        if stress is not None:
            self.totals["stress"] = math.ceil(stress.max_load / stress.increment)
        self.tasks: dict[str, int] = {}

    def __call__(self, event: ProgressEvent) -> None:
        task_id = self.tasks.get(event.phase)
        if task_id is None:
            task_id = self.progress.add_task(event.phase, total=self.totals[event.phase])
            self.tasks[event.phase] = task_id
        if event.phase == "load":
            label = f"[cyan]Load {event.completed} sent, {event.failed} failed"
        else:
            label = f"[magenta]Stress x{event.level} ({event.error_rate:.2f}% errors)"
        self.progress.update(task_id, advance=1, description=label)


async def run(args: argparse.Namespace) -> int:
    env_settings = EngineSettings.from_env()
    base_url = args.base_url or env_settings.base_url
    routes = args.route if args.route is not None else env_settings.candidate_routes
    timeout_s = args.timeout if args.timeout is not None else env_settings.probe_timeout_s
    load, stress = resolve_phase_configs(args, env_settings)

    killer = GracefulKiller()
    killer.install_signal_handlers()

    progress = None
    listener = None
    if not args.no_progress:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
        )
        listener = ProgressListener(progress, load, stress)

    engine = LoadStressEngine(
        base_url,
        candidate_routes=routes,
        probe_timeout_s=timeout_s,
        progress_callback=listener,
        killer=killer,
    )
    plan = [f"Testing {engine.base_url}{engine.target_route}", f"Mode: {args.mode.upper()}"]
    if load is not None:
        plan.append(f"Load: {load.duration_seconds}s x {load.requests_per_second} RPS")
    if stress is not None:
        plan.append(f"Stress: up to {stress.max_load} by {stress.increment}")
    logging.info(" | ".join(plan))

    reports = []
    if progress:
        progress.start()
    try:
        if load is not None:
            reports.append(await engine.run_load(load.duration_seconds, load.requests_per_second))
        if stress is not None and not killer.kill_now:
            reports.append(
                await engine.run_stress(stress.max_load, stress.increment, stress.error_threshold)
            )
    finally:
        if progress:
            progress.stop()

    print("\n" + "=" * 60)
    for report in reports:
        if isinstance(report, LoadReport):
            print(render_load_report(report))
        else:
            print(render_stress_report(report))
        print()
    print("=" * 60)

    if args.json_out:
        save_reports(reports, args.json_out)

    return 130 if killer.kill_now else 0


def main():
    args = build_parser().parse_args()
    setup_logging(level="DEBUG" if args.debug else "INFO", log_file=args.log_file)
    try:
        code = asyncio.run(run(args))
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
