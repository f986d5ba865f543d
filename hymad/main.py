"""Command-line entry point.

    hymad detect data.txt --method both --trace out/trace.csv
    hymad scenario data.txt --npz out/scenario.npz
    hymad scenario --synthetic --seed 7
    hymad config --write settings.json
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from analysis.metrics import DetectionSummary
from core.conditioning import validate_samples
from core.detection import get_policy
from core.runtime import METHODS, DetectionRuntime
from daq.file_source import FileSource, load_samples
from daq.simulated_source import BackgroundSpec, SimulatedBackground
from recording.trace_writer import TraceWriter, save_npz
from shared.app_settings import AppSettings, load_settings, save_settings
from shared.errors import HyMadError

logger = logging.getLogger("hymad")


def _methods(choice: str) -> List[str]:
    return list(METHODS) if choice == "both" else [choice]


def _load_app_settings(args: argparse.Namespace) -> AppSettings:
    settings = load_settings(args.config) if args.config else AppSettings()
    if getattr(args, "sample_rate", None) is not None:
        settings = replace(settings, sample_rate=args.sample_rate)
    if args.log_level:
        settings = replace(settings, log_level=args.log_level)
    return settings


def _print_summaries(summaries: Dict[str, DetectionSummary]) -> None:
    header = f"{'method':<10} {'events':>6} {'active':>7} {'longest':>8} {'anomaly':>8} {'cover':>6} {'false':>6}"
    print(header)
    for summary in summaries.values():
        print(
            f"{summary.method:<10} {summary.n_events:>6} {summary.active_samples:>7} "
            f"{summary.longest_event:>8} {('yes' if summary.anomaly_detected else 'no'):>8} "
            f"{summary.anomaly_coverage:>6.2f} {summary.false_alarms:>6}"
        )


def _write_traces(path: str, results, raw) -> None:
    base = Path(path)
    for method, result in results.items():
        out = base if len(results) == 1 else base.with_name(f"{base.stem}_{method}{base.suffix or '.csv'}")
        with TraceWriter(out) as writer:
            writer.write_result(result, raw)
        print(f"trace written: {out}")


def cmd_detect(args: argparse.Namespace, runtime: DetectionRuntime) -> int:
    if args.stream:
        source = FileSource(
            args.path,
            sample_rate=args.sample_rate,
            chunk_size=args.chunk_size,
            column=args.column,
            default_rate=runtime.settings.sample_rate,
        )
        print(f"streaming {source.path} at {source.sample_rate:g} Hz")
        for method in _methods(args.method):
            run = runtime.stream(source.iter_chunks(), method)
            policy = get_policy(METHODS[method])
            print(f"{method} [{policy.display_name}]: {len(run.events)} event(s) in {run.stats['chunks']} chunk(s)")
            for event in run.events:
                print(f"  samples {event.onset}-{event.offset} peak ratio {event.peak_ratio:.2f}")
        return 0

    samples, file_rate = load_samples(args.path, column=args.column)
    if file_rate is not None and args.sample_rate is None:
        runtime.settings = replace(runtime.settings, sample_rate=file_rate)
    if args.strict:
        longest = max(runtime.config_for(m).window for m in _methods(args.method))
        validate_samples(samples, min_length=longest)
    comparison = runtime.compare(samples, methods=_methods(args.method))
    _print_summaries(comparison.summaries)
    if args.trace:
        _write_traces(args.trace, comparison.results, samples)
    if args.npz:
        print(f"traces saved: {save_npz(comparison.results, args.npz, raw=samples)}")
    return 0


def cmd_scenario(args: argparse.Namespace, runtime: DetectionRuntime) -> int:
    if args.synthetic:
        background = SimulatedBackground(BackgroundSpec(n_samples=args.samples), seed=args.seed)
        raw = background.samples
    elif args.path:
        raw, _ = load_samples(args.path, column=args.column)
    else:
        raise HyMadError("scenario needs a data file or --synthetic")

    scenario, comparison = runtime.run_scenario(raw)
    print(
        f"segment: {scenario.n_samples} samples from index {scenario.segment_start}; "
        f"natural spikes: {scenario.spike_indices.size}; "
        f"anomaly [{scenario.anomaly.start}, {scenario.anomaly.stop}) amplitude {scenario.anomaly.amplitude:.4g}"
    )
    _print_summaries(comparison.summaries)
    if args.npz:
        print(f"traces saved: {save_npz(comparison.results, args.npz, raw=scenario.test_signal)}")
    return 0


def cmd_config(args: argparse.Namespace, runtime: DetectionRuntime) -> int:
    path = save_settings(runtime.settings, args.write)
    print(f"settings written: {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hymad", description="Impulse-robust STA/LTA anomaly detection")
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--log-level", choices=("DEBUG", "INFO", "WARNING", "ERROR"), default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="run detectors over a recorded signal")
    detect.add_argument("path", help="data file (.txt, .csv, .dat, .asc, .npy, .wav)")
    detect.add_argument("--method", choices=(*METHODS, "both"), default="both")
    detect.add_argument("--column", type=int, default=None, help="column of a multi-column table")
    detect.add_argument("--sample-rate", type=float, default=None)
    detect.add_argument("--strict", action="store_true", help="reject signals shorter than the smoothing window")
    detect.add_argument("--stream", action="store_true", help="process in chunks with causal windows")
    detect.add_argument("--chunk-size", type=int, default=256)
    detect.add_argument("--trace", help="CSV path for per-sample traces")
    detect.add_argument("--npz", help="NPZ path for per-sample traces")
    detect.set_defaults(func=cmd_detect)

    scenario = sub.add_parser("scenario", help="inject a synthetic anomaly and compare methods")
    scenario.add_argument("path", nargs="?", help="background data file")
    scenario.add_argument("--column", type=int, default=None)
    scenario.add_argument("--synthetic", action="store_true", help="use a simulated background")
    scenario.add_argument("--samples", type=int, default=4000)
    scenario.add_argument("--seed", type=int, default=None)
    scenario.add_argument("--npz", help="NPZ path for per-sample traces")
    scenario.set_defaults(func=cmd_scenario)

    config = sub.add_parser("config", help="write the effective settings as JSON")
    config.add_argument("--write", required=True)
    config.set_defaults(func=cmd_config)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "stream", False):
        conflicting = [flag for flag, value in (("--trace", args.trace), ("--npz", args.npz), ("--strict", args.strict)) if value]
        if conflicting:
            parser.error(f"--stream cannot be combined with {', '.join(conflicting)}")
    try:
        settings = _load_app_settings(args)
    except (HyMadError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    runtime = DetectionRuntime(settings, logger=logger)
    try:
        return args.func(args, runtime)
    except (HyMadError, OSError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
