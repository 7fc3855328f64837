"""CLI entrypoint for progol-opt."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from progol_opt.classifier import classify
from progol_opt.errors import ProgolError
from progol_opt.exports import load_portfolio_csv, write_exports
from progol_opt.match_io import load_matches_csv
from progol_opt.optimizer import ProgressEvent
from progol_opt.pipeline import run_pipeline
from progol_opt.runtime_config import (
    DEFAULT_CONFIG_PATH,
    RuntimeConfig,
    default_runtime_config,
    load_runtime_config,
)
from progol_opt.settings import Settings
from progol_opt.validator import PortfolioValidator


def _resolve_runtime(args: argparse.Namespace) -> RuntimeConfig:
    raw_config = str(getattr(args, "config", "") or "").strip()
    if raw_config:
        runtime = load_runtime_config(Path(raw_config))
    elif DEFAULT_CONFIG_PATH.exists():
        runtime = load_runtime_config()
    else:
        runtime = default_runtime_config()
    runtime = Settings().apply(runtime)
    out_dir = str(getattr(args, "out", "") or "").strip()
    return runtime.with_overrides(
        seed=getattr(args, "seed", None),
        iterations=getattr(args, "iterations", None),
        target_size=getattr(args, "tickets", None),
        output_dir=Path(out_dir).expanduser().resolve() if out_dir else None,
        log_level=str(getattr(args, "log_level", "") or "").upper() or None,
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _cmd_classify(args: argparse.Namespace) -> int:
    runtime = _resolve_runtime(args)
    _configure_logging(runtime.log_level)
    classified = classify(load_matches_csv(Path(args.matches)), runtime.classifier)
    if args.json:
        print(json.dumps([match.to_dict() for match in classified], indent=2, ensure_ascii=False))
        return 0
    print(f"{'#':>2}  {'match':<40} {'L':>6} {'E':>6} {'V':>6}  {'category':<13} pick")
    for match in classified:
        label = f"{match.match.home_team} vs {match.match.away_team}"
        print(
            f"{match.index + 1:>2}  {label:<40} {match.p_home:>6.3f} {match.p_draw:>6.3f} "
            f"{match.p_away:>6.3f}  {match.category:<13} {match.suggested}"
        )
    return 0


def _print_progress(event: ProgressEvent) -> None:
    print(
        f"[{event.phase}] {event.percent:5.1f}% iteration={event.iteration} "
        f"best={event.best_score:.4f}",
        file=sys.stderr,
    )


def _cmd_run(args: argparse.Namespace) -> int:
    runtime = _resolve_runtime(args)
    _configure_logging(runtime.log_level)
    matches = load_matches_csv(Path(args.matches))
    result = run_pipeline(
        matches,
        runtime,
        on_progress=None if args.quiet else _print_progress,
    )
    paths = write_exports(
        runtime.output_dir, result.tickets, result.classified, result.report, rules=runtime.rules
    )
    metrics = result.report.metrics
    print(f"tickets: {len(result.tickets)}")
    print(f"valid: {'yes' if result.report.valid else 'no'}")
    print(f"portfolio_p11: {metrics.portfolio_probability:.4f}")
    print(f"mean_ticket_p11: {metrics.mean_ticket_probability:.4f}")
    print(f"total_cost: {metrics.total_cost:.0f}")
    for label, path in paths.items():
        print(f"{label}: {path}")
    return 0 if result.report.valid else 1


def _cmd_validate(args: argparse.Namespace) -> int:
    runtime = _resolve_runtime(args)
    _configure_logging(runtime.log_level)
    classified = classify(load_matches_csv(Path(args.matches)), runtime.classifier)
    tickets = load_portfolio_csv(Path(args.portfolio), classified)
    report = PortfolioValidator(runtime.rules).validate(tickets)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(f"valid: {'yes' if report.valid else 'no'}")
        for error in report.errors:
            print(f"error: {error}")
        for warning in report.warnings:
            print(f"warning: {warning}")
        print(f"portfolio_p11: {report.metrics.portfolio_probability:.4f}")
    return 0 if report.valid else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="progol-opt")
    parser.add_argument("--config", default="", help="Runtime TOML config path.")
    parser.add_argument("--log-level", dest="log_level", default="")
    subparsers = parser.add_subparsers(dest="command")

    classify_parser = subparsers.add_parser("classify", help="Calibrate and categorize matches")
    classify_parser.add_argument("matches", help="CSV with 14 matches")
    classify_parser.add_argument("--json", action="store_true")
    classify_parser.set_defaults(func=_cmd_classify)

    run_parser = subparsers.add_parser("run", help="Build, optimize, and export a portfolio")
    run_parser.add_argument("matches", help="CSV with 14 matches")
    run_parser.add_argument("--out", default="", help="Output directory for exports.")
    run_parser.add_argument("--seed", type=int, default=None)
    run_parser.add_argument("--iterations", type=int, default=None)
    run_parser.add_argument("--tickets", type=int, default=None)
    run_parser.add_argument("--quiet", action="store_true", help="Suppress progress output.")
    run_parser.set_defaults(func=_cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Validate a portfolio CSV export")
    validate_parser.add_argument("portfolio", help="Portfolio CSV (ID,Type,P1..P14,...)")
    validate_parser.add_argument("--matches", required=True, help="CSV with 14 matches")
    validate_parser.add_argument("--json", action="store_true")
    validate_parser.set_defaults(func=_cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    try:
        return int(func(args))
    except (ProgolError, FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
