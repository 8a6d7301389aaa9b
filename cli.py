#!/usr/bin/env python3
"""Command-line interface for arbiter-governed text optimization."""

import argparse
import json
import sys
from pathlib import Path


def cmd_run(args):
    """Optimize a text file with the configured engine and oracle."""
    from tfm_arbiter.config import load_config, get_default_config
    from tfm_arbiter.engine import LLMIterationEngine
    from tfm_arbiter.llm import create_provider_from_config
    from tfm_arbiter.oracle import create_oracle
    from tfm_arbiter.pipeline import run_optimization
    from tfm_arbiter.utils.logging import setup_logging

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {args.input}")
        sys.exit(1)

    input_text = input_path.read_text()
    if not input_text.strip():
        print("Error: Input file is empty")
        sys.exit(1)

    try:
        app_config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: {args.config} not found")
        print("Copy config.json.sample to config.json and configure your providers")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    setup_logging("DEBUG" if args.verbose else app_config.log_level, app_config.log_json)

    arbiter_config = app_config.arbiter
    if args.mode:
        arbiter_config = get_default_config(args.mode)
    if args.max_iterations is not None:
        try:
            arbiter_config = arbiter_config.with_overrides(budget={"max_iterations": args.max_iterations})
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

    try:
        provider = create_provider_from_config(app_config.llm, role="engine")
        oracle = create_oracle(app_config)
    except ValueError as e:
        print(f"Error: Could not create providers: {e}")
        sys.exit(1)

    engine = LLMIterationEngine(provider, app_config.engine)

    def on_progress(iteration, decision):
        print(f"  [{iteration}/{arbiter_config.budget.max_iterations}] {decision.action.value}: {decision.reason}")

    print(f"Optimizing {input_path.name} in {arbiter_config.mode.value} mode...")

    try:
        result = run_optimization(
            input_text,
            engine,
            oracle,
            arbiter_config,
            oracle_timeout=app_config.oracle.timeout,
            progress_callback=on_progress,
        )
    except KeyboardInterrupt:
        print("\n\nInterrupted.")
        sys.exit(130)

    print("\n" + "=" * 60)
    print(result.summary())
    print(f"  Action: {result.action.value}")
    print(f"  Iterations: {result.iterations}")
    print(f"  Tokens: {result.savings.initial_tokens} -> {result.savings.final_tokens} "
          f"({result.savings.percentage_saved:+.1f}% saved)")
    print(f"  Time: {result.elapsed_sec:.1f}s")
    if result.mode_free:
        m = result.mode_free
        print(f"  Quality gain: {m.quality_gain_percent:+.1f}% (votes {m.judge_votes})")
        print(f"  Compactness: {m.compactness_percent:+.1f}%")
        print(f"  RGI: {m.rgi:.3f}  Efficiency: {m.efficiency:.3f}")

    if args.telemetry:
        telemetry_path = Path(args.telemetry)
        telemetry_path.parent.mkdir(parents=True, exist_ok=True)
        telemetry_path.write_text(json.dumps([d.to_dict() for d in result.decisions], indent=2, default=str))
        print(f"  Telemetry written to: {args.telemetry}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.final_text)
        print(f"\nOutput written to: {args.output}")
    else:
        print("\n" + result.final_text)


def cmd_presets(args):
    """Print a threshold preset as JSON."""
    from tfm_arbiter.config import get_default_config

    print(json.dumps(get_default_config(args.mode).to_dict(), indent=2))


def cmd_init_config(args):
    """Write a default configuration file."""
    from tfm_arbiter.config import create_default_config

    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"Error: {args.path} already exists (use --force to overwrite)")
        sys.exit(1)
    path.write_text(json.dumps(create_default_config(), indent=2) + "\n")
    print(f"Wrote {args.path}")


def main():
    parser = argparse.ArgumentParser(
        description="TFM Arbiter - expand/compress text optimization with automatic stopping"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Optimize a text file until the arbiter stops the loop"
    )
    run_parser.add_argument(
        "input",
        help="Input text file to optimize"
    )
    run_parser.add_argument(
        "--config", "-c",
        default="config.json",
        help="Configuration file (default: config.json)"
    )
    run_parser.add_argument(
        "--mode", "-m",
        choices=["tech", "creative"],
        help="Threshold preset (default: from config.json)"
    )
    run_parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Override the iteration budget"
    )
    run_parser.add_argument(
        "--output", "-o",
        help="Output file (prints to stdout if not specified)"
    )
    run_parser.add_argument(
        "--telemetry",
        help="Write per-iteration decisions as JSON to this file"
    )
    run_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )
    run_parser.set_defaults(func=cmd_run)

    # Presets command
    presets_parser = subparsers.add_parser(
        "presets",
        help="Show the thresholds of a preset"
    )
    presets_parser.add_argument(
        "mode",
        choices=["tech", "creative"],
        help="Preset name"
    )
    presets_parser.set_defaults(func=cmd_presets)

    # Init-config command
    init_parser = subparsers.add_parser(
        "init-config",
        help="Write a default config.json"
    )
    init_parser.add_argument(
        "path",
        nargs="?",
        default="config.json",
        help="Destination (default: config.json)"
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file"
    )
    init_parser.set_defaults(func=cmd_init_config)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
