"""
Command-line interface for loadtest-core.

Usage:
    loadtest run                         # Run all features (config or defaults)
    loadtest run --feature Cache         # Run one feature
    loadtest run --vus 10 --iterations 100
    loadtest run --json --report out.json
    loadtest list                        # List features and scenarios
    loadtest plan                        # Show execution plan
    loadtest doctor                      # Harness vs target diagnostics
    loadtest target --port 8080          # Serve the reference target
    loadtest --version                   # Show version
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import LoadTestConfig, load_config
from .doctor import LoadTestDoctor
from .registry import load_registry
from .reporter import ConsoleReporter, ReportGenerator
from .runner import LoadTestRunner


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _load(args: argparse.Namespace) -> Optional[LoadTestConfig]:
    """Load config and apply command-line overrides; print errors and return None on failure."""
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return None

    if getattr(args, "base_url", None):
        config.base_url = args.base_url
    if getattr(args, "vus", None) is not None:
        config.vus = args.vus
    if getattr(args, "iterations", None) is not None:
        config.iterations = args.iterations
    if getattr(args, "feature", None):
        config.features = list(args.feature)
    if getattr(args, "report", None):
        config.report_path = args.report
    if getattr(args, "verbose", False):
        config.verbose = True

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return None
    return config


def cmd_run(args: argparse.Namespace) -> int:
    """Run features."""
    config = _load(args)
    if config is None:
        return 2
    _configure_logging(config.verbose)

    try:
        runner = LoadTestRunner(config)
        result = runner.run()
    except (ImportError, KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(ReportGenerator(result).to_json())
    else:
        ConsoleReporter(result, verbose=config.verbose).print_full_report()

    if config.report_path:
        ReportGenerator(result).write_json(config.report_path)
        if not args.json:
            print(f"\nReport written to: {config.report_path}")

    return 0 if result["status"] == "PASS" else 1


def cmd_plan(args: argparse.Namespace) -> int:
    """Show execution plan."""
    config = _load(args)
    if config is None:
        return 2

    try:
        plan = LoadTestRunner(config).plan()
    except (ImportError, KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(plan, indent=2))
        return 0

    print("=" * 70)
    print("LOADTEST PLAN")
    print("=" * 70)
    print()
    print(f"Target: {plan['base_url']}  VUs: {plan['vus']}  Iterations: {plan['iterations']}")
    print()
    for i, feature in enumerate(plan["features"], 1):
        hooks = [h for h, present in (("setup", feature["has_setup"]), ("teardown", feature["has_teardown"])) if present]
        hooks_str = f" [{', '.join(hooks)}]" if hooks else ""
        print(f"[{i}] {feature['name']}{hooks_str}")
        for scenario in feature["scenarios"]:
            print(f"      - {scenario}")
    print()
    summary = plan["summary"]
    print(f"Features:    {summary['features']}")
    print(f"Scenarios:   {summary['scenarios']}")
    print(f"Invocations: {summary['invocations']}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List available features."""
    config = _load(args)
    if config is None:
        return 2

    try:
        registry = load_registry(config.features_module)
    except (ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if not len(registry):
        print("No features registered.", file=sys.stderr)
        return 0

    print("Available features:")
    for feature in registry:
        print(f"  {feature.name:25s} {feature.description}")
        for scenario in feature.scenarios:
            print(f"    - {scenario}")
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    """Run diagnostics."""
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    doctor = LoadTestDoctor(config)
    diagnosis = doctor.diagnose()

    if args.json:
        print(json.dumps(diagnosis, indent=2))
    else:
        doctor.print_diagnosis(diagnosis)

    return 0 if diagnosis["summary"] == "HEALTHY" else 1


def cmd_target(args: argparse.Namespace) -> int:
    """Serve the reference target."""
    from .target import serve

    _configure_logging(False)
    serve(host=args.host, port=args.port)
    return 0


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="loadtest",
        description="Scenario-driven load and acceptance testing",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"loadtest-core {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run features")
    _add_config_arg(run_parser)
    run_parser.add_argument(
        "--feature", "-f",
        action="append",
        help="Run only the named feature (repeatable)",
    )
    run_parser.add_argument("--vus", type=int, help="Virtual users per scenario")
    run_parser.add_argument("--iterations", type=int, help="Iterations per scenario")
    run_parser.add_argument("--base-url", type=str, help="Target base URL")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    run_parser.add_argument("--json", action="store_true", help="Output JSON report")
    run_parser.add_argument("--report", type=str, help="Write JSON report to file")

    # Plan command
    plan_parser = subparsers.add_parser("plan", help="Show execution plan")
    _add_config_arg(plan_parser)
    plan_parser.add_argument("--feature", "-f", action="append", help="Plan only the named feature")
    plan_parser.add_argument("--json", action="store_true", help="Output JSON plan")

    # List command
    list_parser = subparsers.add_parser("list", help="List available features")
    _add_config_arg(list_parser)

    # Doctor command
    doctor_parser = subparsers.add_parser("doctor", help="Run diagnostics")
    _add_config_arg(doctor_parser)
    doctor_parser.add_argument("--json", action="store_true", help="Output JSON diagnostics")

    # Target command
    target_parser = subparsers.add_parser("target", help="Serve the reference target")
    target_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    target_parser.add_argument("--port", type=int, default=8080, help="Port to bind to")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "plan":
        return cmd_plan(args)
    elif args.command == "list":
        return cmd_list(args)
    elif args.command == "doctor":
        return cmd_doctor(args)
    elif args.command == "target":
        return cmd_target(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
