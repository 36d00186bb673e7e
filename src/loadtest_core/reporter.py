"""
Report generation for load test runs.

This module turns the runner's summary dictionary into a JSON report (with
run metadata) or a human-readable console report.

The report keeps check failures and faults apart, so a run can be judged
"all assertions passed" independently of "no faults occurred".

Example usage:
    from loadtest_core import LoadTestRunner
    from loadtest_core.reporter import ConsoleReporter, ReportGenerator

    result = LoadTestRunner(config).run()

    ReportGenerator(result).write_json("reports/loadtest.json")
    ConsoleReporter(result).print_full_report()
"""

import json
import os
import socket
import subprocess
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .aggregate import pass_rate


@dataclass
class ReportMetadata:
    """
    Metadata about the load test execution environment.

    Attributes:
        run_id: Unique identifier for this run
        timestamp: ISO 8601 timestamp
        hostname: Machine hostname
        platform: Operating system platform
        git_branch: Current git branch (if in git repo)
        git_commit: Current git commit hash (if in git repo)
        user: Username from environment
        base_url: Target base URL
        vus: Virtual users per scenario
        iterations: Iterations per scenario
    """
    run_id: str
    timestamp: str
    hostname: str
    platform: str
    git_branch: str
    git_commit: str
    user: str
    base_url: str
    vus: int
    iterations: int


def _git(args: str, fallback_env: str) -> str:
    try:
        result = subprocess.run(
            f"git {args}",
            shell=True,
            capture_output=True,
            text=True,
            timeout=5,
        )
        return result.stdout.strip() if result.returncode == 0 else "unknown"
    except Exception:
        return os.environ.get(fallback_env, "unknown")


class ReportGenerator:
    """
    Generates JSON reports from a runner summary.
    """

    def __init__(self, result: Dict[str, Any], run_id: Optional[str] = None):
        """
        Initialize the report generator.

        Args:
            result: Summary dictionary from LoadTestRunner.run()
            run_id: Optional run identifier (generated if not provided)
        """
        self.result = result
        self.run_id = run_id or f"loadtest-{int(datetime.now().timestamp())}"

    def build_metadata(self) -> ReportMetadata:
        """Build report metadata from environment."""
        return ReportMetadata(
            run_id=self.run_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            hostname=socket.gethostname(),
            platform=sys.platform,
            git_branch=_git("rev-parse --abbrev-ref HEAD", "GIT_BRANCH"),
            git_commit=_git("rev-parse --short HEAD", "CI_COMMIT_SHA"),
            user=os.environ.get("USER", os.environ.get("USERNAME", "unknown")),
            base_url=self.result.get("base_url", ""),
            vus=self.result.get("vus", 0),
            iterations=self.result.get("iterations_per_scenario", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Build the full report.

        Returns:
            Dictionary with version, metadata, summary and details
        """
        checks = self.result.get("checks", {})
        faults = self.result.get("faults", {})
        return {
            "version": "1.0",
            "metadata": asdict(self.build_metadata()),
            "summary": {
                "status": self.result.get("status", "UNKNOWN"),
                "checks_ok": self.result.get("checks_ok", False),
                "faults_ok": self.result.get("faults_ok", False),
                "checks_total": checks.get("total", 0),
                "checks_passed": checks.get("passed", 0),
                "checks_failed": checks.get("failed", 0),
                "faults": faults.get("total", 0),
                "feature_errors": len(self.result.get("feature_errors", [])),
                "total_duration_ms": self.result.get("total_duration_ms", 0),
            },
            "checks": checks.get("by_label", {}),
            "steps": self.result.get("by_step", {}),
            "iterations": self.result.get("iterations", {}),
            "faults": faults,
            "feature_errors": self.result.get("feature_errors", []),
            "features": self.result.get("features", []),
            "failed_samples": self.result.get("failed_samples", []),
        }

    def to_json(self, indent: int = 2) -> str:
        """Generate JSON string report."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def write_json(self, path: str, indent: int = 2) -> Path:
        """
        Write JSON report to file, creating parent directories.

        Returns:
            Path to written file
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            f.write(self.to_json(indent=indent))

        return output_path


class ConsoleReporter:
    """
    Reports load test results to the console.

    Output mirrors the usual load-tool layout: one line per check label
    with a pass mark and pass rate, then faults and the final status.
    """

    def __init__(
        self,
        result: Dict[str, Any],
        verbose: bool = False,
        output: Optional[TextIO] = None,
    ):
        """
        Initialize the console reporter.

        Args:
            result: Summary dictionary from LoadTestRunner.run()
            verbose: Include failing samples and step breakdown
            output: Output stream (default: sys.stdout)
        """
        self.result = result
        self.verbose = verbose
        self.output = output or sys.stdout

    def _print(self, *args, **kwargs):
        """Print to configured output."""
        print(*args, file=self.output, **kwargs)

    def print_header(self):
        self._print("=" * 70)
        self._print("LOADTEST RUN")
        self._print("=" * 70)
        self._print(f"Target:     {self.result.get('base_url', 'unknown')}")
        self._print(f"VUs:        {self.result.get('vus', 0)}")
        self._print(f"Iterations: {self.result.get('iterations_per_scenario', 0)} per scenario")
        self._print()

    def print_checks(self):
        """Print one line per check label."""
        by_label = self.result.get("checks", {}).get("by_label", {})
        if not by_label:
            self._print("No checks recorded")
            return

        self._print("Checks:")
        for label, counts in by_label.items():
            mark = "✓" if counts.get("failed", 0) == 0 else "✗"
            rate = pass_rate(counts)
            rate_str = f"{rate * 100:.1f}%" if rate is not None else "n/a"
            self._print(
                f"  {mark} {label:40s} {rate_str:>7s}  "
                f"✓ {counts.get('passed', 0)} / ✗ {counts.get('failed', 0)}"
            )

    def print_steps(self):
        """Print check counts by step description."""
        by_step = self.result.get("by_step", {})
        if not by_step:
            return
        self._print("\nChecks by step:")
        for step, counts in by_step.items():
            self._print(f"  {step:40s} {counts.get('passed', 0):5d} passed, {counts.get('failed', 0):5d} failed")

    def print_faults(self):
        """Print step faults and feature errors."""
        faults = self.result.get("faults", {})
        feature_errors = self.result.get("feature_errors", [])

        if faults.get("total", 0):
            self._print(f"\nFaults: {faults['total']}")
            for key, count in faults.get("by_scenario", {}).items():
                self._print(f"  {key:40s} {count}")
            if self.verbose:
                for sample in faults.get("samples", []):
                    self._print(
                        f"    vu={sample['vu_id']} it={sample['iteration']} "
                        f"{sample['phase']} '{sample['step']}': {sample['error'][:200]}"
                    )

        if feature_errors:
            self._print("\nFeature errors:")
            for err in feature_errors:
                self._print(f"  {err['feature']} ({err['hook']}): {err['error'][:200]}")

    def print_failed_samples(self):
        samples = self.result.get("failed_samples", [])
        if not samples:
            return
        self._print("\nFailed check samples:")
        for sample in samples:
            detail = sample.get("error") or f"value={sample.get('value')}"
            self._print(
                f"  [{sample['label']}] {sample['feature']}/{sample['scenario']} "
                f"vu={sample['vu_id']} it={sample['iteration']}: {detail}"
            )

    def print_summary(self):
        self._print()
        self._print("=" * 70)
        self._print("LOADTEST SUMMARY")
        self._print("=" * 70)

        checks = self.result.get("checks", {})
        self._print(f"Checks:  {checks.get('passed', 0)}/{checks.get('total', 0)} passed")
        self._print(f"Faults:  {self.result.get('faults', {}).get('total', 0)}")
        self._print(f"Feature errors: {len(self.result.get('feature_errors', []))}")

        iterations = sum(self.result.get("iterations", {}).values())
        self._print(f"Iterations completed: {iterations}")

        total_ms = self.result.get("total_duration_ms", 0)
        self._print(f"\nTotal time: {total_ms / 1000:.2f}s")
        self._print(f"\nStatus: {self.result.get('status', 'UNKNOWN')}")

    def print_full_report(self):
        """Print complete report with all sections."""
        self.print_header()
        self.print_checks()
        if self.verbose:
            self.print_steps()
            self.print_failed_samples()
        self.print_faults()
        self.print_summary()
