"""
Diagnostic tool for load test runs.

The doctor tells apart failures caused by the local harness (Python,
configuration) from failures caused by the target service:

- HARNESS_ISSUE: Environment or configuration problems
- SERVICE_ISSUE: The target is unreachable or answers wrongly
- HEALTHY: Everything is working normally

Example usage:
    from loadtest_core.doctor import LoadTestDoctor

    doctor = LoadTestDoctor(config)
    diagnosis = doctor.diagnose()

    if diagnosis["summary"] == "SERVICE_ISSUE":
        print("Target is down, checks would fail for the wrong reason")
"""

import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple

import httpx

from .config import LoadTestConfig

CheckOutcome = Tuple[str, Optional[str]]


@dataclass
class DiagnosticCheck:
    """
    Definition of a diagnostic check.

    Attributes:
        name: Human-readable check name
        category: 'harness' or 'service'
        check_fn: Function that returns (status, recommendation)
        required: If True, failure makes this category fail
    """
    name: str
    category: str
    check_fn: Callable[[], CheckOutcome]
    required: bool = True


class LoadTestDoctor:
    """
    Diagnostic tool for load test issues.

    Extensible with custom checks, e.g. a gRPC health check:

        doctor.add_check(DiagnosticCheck(
            name="grpc",
            category="service",
            check_fn=lambda: ("OK", None) if grpc_is_up() else ("ERROR", "Start the gRPC server"),
        ))
    """

    def __init__(
        self,
        config: Optional[LoadTestConfig] = None,
        checks: Optional[List[DiagnosticCheck]] = None,
        http: Optional[httpx.Client] = None,
    ):
        """
        Initialize the doctor.

        Args:
            config: Run configuration (default: LoadTestConfig())
            checks: Custom checks. If None, uses default checks.
            http: HTTP client for target reachability checks (default: a short-lived httpx.Client)
        """
        self.config = config or LoadTestConfig()
        self.http = http
        self.checks = checks if checks is not None else self._default_checks()

    def _default_checks(self) -> List[DiagnosticCheck]:
        return [
            DiagnosticCheck(name="python_env", category="harness", check_fn=self._check_python_env),
            DiagnosticCheck(name="config", category="harness", check_fn=self._check_config),
            DiagnosticCheck(name="target_http", category="service", check_fn=self._check_target_http),
        ]

    def add_check(self, check: DiagnosticCheck):
        self.checks.append(check)

    def _check_python_env(self) -> CheckOutcome:
        if sys.version_info < (3, 9):
            return ("ERROR", "Upgrade to Python 3.9+")
        return ("OK", None)

    def _check_config(self) -> CheckOutcome:
        errors = self.config.validate()
        if errors:
            return ("ERROR", "Fix configuration: " + "; ".join(errors))
        return ("OK", None)

    def _check_target_http(self) -> CheckOutcome:
        url = f"{self.config.base_url.rstrip('/')}/v1/hello"
        client = self.http or httpx.Client(timeout=self.config.http_timeout)
        try:
            response = client.get(url, params={"name": "doctor"})
        except httpx.HTTPError as e:
            return ("ERROR", f"Target unreachable at {self.config.base_url}: {e}")
        finally:
            if self.http is None:
                client.close()

        if response.status_code >= 500:
            return ("ERROR", f"Target answered {response.status_code} on {url}")
        if response.status_code != 200:
            return ("WARNING", f"Target answered {response.status_code} on {url}")
        return ("OK", None)

    def diagnose(self) -> Dict[str, Any]:
        """
        Run all diagnostic checks.

        Returns:
            Dictionary containing:
            - harness: status by harness check name
            - service: status by service check name
            - summary: HEALTHY, HARNESS_ISSUE or SERVICE_ISSUE
            - recommendations: list of actionable hints
        """
        results: Dict[str, Any] = {
            "harness": {},
            "service": {},
            "summary": "HEALTHY",
            "recommendations": [],
        }
        harness_ok = True
        service_ok = True

        for check in self.checks:
            try:
                status, recommendation = check.check_fn()
            except Exception as e:
                status, recommendation = ("ERROR", f"Check '{check.name}' crashed: {e}")

            results.setdefault(check.category, {})[check.name] = status
            if recommendation:
                results["recommendations"].append(recommendation)

            if status == "ERROR" and check.required:
                if check.category == "harness":
                    harness_ok = False
                else:
                    service_ok = False

        if not harness_ok:
            results["summary"] = "HARNESS_ISSUE"
        elif not service_ok:
            results["summary"] = "SERVICE_ISSUE"

        return results

    def print_diagnosis(self, diagnosis: Optional[Dict[str, Any]] = None, output: Optional[TextIO] = None):
        """Print diagnosis results to console."""
        if diagnosis is None:
            diagnosis = self.diagnose()
        out = output or sys.stdout

        print("=" * 70, file=out)
        print("LOADTEST DOCTOR DIAGNOSTICS", file=out)
        print("=" * 70, file=out)
        print(file=out)

        for title, key in (("Harness Checks:", "harness"), ("\nService Checks:", "service")):
            print(title, file=out)
            for name, status in diagnosis[key].items():
                icon = "OK" if status == "OK" else "WA" if status == "WARNING" else "ER"
                print(f"  [{icon}] {name:20s}: {status}", file=out)

        print(f"\n{'=' * 70}", file=out)
        print(f"Summary: {diagnosis['summary']}", file=out)
        print(f"{'=' * 70}", file=out)

        if diagnosis["recommendations"]:
            print("\nRecommendations:", file=out)
            for i, rec in enumerate(diagnosis["recommendations"], 1):
                print(f"  {i}. {rec}", file=out)
        else:
            print("\nNo issues detected", file=out)
