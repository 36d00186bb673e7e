"""
Concurrency-safe aggregation of check results and faults.

Virtual users record into one CheckAggregator from many threads at once.
Every mutation and every snapshot happens under a single lock, so no result
is lost or double-counted under any interleaving.

Example usage:
    aggregator = CheckAggregator()
    checks = Checks(aggregator, feature="Cache", scenario="Can set and get")
    ...
    summary = aggregator.summary()
    print(summary["checks"]["by_label"])
"""

import threading
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .checks import CheckResult

# Number of failing checks and faults kept verbatim for diagnostics
DEFAULT_SAMPLE_LIMIT = 20


@dataclass(frozen=True)
class FaultRecord:
    """
    An invocation aborted by a step fault.

    Attributes:
        feature: Feature name
        scenario: Scenario name
        vu_id: Virtual user id
        iteration: Iteration id
        phase: Phase of the faulting step
        step: Description of the faulting step
        error: Error text
    """
    feature: str
    scenario: str
    vu_id: int
    iteration: int
    phase: str
    step: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FeatureErrorRecord:
    """A failed setup or teardown hook."""
    feature: str
    hook: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class _PassFail:
    __slots__ = ("passed", "failed")

    def __init__(self) -> None:
        self.passed = 0
        self.failed = 0

    def add(self, passed: bool) -> None:
        if passed:
            self.passed += 1
        else:
            self.failed += 1

    def to_dict(self) -> Dict[str, int]:
        return {"passed": self.passed, "failed": self.failed}


class CheckAggregator:
    """
    Thread-safe accumulator for a load test run.

    Tracks:
    - check pass/fail counts by label and by step description
    - completed invocations and step faults by scenario
    - feature-level setup/teardown errors
    """

    def __init__(self, sample_limit: int = DEFAULT_SAMPLE_LIMIT):
        self.sample_limit = sample_limit
        self._lock = threading.Lock()
        self._by_label: Dict[str, _PassFail] = {}
        self._by_step: Dict[str, _PassFail] = {}
        self._failed_samples: List[CheckResult] = []
        self._faults_by_scenario: Counter = Counter()
        self._fault_samples: List[FaultRecord] = []
        self._fault_total = 0
        self._iterations: Counter = Counter()
        self._feature_errors: List[FeatureErrorRecord] = []

    def record_check(self, result: CheckResult) -> None:
        """Record one check outcome."""
        with self._lock:
            self._by_label.setdefault(result.label, _PassFail()).add(result.passed)
            if result.step is not None:
                self._by_step.setdefault(result.step, _PassFail()).add(result.passed)
            if not result.passed and len(self._failed_samples) < self.sample_limit:
                self._failed_samples.append(result)

    def record_fault(self, fault: FaultRecord) -> None:
        """Record an invocation aborted by a step fault."""
        with self._lock:
            self._fault_total += 1
            self._faults_by_scenario[f"{fault.feature}/{fault.scenario}"] += 1
            if len(self._fault_samples) < self.sample_limit:
                self._fault_samples.append(fault)

    def record_iteration(self, feature: str, scenario: str) -> None:
        """Count one finished invocation, faulted or not."""
        with self._lock:
            self._iterations[f"{feature}/{scenario}"] += 1

    def record_feature_error(self, feature: str, hook: str, error: str) -> None:
        """Record a failed setup or teardown hook."""
        with self._lock:
            self._feature_errors.append(FeatureErrorRecord(feature=feature, hook=hook, error=error))

    @property
    def fault_count(self) -> int:
        with self._lock:
            return self._fault_total

    def label_counts(self, label: str) -> Dict[str, int]:
        """Return pass/fail counts for one label (zeros if never recorded)."""
        with self._lock:
            counts = self._by_label.get(label)
            return counts.to_dict() if counts else {"passed": 0, "failed": 0}

    def summary(self) -> Dict[str, Any]:
        """
        Build a consistent snapshot of everything recorded so far.

        Returns:
            Dictionary containing:
            - status: PASS if no check failed and no fault occurred
            - checks_ok: True if no check failed
            - faults_ok: True if no step fault or feature error occurred
            - checks: total/passed/failed and by_label breakdown
            - by_step: pass/fail counts by step description
            - faults: total, by_scenario and samples
            - feature_errors: list of hook failures
            - iterations: finished invocations by "feature/scenario"
            - failed_samples: first failing checks, for diagnostics
        """
        with self._lock:
            by_label = {label: c.to_dict() for label, c in sorted(self._by_label.items())}
            by_step = {step: c.to_dict() for step, c in self._by_step.items()}
            passed = sum(c.passed for c in self._by_label.values())
            failed = sum(c.failed for c in self._by_label.values())
            fault_total = self._fault_total
            faults_by_scenario = dict(self._faults_by_scenario)
            fault_samples = [f.to_dict() for f in self._fault_samples]
            feature_errors = [e.to_dict() for e in self._feature_errors]
            iterations = dict(self._iterations)
            failed_samples = [r.to_dict() for r in self._failed_samples]

        checks_ok = failed == 0
        faults_ok = fault_total == 0 and not feature_errors
        return {
            "status": "PASS" if checks_ok and faults_ok else "FAIL",
            "checks_ok": checks_ok,
            "faults_ok": faults_ok,
            "checks": {
                "total": passed + failed,
                "passed": passed,
                "failed": failed,
                "by_label": by_label,
            },
            "by_step": by_step,
            "faults": {
                "total": fault_total,
                "by_scenario": faults_by_scenario,
                "samples": fault_samples,
            },
            "feature_errors": feature_errors,
            "iterations": iterations,
            "failed_samples": failed_samples,
        }


def pass_rate(counts: Dict[str, int]) -> Optional[float]:
    """Return passed / total for a pass/fail dict, or None if empty."""
    total = counts.get("passed", 0) + counts.get("failed", 0)
    if total == 0:
        return None
    return counts.get("passed", 0) / total
