"""
Load test runner - execution runtime for features.

This module drives features the way a load-generation runtime would:

- setup runs once per feature, on the calling thread, before anything else
- each scenario gets ``vus`` virtual users, one worker thread each
- iterations are shared: a lock-guarded counter hands out iteration ids
  until ``iterations`` have been dispatched for that scenario
- teardown runs once, after the thread pool has drained

A step fault aborts only the invocation it happened in. A setup fault skips
the feature entirely. A teardown fault is recorded but keeps every check
result already collected.

Example usage:
    from loadtest_core import LoadTestConfig, LoadTestRunner

    config = LoadTestConfig(base_url="http://localhost:8080", vus=10, iterations=100)
    runner = LoadTestRunner(config)
    result = runner.run()
    print(f"Status: {result['status']}")
"""

import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from .aggregate import CheckAggregator, FaultRecord
from .bdd import Bdd, StepResult
from .checks import Checks
from .config import LoadTestConfig
from .errors import FeatureError, StepFault
from .feature import Feature, RunEnvironment, Scenario, ScenarioContext
from .registry import FeatureRegistry, load_registry

logger = logging.getLogger(__name__)


@dataclass
class InvocationResult:
    """
    Outcome of one scenario invocation.

    Attributes:
        feature: Feature name
        scenario: Scenario name
        vu_id: Virtual user id
        iteration: Iteration id
        status: PASS (ran to completion) or FAULT (aborted by an error)
        duration_ms: Execution time in milliseconds
        steps: Executed steps in order
        error: Error text for a faulted invocation
    """
    feature: str
    scenario: str
    vu_id: int
    iteration: int
    status: str
    duration_ms: int
    steps: List[StepResult] = field(default_factory=list)
    error: str = ""


@dataclass
class FeatureRunResult:
    """Summary of one feature run."""
    feature: str
    setup_ok: bool = True
    teardown_ok: bool = True
    invocations: int = 0
    faults: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "setup_ok": self.setup_ok,
            "teardown_ok": self.teardown_ok,
            "invocations": self.invocations,
            "faults": self.faults,
            "duration_ms": self.duration_ms,
        }


class IterationCounter:
    """Hands out iteration ids 0..limit-1 to concurrent virtual users."""

    def __init__(self, limit: int):
        self.limit = limit
        self._next = 0
        self._lock = threading.Lock()

    def take(self) -> Optional[int]:
        """Return the next iteration id, or None once all are dispatched."""
        with self._lock:
            if self._next >= self.limit:
                return None
            iteration = self._next
            self._next += 1
            return iteration


class FeatureRunner:
    """
    Runs one feature: setup, concurrent scenario invocations, teardown.

    Example:
        aggregator = CheckAggregator()
        runner = FeatureRunner(feature, env, vus=4, iterations=20, aggregator=aggregator)
        result = runner.run()
    """

    def __init__(
        self,
        feature: Feature,
        env: RunEnvironment,
        vus: int = 1,
        iterations: int = 1,
        aggregator: Optional[CheckAggregator] = None,
        vu_ids: Optional[Iterator[int]] = None,
        on_invocation_complete: Optional[Callable[[InvocationResult], None]] = None,
    ):
        """
        Initialize the runner.

        Args:
            feature: Feature to run
            env: Shared run environment
            vus: Virtual users per scenario
            iterations: Iterations per scenario, shared among its virtual users
            aggregator: Where checks and faults are recorded
            vu_ids: Source of virtual user ids (default: 1, 2, 3, ...)
            on_invocation_complete: Optional callback, called from worker threads
        """
        if vus < 1:
            raise ValueError("vus must be >= 1")
        if iterations < 0:
            raise ValueError("iterations must be >= 0")
        self.feature = feature
        self.env = env
        self.vus = vus
        self.iterations = iterations
        self.aggregator = aggregator or CheckAggregator()
        self.vu_ids = vu_ids or itertools.count(1)
        self.on_invocation_complete = on_invocation_complete
        self._stats_lock = threading.Lock()
        self._invocations = 0
        self._faults = 0

    def run(self) -> FeatureRunResult:
        """Run the feature to completion and return its summary."""
        result = FeatureRunResult(feature=self.feature.name)
        start = time.monotonic()

        try:
            shared = self._setup()
        except FeatureError as e:
            result.setup_ok = False
            result.duration_ms = int((time.monotonic() - start) * 1000)
            logger.error("%s; skipping all scenarios", e)
            return result

        self._dispatch(shared)

        try:
            self._teardown(shared)
        except FeatureError as e:
            result.teardown_ok = False
            logger.error("%s", e)

        result.invocations = self._invocations
        result.faults = self._faults
        result.duration_ms = int((time.monotonic() - start) * 1000)
        return result

    def _setup(self) -> Any:
        if self.feature.setup is None:
            return None
        logger.info("Running setup for feature '%s'", self.feature.name)
        try:
            return self.feature.setup(self.env)
        except Exception as e:
            self.aggregator.record_feature_error(self.feature.name, "setup", f"{type(e).__name__}: {e}")
            raise FeatureError(self.feature.name, "setup", e) from e

    def _teardown(self, shared: Any) -> None:
        if self.feature.teardown is None:
            return
        logger.info("Running teardown for feature '%s'", self.feature.name)
        try:
            self.feature.teardown(self.env, shared)
        except Exception as e:
            self.aggregator.record_feature_error(self.feature.name, "teardown", f"{type(e).__name__}: {e}")
            raise FeatureError(self.feature.name, "teardown", e) from e

    def _dispatch(self, shared: Any) -> None:
        """Run every scenario's virtual users in one pool and wait for all of them."""
        scenarios = list(self.feature.scenarios.values())
        workers = self.vus * len(scenarios)
        logger.info(
            "Feature '%s': %d scenario(s), %d VU(s) each, %d iteration(s) each",
            self.feature.name, len(scenarios), self.vus, self.iterations,
        )
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="vu") as executor:
            futures = {}
            for scenario in scenarios:
                counter = IterationCounter(self.iterations)
                for _ in range(self.vus):
                    vu_id = next(self.vu_ids)
                    future = executor.submit(self._vu_loop, scenario, vu_id, counter, shared)
                    futures[future] = (scenario.name, vu_id)

            for future in as_completed(futures):
                try:
                    future.result()
                except Exception:
                    scenario_name, vu_id = futures[future]
                    logger.exception("VU %d of '%s' crashed", vu_id, scenario_name)

    def _vu_loop(self, scenario: Scenario, vu_id: int, counter: IterationCounter, shared: Any) -> None:
        while True:
            iteration = counter.take()
            if iteration is None:
                return
            self.invoke(scenario, vu_id, iteration, shared)

    def invoke(self, scenario: Scenario, vu_id: int, iteration: int, shared: Any) -> InvocationResult:
        """
        Run one scenario invocation on the calling thread.

        Faults are recorded, never raised.
        """
        checks = Checks(
            self.aggregator,
            feature=self.feature.name,
            scenario=scenario.name,
            vu_id=vu_id,
            iteration=iteration,
        )
        bdd = Bdd(checks)
        ctx = ScenarioContext(
            feature=self.feature.name,
            scenario=scenario.name,
            vu_id=vu_id,
            iteration=iteration,
            env=self.env,
            shared=shared,
            checks=checks,
            bdd=bdd,
        )

        status = "PASS"
        error = ""
        start = time.monotonic()
        try:
            scenario.body(ctx)
        except StepFault as e:
            status = "FAULT"
            error = str(e)
            self._record_fault(scenario, vu_id, iteration, e.phase, e.description, error)
        except Exception as e:
            # Raised outside any step
            status = "FAULT"
            error = f"{type(e).__name__}: {e}"
            self._record_fault(scenario, vu_id, iteration, "", "", error)

        self.aggregator.record_iteration(self.feature.name, scenario.name)
        with self._stats_lock:
            self._invocations += 1
            if status == "FAULT":
                self._faults += 1

        result = InvocationResult(
            feature=self.feature.name,
            scenario=scenario.name,
            vu_id=vu_id,
            iteration=iteration,
            status=status,
            duration_ms=int((time.monotonic() - start) * 1000),
            steps=list(bdd.results),
            error=error,
        )
        if self.on_invocation_complete:
            try:
                self.on_invocation_complete(result)
            except Exception:
                logger.exception(
                    "on_invocation_complete failed for %s/%s vu=%d it=%d",
                    self.feature.name, scenario.name, vu_id, iteration,
                )
        return result

    def _record_fault(
        self, scenario: Scenario, vu_id: int, iteration: int, phase: str, step: str, error: str
    ) -> None:
        logger.warning(
            "Invocation %s/%s vu=%d it=%d aborted: %s",
            self.feature.name, scenario.name, vu_id, iteration, error,
        )
        self.aggregator.record_fault(
            FaultRecord(
                feature=self.feature.name,
                scenario=scenario.name,
                vu_id=vu_id,
                iteration=iteration,
                phase=phase,
                step=step,
                error=error,
            )
        )


class LoadTestRunner:
    """
    Runs the selected features of a registry against a target.

    Features run one after another. The HTTP client is opened for the run
    and closed afterwards unless one was passed in.

    Example:
        runner = LoadTestRunner(config)
        result = runner.run()

        if not result["checks_ok"]:
            for label, counts in result["checks"]["by_label"].items():
                print(label, counts)
    """

    def __init__(
        self,
        config: LoadTestConfig,
        registry: Optional[FeatureRegistry] = None,
        http: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_invocation_complete: Optional[Callable[[InvocationResult], None]] = None,
    ):
        """
        Initialize the runner.

        Args:
            config: Run configuration
            registry: Features to run (default: loaded from config.features_module)
            http: HTTP client to use (default: a new httpx.Client)
            sleep: Blocking wait used by scenarios
            on_invocation_complete: Optional per-invocation callback
        """
        self.config = config
        self.registry = registry if registry is not None else load_registry(config.features_module)
        self.http = http
        self.sleep = sleep
        self.on_invocation_complete = on_invocation_complete
        self.aggregator = CheckAggregator()

    def run(self) -> Dict[str, Any]:
        """
        Run all selected features and return the summary.

        Returns:
            CheckAggregator.summary() plus:
            - features: per-feature FeatureRunResult dictionaries
            - total_duration_ms: wall-clock time of the run
            - base_url, vus, iterations_per_scenario: run parameters
        """
        features = self.registry.select(self.config.features)
        owns_client = self.http is None
        http = self.http or httpx.Client(timeout=self.config.http_timeout)
        env = RunEnvironment(
            base_url=self.config.base_url,
            http=http,
            grpc_target=self.config.grpc_target,
            sleep=self.sleep,
            config=self.config,
        )

        vu_ids = itertools.count(1)
        feature_results: List[FeatureRunResult] = []
        start = time.monotonic()
        try:
            for feature in features:
                runner = FeatureRunner(
                    feature,
                    env,
                    vus=self.config.vus,
                    iterations=self.config.iterations,
                    aggregator=self.aggregator,
                    vu_ids=vu_ids,
                    on_invocation_complete=self.on_invocation_complete,
                )
                feature_results.append(runner.run())
        finally:
            env.close()
            if owns_client:
                http.close()

        summary = self.aggregator.summary()
        summary["features"] = [r.to_dict() for r in feature_results]
        summary["total_duration_ms"] = int((time.monotonic() - start) * 1000)
        summary["base_url"] = self.config.base_url
        summary["vus"] = self.config.vus
        summary["iterations_per_scenario"] = self.config.iterations
        return summary

    def plan(self) -> Dict[str, Any]:
        """
        Get the execution plan without running.

        Returns:
            Dictionary containing features, scenarios and totals
        """
        features = self.registry.select(self.config.features)
        return {
            "version": "1.0",
            "base_url": self.config.base_url,
            "vus": self.config.vus,
            "iterations": self.config.iterations,
            "features": [
                {
                    "name": feature.name,
                    "description": feature.description,
                    "tags": feature.tags,
                    "has_setup": feature.setup is not None,
                    "has_teardown": feature.teardown is not None,
                    "scenarios": list(feature.scenarios),
                }
                for feature in features
            ],
            "summary": {
                "features": len(features),
                "scenarios": sum(len(f.scenarios) for f in features),
                "invocations": sum(len(f.scenarios) for f in features) * self.config.iterations,
            },
        }
