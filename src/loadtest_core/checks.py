"""
Response checks.

This module provides the assertion library used inside scenario steps.
A check evaluates a response (or a value derived from it) and produces a
CheckResult. Failed checks are ordinary, reportable outcomes: no method in
this module raises because an expectation was not met.

Every check call records exactly one CheckResult with the run's
CheckAggregator, grouped by label for the final report.

Example usage:
    def body(ctx):
        response = ctx.env.http.get(ctx.url("/v1/hello"), params={"name": "ahmed"})
        ctx.checks.is_200(response)
        ctx.checks.is_json(response)
        ctx.checks.assert_(
            response,
            "name is in greeting",
            lambda r: r.json()["message"],
            "Hello, ahmed! Ya filthy animal.",
        )
"""

import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .aggregate import CheckAggregator

LABEL_IS_2XX = "status is success"
LABEL_IS_200 = "status is 200"
LABEL_IS_JSON = "response is JSON"

# Maximum length of a captured value snapshot
SNAPSHOT_LIMIT = 200


class _Missing:
    """Sentinel type for an omitted expected value."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of a single check.

    Attributes:
        label: Check label used for report grouping
        passed: True if the expectation was met
        feature: Feature name of the invocation
        scenario: Scenario name of the invocation
        step: Description of the enclosing step (None outside a step)
        vu_id: Virtual user id
        iteration: Iteration id within the scenario
        value: Short snapshot of the evaluated value, for diagnostics
        error: Error text when evaluation itself failed
    """
    label: str
    passed: bool
    feature: str = ""
    scenario: str = ""
    step: Optional[str] = None
    vu_id: int = 0
    iteration: int = 0
    value: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def snapshot(value: Any) -> str:
    """Return a truncated repr of value for diagnostics."""
    text = repr(value)
    if len(text) > SNAPSHOT_LIMIT:
        return text[: SNAPSHOT_LIMIT - 3] + "..."
    return text


def strict_equal(actual: Any, expected: Any) -> bool:
    """
    Compare two values without bool/int coercion.

    ``True == 1`` holds in Python; a check expecting ``1`` must not pass
    on ``True`` (and vice versa).
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


class Checks:
    """
    Check library bound to one scenario invocation.

    The runner creates one instance per invocation. The Bdd engine sets
    ``current_step`` while a step body runs so results are attributed to it.
    """

    def __init__(
        self,
        aggregator: "CheckAggregator",
        feature: str = "",
        scenario: str = "",
        vu_id: int = 0,
        iteration: int = 0,
    ):
        self.aggregator = aggregator
        self.feature = feature
        self.scenario = scenario
        self.vu_id = vu_id
        self.iteration = iteration
        self.current_step: Optional[str] = None

    def _record(
        self,
        label: str,
        passed: bool,
        value: Optional[str] = None,
        error: Optional[str] = None,
    ) -> CheckResult:
        result = CheckResult(
            label=label,
            passed=passed,
            feature=self.feature,
            scenario=self.scenario,
            step=self.current_step,
            vu_id=self.vu_id,
            iteration=self.iteration,
            value=value,
            error=error,
        )
        self.aggregator.record_check(result)
        return result

    def is_2xx(self, response: Any) -> CheckResult:
        """Pass iff the response status code is in [200, 300)."""
        status = getattr(response, "status_code", None)
        passed = isinstance(status, int) and 200 <= status < 300
        return self._record(LABEL_IS_2XX, passed, value=snapshot(status))

    def is_200(self, response: Any) -> CheckResult:
        """Pass iff the response status code is exactly 200."""
        status = getattr(response, "status_code", None)
        return self._record(LABEL_IS_200, status == 200, value=snapshot(status))

    def is_json(self, response: Any) -> CheckResult:
        """Pass iff the response body parses as JSON."""
        try:
            json.loads(response.content)
        except Exception as e:
            return self._record(LABEL_IS_JSON, False, error=f"{type(e).__name__}: {e}")
        return self._record(LABEL_IS_JSON, True)

    def assert_(
        self,
        response: Any,
        label: str,
        extractor: Callable[[Any], Any],
        expected: Any = MISSING,
    ) -> CheckResult:
        """
        Evaluate ``extractor(response)`` against an expectation.

        With ``expected`` the check passes iff the extracted value equals it
        exactly. Without it the check passes iff the extracted value is truthy.
        An exception raised by the extractor fails the check; it is never
        propagated.

        Args:
            response: Response (or any value) handed to the extractor
            label: Check label for report grouping
            extractor: Callable deriving the value to check
            expected: Exact expected value (optional)

        Returns:
            The recorded CheckResult
        """
        try:
            actual = extractor(response)
        except Exception as e:
            return self._record(label, False, error=f"{type(e).__name__}: {e}")

        if expected is MISSING:
            passed = bool(actual)
        else:
            passed = strict_equal(actual, expected)
        return self._record(label, passed, value=snapshot(actual))
