"""
Given/when/then step engine.

Steps are registered and executed in the same call: ``given``, ``when`` and
``then`` run their body immediately, synchronously, on the calling thread.
There is no deferred step graph. Steps of one invocation therefore run
strictly in call order.

Checks recorded while a step body runs are attributed to that step's
description.

Fault policy: an exception escaping a step body aborts the whole remaining
invocation. The step is recorded as FAULT and a StepFault wrapping the
original exception is raised to the runner, which records it and moves on
to the next iteration. Failed checks are not faults and never abort.

Example usage:
    def body(ctx):
        response = None

        @ctx.bdd.when("Ahmed says hello")
        def _():
            nonlocal response
            response = ctx.env.http.get(ctx.url("/v1/hello"), params={"name": "ahmed"})

        ctx.bdd.then("the greeting is returned", lambda: ctx.checks.is_200(response))
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .checks import Checks
from .errors import StepFault

logger = logging.getLogger(__name__)


class Phase(Enum):
    """BDD phase of a step."""
    GIVEN = "given"
    WHEN = "when"
    THEN = "then"


@dataclass(frozen=True)
class Step:
    """
    One step: a phase tag paired with an executable body.

    Attributes:
        phase: GIVEN, WHEN or THEN
        description: Human-readable description (need not be unique)
        body: Zero-argument callable run when the step executes
    """
    phase: Phase
    description: str
    body: Callable[[], object]

    def __post_init__(self):
        if not isinstance(self.phase, Phase):
            raise ValueError(f"phase must be a Phase enum, got {type(self.phase)}")
        if not callable(self.body):
            raise ValueError("Step body must be callable")


@dataclass
class StepResult:
    """
    Result of one executed step.

    Attributes:
        phase: Phase value ("given", "when", "then")
        description: Step description
        status: PASS or FAULT
        duration_ms: Execution time in milliseconds
        error: Error text for a faulting step
    """
    phase: str
    description: str
    status: str
    duration_ms: int
    error: str = ""


StepBody = Callable[[], object]


class Bdd:
    """
    Step engine bound to one scenario invocation.

    Keeps the ordered list of executed steps for diagnostics.
    """

    def __init__(self, checks: Optional[Checks] = None):
        self.checks = checks
        self.results: List[StepResult] = []

    def given(self, description: str, body: Optional[StepBody] = None):
        """Run a GIVEN step now (or decorate a function to run it now)."""
        return self._register(Phase.GIVEN, description, body)

    def when(self, description: str, body: Optional[StepBody] = None):
        """Run a WHEN step now (or decorate a function to run it now)."""
        return self._register(Phase.WHEN, description, body)

    def then(self, description: str, body: Optional[StepBody] = None):
        """Run a THEN step now (or decorate a function to run it now)."""
        return self._register(Phase.THEN, description, body)

    def _register(self, phase: Phase, description: str, body: Optional[StepBody]):
        if body is not None:
            self.run(Step(phase=phase, description=description, body=body))
            return None

        def decorator(fn: StepBody) -> StepBody:
            self.run(Step(phase=phase, description=description, body=fn))
            return fn

        return decorator

    def run(self, step: Step) -> StepResult:
        """
        Execute a step and record its result.

        Raises:
            StepFault: If the step body raised
        """
        previous = self.checks.current_step if self.checks is not None else None
        if self.checks is not None:
            self.checks.current_step = step.description

        start = time.monotonic()
        try:
            step.body()
        except Exception as e:
            duration = int((time.monotonic() - start) * 1000)
            self.results.append(
                StepResult(
                    phase=step.phase.value,
                    description=step.description,
                    status="FAULT",
                    duration_ms=duration,
                    error=f"{type(e).__name__}: {e}",
                )
            )
            # A nested step already wrapped the original error
            if isinstance(e, StepFault):
                raise
            logger.debug("Step %s '%s' faulted: %s", step.phase.value, step.description, e)
            raise StepFault(step.phase.value, step.description, e) from e
        finally:
            if self.checks is not None:
                self.checks.current_step = previous

        result = StepResult(
            phase=step.phase.value,
            description=step.description,
            status="PASS",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        self.results.append(result)
        return result
