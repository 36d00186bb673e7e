"""
Scenario and feature model.

A Scenario packages one user journey: a body called once per invocation with
an explicit ScenarioContext. A Feature groups scenarios with optional
``setup`` and ``teardown`` hooks.

Lifecycle per feature run:
- setup(env) runs once, before any invocation; its return value is the
  shared state
- scenario bodies run many times, concurrently, each with its own context
- teardown(env, shared) runs once, after every invocation has finished

Example usage:
    from loadtest_core import Feature, Scenario

    def basic(ctx):
        ctx.bdd.when("Ahmed", lambda: ...)

    hello = Feature(
        name="Hello World",
        scenarios={"Basic scenario": Scenario("Basic scenario", basic)},
    )
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from .bdd import Bdd
from .checks import Checks


class RunEnvironment:
    """
    Ambient context shared by every invocation of a run.

    Attributes:
        base_url: Base URL of the HTTP target (no trailing slash)
        grpc_target: host:port of the gRPC target
        http: HTTP client used by scenario steps
        sleep: Blocking wait used by scenarios; blocks only the calling thread
        config: The LoadTestConfig the run was built from, if any
    """

    def __init__(
        self,
        base_url: str,
        http: httpx.Client,
        grpc_target: str = "",
        sleep: Callable[[float], None] = time.sleep,
        config: Any = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.grpc_target = grpc_target
        self.sleep = sleep
        self.config = config
        self._grpc_channel = None
        self._grpc_lock = threading.Lock()

    @property
    def grpc_channel(self):
        """Insecure gRPC channel to ``grpc_target``, opened on first access."""
        if self._grpc_channel is None:
            with self._grpc_lock:
                if self._grpc_channel is None:
                    if not self.grpc_target:
                        raise ValueError("No grpc_target configured")
                    import grpc

                    self._grpc_channel = grpc.insecure_channel(self.grpc_target)
        return self._grpc_channel

    def url(self, path: str) -> str:
        """Join ``path`` onto the base URL."""
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def close(self) -> None:
        """Close the gRPC channel if one was opened."""
        with self._grpc_lock:
            if self._grpc_channel is not None:
                self._grpc_channel.close()
                self._grpc_channel = None


class _InvocationLogger(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[vu={self.extra['vu_id']} it={self.extra['iteration']}] {msg}", kwargs


@dataclass
class ScenarioContext:
    """
    Per-invocation context passed to a scenario body.

    Attributes:
        feature: Feature name
        scenario: Scenario name
        vu_id: Virtual user id (unique within the test)
        iteration: Iteration id (unique within the scenario)
        env: Shared RunEnvironment
        shared: Shared state returned by the feature's setup (read-only)
        checks: Check library bound to this invocation
        bdd: Step engine bound to this invocation
    """
    feature: str
    scenario: str
    vu_id: int
    iteration: int
    env: RunEnvironment
    shared: Any
    checks: Checks
    bdd: Bdd
    logger: logging.LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self):
        self.logger = _InvocationLogger(
            logging.getLogger("loadtest_core.scenario"),
            {"vu_id": self.vu_id, "iteration": self.iteration},
        )

    def url(self, path: str) -> str:
        return self.env.url(path)

    def sleep(self, seconds: float) -> None:
        """Block this virtual user for ``seconds``."""
        self.env.sleep(seconds)

    def unique_key(self, prefix: str) -> str:
        """Key unique across concurrent invocations: ``<prefix>-<vu>-<iteration>``."""
        return f"{prefix}-{self.vu_id}-{self.iteration}"


ScenarioBody = Callable[[ScenarioContext], None]


@dataclass
class Scenario:
    """
    One repeatable test case.

    Attributes:
        name: Scenario name (unique within its feature)
        body: Callable run once per invocation
        description: Optional longer description
    """
    name: str
    body: ScenarioBody
    description: str = ""

    def __post_init__(self):
        if not self.name:
            raise ValueError("Scenario name is required")
        if not callable(self.body):
            raise ValueError(f"Scenario '{self.name}' body must be callable")


@dataclass
class Feature:
    """
    A named group of scenarios with optional lifecycle hooks.

    Attributes:
        name: Unique feature name
        scenarios: Mapping of scenario name to Scenario (non-empty)
        setup: Optional ``setup(env) -> shared_state``
        teardown: Optional ``teardown(env, shared_state)``
        description: Human-readable description
        tags: Free-form tags for filtering
    """
    name: str
    scenarios: Dict[str, Scenario]
    setup: Optional[Callable[[RunEnvironment], Any]] = None
    teardown: Optional[Callable[[RunEnvironment, Any], None]] = None
    description: str = ""
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate feature definition."""
        if not self.name:
            raise ValueError("Feature name is required")
        if not self.scenarios:
            raise ValueError(f"Feature '{self.name}' must have at least one scenario")
        for key, scenario in self.scenarios.items():
            if not isinstance(scenario, Scenario):
                raise ValueError(
                    f"Feature '{self.name}' scenario '{key}' must be a Scenario, got {type(scenario)}"
                )
            if key != scenario.name:
                raise ValueError(
                    f"Feature '{self.name}' maps '{key}' to scenario named '{scenario.name}'"
                )

    @classmethod
    def from_bodies(
        cls,
        name: str,
        bodies: Dict[str, ScenarioBody],
        **kwargs: Any,
    ) -> "Feature":
        """Build a feature from a mapping of scenario name to body."""
        scenarios = {key: Scenario(name=key, body=body) for key, body in bodies.items()}
        return cls(name=name, scenarios=scenarios, **kwargs)
