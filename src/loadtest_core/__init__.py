"""
loadtest-core: scenario-driven load and acceptance testing for HTTP/gRPC services.

This package lets you declare named features made of given/when/then
scenarios and run them repeatedly and concurrently against a live target.
It supports:

- Immediate-execution BDD steps: given/when/then run as they are declared
- Checks: failed assertions are reported, never raised
- Concurrency-safe aggregation of check results by label
- Feature setup/teardown hooks with shared state
- Fault isolation: a faulting step aborts only its own invocation
- JSON and console reporting, YAML configuration, diagnostics

Quick Start:
    from loadtest_core import Feature, FeatureRegistry, LoadTestConfig, LoadTestRunner

    registry = FeatureRegistry()

    def greet(ctx):
        response = {}

        @ctx.bdd.when("Ahmed says hello")
        def _():
            response["r"] = ctx.env.http.get(ctx.url("/v1/hello"), params={"name": "ahmed"})

        ctx.bdd.then("the greeting is returned", lambda: ctx.checks.is_200(response["r"]))

    registry.register(Feature.from_bodies("Hello World", {"Basic scenario": greet}))

    config = LoadTestConfig(base_url="http://localhost:8080", vus=10, iterations=100)
    result = LoadTestRunner(config, registry=registry).run()

    if result["status"] == "PASS":
        print("All checks passed, no faults")

Configuration from YAML:
    from loadtest_core import load_config, LoadTestRunner

    config = load_config("loadtest.yaml")
    result = LoadTestRunner(config).run()
"""

__version__ = "0.1.0"

# Check library exports
from .checks import (
    MISSING,
    CheckResult,
    Checks,
)

# Aggregation exports
from .aggregate import (
    CheckAggregator,
    FaultRecord,
)

# Step engine exports
from .bdd import (
    Bdd,
    Phase,
    Step,
    StepResult,
)

# Error exports
from .errors import (
    FeatureError,
    LoadTestError,
    StepFault,
)

# Model exports
from .feature import (
    Feature,
    RunEnvironment,
    Scenario,
    ScenarioContext,
)
from .registry import (
    FeatureRegistry,
    load_registry,
)

# Configuration exports
from .config import (
    LoadTestConfig,
    find_config_file,
    load_config,
)

# Runner exports
from .runner import (
    FeatureRunner,
    FeatureRunResult,
    InvocationResult,
    LoadTestRunner,
)

# Reporter exports
from .reporter import (
    ConsoleReporter,
    ReportGenerator,
    ReportMetadata,
)

__all__ = [
    # Version
    "__version__",
    # Checks
    "Checks",
    "CheckResult",
    "MISSING",
    # Aggregation
    "CheckAggregator",
    "FaultRecord",
    # Steps
    "Bdd",
    "Phase",
    "Step",
    "StepResult",
    # Errors
    "LoadTestError",
    "StepFault",
    "FeatureError",
    # Model
    "Feature",
    "Scenario",
    "ScenarioContext",
    "RunEnvironment",
    "FeatureRegistry",
    "load_registry",
    # Config
    "LoadTestConfig",
    "load_config",
    "find_config_file",
    # Runner
    "LoadTestRunner",
    "FeatureRunner",
    "FeatureRunResult",
    "InvocationResult",
    # Reporter
    "ReportGenerator",
    "ConsoleReporter",
    "ReportMetadata",
]
