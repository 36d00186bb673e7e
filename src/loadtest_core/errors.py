"""
Exception types for loadtest-core.

Check failures are never exceptions; they are recorded as CheckResult data.
The types here cover the faults that abort work:

- StepFault: a step body raised; the rest of that invocation is skipped
- FeatureError: a feature's setup or teardown hook raised
"""

from typing import Optional


class LoadTestError(Exception):
    """Base class for all loadtest-core errors."""


class StepFault(LoadTestError):
    """
    Raised when a step body raises an unexpected exception.

    Attributes:
        phase: Step phase value ("given", "when", "then")
        description: Step description
        cause: The original exception
    """

    def __init__(self, phase: str, description: str, cause: BaseException):
        self.phase = phase
        self.description = description
        self.cause = cause
        super().__init__(f"{phase} '{description}' failed: {type(cause).__name__}: {cause}")


class FeatureError(LoadTestError):
    """
    Raised (and recorded) when a feature lifecycle hook fails.

    Attributes:
        feature: Feature name
        hook: "setup" or "teardown"
        cause: The original exception, if any
    """

    def __init__(self, feature: str, hook: str, cause: Optional[BaseException] = None):
        self.feature = feature
        self.hook = hook
        self.cause = cause
        detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
        super().__init__(f"Feature '{feature}' {hook} failed{detail}")
