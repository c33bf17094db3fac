"""Error taxonomy for the churn harness.

Workers never let these escape; everything is funneled into a FailureSlot
and surfaced once, as a HarnessVerdictError, when the run is judged.
"""

from typing import List, Optional

from .constants import NOT_FOUND_MARKERS


class ChurnError(Exception):
    """Base exception for churn errors."""
    pass


class LifecycleError(ChurnError):
    """A lifecycle call against a resource failed."""

    def __init__(self, message: str, operation: str = "", resource: str = ""):
        super().__init__(message)
        self.operation = operation
        self.resource = resource


class StatusFailure(LifecycleError):
    """A lifecycle call returned normally but with a non-zero status."""

    def __init__(self, operation: str, resource: str, status: int, detail: str = ""):
        message = f"failed to {operation} {resource}"
        if detail:
            message = f"{message} (status={status}: {detail})"
        else:
            message = f"{message} (status={status})"
        super().__init__(message, operation=operation, resource=resource)
        self.status = status


class ResourceNotFoundError(LifecycleError):
    """The addressed resource does not exist."""
    pass


class ConfigNotFoundError(ChurnError):
    """The configuration a resource is created from was never uploaded."""

    def __init__(self, config_name: str):
        super().__init__(f"Can not find the specified config set: {config_name}")
        self.config_name = config_name


class SetupError(ChurnError):
    """Pre-run setup (config upload) failed; the run never started."""
    pass


class RedisStartupError(ChurnError):
    """Failed to connect to Redis after all retries."""
    pass


class HarnessVerdictError(AssertionError):
    """The run observed at least one unexpected failure."""

    def __init__(self, message: str, primary: Optional[BaseException] = None,
                 suppressed: Optional[List[BaseException]] = None):
        super().__init__(message)
        self.primary = primary
        self.suppressed = list(suppressed or [])


def is_expected_absence(error: BaseException) -> bool:
    """Check if a query error just means the resource is absent."""
    if isinstance(error, ResourceNotFoundError):
        return True
    message = str(error)
    return any(marker in message for marker in NOT_FOUND_MARKERS)
