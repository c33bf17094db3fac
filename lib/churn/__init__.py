"""Collection churn harness

Races create/delete/query of collections from concurrent workers and
reports whether any worker saw an unexpected failure.
"""

from .client import AdminClient, AdminResponse, RedisCollectionAdmin, create_redis_client, redis_admin_factory
from .constants import Defaults, NOT_FOUND_MARKERS, Operation, Outcome, RedisKeys
from .errors import (
    ChurnError,
    LifecycleError,
    StatusFailure,
    ResourceNotFoundError,
    ConfigNotFoundError,
    SetupError,
    RedisStartupError,
    HarnessVerdictError,
    is_expected_absence,
)
from .failures import FailureSlot
from .orchestrator import (
    Orchestrator,
    RunConfig,
    RunResult,
    NamingPolicy,
    ClientSharing,
    quiet_logging,
    run_and_assert,
)
from .security import SecureLogger, sanitize, describe_error, REDACTED
from .telemetry import HarnessMetrics, MetricSnapshot
from .worker import Worker, WorkerState, WorkerStats, WorkerVariant, BEHAVIORS

__all__ = [
    'AdminClient',
    'AdminResponse',
    'RedisCollectionAdmin',
    'create_redis_client',
    'redis_admin_factory',
    'Defaults',
    'NOT_FOUND_MARKERS',
    'Operation',
    'Outcome',
    'RedisKeys',
    'ChurnError',
    'LifecycleError',
    'StatusFailure',
    'ResourceNotFoundError',
    'ConfigNotFoundError',
    'SetupError',
    'RedisStartupError',
    'HarnessVerdictError',
    'is_expected_absence',
    'FailureSlot',
    'Orchestrator',
    'RunConfig',
    'RunResult',
    'NamingPolicy',
    'ClientSharing',
    'quiet_logging',
    'run_and_assert',
    'SecureLogger',
    'sanitize',
    'describe_error',
    'REDACTED',
    'HarnessMetrics',
    'MetricSnapshot',
    'Worker',
    'WorkerState',
    'WorkerStats',
    'WorkerVariant',
    'BEHAVIORS',
]

__version__ = '0.1.0'
