"""Run orchestration - build workers, race them, judge the run.

One run owns one FailureSlot. Workers are released together, join when
their deadline passes (or a failure is seen), and the run passes only if
the slot is still empty afterwards.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .client import AdminClient
from .constants import Defaults
from .errors import HarnessVerdictError, SetupError
from .failures import FailureSlot
from .security import SecureLogger, describe_error
from .telemetry import HarnessMetrics
from .worker import Worker, WorkerStats, WorkerVariant

logger = SecureLogger(logging.getLogger(__name__))

VERDICT_PREFIX = "concurrent create and delete collection failed"


class NamingPolicy(Enum):
    """How workers name their collections and configs."""
    DISTINCT = "distinct"
    SHARED_CONFIG = "shared-config"


class ClientSharing(Enum):
    """Whether each worker gets its own admin handle."""
    PER_WORKER = "per-worker"
    SHARED = "shared"


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    normalized = str(value).strip().lower().replace('_', '-')
    try:
        return enum_cls(normalized)
    except ValueError:
        choices = ', '.join(v.value for v in enum_cls)
        raise ValueError(f"Unknown {enum_cls.__name__} {value!r} (expected one of: {choices})")


@dataclass
class RunConfig:
    """Everything a single run needs to know."""
    worker_count: int = Defaults.WORKER_COUNT
    variant: WorkerVariant = WorkerVariant.OBSERVING
    duration_seconds: float = Defaults.RUN_SECONDS
    naming: NamingPolicy = NamingPolicy.DISTINCT
    client_sharing: ClientSharing = ClientSharing.PER_WORKER
    resource_prefix: str = Defaults.RESOURCE_PREFIX
    shared_config_name: str = Defaults.SHARED_CONFIG_NAME
    worker_label: Optional[str] = None

    def __post_init__(self):
        self.variant = WorkerVariant.parse(self.variant)
        self.naming = _parse_enum(NamingPolicy, self.naming)
        self.client_sharing = _parse_enum(ClientSharing, self.client_sharing)
        if self.worker_label is None:
            if self.variant is WorkerVariant.OBSERVING:
                self.worker_label = "create-delete-search"
            else:
                self.worker_label = "create-delete"

    @classmethod
    def from_env(cls) -> 'RunConfig':
        """Build a config from CHURN_* environment variables."""
        return cls(
            worker_count=int(os.environ.get('CHURN_WORKERS', str(Defaults.WORKER_COUNT))),
            variant=os.environ.get('CHURN_VARIANT', WorkerVariant.OBSERVING.value),
            duration_seconds=float(os.environ.get('CHURN_RUN_SECONDS', str(Defaults.RUN_SECONDS))),
            naming=os.environ.get('CHURN_NAMING', NamingPolicy.DISTINCT.value),
            client_sharing=os.environ.get('CHURN_CLIENT_SHARING', ClientSharing.PER_WORKER.value),
            shared_config_name=os.environ.get('CHURN_SHARED_CONFIG', Defaults.SHARED_CONFIG_NAME),
        )

    def validate(self) -> None:
        if self.worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {self.worker_count}")
        if self.duration_seconds < 0:
            raise ValueError(f"duration_seconds must be >= 0, got {self.duration_seconds}")

    def resource_name(self, index: int) -> str:
        return f"{self.resource_prefix}{index}"

    def config_name(self, index: int) -> str:
        if self.naming is NamingPolicy.SHARED_CONFIG:
            return self.shared_config_name
        return self.resource_name(index)

    def worker_name(self, index: int) -> str:
        return f"{self.worker_label}-{index}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'worker_count': self.worker_count,
            'variant': self.variant.value,
            'duration_seconds': self.duration_seconds,
            'naming': self.naming.value,
            'client_sharing': self.client_sharing.value,
            'resource_prefix': self.resource_prefix,
            'shared_config_name': self.shared_config_name,
        }


@dataclass
class RunResult:
    """Verdict of one run."""
    config: RunConfig
    passed: bool
    primary: Optional[BaseException]
    suppressed: List[BaseException]
    failure_report: str
    duration_seconds: float
    worker_stats: List[WorkerStats] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_iterations(self) -> int:
        return sum(s.iterations for s in self.worker_stats)

    def assert_passed(self) -> None:
        """Raise HarnessVerdictError naming the primary and every suppressed error."""
        if self.passed:
            return
        raise HarnessVerdictError(
            f"{VERDICT_PREFIX}: {self.failure_report}",
            primary=self.primary,
            suppressed=self.suppressed
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'passed': self.passed,
            'config': self.config.to_dict(),
            'duration_seconds': round(self.duration_seconds, 3),
            'total_iterations': self.total_iterations,
            'primary': describe_error(self.primary) if self.primary is not None else None,
            'suppressed': [describe_error(e) for e in self.suppressed],
            'workers': [s.to_dict() for s in self.worker_stats],
            'metrics': self.metrics,
        }


@contextmanager
def quiet_logging(name: str, level: int = logging.WARNING):
    """Temporarily set a logger's level, restoring the previous one on exit."""
    target = logging.getLogger(name)
    saved_level = target.level
    target.setLevel(level)
    try:
        yield target
    finally:
        target.setLevel(saved_level)


class Orchestrator:
    """Spawns, runs and joins the workers of one run."""

    def __init__(
        self,
        config: RunConfig,
        client_factory: Callable[[], AdminClient],
        metrics: Optional[HarnessMetrics] = None,
        clock: Callable[[], float] = time.time
    ):
        config.validate()
        self.config = config
        self.client_factory = client_factory
        self.metrics = metrics if metrics is not None else HarnessMetrics()
        self.clock = clock

    def required_configs(self) -> List[str]:
        """Config names that must be uploaded before run() is called."""
        names = []
        for i in range(self.config.worker_count):
            name = self.config.config_name(i)
            if name not in names:
                names.append(name)
        return names

    def prepare(self, config_dir: Path, uploader: Optional[AdminClient] = None) -> List[str]:
        """Upload config_dir once under every required config name."""
        owned = uploader is None
        client = self.client_factory() if owned else uploader
        uploaded = []
        try:
            for config_name in self.required_configs():
                try:
                    client.upload_config(Path(config_dir), config_name)
                except Exception as e:
                    raise SetupError(f"Failed to upload config {config_name}: {describe_error(e)}") from e
                uploaded.append(config_name)
        finally:
            if owned:
                client.close()
        logger.info("Uploaded %d config(s) from %s", len(uploaded), str(config_dir))
        return uploaded

    def build_workers(
        self,
        failures: FailureSlot,
        deadline: float
    ) -> Tuple[List[Worker], List[AdminClient]]:
        """One worker per index; returns the workers and the handles created for them."""
        clients: List[AdminClient] = []
        workers = []
        try:
            shared = None
            if self.config.client_sharing is ClientSharing.SHARED:
                shared = self.client_factory()
                clients.append(shared)

            for i in range(self.config.worker_count):
                if shared is not None:
                    client = shared
                else:
                    client = self.client_factory()
                    clients.append(client)
                workers.append(Worker(
                    name=self.config.worker_name(i),
                    resource_name=self.config.resource_name(i),
                    config_name=self.config.config_name(i),
                    deadline=deadline,
                    client=client,
                    failures=failures,
                    variant=self.config.variant,
                    metrics=self.metrics,
                    clock=self.clock
                ))
        except BaseException:
            # Handles made before the failure are never returned to the caller.
            for client in clients:
                client.close()
            raise
        return workers, clients

    def run(self) -> RunResult:
        failures = FailureSlot()
        started = time.time()
        workers, clients = self.build_workers(failures, deadline=float('inf'))
        # Connecting the handles can take a while; the clock starts once they exist.
        deadline = self.clock() + self.config.duration_seconds
        for worker in workers:
            worker.deadline = deadline

        logger.info(
            "Starting %d %s worker(s) for %.1fs (naming=%s, clients=%s)",
            len(workers),
            self.config.variant.value,
            self.config.duration_seconds,
            self.config.naming.value,
            self.config.client_sharing.value
        )

        start_gate = threading.Barrier(len(workers))
        try:
            with ThreadPoolExecutor(max_workers=len(workers), thread_name_prefix="churn") as executor:
                futures = [
                    executor.submit(self._run_worker, worker, start_gate, failures)
                    for worker in workers
                ]
                wait(futures)
        finally:
            for client in clients:
                client.close()

        result = RunResult(
            config=self.config,
            passed=failures.peek() is None,
            primary=failures.peek(),
            suppressed=failures.suppressed(),
            failure_report=failures.describe(),
            duration_seconds=time.time() - started,
            worker_stats=[w.stats for w in workers],
            metrics=self.metrics.get_summary()
        )

        if result.passed and result.total_iterations == 0 and self.config.duration_seconds > 0:
            logger.warning("Run passed without a single iteration in %.1fs", self.config.duration_seconds)
        elif result.passed:
            logger.info("Run passed: %d iterations in %.2fs", result.total_iterations, result.duration_seconds)
        else:
            logger.warning("Run failed with %d error(s): %s", 1 + len(result.suppressed), describe_error(result.primary))
        return result

    @staticmethod
    def _run_worker(worker: Worker, start_gate: threading.Barrier, failures: FailureSlot) -> WorkerStats:
        # Anything escaping here is a harness bug, not a lifecycle failure; still report it.
        try:
            start_gate.wait(timeout=Defaults.START_TIMEOUT_SECONDS)
            return worker.run()
        except Exception as e:
            failures.record(e)
            return worker.stats


def run_and_assert(config: RunConfig, client_factory: Callable[[], AdminClient], **kwargs) -> RunResult:
    """Run once and raise HarnessVerdictError unless the run passed."""
    result = Orchestrator(config, client_factory, **kwargs).run()
    result.assert_passed()
    return result
