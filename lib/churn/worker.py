"""Churn workers - repeat a create/delete(/probe) cycle against one collection.

A worker loops until its deadline passes or any worker of the run has
recorded a failure. Errors never escape a worker: status failures and
exceptions alike go into the shared FailureSlot.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .client import AdminClient
from .constants import Defaults, MATCH_ALL_QUERY, Operation, Outcome
from .errors import StatusFailure, is_expected_absence
from .failures import FailureSlot
from .security import SecureLogger, describe_error
from .telemetry import HarnessMetrics

logger = SecureLogger(logging.getLogger(__name__))


class WorkerState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"


class WorkerVariant(Enum):
    """Per-iteration behavior of a worker."""
    BASIC = "basic"
    OBSERVING = "observing"

    @classmethod
    def parse(cls, value) -> 'WorkerVariant':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ', '.join(v.value for v in cls)
            raise ValueError(f"Unknown worker variant {value!r} (expected one of: {choices})")


@dataclass
class WorkerStats:
    name: str
    resource_name: str
    config_name: str
    variant: str
    state: str
    iterations: int = 0
    creates: int = 0
    deletes: int = 0
    probes: int = 0
    expected_absences: int = 0
    failures_recorded: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'resource_name': self.resource_name,
            'config_name': self.config_name,
            'variant': self.variant,
            'state': self.state,
            'iterations': self.iterations,
            'creates': self.creates,
            'deletes': self.deletes,
            'probes': self.probes,
            'expected_absences': self.expected_absences,
            'failures_recorded': self.failures_recorded,
        }


class Worker:
    """One concurrent churn loop bound to a single collection name."""

    def __init__(
        self,
        name: str,
        resource_name: str,
        config_name: str,
        deadline: float,
        client: AdminClient,
        failures: FailureSlot,
        variant: WorkerVariant = WorkerVariant.BASIC,
        metrics: Optional[HarnessMetrics] = None,
        clock: Callable[[], float] = time.time
    ):
        self.name = name
        self.resource_name = resource_name
        self.config_name = config_name
        self.deadline = deadline
        self.client = client
        self.failures = failures
        self.variant = WorkerVariant.parse(variant)
        self.metrics = metrics
        self.clock = clock

        self._step = BEHAVIORS[self.variant]
        self._state = WorkerState.PENDING
        self._stats = WorkerStats(
            name=name,
            resource_name=resource_name,
            config_name=config_name,
            variant=self.variant.value,
            state=self._state.value
        )

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def stats(self) -> WorkerStats:
        self._stats.state = self._state.value
        return self._stats

    def should_stop(self) -> bool:
        """Deadline passed, or some worker already recorded a failure."""
        return self.clock() >= self.deadline or self.failures.peek() is not None

    def run(self) -> WorkerStats:
        """Loop until stopped. Leaves the collection in whatever state it is in."""
        self._state = WorkerState.RUNNING
        logger.debug("%s started on %s (config %s)", self.name, self.resource_name, self.config_name)
        try:
            while not self.should_stop():
                self._step(self)
                self._stats.iterations += 1
                if self.metrics is not None:
                    self.metrics.record_iteration(self.name)
        finally:
            self._state = WorkerState.STOPPED
        logger.debug("%s stopped after %d iterations", self.name, self._stats.iterations)
        return self.stats

    def create_resource(self) -> None:
        start = time.time()
        outcome = Outcome.OK
        try:
            response = self.client.create_collection(
                self.resource_name,
                self.config_name,
                num_shards=Defaults.NUM_SHARDS,
                replication_factor=Defaults.REPLICATION_FACTOR
            )
            if response.status != 0:
                outcome = Outcome.STATUS_FAILURE
                self._record(StatusFailure(Operation.CREATE, self.resource_name, response.status, response.message))
        except Exception as e:
            outcome = Outcome.ERROR
            self._record(e)
        finally:
            self._stats.creates += 1
            self._observe(Operation.CREATE, outcome, start)

    def delete_resource(self) -> None:
        start = time.time()
        outcome = Outcome.OK
        try:
            response = self.client.delete_collection(self.resource_name)
            if response.status != 0:
                outcome = Outcome.STATUS_FAILURE
                self._record(StatusFailure(Operation.DELETE, self.resource_name, response.status, response.message))
        except Exception as e:
            outcome = Outcome.ERROR
            self._record(e)
        finally:
            self._stats.deletes += 1
            self._observe(Operation.DELETE, outcome, start)

    def probe_resource(self) -> None:
        """Query the collection just deleted; absence is expected, anything else is not."""
        start = time.time()
        outcome = Outcome.OK
        try:
            self.client.query(self.resource_name, MATCH_ALL_QUERY)
        except Exception as e:
            if is_expected_absence(e):
                outcome = Outcome.EXPECTED_ABSENCE
                self._stats.expected_absences += 1
            else:
                outcome = Outcome.ERROR
                self._record(e)
        finally:
            self._stats.probes += 1
            self._observe(Operation.QUERY, outcome, start)

    def _record(self, error: BaseException) -> None:
        self._stats.failures_recorded += 1
        logger.warning("%s recorded failure on %s: %s", self.name, self.resource_name, describe_error(error))
        self.failures.record(error)

    def _observe(self, operation: str, outcome: str, start: float) -> None:
        if self.metrics is not None:
            self.metrics.record_operation(operation, outcome, (time.time() - start) * 1000)


def basic_step(worker: Worker) -> None:
    worker.create_resource()
    worker.delete_resource()


def observing_step(worker: Worker) -> None:
    basic_step(worker)
    worker.probe_resource()


BEHAVIORS: Dict[WorkerVariant, Callable[[Worker], None]] = {
    WorkerVariant.BASIC: basic_step,
    WorkerVariant.OBSERVING: observing_step,
}
