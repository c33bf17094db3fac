"""FailureSlot - single-winner error register shared by all workers of a run."""

import threading
from typing import List, Optional

from .security import describe_error


class FailureSlot:
    """Holds the first error any worker observed, plus everything after it.

    The first recorded error becomes the primary and is never replaced.
    Every later error is appended to the suppressed list, in recording
    order, so one root cause heads the report and nothing is dropped.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._primary: Optional[BaseException] = None
        self._suppressed: List[BaseException] = []

    def record(self, error: BaseException) -> None:
        """Record an error. Safe to call from any number of threads."""
        if error is None:
            return
        with self._lock:
            if self._primary is None:
                self._primary = error
                return
            self._suppressed.append(error)
            # Mirror the suppressed cause onto the primary's traceback.
            if error is not self._primary:
                self._primary.add_note(f"suppressed: {describe_error(error)}")

    def peek(self) -> Optional[BaseException]:
        """Return the primary error, or None. Does not block."""
        return self._primary

    def suppressed(self) -> List[BaseException]:
        with self._lock:
            return list(self._suppressed)

    def is_empty(self) -> bool:
        return self._primary is None

    def __len__(self) -> int:
        with self._lock:
            if self._primary is None:
                return 0
            return 1 + len(self._suppressed)

    def describe(self) -> str:
        """Multi-line report: the primary first, then each suppressed error."""
        primary = self._primary
        if primary is None:
            return "no failures recorded"

        suppressed = self.suppressed()
        lines = [describe_error(primary)]
        for idx, error in enumerate(suppressed, start=1):
            lines.append(f"  suppressed[{idx}]: {describe_error(error)}")
        return "\n".join(lines)
