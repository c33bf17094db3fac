"""Tests for the FailureSlot single-winner error register."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from churn.failures import FailureSlot


class TestFailureSlotRecording:
    """First error wins; later errors are kept as suppressed."""

    @pytest.fixture
    def slot(self):
        return FailureSlot()

    def test_empty_slot(self, slot):
        """A new slot holds nothing."""
        assert slot.peek() is None
        assert slot.is_empty()
        assert slot.suppressed() == []
        assert len(slot) == 0

    def test_first_error_becomes_primary(self, slot):
        """First recorded error is the primary."""
        error = RuntimeError("failed to create collection0")
        slot.record(error)

        assert slot.peek() is error
        assert not slot.is_empty()
        assert len(slot) == 1

    def test_primary_never_replaced(self, slot):
        """Later errors do not overwrite the primary."""
        first = RuntimeError("first")
        slot.record(first)
        slot.record(ValueError("second"))
        slot.record(KeyError("third"))

        assert slot.peek() is first

    def test_later_errors_are_suppressed_in_order(self, slot):
        """Suppressed list keeps recording order."""
        errors = [RuntimeError(f"e{i}") for i in range(5)]
        for e in errors:
            slot.record(e)

        assert slot.suppressed() == errors[1:]
        assert len(slot) == 5

    def test_suppressed_returns_copy(self, slot):
        """Callers cannot mutate the slot through suppressed()."""
        slot.record(RuntimeError("a"))
        slot.record(RuntimeError("b"))

        slot.suppressed().clear()

        assert len(slot.suppressed()) == 1

    def test_none_is_ignored(self, slot):
        """Recording None is a no-op."""
        slot.record(None)

        assert slot.peek() is None

    def test_suppressed_attached_as_notes(self, slot):
        """Primary's notes mention each suppressed error."""
        primary = RuntimeError("primary")
        slot.record(primary)
        slot.record(ValueError("later"))

        assert any("later" in note for note in primary.__notes__)

    def test_describe_lists_everything(self, slot):
        """describe() names the primary and every suppressed error."""
        slot.record(RuntimeError("failed to create collection3"))
        slot.record(RuntimeError("failed to delete collection3"))
        slot.record(ConnectionError("connection reset"))

        report = slot.describe()

        assert report.splitlines()[0] == "RuntimeError: failed to create collection3"
        assert "suppressed[1]: RuntimeError: failed to delete collection3" in report
        assert "suppressed[2]: ConnectionError: connection reset" in report

    def test_describe_empty(self, slot):
        assert slot.describe() == "no failures recorded"

    def test_describe_sanitizes_credentials(self, slot):
        """Connection URLs with passwords are redacted."""
        slot.record(ConnectionError("cannot reach redis://admin:hunter2@db:6379"))

        assert "hunter2" not in slot.describe()


class TestFailureSlotConcurrency:
    """Safe under many concurrent recorders."""

    def test_concurrent_records_lose_nothing(self):
        """Every error from every thread is either primary or suppressed."""
        slot = FailureSlot()
        threads_count = 20
        per_thread = 50
        gate = threading.Barrier(threads_count)

        def record_many(idx):
            gate.wait()
            for j in range(per_thread):
                slot.record(RuntimeError(f"t{idx}-e{j}"))

        with ThreadPoolExecutor(max_workers=threads_count) as executor:
            list(executor.map(record_many, range(threads_count)))

        assert len(slot) == threads_count * per_thread
        messages = {str(slot.peek())} | {str(e) for e in slot.suppressed()}
        assert len(messages) == threads_count * per_thread

    def test_first_recorded_stays_primary_under_contention(self):
        """E1 recorded before the race remains primary; E2..En all suppressed."""
        slot = FailureSlot()
        first = RuntimeError("E1")
        slot.record(first)
        others = [RuntimeError(f"E{i}") for i in range(2, 40)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(slot.record, others))

        assert slot.peek() is first
        assert sorted(map(str, slot.suppressed())) == sorted(map(str, others))
