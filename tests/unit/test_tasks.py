"""Unit tests for the structured concurrency helpers."""

import asyncio

import pytest

from repolens.errors import StageTimeoutError
from repolens.utils.tasks import Outcome, gather_settled, race_deadline


async def _value(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


async def _boom(message: str):
    await asyncio.sleep(0)
    raise RuntimeError(message)


class TestGatherSettled:
    """Tests for gather_settled()."""

    def test_all_succeed(self) -> None:
        """Test outcomes keep the input order."""
        outcomes = asyncio.run(gather_settled({"a": _value(1, 0.02), "b": _value(2)}))

        assert [o.name for o in outcomes] == ["a", "b"]
        assert [o.value for o in outcomes] == [1, 2]
        assert all(o.ok for o in outcomes)

    def test_failure_is_isolated(self) -> None:
        """Test one failing task does not hide the others."""
        outcomes = asyncio.run(
            gather_settled([("ok", _value("fine")), ("bad", _boom("nope"))])
        )

        ok, bad = outcomes
        assert ok.ok and ok.value == "fine"
        assert not bad.ok
        assert isinstance(bad.error, RuntimeError)
        assert str(bad.error) == "nope"

    def test_empty(self) -> None:
        """Test an empty join."""
        assert asyncio.run(gather_settled({})) == []


class TestOutcome:
    """Tests for Outcome."""

    def test_unwrap_or(self) -> None:
        """Test defaults for failed or empty outcomes."""
        assert Outcome(name="a", value=3).unwrap_or(0) == 3
        assert Outcome(name="a", error=ValueError()).unwrap_or(0) == 0
        assert Outcome(name="a").unwrap_or(7) == 7


class TestRaceDeadline:
    """Tests for race_deadline()."""

    def test_finishes_in_time(self) -> None:
        """Test the result is returned before the deadline."""
        assert asyncio.run(race_deadline("stage", _value("done"), 1.0)) == "done"

    def test_timeout(self) -> None:
        """Test the timer winning raises StageTimeoutError."""
        with pytest.raises(StageTimeoutError) as exc_info:
            asyncio.run(race_deadline("architecture", _value("late", 0.5), 0.05))

        assert exc_info.value.stage == "architecture"

    def test_error_propagates(self) -> None:
        """Test an error inside the deadline propagates unchanged."""
        with pytest.raises(RuntimeError, match="broken"):
            asyncio.run(race_deadline("stage", _boom("broken"), 1.0))

    def test_late_task_is_not_cancelled(self) -> None:
        """Test the raced task keeps running after the deadline."""

        async def scenario():
            finished = asyncio.Event()

            async def slow():
                await asyncio.sleep(0.1)
                finished.set()
                return "late"

            with pytest.raises(StageTimeoutError):
                await race_deadline("stage", slow(), 0.01)
            await asyncio.wait_for(finished.wait(), timeout=1.0)
            return finished.is_set()

        assert asyncio.run(scenario()) is True
