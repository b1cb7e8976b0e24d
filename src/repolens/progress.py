"""Weighted progress tracking for analysis runs.

Each stage contributes ``weight * local_progress / 100`` to a global
percentage. The emitted percentage never decreases within a run: a report
that would lower it re-emits the last value with the new label.
"""

import logging
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_STAGE_WEIGHTS: dict[str, int] = {
    "init": 1,
    "repo_info": 4,
    "history": 5,
    "files": 25,
    "dependencies": 5,
    "architecture": 15,
    "quality": 10,
    "heuristics": 20,
    "finalizing": 15,
}

# Stages reported by the analysis pipeline
PIPELINE_STAGES: tuple[str, ...] = tuple(DEFAULT_STAGE_WEIGHTS)


def validate_stage_weights(
    weights: Mapping[str, int], stages: Collection[str] | None = None
) -> None:
    """Check that stage weights are non-negative and sum to 100.

    Args:
        weights: Stage key -> weight
        stages: When given, the exact set of keys the weights must cover

    Raises:
        ValueError: If the weights are invalid
    """
    if not weights:
        raise ValueError("At least one progress stage is required")
    if stages is not None:
        unknown = sorted(set(weights) - set(stages))
        missing = sorted(set(stages) - set(weights))
        if unknown:
            raise ValueError(f"Unknown progress stages: {unknown}")
        if missing:
            raise ValueError(f"Missing progress stages: {missing}")
    negative = [key for key, weight in weights.items() if weight < 0]
    if negative:
        raise ValueError(f"Stage weights must be non-negative: {negative}")
    total = sum(weights.values())
    if total != 100:
        raise ValueError(f"Stage weights must sum to 100 (got {total})")


@dataclass
class ProgressStage:
    """One weighted stage of a run."""

    key: str
    weight: int
    local_progress: float = 0.0


@dataclass(frozen=True)
class ProgressEvent:
    """A progress notification.

    Attributes:
        label: Human-readable description of the current step
        percent: Global percentage (0-100)
        timestamp: Emission time (UTC)
        failed: True for the terminal failure event
    """

    label: str
    percent: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "label": self.label,
            "percent": self.percent,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.failed:
            data["failed"] = True
        return data


ProgressEmitter = Callable[[ProgressEvent], None]


class WeightedProgress:
    """Monotonic weighted progress across fixed stages.

    Example:
        >>> events = []
        >>> progress = WeightedProgress(emitter=events.append)
        >>> progress.report("files", "Fetching files", 100)
        >>> events[-1].percent
        25
    """

    def __init__(
        self,
        weights: Mapping[str, int] | None = None,
        emitter: ProgressEmitter | None = None,
    ) -> None:
        weights = dict(weights if weights is not None else DEFAULT_STAGE_WEIGHTS)
        validate_stage_weights(weights)
        self._stages = {key: ProgressStage(key, weight) for key, weight in weights.items()}
        self._emitter = emitter
        self._last = 0
        self._failed = False

    @property
    def stages(self) -> list[ProgressStage]:
        return list(self._stages.values())

    @property
    def percent(self) -> int:
        """Last emitted global percentage."""
        return self._last

    def reset(self) -> None:
        """Zero all stages at the start of a run."""
        for stage in self._stages.values():
            stage.local_progress = 0.0
        self._last = 0
        self._failed = False

    def _global(self) -> int:
        total = sum(s.weight * s.local_progress / 100 for s in self._stages.values())
        return round(total)

    def _emit(self, event: ProgressEvent) -> None:
        if self._emitter is None:
            return
        try:
            self._emitter(event)
        except Exception as e:
            # A broken listener must not abort the run
            logger.warning("Progress emitter failed: %s", e)

    def report(self, stage_key: str, label: str, local_percent: float) -> None:
        """Record local progress for a stage and emit the global percentage.

        Args:
            stage_key: Stage being reported
            label: Description of the current step
            local_percent: Stage-local progress (clamped to 0-100)

        Raises:
            KeyError: If the stage key is unknown
        """
        if stage_key not in self._stages:
            raise KeyError(f"Unknown progress stage: {stage_key}")

        self._stages[stage_key].local_progress = max(0.0, min(100.0, float(local_percent)))
        current = self._global()
        if current > self._last:
            self._last = current
        self._emit(ProgressEvent(label=label, percent=self._last))

    def complete(self, label: str = "Analysis complete") -> None:
        """Drive every stage to 100 and emit the final event."""
        for stage in self._stages.values():
            stage.local_progress = 100.0
        self._last = max(self._last, self._global())
        self._emit(ProgressEvent(label=label, percent=self._last))

    def fail(self, label: str) -> None:
        """Emit the terminal failure event (at most once per run)."""
        if self._failed:
            return
        self._failed = True
        self._emit(ProgressEvent(label=label, percent=100, failed=True))
