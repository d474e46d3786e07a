"""Domain models for the scraping pipeline.

This module defines the guarded pipeline stages, how each stage is wired to
a circuit breaker and a retry preset, and the result of one scrape cycle.

A scrape cycle progresses through these stages:
    BROWSER_LAUNCH -> PAGE_NAVIGATION -> ELEMENT_WAIT -> DATA_EXTRACTION
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .circuit_breaker_config import BROWSER_LAUNCH, DATA_EXTRACTION, PAGE_OPERATIONS
from .retry_config import OperationCategory

if TYPE_CHECKING:
    from .circuit_breaker import CircuitStats


class Stage(Enum):
    """Independently guarded pipeline stages."""

    BROWSER_LAUNCH = "browser_launch"
    PAGE_NAVIGATION = "page_navigation"
    ELEMENT_WAIT = "element_wait"
    DATA_EXTRACTION = "data_extraction"


@dataclass(frozen=True)
class StageBinding:
    """Which breaker and retry preset guard a stage.

    Attributes:
        breaker_name: Registry name of the breaker; stages sharing a
            resource share a name and therefore failure history.
        retry_category: Key into the retry presets.
        label: Human-readable name used in logs and errors.
    """

    breaker_name: str
    retry_category: OperationCategory
    label: str


STAGE_BINDINGS: dict[Stage, StageBinding] = {
    Stage.BROWSER_LAUNCH: StageBinding(
        BROWSER_LAUNCH, OperationCategory.BROWSER_LAUNCH, "browser launch"
    ),
    Stage.PAGE_NAVIGATION: StageBinding(
        PAGE_OPERATIONS, OperationCategory.NETWORK, "page navigation"
    ),
    Stage.ELEMENT_WAIT: StageBinding(
        PAGE_OPERATIONS, OperationCategory.ELEMENT_WAIT, "element wait"
    ),
    Stage.DATA_EXTRACTION: StageBinding(
        DATA_EXTRACTION, OperationCategory.DATA_EXTRACTION, "data extraction"
    ),
}


@dataclass
class CycleResult:
    """Outcome of one scrape cycle.

    Attributes:
        records: Extracted records; empty when the cycle failed.
        started_at: Wall-clock start in milliseconds.
        finished_at: Wall-clock end in milliseconds.
        circuit_stats: Breaker snapshots taken when the cycle ended.
        error: The failure that ended the cycle, None on success.
        failed_stage: Stage that raised ``error``, when known.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0
    circuit_stats: dict[str, CircuitStats] = field(default_factory=dict)
    error: BaseException | None = None
    failed_stage: Stage | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration_ms(self) -> float:
        return max(0.0, self.finished_at - self.started_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "record_count": len(self.records),
            "records": self.records,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
            "error": f"{type(self.error).__name__}: {self.error}" if self.error else None,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "circuits": {name: s.to_dict() for name, s in self.circuit_stats.items()},
        }
