"""Tests for pipeline domain models.

This module tests the Stage enum, the stage bindings and the CycleResult
dataclass.
"""

from __future__ import annotations

from listing_watch.circuit_breaker import CircuitBreaker
from listing_watch.circuit_breaker_config import (
    BROWSER_LAUNCH,
    DATA_EXTRACTION,
    PAGE_OPERATIONS,
)
from listing_watch.errors import NoDataFoundError
from listing_watch.models import STAGE_BINDINGS, CycleResult, Stage
from listing_watch.retry_config import OperationCategory


class TestStageBindings:
    """Test class for stage wiring."""

    def test_launch_binding(self) -> None:
        binding = STAGE_BINDINGS[Stage.BROWSER_LAUNCH]
        assert binding.breaker_name == BROWSER_LAUNCH
        assert binding.retry_category == OperationCategory.BROWSER_LAUNCH

    def test_page_stages_share_breaker(self) -> None:
        assert STAGE_BINDINGS[Stage.PAGE_NAVIGATION].breaker_name == PAGE_OPERATIONS
        assert STAGE_BINDINGS[Stage.ELEMENT_WAIT].breaker_name == PAGE_OPERATIONS

    def test_page_stages_use_own_retry_presets(self) -> None:
        assert STAGE_BINDINGS[Stage.PAGE_NAVIGATION].retry_category == OperationCategory.NETWORK
        assert STAGE_BINDINGS[Stage.ELEMENT_WAIT].retry_category == OperationCategory.ELEMENT_WAIT

    def test_extraction_binding(self) -> None:
        binding = STAGE_BINDINGS[Stage.DATA_EXTRACTION]
        assert binding.breaker_name == DATA_EXTRACTION
        assert binding.label == "data extraction"


class TestCycleResult:
    """Test class for CycleResult dataclass."""

    def test_success(self) -> None:
        result = CycleResult(records=[{"text": "a"}], started_at=1000.0, finished_at=3500.0)
        assert result.success is True
        assert result.duration_ms == 2500.0

    def test_failure(self) -> None:
        result = CycleResult(error=NoDataFoundError("empty"), failed_stage=Stage.DATA_EXTRACTION)
        assert result.success is False

    def test_to_dict(self, clock) -> None:
        stats = CircuitBreaker("DATA_EXTRACTION", clock=clock).get_stats()
        result = CycleResult(
            error=NoDataFoundError("empty"),
            failed_stage=Stage.DATA_EXTRACTION,
            circuit_stats={"DATA_EXTRACTION": stats},
        )
        data = result.to_dict()
        assert data["success"] is False
        assert data["record_count"] == 0
        assert data["error"] == "NoDataFoundError: empty"
        assert data["failed_stage"] == "data_extraction"
        assert data["circuits"]["DATA_EXTRACTION"]["state"] == "closed"
