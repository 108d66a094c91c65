"""Tests for generation timing and duration estimates."""
import pytest

from cyclecoach.models.enums import GenerationKind
from cyclecoach.services.generation_metrics import GenerationMetricsService, weighted_recent_average


class TestWeightedRecentAverage:
    def test_newest_weighs_most(self):
        # (100 * 2 + 200 * 1) / 3
        assert weighted_recent_average([100, 200]) == 133

    def test_single_sample(self):
        assert weighted_recent_average([45000]) == 45000

    def test_empty(self):
        assert weighted_recent_average([]) is None


class TestGenerationMetricsService:
    @pytest.mark.asyncio
    async def test_defaults_without_history(self, session_factory):
        metrics = GenerationMetricsService(session_factory)

        assert await metrics.estimate_duration_ms(1, GenerationKind.SPLIT) == 60000
        assert await metrics.estimate_duration_ms(1, GenerationKind.ONBOARDING) == 60000
        assert await metrics.estimate_duration_ms(1, GenerationKind.WORKOUT) == 90000
        assert await metrics.average_duration_ms(1) is None

    @pytest.mark.asyncio
    async def test_successful_runs_feed_the_estimate(self, session_factory):
        metrics = GenerationMetricsService(session_factory)

        await metrics.record_start(1, "req-1", GenerationKind.WORKOUT)
        duration = await metrics.record_completion("req-1", success=True)

        assert duration is not None and duration >= 0
        assert await metrics.estimate_duration_ms(1, GenerationKind.WORKOUT) == duration
        assert await metrics.average_duration_ms(1, GenerationKind.WORKOUT) == duration
        # Other kinds keep their default
        assert await metrics.estimate_duration_ms(1, GenerationKind.SPLIT) == 60000

    @pytest.mark.asyncio
    async def test_failed_runs_are_excluded(self, session_factory):
        metrics = GenerationMetricsService(session_factory)

        await metrics.record_start(1, "req-2", GenerationKind.SPLIT)
        await metrics.record_completion("req-2", success=False)

        assert await metrics.estimate_duration_ms(1, GenerationKind.SPLIT) == 60000

    @pytest.mark.asyncio
    async def test_completion_without_start(self, session_factory):
        metrics = GenerationMetricsService(session_factory)

        assert await metrics.record_completion("unknown", success=True) is None
