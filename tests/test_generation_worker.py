"""Tests for the background generation worker, with a fake plan generator."""
import uuid

import httpx
import pytest
from sqlalchemy import func, select

from cyclecoach.core.exceptions import UpstreamFailureError
from cyclecoach.llm.generator import LLMPlanGenerator, PlanArtifact
from cyclecoach.llm.openai_provider import OpenAIProvider
from cyclecoach.models import SplitPlan, UserProfile, Workout
from cyclecoach.models.enums import GenerationKind, GenerationStatus, WorkoutStatus
from cyclecoach.models.generation_job import USER_CANCELLED_MESSAGE
from cyclecoach.models.generation_metric import GenerationMetric
from cyclecoach.services.generation_metrics import GenerationMetricsService
from cyclecoach.services.generation_queue import GenerationQueueManager
from cyclecoach.services.generation_worker import PHASE_SAVING, GenerationWorker

SPLIT_PAYLOAD = {
    "name": "Push Pull Legs",
    "split_type": "ppl",
    "cycle_days": 3,
    "sessions": [
        {"day": 1, "name": "Push", "focus": ["chest"], "targetVolume": {"chest": 10}},
        {"day": 2, "name": "Pull", "focus": ["back"], "targetVolume": {"back": 10}},
        {"day": 3, "name": "Legs", "focus": ["quads"], "targetVolume": {"quads": 10}},
    ],
}

WORKOUT_PAYLOAD = {
    "workout_name": "Push A",
    "exercises": [
        {"exerciseName": "Bench Press", "sets": 4, "primaryMuscles": ["chest"], "secondaryMuscles": ["triceps"]},
    ],
}


class FakeGenerator:
    """Stands in for the LLM-backed generator."""

    def __init__(self, payload=None, error=None, on_generate=None):
        self.payload = payload
        self.error = error
        self.on_generate = on_generate
        self.calls = []

    async def generate(self, kind, context):
        self.calls.append((kind, context))
        if self.on_generate is not None:
            await self.on_generate()
        if self.error is not None:
            raise self.error
        return PlanArtifact(kind=kind, payload=self.payload)


@pytest.fixture
def queue(session_factory):
    return GenerationQueueManager(session_factory)


@pytest.fixture
def metrics(session_factory):
    return GenerationMetricsService(session_factory)


def make_worker(queue, session_factory, metrics, generator):
    return GenerationWorker(queue=queue, generator=generator, session_factory=session_factory, metrics=metrics)


async def seed_active_split(session_factory, user_id=1, current_day=2):
    async with session_factory() as session:
        plan = SplitPlan(user_id=user_id, name="PPL", cycle_days=3, sessions=SPLIT_PAYLOAD["sessions"])
        session.add(plan)
        await session.flush()
        session.add(UserProfile(user_id=user_id, current_cycle_day=current_day, active_split_plan_id=plan.id))
        await session.commit()
        return plan.id


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(model.id)))


class CancelWhileSaving(GenerationQueueManager):
    """The user cancels right after the worker reports the saving phase."""

    async def report_progress(self, request_id, phase, percent):
        updated = await super().report_progress(request_id, phase, percent)
        if phase == PHASE_SAVING.label:
            await self.cancel(request_id, actor_user_id=1)
        return updated


class TestSplitGeneration:
    @pytest.mark.asyncio
    async def test_creates_and_activates_split(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT, {"split_type": "ppl"})
        generator = FakeGenerator(payload=SPLIT_PAYLOAD)

        artifact_id = await make_worker(queue, session_factory, metrics, generator).run(request_id)

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.COMPLETED
        assert job.produced_artifact_id == artifact_id
        assert job.started_at is not None

        async with session_factory() as session:
            profile = await session.scalar(select(UserProfile).where(UserProfile.user_id == 1))
            plan = await session.get(SplitPlan, artifact_id)

        assert profile.active_split_plan_id == artifact_id
        assert profile.current_cycle_day == 1
        assert profile.current_cycle_start_date is not None
        assert plan.cycle_days == 3
        assert generator.calls[0][1]["request"] == {"split_type": "ppl"}

    @pytest.mark.asyncio
    async def test_previous_split_deactivated(self, queue, session_factory, metrics):
        old_plan_id = await seed_active_split(session_factory)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.ONBOARDING)

        new_plan_id = await make_worker(queue, session_factory, metrics, FakeGenerator(payload=SPLIT_PAYLOAD)).run(request_id)

        async with session_factory() as session:
            old_plan = await session.get(SplitPlan, old_plan_id)
            new_plan = await session.get(SplitPlan, new_plan_id)
        assert not old_plan.is_active
        assert new_plan.is_active

    @pytest.mark.asyncio
    async def test_records_successful_metric(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)

        await make_worker(queue, session_factory, metrics, FakeGenerator(payload=SPLIT_PAYLOAD)).run(request_id)

        async with session_factory() as session:
            metric = await session.scalar(select(GenerationMetric).where(GenerationMetric.request_id == request_id))
        assert metric.success is True
        assert metric.duration_ms is not None


class TestWorkoutGeneration:
    @pytest.mark.asyncio
    async def test_current_day_workout_is_ready(self, queue, session_factory, metrics):
        plan_id = await seed_active_split(session_factory, current_day=2)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.WORKOUT, target_cycle_day=2)

        workout_id = await make_worker(queue, session_factory, metrics, FakeGenerator(payload=WORKOUT_PAYLOAD)).run(request_id)

        async with session_factory() as session:
            workout = await session.get(Workout, workout_id)
        assert workout.status == WorkoutStatus.READY
        assert workout.split_plan_id == plan_id
        assert workout.cycle_day == 2
        assert workout.workout_name == "Push A"

    @pytest.mark.asyncio
    async def test_future_day_workout_is_draft(self, queue, session_factory, metrics):
        await seed_active_split(session_factory, current_day=1)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.WORKOUT, target_cycle_day=3)
        generator = FakeGenerator(payload=WORKOUT_PAYLOAD)

        workout_id = await make_worker(queue, session_factory, metrics, generator).run(request_id)

        async with session_factory() as session:
            workout = await session.get(Workout, workout_id)
        assert workout.status == WorkoutStatus.DRAFT
        assert generator.calls[0][1]["session"]["name"] == "Legs"

    @pytest.mark.asyncio
    async def test_past_day_is_rejected(self, queue, session_factory, metrics):
        await seed_active_split(session_factory, current_day=3)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.WORKOUT, target_cycle_day=1)
        generator = FakeGenerator(payload=WORKOUT_PAYLOAD)

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.FAILED
        assert "past cycle day" in job.error_message
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_workout_without_split_fails(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.WORKOUT, target_cycle_day=1)

        await make_worker(queue, session_factory, metrics, FakeGenerator(payload=WORKOUT_PAYLOAD)).run(request_id)

        assert (await queue.get(request_id)).status == GenerationStatus.FAILED


class TestFailuresAndCancellation:
    @pytest.mark.asyncio
    async def test_upstream_failure_message_recorded_verbatim(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)
        generator = FakeGenerator(error=UpstreamFailureError("The AI service is unavailable right now."))

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.FAILED
        assert job.error_message == "The AI service is unavailable right now."
        assert not job.was_cancelled
        assert await count(session_factory, SplitPlan) == 0

    @pytest.mark.asyncio
    async def test_provider_error_message_recorded_on_job(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)

        def overloaded(request):
            return httpx.Response(503, json={"error": {"message": "model overloaded, retry later"}})

        provider = OpenAIProvider(
            api_key="test-key",
            base_url="http://llm.test/v1/",
            default_model="gpt-4o-mini",
            timeout=5,
            transport=httpx.MockTransport(overloaded),
        )
        generator = LLMPlanGenerator(provider)

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.FAILED
        assert job.error_message == "AI service error: model overloaded, retry later"
        assert not job.was_cancelled

    @pytest.mark.asyncio
    async def test_unexpected_generator_error_becomes_upstream_failure(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)
        generator = FakeGenerator(error=RuntimeError("socket closed"))

        await make_worker(queue, session_factory, metrics, generator).run(request_id)

        job = await queue.get(request_id)
        assert job.error_message == "AI generation failed: socket closed"

    @pytest.mark.asyncio
    async def test_cancel_during_generation_stops_before_saving(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)

        async def user_cancels():
            await queue.cancel(request_id, actor_user_id=1)

        generator = FakeGenerator(payload=SPLIT_PAYLOAD, on_generate=user_cancels)

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.FAILED
        assert job.error_message == USER_CANCELLED_MESSAGE
        assert await count(session_factory, SplitPlan) == 0

    @pytest.mark.asyncio
    async def test_cancel_while_saving_rolls_back_split(self, session_factory, metrics):
        old_plan_id = await seed_active_split(session_factory, current_day=2)
        queue = CancelWhileSaving(session_factory)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)

        worker = make_worker(queue, session_factory, metrics, FakeGenerator(payload=SPLIT_PAYLOAD))
        assert await worker.run(request_id) is None

        job = await queue.get(request_id)
        assert job.status == GenerationStatus.FAILED
        assert job.was_cancelled
        assert job.produced_artifact_id is None

        async with session_factory() as session:
            profile = await session.scalar(select(UserProfile).where(UserProfile.user_id == 1))
            old_plan = await session.get(SplitPlan, old_plan_id)
        assert profile.active_split_plan_id == old_plan_id
        assert profile.current_cycle_day == 2
        assert old_plan.is_active
        assert await count(session_factory, SplitPlan) == 1

    @pytest.mark.asyncio
    async def test_cancel_while_saving_rolls_back_workout(self, session_factory, metrics):
        await seed_active_split(session_factory, current_day=2)
        queue = CancelWhileSaving(session_factory)
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.WORKOUT, target_cycle_day=2)

        worker = make_worker(queue, session_factory, metrics, FakeGenerator(payload=WORKOUT_PAYLOAD))
        assert await worker.run(request_id) is None

        assert (await queue.get(request_id)).was_cancelled
        assert await count(session_factory, Workout) == 0

    @pytest.mark.asyncio
    async def test_cancelled_before_start_is_skipped(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)
        await queue.cancel(request_id, actor_user_id=1)
        generator = FakeGenerator(payload=SPLIT_PAYLOAD)

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_second_worker_loses_claim(self, queue, session_factory, metrics):
        request_id = str(uuid.uuid4())
        await queue.start(1, request_id, GenerationKind.SPLIT)
        await queue.claim(request_id, "Loading your profile", 10)
        generator = FakeGenerator(payload=SPLIT_PAYLOAD)

        assert await make_worker(queue, session_factory, metrics, generator).run(request_id) is None
        assert generator.calls == []
        assert await count(session_factory, GenerationMetric) == 0

    @pytest.mark.asyncio
    async def test_unknown_job(self, queue, session_factory, metrics):
        worker = make_worker(queue, session_factory, metrics, FakeGenerator(payload=SPLIT_PAYLOAD))

        assert await worker.run(str(uuid.uuid4())) is None
