"""
Generation Worker

Runs one generation job end to end as a background task: claims the pending
job, gathers context, calls the plan generator, then saves the artifact and
completes the job in one transaction. A job that turns terminal mid-run (user
cancellation) stops the worker at the next phase boundary, or rolls the save back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cyclecoach.core.exceptions import (
    DomainError,
    InvalidTransitionError,
    UpstreamFailureError,
    ValidationError,
)
from cyclecoach.core.logging import add_log_context, clear_log_context, get_logger
from cyclecoach.db.database import async_session_maker
from cyclecoach.llm.generator import LLMPlanGenerator, PlanArtifact, PlanGenerator
from cyclecoach.models.enums import GenerationKind, GenerationStatus, WorkoutStatus
from cyclecoach.models.generation_job import GenerationJob
from cyclecoach.models.split_plan import SplitPlan
from cyclecoach.models.workout import Workout
from cyclecoach.repositories.generation_job_repository import GenerationJobRepository
from cyclecoach.repositories.split_plan_repository import SplitPlanRepository
from cyclecoach.repositories.workout_repository import WorkoutRepository
from cyclecoach.services.generation_metrics import GenerationMetricsService
from cyclecoach.services.generation_queue import GenerationQueueManager, completion_values
from cyclecoach.services.timeline import clamp_cycle_day, parse_sessions

logger = get_logger(__name__)

UNEXPECTED_FAILURE_MESSAGE = "Generation failed unexpectedly. Please try again."


@dataclass(frozen=True)
class Phase:
    label: str
    percent: int


PHASE_PROFILE = Phase("Loading your profile", 10)
PHASE_PLANNING = Phase("Planning your training", 25)
PHASE_AI = Phase("Generating with AI", 40)
PHASE_SAVING = Phase("Saving", 85)


class GenerationWorker:
    def __init__(
        self,
        queue: GenerationQueueManager | None = None,
        generator: PlanGenerator | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        metrics: GenerationMetricsService | None = None,
    ):
        self._session_factory = session_factory or async_session_maker
        self._queue = queue or GenerationQueueManager(self._session_factory)
        self._generator = generator or LLMPlanGenerator()
        self._metrics = metrics or GenerationMetricsService(self._session_factory)

    async def _advance(self, request_id: str, phase: Phase) -> bool:
        """Report a phase; False means the job is terminal and the run should stop."""
        if await self._queue.report_progress(request_id, phase.label, phase.percent):
            return True
        logger.info("generation_worker_stopped", request_id=request_id, phase=phase.label)
        return False

    async def _record_failure(self, request_id: str, message: str) -> None:
        try:
            await self._queue.fail(request_id, message)
        except InvalidTransitionError as e:
            logger.warning("generation_fail_rejected", request_id=request_id, error=e.message)

    async def run(self, request_id: str) -> int | None:
        """Returns the produced artifact id, or None when the job did not complete."""
        job = await self._queue.get(request_id)
        if job is None:
            logger.warning("generation_worker_unknown_job", request_id=request_id)
            return None
        if job.is_terminal:
            logger.info("generation_worker_skipped_terminal", request_id=request_id, status=job.status.value)
            return None

        if not await self._queue.claim(request_id, PHASE_PROFILE.label, PHASE_PROFILE.percent):
            logger.info("generation_worker_claim_lost", request_id=request_id)
            return None

        add_log_context(request_id=request_id, user_id=job.user_id, kind=job.kind.value)
        await self._metrics.record_start(job.user_id, request_id, job.kind)
        artifact_id: int | None = None

        try:
            artifact_id = await self._execute(job)
        except (UpstreamFailureError, ValidationError) as e:
            logger.warning("generation_worker_failed", code=e.code, error=e.message)
            await self._record_failure(request_id, e.message)
        except Exception:
            logger.exception("generation_worker_crashed")
            await self._record_failure(request_id, UNEXPECTED_FAILURE_MESSAGE)
            raise
        finally:
            await self._metrics.record_completion(request_id, success=artifact_id is not None)
            clear_log_context()

        return artifact_id

    async def _execute(self, job: GenerationJob) -> int | None:
        request_id = job.request_id
        context = await self._build_context(job)

        if not await self._advance(request_id, PHASE_PLANNING):
            return None
        if not await self._advance(request_id, PHASE_AI):
            return None

        try:
            artifact = await self._generator.generate(job.kind, context)
        except DomainError:
            raise
        except Exception as e:
            raise UpstreamFailureError(f"AI generation failed: {e}") from e

        if not await self._advance(request_id, PHASE_SAVING):
            return None
        return await self._persist(job, artifact, context)

    async def _build_context(self, job: GenerationJob) -> dict[str, Any]:
        context: dict[str, Any] = {"kind": job.kind.value, "request": dict(job.owner_context or {})}

        async with self._session_factory() as session:
            repo = SplitPlanRepository(session)
            profile = await repo.get_profile(job.user_id)
            current_day = (profile.current_cycle_day if profile else None) or 1
            context["current_cycle_day"] = current_day

            if job.kind != GenerationKind.WORKOUT:
                return context

            active = await repo.get_active_for_user(job.user_id)
            if active is None:
                raise ValidationError("split_plan", "generate a split before generating workouts")
            _, plan = active
            current_day = clamp_cycle_day(current_day, plan.cycle_days)
            context["current_cycle_day"] = current_day

        target_day = job.target_cycle_day or current_day
        if target_day < current_day:
            raise ValidationError("target_cycle_day", "cannot generate a workout for a past cycle day")
        if target_day > plan.cycle_days:
            raise ValidationError("target_cycle_day", f"split has only {plan.cycle_days} days")

        session_def = parse_sessions(plan.sessions).get(target_day)
        if session_def is None:
            raise ValidationError("target_cycle_day", f"day {target_day} is a rest day")

        context.update(
            {
                "target_cycle_day": target_day,
                "split_plan_id": plan.id,
                "split": {"name": plan.name, "split_type": plan.split_type, "cycle_days": plan.cycle_days},
                "session": session_def.model_dump(),
            }
        )
        return context

    async def _persist(self, job: GenerationJob, artifact: PlanArtifact, context: dict[str, Any]) -> int | None:
        """
        Save the artifact and complete the job in one transaction. A job that
        turned terminal meanwhile (cancelled) rolls the artifact back.
        """
        payload = artifact.payload

        async with self._session_factory() as session:
            if job.kind == GenerationKind.WORKOUT:
                target_day = context["target_cycle_day"]
                status = (
                    WorkoutStatus.READY
                    if target_day == context["current_cycle_day"]
                    else WorkoutStatus.DRAFT
                )
                workout = await WorkoutRepository(session).create(
                    Workout(
                        user_id=job.user_id,
                        split_plan_id=context["split_plan_id"],
                        cycle_day=target_day,
                        status=status,
                        workout_name=payload.get("workout_name") or context["session"].get("name"),
                        exercises=payload["exercises"],
                        created_at=datetime.utcnow(),
                    )
                )
                artifact_id = workout.id
            else:
                repo = SplitPlanRepository(session)
                plan = await repo.create(
                    SplitPlan(
                        user_id=job.user_id,
                        name=payload.get("name") or "Training Split",
                        split_type=payload.get("split_type") or (job.owner_context or {}).get("split_type"),
                        cycle_days=payload["cycle_days"],
                        sessions=payload["sessions"],
                        is_active=True,
                    )
                )
                await repo.activate(job.user_id, plan)
                artifact_id = plan.id

            completed = await GenerationJobRepository(session).transition(
                job.request_id, (GenerationStatus.IN_PROGRESS,), completion_values(artifact_id)
            )
            if not completed:
                await session.rollback()
                logger.warning("generation_complete_rejected", request_id=job.request_id)
                return None
            await session.commit()

        logger.info("generation_completed", request_id=job.request_id, artifact_id=artifact_id)
        return artifact_id


async def run_generation(request_id: str) -> int | None:
    """Background-task entry point with the default collaborators."""
    logger.info("generation_background_task_started", request_id=request_id)
    return await GenerationWorker().run(request_id)
