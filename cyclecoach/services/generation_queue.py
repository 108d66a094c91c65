"""
Generation Queue

Lifecycle of AI generation jobs keyed by a client-generated request id. Each
mutation is one conditional UPDATE against the job row, so concurrent writers
(the worker, the initiating client, another tab) never interleave and terminal
states stay terminal. The first terminal write wins.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, AsyncIterator
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cyclecoach.config.settings import get_settings
from cyclecoach.core.exceptions import AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError
from cyclecoach.core.logging import get_logger
from cyclecoach.db.database import async_session_maker
from cyclecoach.models.enums import ACTIVE_GENERATION_STATUSES, GenerationKind, GenerationStatus
from cyclecoach.models.generation_job import USER_CANCELLED_MESSAGE, GenerationJob
from cyclecoach.repositories.generation_job_repository import GenerationJobRepository

logger = get_logger(__name__)

COMPLETION_PHASE = "Generation complete"


def completion_values(artifact_id: int) -> dict[str, Any]:
    return {
        "status": GenerationStatus.COMPLETED,
        "progress_percent": 100,
        "current_phase": COMPLETION_PHASE,
        "produced_artifact_id": artifact_id,
        "completed_at": datetime.utcnow(),
    }


@dataclass(frozen=True)
class JobSnapshot:
    """The `{phase, percent, status}` view delivered to clients by poll and stream."""

    request_id: str
    status: GenerationStatus
    phase: str | None
    percent: int
    error_message: str | None = None
    produced_artifact_id: int | None = None

    @classmethod
    def from_job(cls, job: GenerationJob) -> "JobSnapshot":
        return cls(
            request_id=job.request_id,
            status=GenerationStatus(job.status),
            phase=job.current_phase,
            percent=job.progress_percent or 0,
            error_message=job.error_message,
            produced_artifact_id=job.produced_artifact_id,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "status": self.status.value,
            "phase": self.phase,
            "percent": self.percent,
            "error_message": self.error_message,
            "produced_artifact_id": self.produced_artifact_id,
        }


class GenerationQueueManager:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        stale_after: timedelta | None = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory or async_session_maker
        self._stale_after = stale_after or timedelta(minutes=settings.generation_stale_after_minutes)

    def _stale_cutoff(self) -> datetime:
        return datetime.utcnow() - self._stale_after

    @staticmethod
    def _ensure_owner(job: GenerationJob, user_id: int) -> GenerationJob:
        if job.user_id != user_id:
            raise ConflictError(
                "Request id already used by another user",
                code="GEN_REQUEST_ID_TAKEN",
                details={"request_id": job.request_id},
            )
        return job

    # ----- client side -----

    async def start(
        self,
        user_id: int,
        request_id: str | UUID,
        kind: GenerationKind = GenerationKind.WORKOUT,
        owner_context: dict[str, Any] | None = None,
        target_cycle_day: int | None = None,
    ) -> GenerationJob:
        """
        Create a pending job, or return the existing one for a retried request id.

        Raises ConflictError when the user already has an active, non-stale job
        under a different request id.
        """
        request_id = str(request_id)
        kind = GenerationKind(kind)

        async with self._session_factory() as session:
            repo = GenerationJobRepository(session)

            existing = await repo.get_by_request_id(request_id)
            if existing is not None:
                logger.info("generation_start_retried", request_id=request_id, status=existing.status)
                return self._ensure_owner(existing, user_id)

            active = await repo.find_active_for_user(user_id, self._stale_cutoff())
            if active is not None and active.request_id == request_id:
                # A concurrent retry inserted it after the lookup above
                return active
            if active is not None:
                raise ConflictError(
                    "A generation is already in progress",
                    code="GEN_ACTIVE_JOB",
                    details={"active_request_id": active.request_id, "status": active.status.value},
                )

            job = GenerationJob(
                request_id=request_id,
                user_id=user_id,
                kind=kind,
                owner_context=owner_context or {},
                target_cycle_day=target_cycle_day,
                status=GenerationStatus.PENDING,
                progress_percent=0,
            )
            try:
                await repo.create(job)
                await session.commit()
            except IntegrityError:
                # Concurrent insert of the same request id; the first row wins
                await session.rollback()
                existing = await repo.get_by_request_id(request_id)
                if existing is None:
                    raise
                return self._ensure_owner(existing, user_id)

        logger.info("generation_job_created", request_id=request_id, user_id=user_id, kind=kind.value)
        return job

    async def resume(self, user_id: int) -> GenerationJob | None:
        async with self._session_factory() as session:
            return await GenerationJobRepository(session).find_active_for_user(user_id, self._stale_cutoff())

    async def active_for_days(self, user_id: int, cycle_days: list[int]) -> GenerationJob | None:
        """Active job targeting any of `cycle_days`; used to block day swaps mid-generation."""
        if not cycle_days:
            return None
        async with self._session_factory() as session:
            return await GenerationJobRepository(session).find_active_for_days(
                user_id, cycle_days, self._stale_cutoff()
            )

    async def get(self, request_id: str | UUID) -> GenerationJob | None:
        async with self._session_factory() as session:
            return await GenerationJobRepository(session).get_by_request_id(str(request_id))

    async def get_for_user(self, request_id: str | UUID, user_id: int) -> GenerationJob:
        job = await self.get(request_id)
        if job is None:
            raise NotFoundError("GenerationJob", f"Generation {request_id} not found", {"request_id": str(request_id)})
        if job.user_id != user_id:
            raise AuthorizationError("Generation belongs to another user", details={"request_id": str(request_id)})
        return job

    async def poll(self, request_id: str | UUID) -> JobSnapshot | None:
        job = await self.get(request_id)
        return JobSnapshot.from_job(job) if job is not None else None

    async def stream(
        self,
        request_id: str | UUID,
        poll_interval: float | None = None,
        max_duration: float | None = None,
    ) -> AsyncIterator[JobSnapshot]:
        """
        Yield a snapshot whenever it changes, until the job is terminal or
        `max_duration` seconds elapse. Closing the iterator never touches the job.
        """
        settings = get_settings()
        poll_interval = settings.stream_poll_interval_seconds if poll_interval is None else poll_interval
        max_duration = settings.stream_max_duration_seconds if max_duration is None else max_duration

        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_duration
        last: JobSnapshot | None = None

        while True:
            snapshot = await self.poll(request_id)
            if snapshot is None:
                raise NotFoundError("GenerationJob", f"Generation {request_id} not found", {"request_id": str(request_id)})

            if snapshot != last:
                yield snapshot
                last = snapshot

            if snapshot.is_terminal or loop.time() >= deadline:
                return
            await asyncio.sleep(poll_interval)

    async def cancel(self, request_id: str | UUID, actor_user_id: int) -> GenerationJob:
        """
        Fail the job with the reserved cancellation message.

        A cancel that loses the race to `complete` returns the completed job.
        """
        job = await self.get_for_user(request_id, actor_user_id)
        try:
            job = await self.fail(job.request_id, USER_CANCELLED_MESSAGE)
        except InvalidTransitionError:
            logger.info("generation_cancel_after_completion", request_id=job.request_id)
            job = await self.get(job.request_id)

        logger.info("generation_cancelled", request_id=job.request_id, status=job.status.value)
        return job

    async def recent(self, user_id: int, limit: int = 10) -> list[GenerationJob]:
        async with self._session_factory() as session:
            return await GenerationJobRepository(session).list_recent(user_id, limit)

    # ----- worker side -----

    async def claim(self, request_id: str, phase: str, percent: int = 0) -> bool:
        """
        Move a pending job to in_progress. Only one worker can win the claim;
        a False return means another worker owns the job or it is terminal.
        """
        async with self._session_factory() as session:
            claimed = await GenerationJobRepository(session).transition(
                request_id,
                (GenerationStatus.PENDING,),
                {
                    "status": GenerationStatus.IN_PROGRESS,
                    "current_phase": phase,
                    "progress_percent": max(0, min(100, int(percent))),
                    "started_at": datetime.utcnow(),
                },
            )
            await session.commit()

        if claimed:
            logger.info("generation_job_claimed", request_id=request_id)
        return claimed

    async def report_progress(self, request_id: str, phase: str, percent: int) -> bool:
        """
        Record progress; the first call moves pending -> in_progress.

        Returns False (without raising) when the job is terminal or unknown, which
        is also the worker's signal to stop.
        """
        percent = max(0, min(100, int(percent)))
        now = datetime.utcnow()

        async with self._session_factory() as session:
            updated = await GenerationJobRepository(session).transition(
                request_id,
                ACTIVE_GENERATION_STATUSES,
                {
                    "status": GenerationStatus.IN_PROGRESS,
                    "current_phase": phase,
                    "progress_percent": percent,
                    "started_at": func.coalesce(GenerationJob.started_at, now),
                },
            )
            await session.commit()

        if not updated:
            logger.debug("generation_progress_ignored", request_id=request_id, phase=phase, percent=percent)
        return updated

    async def complete(self, request_id: str, artifact_id: int) -> GenerationJob:
        """Only valid from in_progress; raises InvalidTransitionError otherwise."""
        async with self._session_factory() as session:
            repo = GenerationJobRepository(session)
            updated = await repo.transition(
                request_id, (GenerationStatus.IN_PROGRESS,), completion_values(artifact_id)
            )
            await session.commit()

            job = await repo.get_by_request_id(request_id)
            if job is None:
                raise NotFoundError("GenerationJob", f"Generation {request_id} not found", {"request_id": request_id})
            if not updated:
                raise InvalidTransitionError(request_id, job.status.value, GenerationStatus.COMPLETED.value)

        logger.info("generation_completed", request_id=request_id, artifact_id=artifact_id)
        return job

    async def fail(self, request_id: str, reason: str) -> GenerationJob:
        """Failing a failed job is a no-op; failing a completed job raises InvalidTransitionError."""
        async with self._session_factory() as session:
            repo = GenerationJobRepository(session)
            updated = await repo.transition(
                request_id,
                ACTIVE_GENERATION_STATUSES,
                {
                    "status": GenerationStatus.FAILED,
                    "error_message": reason,
                    "completed_at": datetime.utcnow(),
                },
            )
            await session.commit()

            job = await repo.get_by_request_id(request_id)
            if job is None:
                raise NotFoundError("GenerationJob", f"Generation {request_id} not found", {"request_id": request_id})
            if not updated and job.status != GenerationStatus.FAILED:
                raise InvalidTransitionError(request_id, job.status.value, GenerationStatus.FAILED.value)

        if updated:
            logger.info("generation_failed", request_id=request_id, reason=reason)
        return job

    # ----- maintenance -----

    async def cleanup(self, retention: timedelta | None = None) -> int:
        """Delete terminal jobs older than the retention window. Stale active jobs are kept."""
        if retention is None:
            retention = timedelta(days=get_settings().generation_retention_days)

        async with self._session_factory() as session:
            deleted = await GenerationJobRepository(session).delete_terminal_before(datetime.utcnow() - retention)
            await session.commit()

        if deleted:
            logger.info("generation_jobs_cleaned_up", deleted=deleted)
        return deleted
