"""
Completion Verifier

After a job completes, the produced artifact may not be visible yet on the
read path (replica lag, read-after-write). Re-read the "current active
artifact" projection a bounded number of times, then proceed either way.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cyclecoach.config.settings import get_settings
from cyclecoach.core.exceptions import VerificationTimeoutError
from cyclecoach.core.logging import get_logger
from cyclecoach.db.database import get_read_session_maker
from cyclecoach.models.enums import GenerationKind, GenerationStatus
from cyclecoach.models.generation_job import GenerationJob
from cyclecoach.repositories.split_plan_repository import SplitPlanRepository
from cyclecoach.repositories.workout_repository import WorkoutRepository

logger = get_logger(__name__)


class CompletionVerifier:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory
        self.max_attempts = max_attempts if max_attempts is not None else settings.verification_max_attempts
        self.interval = interval if interval is not None else settings.verification_interval_seconds

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        # Picked per attempt so a failing replica can be rotated out between reads
        return self._session_factory or get_read_session_maker()

    async def read_projection(
        self,
        user_id: int,
        kind: GenerationKind = GenerationKind.SPLIT,
        target_cycle_day: int | None = None,
    ) -> int | None:
        """Id of the artifact the read path currently considers active for the user."""
        async with self._sessions()() as session:
            if GenerationKind(kind) == GenerationKind.WORKOUT:
                return await WorkoutRepository(session).latest_id_for_day(user_id, target_cycle_day)
            return await SplitPlanRepository(session).get_active_split_plan_id(user_id)

    async def _wait_until_visible(
        self,
        user_id: int,
        artifact_id: int,
        kind: GenerationKind,
        target_cycle_day: int | None,
        max_attempts: int,
        interval: float,
    ) -> int:
        """Returns the attempt number that observed the artifact."""
        for attempt in range(1, max_attempts + 1):
            try:
                visible_id = await self.read_projection(user_id, kind, target_cycle_day)
            except Exception as e:
                logger.warning("verification_read_failed", user_id=user_id, attempt=attempt, error=str(e))
                visible_id = None

            if visible_id == artifact_id:
                return attempt

            if attempt < max_attempts:
                await asyncio.sleep(interval)

        raise VerificationTimeoutError(artifact_id, max_attempts)

    async def await_visibility(
        self,
        user_id: int,
        artifact_id: int,
        kind: GenerationKind = GenerationKind.SPLIT,
        target_cycle_day: int | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> bool:
        """
        True once the projection shows `artifact_id`; False after the attempts run out.

        Never raises and never waits longer than `max_attempts * interval`.
        """
        max_attempts = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        interval = interval if interval is not None else self.interval

        try:
            attempt = await self._wait_until_visible(
                user_id, artifact_id, kind, target_cycle_day, max_attempts, interval
            )
        except VerificationTimeoutError as e:
            logger.warning(
                "verification_timeout",
                user_id=user_id,
                artifact_id=artifact_id,
                code=e.code,
                attempts=max_attempts,
            )
            return False

        logger.info("artifact_visible", user_id=user_id, artifact_id=artifact_id, attempt=attempt)
        return True

    async def verify_job(self, job: GenerationJob) -> bool:
        if job.status != GenerationStatus.COMPLETED or job.produced_artifact_id is None:
            return False
        return await self.await_visibility(
            job.user_id,
            job.produced_artifact_id,
            kind=job.kind,
            target_cycle_day=job.target_cycle_day,
        )
