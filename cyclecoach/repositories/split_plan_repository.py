from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cyclecoach.models.split_plan import SplitPlan, UserProfile
from cyclecoach.repositories.base import Repository


class SplitPlanRepository(Repository[SplitPlan, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> SplitPlan | None:
        return await self._session.get(SplitPlan, id)

    async def create(self, entity: SplitPlan) -> SplitPlan:
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def get_profile(self, user_id: int) -> UserProfile | None:
        result = await self._session.execute(
            select(UserProfile).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_profile(self, user_id: int) -> UserProfile:
        profile = await self.get_profile(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id, current_cycle_day=1)
            self._session.add(profile)
            await self._session.flush()
        return profile

    async def get_active_split_plan_id(self, user_id: int) -> int | None:
        """The "current active artifact" projection for split generation."""
        result = await self._session.execute(
            select(UserProfile.active_split_plan_id).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_active_for_user(self, user_id: int) -> tuple[UserProfile, SplitPlan] | None:
        profile = await self.get_profile(user_id)
        if profile is None or profile.active_split_plan_id is None:
            return None

        plan = await self.get(profile.active_split_plan_id)
        if plan is None:
            return None
        return profile, plan

    async def activate(self, user_id: int, plan: SplitPlan) -> UserProfile:
        """Make `plan` the user's active split and restart the cycle at day 1."""
        await self._session.execute(
            update(SplitPlan)
            .where(and_(SplitPlan.user_id == user_id, SplitPlan.id != plan.id))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        plan.is_active = True

        profile = await self.get_or_create_profile(user_id)
        profile.active_split_plan_id = plan.id
        profile.current_cycle_day = 1
        profile.current_cycle_start_date = datetime.utcnow()
        await self._session.flush()
        return profile
