"""Plan generation on top of an LLM provider."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from cyclecoach.core.exceptions import UpstreamFailureError
from cyclecoach.core.logging import get_logger
from cyclecoach.llm.base import LLMConfig, LLMProvider, Message
from cyclecoach.llm.schemas import SPLIT_PLAN_SCHEMA, WORKOUT_SCHEMA
from cyclecoach.models.enums import GenerationKind

logger = get_logger(__name__)

SYSTEM_PROMPTS = {
    GenerationKind.SPLIT: (
        "You are a strength coach. Design a repeating training split for the athlete. "
        "Every training day lists target weekly sets per muscle group; omit rest days."
    ),
    GenerationKind.ONBOARDING: (
        "You are a strength coach onboarding a new athlete. Design their first repeating "
        "training split from the questionnaire answers. Omit rest days."
    ),
    GenerationKind.WORKOUT: (
        "You are a strength coach. Write the workout for the given split day so it covers "
        "the session's target volume. Tag each exercise with primary and secondary muscles."
    ),
}


@dataclass
class PlanArtifact:
    """A generated split plan or workout, not yet persisted."""

    kind: GenerationKind
    payload: dict[str, Any] = field(default_factory=dict)


class PlanGenerator(Protocol):
    async def generate(self, kind: GenerationKind, context: dict[str, Any]) -> PlanArtifact:
        ...


def upstream_error_detail(error: httpx.HTTPError) -> str:
    """The provider's own error message when it sent one, else the transport error."""
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict) and body["error"].get("message"):
            return str(body["error"]["message"])
        if response.text.strip():
            return f"{response.status_code} {response.text.strip()}"
        return f"{response.status_code} {response.reason_phrase}"
    return str(error) or type(error).__name__


def validate_payload(kind: GenerationKind, payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise UpstreamFailureError("AI returned an unreadable plan. Please try again.")

    if kind == GenerationKind.WORKOUT:
        exercises = payload.get("exercises")
        if not isinstance(exercises, list) or not exercises:
            raise UpstreamFailureError("AI returned a workout without exercises. Please try again.")
        return payload

    cycle_days = payload.get("cycle_days")
    if not isinstance(cycle_days, int) or cycle_days < 1:
        raise UpstreamFailureError("AI returned a split without a valid cycle length. Please try again.")
    if not isinstance(payload.get("sessions"), list):
        raise UpstreamFailureError("AI returned a split without sessions. Please try again.")
    return payload


class LLMPlanGenerator:
    def __init__(self, provider: LLMProvider | None = None, temperature: float = 0.7):
        self._provider = provider
        self._temperature = temperature

    def _get_provider(self) -> LLMProvider:
        if self._provider is None:
            from cyclecoach.llm import get_llm_provider

            self._provider = get_llm_provider()
        return self._provider

    async def generate(self, kind: GenerationKind, context: dict[str, Any]) -> PlanArtifact:
        kind = GenerationKind(kind)
        schema = WORKOUT_SCHEMA if kind == GenerationKind.WORKOUT else SPLIT_PLAN_SCHEMA
        messages = [
            Message(role="system", content=SYSTEM_PROMPTS[kind]),
            Message(role="user", content=json.dumps(context, default=str)),
        ]

        try:
            response = await self._get_provider().chat(
                messages,
                LLMConfig(temperature=self._temperature, json_schema=schema),
            )
        except httpx.HTTPError as e:
            detail = upstream_error_detail(e)
            logger.error("plan_generation_upstream_error", kind=kind.value, error=detail)
            raise UpstreamFailureError(f"AI service error: {detail}", {"error": str(e)}) from e

        logger.info("plan_generated", kind=kind.value, model=response.model, usage=response.usage)
        return PlanArtifact(kind=kind, payload=validate_payload(kind, response.structured_data))
