"""Tests for LLM-backed plan generation against a mocked OpenAI-compatible endpoint."""
import json

import httpx
import pytest

from cyclecoach.core.exceptions import UpstreamFailureError
from cyclecoach.llm.base import LLMConfig, Message
from cyclecoach.llm.generator import LLMPlanGenerator, validate_payload
from cyclecoach.llm.openai_provider import OpenAIProvider
from cyclecoach.models.enums import GenerationKind


def completion(content: str) -> dict:
    return {
        "model": "gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


def make_provider(handler) -> OpenAIProvider:
    return OpenAIProvider(
        api_key="test-key",
        base_url="http://llm.test/v1/",
        default_model="gpt-4o-mini",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_chat_requests_json_and_parses_it(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion('{"ok": true}'))

        provider = make_provider(handler)
        response = await provider.chat(
            [Message(role="system", content="sys"), Message(role="user", content="hi")],
            LLMConfig(json_schema={"type": "object"}),
        )
        await provider.close()

        assert seen["url"] == "http://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert "Respond with valid JSON" in seen["body"]["messages"][0]["content"]
        assert response.structured_data == {"ok": True}
        assert response.usage["total_tokens"] == 30

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self):
        provider = make_provider(lambda request: httpx.Response(503, text="overloaded"))

        with pytest.raises(httpx.HTTPStatusError):
            await provider.chat([Message(role="user", content="hi")], LLMConfig())

    @pytest.mark.asyncio
    async def test_health_check_without_key(self):
        provider = OpenAIProvider(api_key="", base_url="http://llm.test/v1")
        provider.api_key = ""

        assert await provider.health_check() is False


class TestLLMPlanGenerator:
    @pytest.mark.asyncio
    async def test_generates_split_artifact(self):
        plan = {"name": "PPL", "cycle_days": 3, "sessions": [{"day": 1, "name": "Push", "targetVolume": {"chest": 10}}]}
        generator = LLMPlanGenerator(make_provider(lambda request: httpx.Response(200, json=completion(json.dumps(plan)))))

        artifact = await generator.generate(GenerationKind.SPLIT, {"request": {}})

        assert artifact.kind == GenerationKind.SPLIT
        assert artifact.payload["cycle_days"] == 3

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_upstream_failure(self):
        generator = LLMPlanGenerator(make_provider(lambda request: httpx.Response(500, text="boom")))

        with pytest.raises(UpstreamFailureError) as exc_info:
            await generator.generate(GenerationKind.WORKOUT, {})
        assert exc_info.value.message == "AI service error: 500 boom"

    @pytest.mark.asyncio
    async def test_unparseable_output_is_upstream_failure(self):
        generator = LLMPlanGenerator(make_provider(lambda request: httpx.Response(200, json=completion("not json"))))

        with pytest.raises(UpstreamFailureError):
            await generator.generate(GenerationKind.SPLIT, {})


class TestValidatePayload:
    def test_workout_needs_exercises(self):
        with pytest.raises(UpstreamFailureError):
            validate_payload(GenerationKind.WORKOUT, {"workout_name": "A", "exercises": []})

    def test_split_needs_positive_cycle_days(self):
        with pytest.raises(UpstreamFailureError):
            validate_payload(GenerationKind.SPLIT, {"cycle_days": 0, "sessions": []})

    def test_valid_split(self):
        payload = {"cycle_days": 2, "sessions": []}

        assert validate_payload(GenerationKind.ONBOARDING, payload) is payload
