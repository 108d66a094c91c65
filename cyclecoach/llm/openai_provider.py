"""OpenAI-compatible chat-completions provider."""
import json
import logging

import httpx

from cyclecoach.config.settings import get_settings
from cyclecoach.llm.base import LLMConfig, LLMProvider, LLMResponse, Message

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    Works with the OpenAI API and compatible endpoints (OpenRouter, local gateways).
    
    One pooled httpx client is reused across requests until `close()`.
    """
    
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip('/')
        self.default_model = default_model or settings.openai_model
        self.timeout = timeout or settings.openai_timeout
        self._transport = transport
        
        if not self.api_key:
            logger.warning("OpenAI API key not configured. Plan generation will fail.")
        
        self._client: httpx.AsyncClient | None = None
    
    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client
    
    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
    
    def _build_payload(self, messages: list[Message], config: LLMConfig) -> dict:
        payload = {
            "model": config.model or self.default_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": config.temperature,
        }
        if config.max_tokens:
            payload["max_tokens"] = config.max_tokens
        
        if config.json_schema:
            payload["response_format"] = {"type": "json_object"}
            # Schema hint rides on the system prompt
            if payload["messages"] and payload["messages"][0]["role"] == "system":
                payload["messages"][0]["content"] += (
                    f"\n\nRespond with valid JSON matching this schema: {json.dumps(config.json_schema)}"
                )
        return payload
    
    async def chat(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        client = await self._get_client()
        
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=self._build_payload(messages, config),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI API error: {e.response.status_code} - {e.response.text}")
            raise
        
        data = response.json()
        choice = (data.get("choices") or [{}])[0]
        content = choice.get("message", {}).get("content") or ""
        
        structured_data = None
        if config.json_schema:
            try:
                structured_data = json.loads(content)
            except json.JSONDecodeError:
                logger.warning("Failed to parse JSON from OpenAI response")
        
        usage = data.get("usage", {})
        return LLMResponse(
            content=content,
            structured_data=structured_data,
            usage={
                "prompt_tokens": usage.get("prompt_tokens"),
                "completion_tokens": usage.get("completion_tokens"),
                "total_tokens": usage.get("total_tokens"),
            },
            model=data.get("model"),
            finish_reason=choice.get("finish_reason"),
        )
    
    async def health_check(self) -> bool:
        if not self.api_key:
            return False
        
        try:
            client = await self._get_client()
            response = await client.get(f"{self.base_url}/models")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"OpenAI health check failed: {e}")
            return False
