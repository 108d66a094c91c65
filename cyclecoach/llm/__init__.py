"""LLM adapter package."""
from cyclecoach.llm.base import (
    LLMProvider,
    LLMConfig,
    LLMResponse,
    Message,
)
from cyclecoach.llm.schemas import (
    SPLIT_PLAN_SCHEMA,
    WORKOUT_SCHEMA,
)

__all__ = [
    "LLMProvider",
    "LLMConfig",
    "LLMResponse",
    "Message",
    "SPLIT_PLAN_SCHEMA",
    "WORKOUT_SCHEMA",
    "get_llm_provider",
    "cleanup_llm_provider",
]


# Module-level singleton instance
_provider_instance: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Get the singleton LLM provider instance.
    
    Reuses one HTTP connection pool for the life of the process.
    """
    global _provider_instance
    
    if _provider_instance is not None:
        return _provider_instance
    
    from cyclecoach.config.settings import get_settings
    
    settings = get_settings()
    
    if settings.llm_provider == "openai":
        from cyclecoach.llm.openai_provider import OpenAIProvider
        _provider_instance = OpenAIProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
    
    return _provider_instance


async def cleanup_llm_provider():
    """Close the provider's HTTP connections. Called on application shutdown."""
    global _provider_instance
    
    if _provider_instance is not None:
        await _provider_instance.close()
        _provider_instance = None
