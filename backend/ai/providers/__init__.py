from ai.providers.base import AIProvider, AIProviderError
from ai.providers.openai_provider import OpenAIProvider
from ai.providers.perplexity import PerplexityProvider
from config import settings


def get_provider(provider_name: str, api_key: str | None = None, model: str | None = None) -> AIProvider:
    providers = {
        "openai": (OpenAIProvider, settings.OPENAI_API_KEY, settings.OPENAI_MODEL),
        "perplexity": (PerplexityProvider, settings.PERPLEXITY_API_KEY, settings.PERPLEXITY_MODEL),
    }
    entry = providers.get(provider_name)
    if not entry:
        raise ValueError(f"Unknown provider: {provider_name}")
    cls, default_key, default_model = entry
    return cls(
        api_key=api_key if api_key is not None else default_key,
        model=model or default_model,
        timeout_seconds=settings.AI_REQUEST_TIMEOUT_SECONDS,
    )


__all__ = ["AIProvider", "AIProviderError", "OpenAIProvider", "PerplexityProvider", "get_provider"]
