from ai.providers.openai_provider import OpenAIProvider


class PerplexityProvider(OpenAIProvider):
    """Perplexity's OpenAI-compatible chat completions endpoint."""

    name = "perplexity"
    BASE_URL = "https://api.perplexity.ai/chat/completions"
    DEFAULT_MODEL = "llama-3.1-sonar-small-128k-online"
    DEFAULT_MAX_TOKENS = 1000
