from abc import ABC, abstractmethod


class AIProviderError(Exception):
    """Raised for any failed completion call (HTTP status, network, bad payload, missing key)."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class AIProvider(ABC):
    """Abstract base class for chat-completion providers."""

    name = "base"
    DEFAULT_MODEL = ""
    DEFAULT_MAX_TOKENS = 2048

    def __init__(self, api_key: str | None, model: str | None = None, timeout_seconds: float = 60):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    async def chat(
        self,
        messages: list[dict],
        *,
        system: str = "",
        temperature: float = 0.7,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> dict:
        """Send a chat request to the provider.

        Args:
            messages: List of message dicts with role and content.
            system: Optional system prompt, sent as the first message.
            temperature: Sampling temperature.
            json_mode: Ask the model for a single JSON object.
            max_tokens: Completion token cap; provider default when None.

        Returns:
            dict with content, tokens_in, tokens_out, model.

        Raises:
            AIProviderError on any HTTP, network or configuration failure.
        """
        ...

    def _require_key(self) -> str:
        if not self.api_key:
            raise AIProviderError(self.name, "API key is not configured")
        return self.api_key
