from abc import ABC, abstractmethod


class AIProvider(ABC):
    """Abstract base class for all AI providers."""

    DEFAULT_INSIGHT_MODEL: str = ""

    def __init__(self, api_key: str, insight_model: str | None = None):
        self.api_key = api_key
        self._insight_model = insight_model

    @abstractmethod
    async def chat(
        self,
        messages: list[dict],
        model: str,
        system: str = "",
        max_tokens: int = 2048,
    ) -> dict:
        """Send a non-streaming chat request to the provider.

        Args:
            messages: List of message dicts with role and content.
            model: Model identifier to use.
            system: Optional system prompt.
            max_tokens: Upper bound on generated tokens.

        Returns:
            dict with content, tokens_in, tokens_out, model.
        """
        ...

    def get_insight_model(self) -> str:
        """Return the model identifier used for daily insights."""
        return self._insight_model or self.DEFAULT_INSIGHT_MODEL
