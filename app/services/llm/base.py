from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def ask(self, context: str, new_text: str) -> str:
        """Answer ``new_text`` given the rendered conversation ``context``.

        Implementations never raise: failures come back as a fixed
        human-readable fallback string.
        """
