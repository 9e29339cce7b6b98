from app.services.llm.base import LLMProvider
from app.services.llm.gemini_provider import GeminiProvider

__all__ = ["LLMProvider", "GeminiProvider"]
