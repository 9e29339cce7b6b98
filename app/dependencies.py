"""Process-wide singletons, built once on first use."""

from typing import Optional

import httpx

from app.config import settings
from app.database import SessionLocal
from app.services.context_store import ContextStore
from app.services.llm import GeminiProvider, LLMProvider
from app.services.orchestrator import Orchestrator
from app.services.telegram_service import TelegramService

_telegram_service: Optional[TelegramService] = None
_llm_provider: Optional[LLMProvider] = None
_context_store: Optional[ContextStore] = None
_orchestrator: Optional[Orchestrator] = None


def get_telegram_service() -> TelegramService:
    global _telegram_service
    if _telegram_service is None:
        _telegram_service = TelegramService(settings.telegram_token, client=httpx.AsyncClient(timeout=30.0))
    return _telegram_service


def get_llm_provider() -> LLMProvider:
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.gemini_timeout_seconds,
            client=httpx.AsyncClient(timeout=settings.gemini_timeout_seconds),
        )
    return _llm_provider


def get_context_store() -> ContextStore:
    global _context_store
    if _context_store is None:
        _context_store = ContextStore(
            SessionLocal,
            timezone_name=settings.store_timezone,
            max_attempts=settings.save_max_attempts,
            backoff_seconds=settings.save_backoff_seconds,
        )
    return _context_store


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator(
            store=get_context_store(),
            llm=get_llm_provider(),
            telegram=get_telegram_service(),
            context_limit=settings.context_limit,
        )
    return _orchestrator


async def close_clients() -> None:
    global _telegram_service, _llm_provider, _context_store, _orchestrator
    if _telegram_service is not None:
        await _telegram_service.aclose()
    if isinstance(_llm_provider, GeminiProvider):
        await _llm_provider.aclose()
    _telegram_service = _llm_provider = _context_store = _orchestrator = None
