"""Per-message pipeline: store, build context, ask the model, reply."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.services.context_store import DEFAULT_CONTEXT_LIMIT, ContextStore
from app.services.ingestion import IncomingMessage
from app.services.llm import LLMProvider
from app.services.llm.gemini_provider import FALLBACK_RESPONSES
from app.services.result import DISPATCH_ERROR, Result
from app.services.telegram_service import TelegramService


@dataclass
class HandleOutcome:
    """What happened to one message; logged once by the transport driver."""

    chat_id: int
    sender_handle: str
    answer: Optional[str] = None
    soft_failures: List[Result] = field(default_factory=list)
    dispatch: Optional[Result] = None

    @property
    def delivered(self) -> bool:
        return self.dispatch is not None and self.dispatch.ok

    @property
    def fallback_answer(self) -> bool:
        return self.answer in FALLBACK_RESPONSES

    def log_context(self) -> dict:
        context = {
            "chat_id": self.chat_id,
            "user": self.sender_handle,
            "delivered": self.delivered,
            "fallback_answer": self.fallback_answer,
        }
        if self.soft_failures:
            context["soft_failures"] = [r.log_fields() for r in self.soft_failures]
        if self.dispatch is not None and not self.dispatch.ok:
            context["dispatch_error"] = self.dispatch.error
        return context


def log_outcome(logger: logging.Logger, outcome: HandleOutcome) -> None:
    if not outcome.delivered:
        logger.error("Reply not delivered", extra={"context": outcome.log_context()})
    elif outcome.soft_failures or outcome.fallback_answer:
        logger.warning("Reply sent with degraded pipeline", extra={"context": outcome.log_context()})
    else:
        logger.info("Reply sent", extra={"context": outcome.log_context()})


class Orchestrator:
    def __init__(
        self,
        store: ContextStore,
        llm: LLMProvider,
        telegram: TelegramService,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
    ):
        self.store = store
        self.llm = llm
        self.telegram = telegram
        self.context_limit = context_limit

    async def handle(self, msg: IncomingMessage) -> HandleOutcome:
        """Run the pipeline for one message.

        Storage problems degrade the answer (less context) but never stop it;
        only a failed reply send marks the message as lost. Nothing raises.
        Messages from the same user are not serialized against each other.
        """
        outcome = HandleOutcome(chat_id=msg.chat_id, sender_handle=msg.sender_handle)

        user_result = await self.store.save_user(msg.chat_id, msg.first_name, msg.last_name, msg.username)
        if not user_result.ok:
            outcome.soft_failures.append(user_result)

        save_result = await self.store.save_message(msg.sender_handle, msg.text)
        if not save_result.ok:
            outcome.soft_failures.append(save_result)

        context_result = await self.store.get_context(msg.sender_handle, limit=self.context_limit)
        if not context_result.ok:
            outcome.soft_failures.append(context_result)

        outcome.answer = await self.llm.ask(context_result.unwrap_or(""), msg.text)

        try:
            await self.telegram.send_message(msg.chat_id, outcome.answer)
            outcome.dispatch = Result.success(msg.chat_id)
        except Exception as e:
            outcome.dispatch = Result.failure(f"Reply to chat {msg.chat_id} failed: {e}", DISPATCH_ERROR)

        return outcome
