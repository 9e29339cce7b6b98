import asyncio
from typing import Optional

from app.logging_config import bind_logger, get_logger
from app.services.errors import MalformedEvent
from app.services.ingestion import normalize
from app.services.orchestrator import Orchestrator, log_outcome
from app.services.telegram_service import TelegramService

logger = get_logger("polling")


class PullLoop:
    """Long-polling transport: fetch a batch, process it in order, repeat.

    ``offset`` is the next update id to ask for. It lives only in this object,
    so a restart may see already-answered updates again.
    """

    def __init__(
        self,
        telegram: TelegramService,
        orchestrator: Orchestrator,
        *,
        retry_delay_seconds: float = 2.0,
        poll_timeout: int = 30,
        sleep_func=asyncio.sleep,
    ):
        self.telegram = telegram
        self.orchestrator = orchestrator
        self.retry_delay_seconds = retry_delay_seconds
        self.poll_timeout = poll_timeout
        self.sleep_func = sleep_func
        self.offset = 0
        self.running = False

    async def poll_once(self) -> int:
        """Fetch and process one batch. Returns the number of messages handled."""
        # A registered webhook makes getUpdates fail with a conflict
        await self.telegram.delete_webhook()
        updates = await self.telegram.get_updates(offset=self.offset, timeout=self.poll_timeout)

        handled = 0
        for raw in updates:
            update_id = raw.get("update_id") if isinstance(raw, dict) else None
            if isinstance(update_id, int):
                # Advance first: a crash below loses this update instead of replaying it.
                self.offset = update_id + 1

            log = bind_logger("polling", update_id=update_id)
            try:
                msg = normalize(raw)
            except MalformedEvent as e:
                log.warning(f"Skipping malformed update: {e}")
                continue
            if msg is None:
                log.debug("Skipping update without text")
                continue

            log.info("Update received", context={"chat_id": msg.chat_id, "user": msg.sender_handle})
            outcome = await self.orchestrator.handle(msg)
            log_outcome(logger, outcome)
            handled += 1
        return handled

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Poll until ``stop_event`` is set or the task is cancelled.

        Any failure is logged and followed by a short pause; the loop itself
        never gives up.
        """
        stop_event = stop_event or asyncio.Event()
        self.running = True
        logger.info("Long polling started", extra={"context": {"offset": self.offset}})
        try:
            while not stop_event.is_set():
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error(
                        f"Long polling error: {e}",
                        exc_info=True,
                        extra={"context": {"offset": self.offset, "retry_in": self.retry_delay_seconds}},
                    )
                    await self.sleep_func(self.retry_delay_seconds)
        finally:
            self.running = False
            logger.info("Long polling stopped", extra={"context": {"offset": self.offset}})
