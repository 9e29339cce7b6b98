import asyncio
import os
from typing import Optional

from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from app.config import require_runtime_settings, settings
from app.database import get_db, init_db
from app.dependencies import close_clients, get_orchestrator, get_telegram_service
from app.logging_config import get_logger, setup_logging
from app.models import ChatUser, StoredMessage
from app.routers import telegram_webhook
from app.services.polling import PullLoop

setup_logging(settings.log_level)

app = FastAPI(
    title="Telegram Gemini Relay",
    description="Relays Telegram messages to Gemini with per-user conversation memory",
    version="0.1.0",
)

app.include_router(telegram_webhook.router)

logger = get_logger("main")
_poll_task: Optional[asyncio.Task] = None
_poll_stop: Optional[asyncio.Event] = None


def _transports_enabled() -> bool:
    return not os.environ.get("PYTEST_CURRENT_TEST")


@app.on_event("startup")
async def start_transport() -> None:
    global _poll_task, _poll_stop
    if not _transports_enabled():
        return

    require_runtime_settings(settings)
    init_db()
    telegram = get_telegram_service()

    if settings.push_mode:
        logger.info("Running in webhook mode", extra={"context": {"url": settings.webhook_url}})
        await telegram.set_webhook(settings.webhook_url)
        logger.info("Webhook registered")
        return

    logger.info("Running in long polling mode")
    _poll_stop = asyncio.Event()
    pull_loop = PullLoop(
        telegram,
        get_orchestrator(),
        retry_delay_seconds=settings.poll_retry_delay_seconds,
        poll_timeout=settings.poll_timeout_seconds,
    )
    _poll_task = asyncio.create_task(pull_loop.run(_poll_stop))


@app.on_event("shutdown")
async def stop_transport() -> None:
    global _poll_task, _poll_stop
    if _poll_stop is not None:
        _poll_stop.set()
    if _poll_task is not None:
        _poll_task.cancel()
        try:
            await _poll_task
        except asyncio.CancelledError:
            pass
    _poll_task = None
    _poll_stop = None
    await close_clients()


@app.get("/health")
async def health():
    return {"status": "ok", "mode": "push" if settings.push_mode else "pull"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "users": db.query(ChatUser).count(),
        "messages": db.query(StoredMessage).count(),
    }
