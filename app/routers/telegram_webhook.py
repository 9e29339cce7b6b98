import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request

from app.config import settings
from app.dependencies import get_orchestrator
from app.logging_config import get_logger
from app.schemas.telegram import TelegramWebhookResponse
from app.services.errors import MalformedEvent
from app.services.ingestion import normalize
from app.services.orchestrator import Orchestrator, log_outcome

logger = get_logger("telegram_webhook")

router = APIRouter()


async def parse_telegram_update(request: Request) -> Optional[Any]:
    """
    Parse Telegram update with tolerant decoding to avoid utf-8 crashes.
    Returns the decoded JSON or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding")

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            return json.loads(raw.decode(enc, errors="replace"))
        except ValueError:
            continue

    logger.error("Failed to decode Telegram webhook payload after fallbacks")
    return None


@router.post(settings.webhook_path, response_model=TelegramWebhookResponse)
async def handle_telegram_update(request: Request, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """
    Handle one pushed update. Always answers 200 so Telegram never redelivers
    an update we already received; the reply is sent before we answer.
    """
    body = await parse_telegram_update(request)
    if body is None:
        return TelegramWebhookResponse(success=True, message="Invalid telegram payload")

    logger.debug(f"Telegram update received: {body}")

    try:
        msg = normalize(body)
    except MalformedEvent as e:
        logger.warning(f"Malformed update skipped: {e}")
        return TelegramWebhookResponse(success=True, message="Malformed update")

    if msg is None:
        return TelegramWebhookResponse(success=True, message="No text in message")

    logger.info(
        "Update received",
        extra={"context": {"update_id": msg.update_id, "chat_id": msg.chat_id, "user": msg.sender_handle}},
    )

    try:
        outcome = await orchestrator.handle(msg)
    except Exception as e:
        logger.error(f"Error processing update: {e}", exc_info=True)
        return TelegramWebhookResponse(success=False, message="Processing failed")

    log_outcome(logger, outcome)
    if not outcome.delivered:
        return TelegramWebhookResponse(success=False, message="Reply not delivered")
    return TelegramWebhookResponse(success=True, message="Reply sent")


# Same pipeline, kept for clients that post OCR text here
@router.post("/api/mensajes/guardar-ocr", response_model=TelegramWebhookResponse)
async def handle_ocr_update(request: Request, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return await handle_telegram_update(request, orchestrator)
