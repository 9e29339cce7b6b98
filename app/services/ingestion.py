from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import ValidationError

from app.schemas.telegram import TelegramUpdate
from app.services.errors import MalformedEvent


@dataclass(frozen=True)
class IncomingMessage:
    """Transport-independent shape of one inbound text message."""

    chat_id: int
    sender_handle: str
    text: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    update_id: Optional[int] = None
    date: Optional[datetime] = None


def resolve_sender_handle(username: Optional[str], first_name: Optional[str], chat_id: int) -> str:
    """Username, else first name, else the chat id as text."""
    for candidate in (username, first_name):
        if candidate:
            return candidate
    return str(chat_id)


def parse_update(raw: Union[TelegramUpdate, dict, Any]) -> TelegramUpdate:
    if isinstance(raw, TelegramUpdate):
        return raw
    if not isinstance(raw, dict):
        raise MalformedEvent(f"Update must be a JSON object, got {type(raw).__name__}")
    try:
        return TelegramUpdate.model_validate(raw)
    except ValidationError as e:
        raise MalformedEvent(f"Invalid update payload: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def normalize(raw: Union[TelegramUpdate, dict, Any]) -> Optional[IncomingMessage]:
    """Turn an inbound update into an IncomingMessage.

    Returns None for updates that carry no text (photos, stickers, edits,
    callback queries). Raises MalformedEvent when the payload cannot be parsed.
    """
    update = parse_update(raw)
    message = update.message
    if message is None or message.text is None:
        return None

    chat = message.chat
    return IncomingMessage(
        chat_id=chat.id,
        sender_handle=resolve_sender_handle(chat.username, chat.first_name, chat.id),
        text=message.text,
        first_name=chat.first_name,
        last_name=chat.last_name,
        username=chat.username,
        update_id=update.update_id,
        date=message.date,
    )
