from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def decode_unix_datetime(value: Any) -> Any:
    """Integer seconds since epoch -> aware UTC datetime.

    Any other value is handed back untouched so pydantic's generic datetime
    parsing applies (ISO strings, datetime objects, ...).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"date out of range: {value}") from e
    return value


class TelegramModel(BaseModel):
    """Accepts both Bot API snake_case and camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ChatType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"
    SENDER = "sender"


class TelegramUser(TelegramModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(TelegramModel):
    id: int
    type: Optional[ChatType] = None
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _chat_type_case_insensitive(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class TelegramMessage(TelegramModel):
    message_id: Optional[int] = None
    date: Optional[datetime] = None
    edit_date: Optional[datetime] = None
    forward_date: Optional[datetime] = None
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(
        default=None,
        validation_alias=AliasChoices("from", "from_user", "fromUser"),  # "from" is reserved in Python
    )
    text: Optional[str] = None
    caption: Optional[str] = None
    message_thread_id: Optional[int] = None

    @field_validator("date", "edit_date", "forward_date", mode="before")
    @classmethod
    def _decode_dates(cls, value: Any) -> Any:
        return decode_unix_datetime(value)


class TelegramUpdate(TelegramModel):
    update_id: int = 0
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None


class TelegramWebhookResponse(BaseModel):
    success: bool
    message: Optional[str] = None
