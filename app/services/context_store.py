import asyncio
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.exc import DBAPIError, DisconnectionError
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import ChatUser, StoredMessage
from app.services.errors import PermanentStorageError, TransientStorageError
from app.services.result import (
    PERMANENT_STORAGE_ERROR,
    STORAGE_READ_ERROR,
    TRANSIENT_STORAGE_ERROR,
    USER_SAVE_ERROR,
    Result,
)

logger = get_logger("context_store")

DEFAULT_CONTEXT_LIMIT = 50
CONTEXT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

# Substrings that mark a driver error as "service unavailable"
UNAVAILABLE_MARKERS = (
    "not currently available",
    "service unavailable",
    "temporarily unavailable",
    "could not connect",
    "connection refused",
    "database is locked",
)

ContextRow = Tuple[Optional[str], Optional[datetime]]


def local_now(timezone_name: str) -> datetime:
    """Wall-clock time in the store's zone, without tzinfo."""
    return datetime.now(ZoneInfo(timezone_name)).replace(tzinfo=None)


def is_transient_storage_error(exc: BaseException) -> bool:
    if isinstance(exc, TransientStorageError):
        return True
    if isinstance(exc, PermanentStorageError):
        return False
    if isinstance(exc, DisconnectionError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        message = str(exc).lower()
        return any(marker in message for marker in UNAVAILABLE_MARKERS)
    return False


def upsert_chat_user(
    db: Session,
    chat_id: int,
    first_name: Optional[str],
    last_name: Optional[str],
    username: Optional[str] = None,
) -> ChatUser:
    """Create the user on first sight; an existing record is left untouched."""
    user = db.get(ChatUser, chat_id)
    if user is None:
        user = ChatUser(
            id=chat_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
        db.flush()
    return user


def insert_message(db: Session, user_handle: str, text: str, now: datetime) -> StoredMessage:
    message = StoredMessage(user_handle=user_handle, text=text, timestamp=now)
    db.add(message)
    db.flush()
    return message


def fetch_recent_messages(db: Session, user_handle: str, limit: int = DEFAULT_CONTEXT_LIMIT) -> List[ContextRow]:
    """Last ``limit`` messages of a user, oldest first."""
    rows = (
        db.query(StoredMessage.text, StoredMessage.timestamp)
        .filter(StoredMessage.user_handle == user_handle)
        .order_by(StoredMessage.id.desc())
        .limit(limit)
        .all()
    )
    return [(text, timestamp) for text, timestamp in reversed(rows)]


def render_context(rows: Iterable[ContextRow]) -> str:
    lines = []
    for text, timestamp in rows:
        stamp = timestamp.strftime(CONTEXT_TIMESTAMP_FORMAT) if timestamp else ""
        lines.append(f"{stamp} - {text or ''}")
    return "\n".join(lines)


class ContextStore:
    """Async access to users and message history.

    Every operation opens its own session in a worker thread, so concurrent
    pipelines never share a connection.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        timezone_name: str = "America/Bogota",
        max_attempts: int = 3,
        backoff_seconds: float = 3.0,
        sleep_func=asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.timezone_name = timezone_name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep_func = sleep_func

    def _in_session(self, func, *args):
        db = self.session_factory()
        try:
            value = func(db, *args)
            db.commit()
            return value
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run(self, func, *args):
        return await asyncio.to_thread(self._in_session, func, *args)

    async def save_user(
        self,
        chat_id: int,
        first_name: Optional[str],
        last_name: Optional[str],
        username: Optional[str] = None,
    ) -> Result[None]:
        """Single-attempt upsert; profile bookkeeping never blocks the pipeline."""

        def _upsert(db: Session) -> None:
            upsert_chat_user(db, chat_id, first_name, last_name, username)

        try:
            await self._run(_upsert)
        except Exception as e:
            return Result.failure(f"Error saving user {chat_id}: {e}", USER_SAVE_ERROR)
        return Result.success(None)

    async def save_message(self, user_handle: str, text: str) -> Result[int]:
        """Insert one message, retrying while the store reports itself unavailable.

        A transient failure on attempt n waits ``backoff_seconds * n`` (3, 6, 9
        with the defaults) before the next try. Any other error gives up at once.
        Returns the new message id on success; never raises.
        """

        def _insert(db: Session) -> int:
            return insert_message(db, user_handle, text, local_now(self.timezone_name)).id

        attempt = 0
        while attempt < self.max_attempts:
            try:
                message_id = await self._run(_insert)
                return Result.success(message_id, attempts=attempt + 1)
            except Exception as e:
                if not is_transient_storage_error(e):
                    return Result.failure(
                        f"Error saving message: {e}", PERMANENT_STORAGE_ERROR, attempts=attempt + 1
                    )
                attempt += 1
                logger.warning(
                    f"Store unavailable, retry {attempt}/{self.max_attempts}",
                    extra={"context": {"user": user_handle, "error": str(e)}},
                )
                await self.sleep_func(self.backoff_seconds * attempt)

        return Result.failure(
            f"Message not saved after {self.max_attempts} attempts", TRANSIENT_STORAGE_ERROR, attempts=attempt
        )

    async def get_context(self, user_handle: str, limit: int = DEFAULT_CONTEXT_LIMIT) -> Result[str]:
        try:
            rows = await self._run(fetch_recent_messages, user_handle, limit)
        except Exception as e:
            return Result.failure(f"Error reading context: {e}", STORAGE_READ_ERROR)
        return Result.success(render_context(rows))
