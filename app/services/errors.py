class RelayError(Exception):
    """Base class for errors raised inside the relay pipeline."""


class MalformedEvent(RelayError):
    """Inbound update could not be parsed at all."""


class StorageError(RelayError):
    pass


class TransientStorageError(StorageError):
    """Store temporarily unavailable; the write may be retried."""


class PermanentStorageError(StorageError):
    pass


class AIBackendError(RelayError):
    """Network, HTTP or response-shape failure talking to the AI backend."""


class DispatchError(RelayError):
    """Reply could not be delivered to the chat platform."""


class TelegramAPIError(DispatchError):
    def __init__(self, method: str, description: str, error_code: int | None = None):
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"Telegram {method} failed: {description}")
