from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Error codes carried by failed results
USER_SAVE_ERROR = "user_save_error"
TRANSIENT_STORAGE_ERROR = "transient_storage_error"
PERMANENT_STORAGE_ERROR = "permanent_storage_error"
STORAGE_READ_ERROR = "storage_read_error"
DISPATCH_ERROR = "dispatch_error"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 1

    @staticmethod
    def success(value: T, attempts: int = 1) -> "Result[T]":
        return Result(ok=True, value=value, attempts=attempts)

    @staticmethod
    def failure(error: str, code: str = "unknown", attempts: int = 1) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, attempts=attempts)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def log_fields(self) -> dict:
        if self.ok:
            return {"ok": True, "attempts": self.attempts}
        return {"ok": False, "error": self.error, "error_code": self.error_code, "attempts": self.attempts}
