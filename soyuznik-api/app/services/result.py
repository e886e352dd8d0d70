from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Error codes shared by services that report failures instead of raising
USER_NOT_FOUND = "user_not_found"
ACCESS_DENIED = "access_denied"
DB_ERROR = "db_error"
AI_ERROR = "ai_error"
SEND_ERROR = "send_error"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @property
    def is_store_failure(self) -> bool:
        return not self.ok and self.error_code == DB_ERROR
