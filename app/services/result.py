from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    status_code: Optional[int] = None

    @staticmethod
    def success(value: Optional[T] = None, status_code: Optional[int] = None) -> "Result[T]":
        return Result(ok=True, value=value, status_code=status_code)

    @staticmethod
    def failure(error: str, code: str = "unknown", status_code: Optional[int] = None) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, status_code=status_code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def has_code(self, *codes: str) -> bool:
        return not self.ok and self.error_code in codes
