"""Result type returned by every logbook command."""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .errors import TripLogError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success value or a typed error, never both."""

    value: Optional[T] = None
    error: Optional[TripLogError] = None

    @classmethod
    def ok(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def fail(cls, error: TripLogError) -> "Result":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
