"""Error taxonomy and recovery context."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .question import ParseResult


class ErrorType(Enum):
    """Kinds of parse failure the recovery engine understands."""
    PARSE_FAILED = "parse_failed"
    FORMAT_ERROR = "format_error"
    INCOMPLETE_DATA = "incomplete_data"
    AI_ERROR = "ai_error"
    VALIDATION_ERROR = "validation_error"


@dataclass(frozen=True)
class ErrorContext:
    """Everything a recovery strategy needs to retry a failed parse."""
    original_text: str
    error_type: ErrorType
    error_message: str
    attempt_count: int = 0
    previous_results: tuple[ParseResult, ...] = field(default_factory=tuple)
    confidence: Optional[float] = None

    def next_attempt(self) -> "ErrorContext":
        return replace(self, attempt_count=self.attempt_count + 1)
