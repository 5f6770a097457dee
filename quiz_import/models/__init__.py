"""Data models for the question import pipeline."""

from .question import (
    Answer,
    Difficulty,
    ImportQuestionData,
    ImportResult,
    InputType,
    ParseInput,
    ParseMetadata,
    ParseResult,
    QuestionStatus,
    StoredQuestion,
)
from .recovery import ErrorContext, ErrorType
from .metrics import (
    AdjustmentType,
    PerformanceMetric,
    StrategyAdjustment,
    StrategyPerformance,
    Trend,
)
from .events import (
    EventCallback,
    ImportComplete,
    ImportEvent,
    ImportFailed,
    ImportProgress,
)

__all__ = [
    "Answer",
    "Difficulty",
    "ImportQuestionData",
    "ImportResult",
    "InputType",
    "ParseInput",
    "ParseMetadata",
    "ParseResult",
    "QuestionStatus",
    "StoredQuestion",
    "ErrorContext",
    "ErrorType",
    "AdjustmentType",
    "PerformanceMetric",
    "StrategyAdjustment",
    "StrategyPerformance",
    "Trend",
    "EventCallback",
    "ImportComplete",
    "ImportEvent",
    "ImportFailed",
    "ImportProgress",
]
