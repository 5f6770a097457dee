"""Question validation and answer normalization."""

from .validator import (
    ERR_ANSWER_OUT_OF_RANGE,
    ERR_OPTION_EMPTY,
    ERR_TITLE_EMPTY,
    ERR_TOO_FEW_OPTIONS,
    QuestionValidator,
    ValidationReport,
    ValidationSummary,
    normalize_question,
    resolve_answer,
)

__all__ = [
    "ERR_ANSWER_OUT_OF_RANGE",
    "ERR_OPTION_EMPTY",
    "ERR_TITLE_EMPTY",
    "ERR_TOO_FEW_OPTIONS",
    "QuestionValidator",
    "ValidationReport",
    "ValidationSummary",
    "normalize_question",
    "resolve_answer",
]
