"""Line classification, block splitting and format detection."""

from .line_classifier import (
    ClassifiedLine,
    LineKind,
    classify_line,
    classify_lines,
    is_answer_line,
    is_explanation_line,
    is_option_line,
    is_question_start,
)
from .block_splitter import SEPARATOR_PATTERNS, split_blocks
from .format_detector import FORMAT_PATTERNS, FormatDetectionResult, FormatDetector
from .text_splitter import TextChunk, TextSplitter

__all__ = [
    "ClassifiedLine",
    "LineKind",
    "classify_line",
    "classify_lines",
    "is_answer_line",
    "is_explanation_line",
    "is_option_line",
    "is_question_start",
    "SEPARATOR_PATTERNS",
    "split_blocks",
    "FORMAT_PATTERNS",
    "FormatDetectionResult",
    "FormatDetector",
    "TextChunk",
    "TextSplitter",
]
