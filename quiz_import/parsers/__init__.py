"""Strategy parsers turning raw input into question candidates."""

from .base import QuestionParser, clean_text
from .rule_based import RULES, ParseRule, RuleBasedParser
from .text_strategies import (
    INTELLIGENT_SEPARATORS,
    IntelligentSplitParser,
    NumberedFormatParser,
    PdfCopyParser,
    SimpleSequentialParser,
    StandardBlockParser,
    WordCopyParser,
    parse_standard_block,
)
from .json_parser import JsonQuestionParser
from .ai_parser import AIParser
from .ocr_parser import OCREngine, OCRParser, OCRText, post_process_ocr

__all__ = [
    "QuestionParser",
    "clean_text",
    "RULES",
    "ParseRule",
    "RuleBasedParser",
    "INTELLIGENT_SEPARATORS",
    "IntelligentSplitParser",
    "NumberedFormatParser",
    "PdfCopyParser",
    "SimpleSequentialParser",
    "StandardBlockParser",
    "WordCopyParser",
    "parse_standard_block",
    "JsonQuestionParser",
    "AIParser",
    "OCREngine",
    "OCRParser",
    "OCRText",
    "post_process_ocr",
]
