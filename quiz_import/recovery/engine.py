"""Bounded, ordered recovery after every parse strategy has failed."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Optional

from ..ai.prompt_builder import detect_language, looks_like_ocr_noise
from ..detection import TextSplitter
from ..models import (
    Difficulty,
    ErrorContext,
    ErrorType,
    ImportQuestionData,
    ParseInput,
    ParseMetadata,
    ParseResult,
)
from ..parsers import QuestionParser
from ..validation import normalize_question

logger = logging.getLogger(__name__)

LocalParse = Callable[[str], ParseResult]

FALLBACK_CONFIDENCE = 0.3
CHUNKING_MIN_LENGTH = 2000
CHUNK_SIZE = 1000

# Known recognition confusions; each applies only between letters so that
# numbering and option counts are left alone.
OCR_SUBSTITUTIONS = [
    (re.compile(r"(?<=[A-Za-z])0(?=[A-Za-z])"), "O"),
    (re.compile(r"(?<=[A-Za-z])1(?=[A-Za-z])"), "l"),
    (re.compile(r"(?<=[A-Za-z])5(?=[A-Za-z])"), "S"),
    (re.compile(r"(?<=[A-Za-z])\|(?=[A-Za-z])"), "I"),
]
# Only trusted when the text already looks like OCR output
OCR_NOISE_SUBSTITUTIONS = [
    (re.compile(r"(?<=[a-z])rn(?=[a-z])"), "m"),
]


def classify_error(message: str) -> ErrorType:
    """Map a failure message onto the error taxonomy."""
    lowered = message.lower()
    if "json" in lowered:
        return ErrorType.FORMAT_ERROR
    if any(word in lowered for word in ("incomplete", "missing", "truncated", "不完整")):
        return ErrorType.INCOMPLETE_DATA
    if re.search(r"\bai\b|\bapi\b|network|timeout|timed out|预算", lowered) or "AI" in message:
        return ErrorType.AI_ERROR
    if "validation" in lowered or "校验" in message:
        return ErrorType.VALIDATION_ERROR
    return ErrorType.PARSE_FAILED


def analyze_error(text: str, errors: list[str]) -> ErrorContext:
    """Build the recovery context for a failed parse from its error list."""
    message = "; ".join(errors) if errors else "未识别到题目"
    error_type = ErrorType.PARSE_FAILED
    for error in errors:
        kind = classify_error(error)
        if kind is not ErrorType.PARSE_FAILED:
            error_type = kind
            break
    return ErrorContext(original_text=text, error_type=error_type, error_message=message)


def clean_format(text: str) -> str:
    """Strip unrecognized symbols, normalize spacing and undo OCR confusions."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[^\u4e00-\u9fff\u3000-\u303f\uff00-\uffef\x20-\x7e\n]", "", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{2,}", "\n", text)

    for pattern, replacement in OCR_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    if looks_like_ocr_noise(text):
        for pattern, replacement in OCR_NOISE_SUBSTITUTIONS:
            text = pattern.sub(replacement, text)

    text = re.sub(r"(?m)^([A-H])\s*[.、．]\s*", r"\1. ", text)
    return text.strip()


class RecoveryStrategy(ABC):
    """One way of retrying a failed parse."""

    name: str = "base"
    description: str = ""
    max_attempts: int = 1

    @abstractmethod
    def can_handle(self, context: ErrorContext, engine: "ErrorRecoveryEngine") -> bool:
        pass

    @abstractmethod
    def recover(self, context: ErrorContext, engine: "ErrorRecoveryEngine") -> ParseResult:
        pass

    def _failure(self, errors: list[str]) -> ParseResult:
        return ParseResult.failure("recovery", self.name, errors)


class FormatCleanupStrategy(RecoveryStrategy):
    name = "format_cleanup"
    description = "清理文本格式问题"
    max_attempts = 2

    def can_handle(self, context, engine):
        return context.error_type in (ErrorType.FORMAT_ERROR, ErrorType.PARSE_FAILED)

    def recover(self, context, engine):
        cleaned = clean_format(context.original_text)
        if not cleaned:
            return self._failure(["清理后文本为空"])
        use_ai = engine.ai_allowed(cleaned)
        if cleaned == context.original_text.strip() and not use_ai:
            return self._failure(["格式清理没有改变文本"])

        if use_ai:
            result = engine.ai_parse(cleaned)
        else:
            result = engine.local_parse(cleaned)
        return result.with_metadata(parser="recovery", strategy=self.name)


class PromptOptimizationStrategy(RecoveryStrategy):
    name = "prompt_optimization"
    description = "优化提示词上下文后重试AI解析"
    max_attempts = 2

    def can_handle(self, context, engine):
        return engine.ai_allowed(context.original_text) and context.error_type in (
            ErrorType.AI_ERROR,
            ErrorType.INCOMPLETE_DATA,
        )

    def recover(self, context, engine):
        text = context.original_text
        hints = {
            "language": detect_language(text),
            "has_multiple_questions": len(re.split(r"\d+[.)、]", text)) > 2,
            "has_ocr_errors": looks_like_ocr_noise(text),
        }
        errors = []
        attempt = context
        while attempt.attempt_count < self.max_attempts:
            result = engine.ai_parse(text, previous_error=attempt.error_message, **hints)
            if result.accepted:
                return result.with_metadata(parser="recovery", strategy=self.name)
            errors.extend(result.errors)
            attempt = attempt.next_attempt()
            if result.errors:
                attempt = replace(attempt, error_message=result.errors[-1])
        return self._failure(errors)


class ChunkingStrategy(RecoveryStrategy):
    name = "chunking"
    description = "分块处理长文本"
    max_attempts = 1

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.splitter = TextSplitter(max_chunk_size=chunk_size, overlap=0)

    def can_handle(self, context, engine):
        return len(context.original_text) > CHUNKING_MIN_LENGTH and context.error_type in (
            ErrorType.PARSE_FAILED,
            ErrorType.AI_ERROR,
        )

    def recover(self, context, engine):
        chunks = self.splitter.split(context.original_text)
        questions = []
        errors = []
        confidences = []

        for chunk in chunks:
            result = engine.local_parse(chunk.content)
            if not result.accepted and engine.ai_allowed(chunk.content):
                result = engine.ai_parse(chunk.content)
            if result.accepted:
                questions.extend(result.questions)
                confidences.append(result.confidence)
            else:
                errors.append(f"第{chunk.index + 1}块解析失败")
                errors.extend(result.errors)

        return ParseResult(
            success=bool(questions),
            questions=tuple(questions),
            confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            errors=tuple(errors),
            metadata=ParseMetadata(parser="recovery", strategy=self.name),
        )


class RegexFallbackStrategy(RecoveryStrategy):
    """
    Last resort: keep every numbered span as an unstructured candidate.

    The candidates have no options, so validation flags them and the user
    completes them by hand. No input text is dropped. Text before the first
    marker becomes a candidate of its own. Spans too short to stand alone
    are attached to a neighbour.
    """

    name = "regex_fallback"
    description = "正则表达式兜底提取"
    max_attempts = 1
    MIN_TITLE_LENGTH = 2

    # "12." or "12、" at the start of the text or after whitespace; "3.14" is not a marker
    _MARKER = re.compile(r"(?:^|(?<=\s))\d+[.、](?!\d)")

    def can_handle(self, context, engine):
        return True

    def split_candidates(self, text: str) -> list[str]:
        """Candidate titles covering all of the text, in order."""
        starts = [m.start() for m in self._MARKER.finditer(text)]
        bounds = [0, *starts, len(text)]
        pieces = [text[a:b].strip() for a, b in zip(bounds, bounds[1:])]

        titles = []
        pending = ""
        for piece in filter(None, pieces):
            title = self._MARKER.sub("", piece, count=1).strip()
            if len(title) < self.MIN_TITLE_LENGTH:
                if titles:
                    titles[-1] = f"{titles[-1]} {piece}"
                else:
                    pending = f"{pending} {piece}".strip()
                continue
            if pending:
                title = f"{pending} {title}"
                pending = ""
            titles.append(title)
        if pending:
            titles.append(pending)
        return titles

    def recover(self, context, engine):
        text = context.original_text.strip()
        if not text:
            return self._failure(["无法提取任何题目"])

        questions = [
            ImportQuestionData(
                title=title,
                options=[],
                correct_answer=0,
                explanation=None,
                difficulty=Difficulty.MEDIUM,
                tags=["未分类"],
            )
            for title in self.split_candidates(text)
        ]
        return ParseResult(
            success=True,
            questions=tuple(questions),
            confidence=FALLBACK_CONFIDENCE,
            errors=(),
            metadata=ParseMetadata(parser="recovery", strategy=self.name),
        )


# Fixed attempt order
RECOVERY_STRATEGIES: tuple[type[RecoveryStrategy], ...] = (
    FormatCleanupStrategy,
    PromptOptimizationStrategy,
    ChunkingStrategy,
    RegexFallbackStrategy,
)


class ErrorRecoveryEngine:
    """
    Runs the recovery strategies that accept a failure, in table order.

    `recover` never raises: a strategy that throws counts as a failed
    strategy. Returned questions are normalized to 0-based answers.
    """

    def __init__(
        self,
        local_parse: LocalParse,
        ai_parser: Optional[QuestionParser] = None,
        strategies: Optional[list[RecoveryStrategy]] = None,
        ai_gate: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            local_parse: Runs the local strategy chain on text and returns a
                result with normalized answers.
            ai_parser: AI-backed parser used by the AI-dependent strategies.
            strategies: Override of the default strategy table.
            ai_gate: Asked before every AI request with the text to send;
                False vetoes the request (budget, adaptive disable).
        """
        self._local_parse = local_parse
        self.ai_parser = ai_parser
        self.ai_gate = ai_gate
        self.strategies = strategies if strategies is not None else [
            strategy() for strategy in RECOVERY_STRATEGIES
        ]

    @property
    def ai_available(self) -> bool:
        if self.ai_parser is None:
            return False
        return getattr(self.ai_parser, "enabled", True)

    def ai_allowed(self, text: str) -> bool:
        """Whether an AI request for text may be made now."""
        if not self.ai_available:
            return False
        return self.ai_gate is None or self.ai_gate(text)

    def local_parse(self, text: str) -> ParseResult:
        return self._local_parse(text)

    def ai_parse(self, text: str, **hints) -> ParseResult:
        """Run the AI parser on text and normalize its answers."""
        if not self.ai_available:
            return ParseResult.failure("recovery", "ai", ["AI解析未启用"])
        if not self.ai_allowed(text):
            return ParseResult.failure("recovery", "ai", ["AI解析已跳过：超出预算或已停用"])
        result = self.ai_parser.parse(ParseInput.text(text, **hints))
        if not result.accepted:
            return result
        questions = [normalize_question(q, self.ai_parser.answer_base) for q in result.questions]
        return result.with_questions(questions)

    def applicable(self, context: ErrorContext) -> list[RecoveryStrategy]:
        return [
            s for s in self.strategies
            if context.attempt_count < s.max_attempts and s.can_handle(context, self)
        ]

    def recover(self, context: ErrorContext) -> ParseResult:
        """
        Try each applicable strategy until one yields questions.

        Args:
            context: Description of the failure.

        Returns:
            The first accepted result, or an unsuccessful result listing
            what every strategy reported.
        """
        logger.info(
            "Starting recovery: type=%s attempt=%d",
            context.error_type.value, context.attempt_count,
        )
        strategies = self.applicable(context)
        if not strategies:
            return ParseResult.failure(
                "recovery", "none", [f"无法恢复的错误: {context.error_message}"]
            )

        errors = []
        for strategy in strategies:
            try:
                result = strategy.recover(context, self)
            except Exception as e:
                logger.warning("Recovery strategy %s failed: %s", strategy.name, e)
                errors.append(f"{strategy.name}: {e}")
                continue
            if result.accepted:
                logger.info("Recovered with %s", strategy.name)
                return result
            errors.extend(result.errors)

        return ParseResult.failure(
            "recovery",
            "failed",
            [f"所有恢复策略都失败: {context.error_message}", *errors],
        )
