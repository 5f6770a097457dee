"""Smart dispatcher: runs strategy parsers in priority order."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..detection import FormatDetector
from ..models import ErrorType, InputType, ParseInput, ParseResult
from ..monitoring import PerformanceMonitor
from ..optimization import AdaptiveStrategy, CostOptimizer, ResultCache
from ..parsers import (
    AIParser,
    IntelligentSplitParser,
    JsonQuestionParser,
    NumberedFormatParser,
    OCRParser,
    PdfCopyParser,
    QuestionParser,
    RuleBasedParser,
    SimpleSequentialParser,
    StandardBlockParser,
    WordCopyParser,
)
from ..recovery import ErrorRecoveryEngine, analyze_error
from ..validation import QuestionValidator, ValidationReport, normalize_question

logger = logging.getLogger(__name__)

# Strategy names in the order they are attempted
STRATEGY_PRIORITY = (
    "json",
    "rule",
    "standard",
    "numbered",
    "simple",
    "word",
    "pdf",
    "intelligent",
    "ai",
    "ocr",
)


def build_local_parsers() -> list[QuestionParser]:
    """Fresh instances of every local text strategy, in priority order."""
    return [
        JsonQuestionParser(),
        RuleBasedParser(),
        StandardBlockParser(),
        NumberedFormatParser(),
        SimpleSequentialParser(),
        WordCopyParser(),
        PdfCopyParser(),
        IntelligentSplitParser(),
    ]


@dataclass(frozen=True)
class DispatchOutcome:
    """What one dispatch produced, with per-question validation."""
    result: ParseResult
    reports: tuple[ValidationReport, ...] = ()
    attempted: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    recovered: bool = False
    error_type: Optional[ErrorType] = None

    @property
    def success(self) -> bool:
        return self.result.accepted

    @property
    def questions(self):
        return self.result.questions

    @property
    def valid_reports(self) -> list[ValidationReport]:
        return [r for r in self.reports if r.is_valid]

    @property
    def invalid_reports(self) -> list[ValidationReport]:
        return [r for r in self.reports if not r.is_valid]


@dataclass
class _Attempts:
    attempted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class SmartDispatcher:
    """
    Tries strategy parsers one at a time in the fixed priority table.

    The first result with questions is accepted, its answers normalized to
    0-based indexes using the producing parser's `answer_base`, and every
    question validated. When nothing succeeds the recovery engine runs.

    The AI parser is skipped when disabled, when the cost optimizer vetoes
    the estimated cost, or when the adaptive strategy has disabled it. Each
    real attempt is recorded in the performance monitor; local strategies
    are served from the result cache when possible.
    """

    def __init__(
        self,
        parsers: Optional[Sequence[QuestionParser]] = None,
        ai_parser: Optional[AIParser] = None,
        ocr_parser: Optional[OCRParser] = None,
        monitor: Optional[PerformanceMonitor] = None,
        cost_optimizer: Optional[CostOptimizer] = None,
        adaptive: Optional[AdaptiveStrategy] = None,
        cache: Optional[ResultCache] = None,
        validator: Optional[QuestionValidator] = None,
        format_detector: Optional[FormatDetector] = None,
        recovery: Optional[ErrorRecoveryEngine] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            parsers: Full strategy table; built from the defaults plus the
                AI and OCR parsers when omitted.
            ai_parser: AI-backed parser, also used by recovery.
            ocr_parser: OCR-backed parser for image and PDF inputs.
            monitor: Ledger receiving one metric per attempt.
            cost_optimizer: Budget gate for non-local parsers.
            adaptive: Source of strategy disable decisions.
            cache: Cache for local strategy results.
            validator: Validator applied to accepted questions.
            format_detector: Detector whose verdict is stamped on results.
            recovery: Recovery engine; built over the local chain when omitted.
        """
        self.ai_parser = ai_parser
        if ocr_parser is None:
            ocr_parser = OCRParser(text_parsers=build_local_parsers(), ai_parser=ai_parser)
        self.ocr_parser = ocr_parser

        if parsers is None:
            parsers = build_local_parsers()
            if ai_parser is not None:
                parsers.append(ai_parser)
            parsers.append(ocr_parser)
        self.parsers = list(parsers)

        self.monitor = monitor
        self.cost_optimizer = cost_optimizer
        self.adaptive = adaptive
        self.cache = cache
        self.validator = validator or QuestionValidator()
        self.format_detector = format_detector or FormatDetector()
        self.recovery = recovery or ErrorRecoveryEngine(
            self.parse_local, ai_parser=ai_parser, ai_gate=self.ai_permitted
        )

    @property
    def strategy_order(self) -> list[str]:
        return [p.strategy for p in self.parsers]

    def parse_text(self, text: str, **options) -> DispatchOutcome:
        return self.parse(ParseInput.text(text, **options))

    def parse(self, parse_input: ParseInput) -> DispatchOutcome:
        """
        Run the strategy chain, then recovery, on one input.

        Args:
            parse_input: Raw input.

        Returns:
            DispatchOutcome. On total failure `result.success` is False and
            `result.errors` holds every attempted strategy's errors.
        """
        text = parse_input.text_content
        if parse_input.type is InputType.TEXT and not text.strip():
            return DispatchOutcome(
                result=ParseResult.failure("dispatcher", "none", ["输入内容为空"]),
                error_type=ErrorType.PARSE_FAILED,
            )

        detected = self.format_detector.quick_detect(text) if text.strip() else None
        attempts = _Attempts()

        for parser in self.parsers:
            if not parser.supports(parse_input):
                continue
            skip_reason = self._skip_reason(parser, parse_input)
            if skip_reason:
                attempts.skipped.append(parser.strategy)
                if skip_reason != "disabled":
                    attempts.warnings.append(skip_reason)
                continue

            attempts.attempted.append(parser.strategy)
            result = self._attempt(parser, parse_input)
            if result.accepted:
                return self._accept(result, parser.answer_base, detected, attempts)
            attempts.errors.extend(result.errors)

        return self._recover(parse_input, detected, attempts)

    def parse_local(self, text: str) -> ParseResult:
        """
        Run only the local text strategies on text, without side effects.

        Used by recovery. Answers in the returned result are normalized.
        """
        parse_input = ParseInput.text(text)
        errors = []
        for parser in self.parsers:
            if not parser.is_local or not parser.supports(parse_input):
                continue
            result = parser.parse(parse_input)
            if result.accepted:
                questions = [normalize_question(q, parser.answer_base) for q in result.questions]
                return result.with_questions(questions)
            errors.extend(result.errors)
        return ParseResult.failure("dispatcher", "local", errors or ["本地策略均未识别到题目"])

    def ai_permitted(self, text: str) -> bool:
        """Same veto the strategy chain applies, for AI requests made by recovery."""
        if self.ai_parser is None:
            return False
        return self._skip_reason(self.ai_parser, ParseInput.text(text)) is None

    def _skip_reason(self, parser: QuestionParser, parse_input: ParseInput) -> Optional[str]:
        if self.adaptive is not None and self.adaptive.is_disabled(parser.strategy):
            logger.info("Strategy %s disabled by adaptive scoring", parser.strategy)
            return "disabled"
        if isinstance(parser, AIParser):
            if not parser.enabled:
                return "disabled"
            if self.cost_optimizer is not None:
                estimate = parser.estimate_cost(parse_input.text_content)
                if not self.cost_optimizer.can_use_ai(estimate):
                    logger.warning("AI strategy skipped: estimated cost %d cents over budget", estimate)
                    return f"AI解析已跳过：预计成本{estimate}分超出预算"
        return None

    def _attempt(self, parser: QuestionParser, parse_input: ParseInput) -> ParseResult:
        text = parse_input.text_content
        use_cache = self.cache is not None and parser.is_local and parse_input.type is InputType.TEXT
        if use_cache:
            cached = self.cache.get(parser.name, parser.strategy, text)
            if cached is not None:
                return cached

        start = time.perf_counter()
        try:
            result = parser.parse(parse_input)
        except Exception as e:
            logger.warning("Strategy %s raised: %s", parser.strategy, e)
            elapsed = (time.perf_counter() - start) * 1000
            result = ParseResult.failure(
                parser.name, parser.strategy, [f"{parser.name} 解析异常: {e}"], elapsed
            )

        if use_cache:
            self.cache.set(parser.name, parser.strategy, text, result)
        self._record(parse_input, result)
        return result

    def _record(self, parse_input: ParseInput, result: ParseResult) -> None:
        if self.monitor is None:
            return
        meta = result.metadata
        self.monitor.record_metric(
            parser=meta.parser,
            strategy=meta.strategy,
            input_type=parse_input.type.value,
            input_size=parse_input.size,
            processing_time=meta.processing_time,
            success=result.accepted,
            questions_count=len(result.questions),
            confidence=result.confidence,
            cost=meta.cost,
            errors=list(result.errors),
            metadata={"detected_format": meta.detected_format} if meta.detected_format else None,
        )

    def _accept(
        self,
        result: ParseResult,
        answer_base: int,
        detected: Optional[str],
        attempts: _Attempts,
        recovered: bool = False,
    ) -> DispatchOutcome:
        questions = [normalize_question(q, answer_base) for q in result.questions]
        result = result.with_questions(questions)
        if result.metadata.detected_format is None and detected:
            result = result.with_metadata(detected_format=detected)

        reports = self.validator.validate_all(questions)
        invalid = sum(1 for r in reports if not r.is_valid)
        if invalid:
            logger.info("%d of %d parsed questions need manual correction", invalid, len(reports))

        return DispatchOutcome(
            result=result,
            reports=tuple(reports),
            attempted=tuple(attempts.attempted),
            skipped=tuple(attempts.skipped),
            warnings=tuple(attempts.warnings),
            recovered=recovered,
            error_type=ErrorType.VALIDATION_ERROR if invalid else None,
        )

    def _recover(
        self,
        parse_input: ParseInput,
        detected: Optional[str],
        attempts: _Attempts,
    ) -> DispatchOutcome:
        text = parse_input.text_content
        errors = list(attempts.errors)

        if text.strip():
            context = analyze_error(text, errors)
            start = time.perf_counter()
            recovered = self.recovery.recover(context)
            elapsed = (time.perf_counter() - start) * 1000
            recovered = recovered.with_metadata(processing_time=elapsed)
            self._record(parse_input, recovered)
            if recovered.accepted:
                attempts.attempted.append(recovered.metadata.strategy)
                return self._accept(recovered, 0, detected, attempts, recovered=True)
            errors.extend(recovered.errors)
            error_type = context.error_type
        else:
            error_type = ErrorType.PARSE_FAILED

        logger.warning("All strategies failed (%d errors)", len(errors))
        failure = ParseResult.failure(
            "dispatcher",
            "none",
            errors or ["没有可用的解析策略"],
            error_type=error_type.value,
        )
        return DispatchOutcome(
            result=failure.with_metadata(detected_format=detected),
            attempted=tuple(attempts.attempted),
            skipped=tuple(attempts.skipped),
            warnings=tuple(attempts.warnings),
            error_type=error_type,
        )
