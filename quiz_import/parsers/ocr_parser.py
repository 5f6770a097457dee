"""OCR-backed parser for image and PDF inputs."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from ..documents import read_pdf_text
from ..models import InputType, ParseInput, ParseResult
from ..validation import normalize_question
from .base import QuestionParser

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 75


@dataclass(frozen=True)
class OCRText:
    """Recognized text and the engine's confidence on a 0-100 scale."""
    text: str
    confidence: float


class OCREngine(Protocol):
    """Anything that turns image or scanned-PDF bytes into text."""

    def recognize(self, data: bytes) -> OCRText:
        ...


def post_process_ocr(text: str) -> str:
    """
    Fix common recognition confusions where the neighbours make intent clear.

    Digits are only replaced when surrounded by letters, so question
    numbers and option counts survive untouched.
    """
    text = re.sub(r"(?<=[A-Za-z])\|(?=[A-Za-z])|(?<![^\s])\|(?=[a-z])", "I", text)
    text = re.sub(r"(?<=[A-Za-z])0(?=[A-Za-z])", "o", text)
    text = re.sub(r"(?<=[A-Za-z])1(?=[A-Za-z])", "l", text)
    text = re.sub(r"(?<=[A-Za-z])5(?=[A-Za-z])", "s", text)
    # spaced-out keywords
    text = re.sub(r"答\s+案", "答案", text)
    text = re.sub(r"解\s+析", "解析", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


class OCRParser(QuestionParser):
    """
    Recognizes text from images or PDFs and hands it to the text strategies.

    PDFs are read through their text layer first; the OCR engine is only
    used when that layer is empty. Low-confidence recognition goes to the
    AI parser when one is enabled. Emitted answers are already 0-based
    integers.
    """

    name = "ocr"
    strategy = "ocr"
    supported_types = (InputType.IMAGE, InputType.PDF)
    answer_base = 0
    is_local = False
    default_config = {
        "confidence_threshold": DEFAULT_CONFIDENCE_THRESHOLD,
    }

    def __init__(
        self,
        engine: Optional[OCREngine] = None,
        text_parsers: Sequence[QuestionParser] = (),
        ai_parser: Optional[QuestionParser] = None,
        config: Optional[dict] = None,
    ):
        super().__init__(config)
        self.engine = engine
        self.text_parsers = list(text_parsers)
        self.ai_parser = ai_parser

    def recognize(self, parse_input: ParseInput) -> Optional[OCRText]:
        """Extract text from the input; None when nothing can read it."""
        data = parse_input.content
        if isinstance(data, str):
            data = data.encode("utf-8")

        if parse_input.type is InputType.PDF:
            try:
                text = read_pdf_text(data)
            except ImportError:
                raise
            except Exception as e:
                logger.warning("PDF text layer unreadable: %s", e)
                text = ""
            if text.strip():
                return OCRText(text=text, confidence=100.0)

        if self.engine is None:
            return None
        return self.engine.recognize(data)

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        recognized = self.recognize(parse_input)
        if recognized is None:
            return self._failure(["未配置OCR引擎"])
        if not recognized.text.strip():
            return self._failure(["OCR未识别到文字"]).with_metadata(
                ocr_confidence=recognized.confidence
            )

        text = post_process_ocr(recognized.text)
        ocr_confidence = recognized.confidence
        scale = min(max(ocr_confidence / 100, 0.0), 1.0)
        errors = []

        low_confidence = ocr_confidence < self.config["confidence_threshold"]
        if low_confidence and self.ai_parser is not None and getattr(self.ai_parser, "enabled", True):
            result = self.ai_parser.parse(ParseInput.text(
                text,
                input_type=parse_input.type.value,
                has_ocr_errors=True,
                confidence=scale,
            ))
            if result.accepted:
                return self._wrap(result, self.ai_parser, ocr_confidence, result.confidence)
            errors.extend(result.errors)

        for parser in self.text_parsers:
            result = parser.parse(ParseInput.text(text))
            if result.accepted:
                return self._wrap(result, parser, ocr_confidence, result.confidence * scale)
            errors.extend(result.errors)

        failure = self._failure(errors or ["OCR文本未能解析出题目"])
        return failure.with_metadata(ocr_confidence=ocr_confidence)

    def _wrap(
        self,
        result: ParseResult,
        parser: QuestionParser,
        ocr_confidence: float,
        confidence: float,
    ) -> ParseResult:
        questions = [normalize_question(q, parser.answer_base) for q in result.questions]
        return self._result(
            questions,
            confidence,
            list(result.errors),
            cost=result.metadata.cost,
            ocr_confidence=ocr_confidence,
            detected_format=parser.strategy,
        )
