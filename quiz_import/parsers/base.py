"""Common contract for strategy parsers."""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models import ImportQuestionData, InputType, ParseInput, ParseMetadata, ParseResult

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    """Normalize line endings and whitespace runs."""
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


class QuestionParser(ABC):
    """
    Abstract base class for all strategy parsers.

    Subclasses implement `_parse`. The public `parse` never raises: an
    unsupported input or an exception inside `_parse` becomes an
    unsuccessful result, and every result is stamped with the parser name,
    strategy and processing time.
    """

    # Subclasses should override these
    name: str = "base"
    strategy: str = "base"
    supported_types: tuple = (InputType.TEXT,)
    # Indexing convention of numeric-string answers this parser emits
    answer_base: int = 1
    # False for parsers that call out to paid or slow collaborators
    is_local: bool = True
    default_config: dict = {}

    def __init__(self, config: Optional[dict] = None):
        self.config = {**self.default_config, **(config or {})}

    def supports(self, parse_input: ParseInput) -> bool:
        """Whether this parser can attempt the given input."""
        if parse_input.type not in self.supported_types:
            return False
        if parse_input.type is InputType.TEXT:
            return bool(parse_input.text_content.strip())
        return bool(parse_input.content)

    def parse(self, parse_input: ParseInput) -> ParseResult:
        """
        Parse the input into question candidates.

        Args:
            parse_input: Raw input to parse.

        Returns:
            ParseResult; `success` is False rather than raising on failure.
        """
        start = time.perf_counter()

        if not self.supports(parse_input):
            result = self._failure([f"{self.name} 不支持该输入"])
        else:
            try:
                result = self._parse(parse_input)
            except Exception as e:
                logger.warning("Parser %s failed: %s", self.name, e)
                result = self._failure([f"{self.name} 解析异常: {e}"])

        elapsed = (time.perf_counter() - start) * 1000
        return result.with_metadata(
            parser=self.name,
            strategy=self.strategy,
            processing_time=elapsed,
        )

    @abstractmethod
    def _parse(self, parse_input: ParseInput) -> ParseResult:
        """
        Parse a supported input.

        Subclasses must implement this method.
        """
        pass

    def get_config(self) -> dict[str, Any]:
        return dict(self.config)

    def set_config(self, **changes) -> None:
        unknown = set(changes) - set(self.default_config)
        if unknown:
            raise ValueError(f"Unknown config keys for {self.name}: {sorted(unknown)}")
        self.config.update(changes)

    def _result(
        self,
        questions: list[ImportQuestionData],
        confidence: float,
        errors: Optional[list[str]] = None,
        **metadata,
    ) -> ParseResult:
        """Build a result; success means at least one question."""
        errors = list(errors or [])
        if not questions and not errors:
            errors.append(f"{self.name} 未识别到题目")
        return ParseResult(
            success=bool(questions),
            questions=tuple(questions),
            confidence=confidence if questions else 0.0,
            errors=tuple(errors),
            metadata=ParseMetadata(parser=self.name, strategy=self.strategy, **metadata),
        )

    def _failure(self, errors: list[str]) -> ParseResult:
        return ParseResult.failure(self.name, self.strategy, errors)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, strategy={self.strategy})"
