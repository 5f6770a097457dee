"""AI-backed parser delegating extraction to an LLM provider."""

import logging
from dataclasses import replace
from typing import Optional

from pydantic import ValidationError

from ..ai import (
    AIQuestion,
    AIResponseFormatError,
    AIServiceError,
    LLMClient,
    PromptBuilder,
)
from ..ai.client import decode_json_payload
from ..config import Settings
from ..detection import TextSplitter
from ..models import ParseInput, ParseResult
from ..optimization.cost_optimizer import CostOptimizer, cost_for_tokens, estimate_tokens
from .base import QuestionParser, clean_text

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8


class AIParser(QuestionParser):
    """
    Sends text to an LLM and validates the returned question list.

    Answers from the provider are 0-based indexes. The budget is checked
    before any request; a veto returns an unsuccessful result without
    contacting the provider.

    Text longer than `max_chunk_size` is sent in question-aligned chunks
    and the answers merged.

    Recognized input options: `language`, `has_multiple_questions`,
    `has_ocr_errors`, `previous_error`, `confidence`.
    """

    name = "ai"
    strategy = "ai"
    answer_base = 0
    is_local = False
    default_config = {
        "max_chunk_size": 8000,
    }

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        settings: Optional[Settings] = None,
        cost_optimizer: Optional[CostOptimizer] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        config: Optional[dict] = None,
    ):
        super().__init__(config)
        self.client = client
        self.settings = settings or (client.settings if client else Settings())
        self.cost_optimizer = cost_optimizer
        self.prompt_builder = prompt_builder or PromptBuilder()

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _price_per_1k(self) -> float:
        model = self.settings.model_info
        return model.cost_per_1k_tokens if model else 0.0

    def estimate_cost(self, text: str) -> int:
        """Pre-flight cost estimate in cents."""
        return cost_for_tokens(estimate_tokens(text), self._price_per_1k())

    def can_afford(self, text: str) -> bool:
        if self.cost_optimizer is None:
            return True
        return self.cost_optimizer.can_use_ai(self.estimate_cost(text))

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        if not self.enabled:
            return self._failure(["AI解析未启用"])

        text = clean_text(parse_input.text_content)
        estimated = self.estimate_cost(text)
        if self.cost_optimizer and not self.cost_optimizer.can_use_ai(estimated):
            logger.warning("AI parse skipped: estimated cost %d exceeds budget", estimated)
            return ParseResult.failure(
                self.name,
                self.strategy,
                [f"AI预算不足：预计成本{estimated}分超出预算"],
                budget_veto=True,
            )

        splitter = TextSplitter(max_chunk_size=self.config["max_chunk_size"], overlap=0)
        chunks = splitter.split(text)
        if len(chunks) == 1:
            return self._parse_chunk(text, parse_input)

        logger.info("Sending %d chunks of %d characters to the AI provider", len(chunks), len(text))
        questions = []
        errors = []
        confidences = []
        cost = 0
        tokens = 0
        for chunk in chunks:
            result = self._parse_chunk(chunk.content, parse_input)
            cost += result.metadata.cost
            tokens += result.metadata.extra.get("tokens", 0)
            if result.accepted:
                questions.extend(result.questions)
                confidences.append(result.confidence)
            errors.extend(f"第{chunk.index + 1}块: {e}" for e in result.errors)

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return self._result(
            questions,
            confidence,
            errors,
            cost=cost,
            extra={"tokens": tokens, "chunks": len(chunks)},
        )

    def _parse_chunk(self, text: str, parse_input: ParseInput) -> ParseResult:
        """Send one piece of text to the provider and validate the answer."""
        options = parse_input.options
        context = self.prompt_builder.analyze_context(
            text,
            input_type=options.get("input_type", parse_input.type.value),
            confidence=options.get("confidence", 0.5),
            has_ocr_errors=options.get("has_ocr_errors"),
        )
        overrides = {
            key: options[key] for key in ("language", "has_multiple_questions") if key in options
        }
        if overrides:
            context = replace(context, **overrides)

        if options.get("previous_error"):
            prompt = self.prompt_builder.build_error_recovery_prompt(
                text, context, options["previous_error"]
            )
        else:
            prompt = self.prompt_builder.build_prompt(text, context)

        try:
            response = self.client.complete(
                prompt.to_messages(),
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
            )
        except AIServiceError as e:
            return self._failure([str(e)])

        tokens = response.total_tokens or estimate_tokens(text)
        cost = cost_for_tokens(tokens, self._price_per_1k())
        if self.cost_optimizer:
            self.cost_optimizer.record_cost(cost)

        try:
            payload = decode_json_payload(response.text)
        except AIResponseFormatError as e:
            result = self._failure([f"AI返回的JSON格式错误: {e}"])
            return result.with_metadata(cost=cost, extra={"tokens": tokens})

        confidence = DEFAULT_CONFIDENCE
        items = payload
        if isinstance(payload, dict):
            items = payload.get("questions", [])
            reported = payload.get("confidence")
            if isinstance(reported, (int, float)) and 0 <= reported <= 1:
                confidence = float(reported)
        if not isinstance(items, list):
            result = self._failure(["AI返回的JSON格式错误: 不是题目数组"])
            return result.with_metadata(cost=cost, extra={"tokens": tokens})

        questions = []
        errors = []
        for i, item in enumerate(items, 1):
            try:
                questions.append(AIQuestion.model_validate(item).to_import_data())
            except ValidationError as e:
                errors.append(f"第{i}题数据不完整 (incomplete): {e.errors()[0]['msg']}")

        return self._result(
            questions,
            confidence,
            errors,
            cost=cost,
            extra={"tokens": tokens, "model": response.model},
        )
