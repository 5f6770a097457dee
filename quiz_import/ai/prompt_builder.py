"""Prompt construction for the AI-backed parser."""

import re
from dataclasses import dataclass
from typing import Optional

from ..detection import TextSplitter

SYSTEM_PROMPT = """You are a precise quiz-question extraction engine.
Convert the user's text into multiple-choice questions.

Respond ONLY with a JSON array, no markdown or commentary. Each element:
{"title": "question stem without its number",
 "options": ["option text without letter", ...],
 "correctAnswer": 0,
 "explanation": "explanation or empty string",
 "difficulty": "easy|medium|hard",
 "tags": []}

Rules:
- correctAnswer is the 0-based index of the correct option (A=0, B=1, ...).
- Keep the original wording; do not invent questions, options or answers.
- Omit option markers such as "A." or "(B)" from option text.
- If the answer is not stated, choose the most defensible option and say so in the explanation."""

_LANGUAGE_HINTS = {
    "zh": "The text is Chinese; keep all fields in Chinese.",
    "en": "The text is English; keep all fields in English.",
    "mixed": "The text mixes Chinese and English; keep each field in its original language.",
}


@dataclass(frozen=True)
class PromptContext:
    """What we know about the text before asking the provider."""
    input_type: str
    text_length: int
    has_multiple_questions: bool
    has_ocr_errors: bool
    language: str
    confidence: float = 0.5
    estimated_questions: int = 1


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str
    temperature: float
    max_tokens: int

    def to_messages(self) -> list[dict]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def detect_language(text: str) -> str:
    """Classify text as zh, en or mixed by character counts."""
    cjk = len(re.findall(r"[\u4e00-\u9fff]", text))
    latin = len(re.findall(r"[A-Za-z]", text))
    if cjk == 0 and latin == 0:
        return "zh"
    if cjk and latin / max(cjk, 1) < 0.3:
        return "zh"
    if latin and cjk / max(latin, 1) < 0.1:
        return "en"
    return "mixed"


def looks_like_ocr_noise(text: str) -> bool:
    """Heuristic for OCR confusions: digit/letter mixes and stray pipes."""
    signals = [
        re.search(r"[A-Za-z][0|][A-Za-z]", text),
        re.search(r"\|", text),
        re.search(r"[A-Za-z]{2,}[015][A-Za-z]+", text),
        re.search(r"\s{3,}", text),
    ]
    return sum(1 for s in signals if s) >= 2


class PromptBuilder:
    """Builds provider prompts tuned to the text being parsed."""

    BASE_TEMPERATURE = 0.1
    MAX_TEMPERATURE = 0.3
    BASE_MAX_TOKENS = 1000
    TOKENS_PER_QUESTION = 300

    def analyze_context(
        self,
        text: str,
        input_type: str = "text",
        confidence: float = 0.5,
        has_ocr_errors: Optional[bool] = None,
    ) -> PromptContext:
        estimated = TextSplitter.estimate_question_count(text) if text else 0
        return PromptContext(
            input_type=input_type,
            text_length=len(text),
            has_multiple_questions=len(re.split(r"\d+[.)、]", text)) > 2,
            has_ocr_errors=looks_like_ocr_noise(text) if has_ocr_errors is None else has_ocr_errors,
            language=detect_language(text),
            confidence=confidence,
            estimated_questions=max(estimated, 1),
        )

    def build_prompt(self, text: str, context: PromptContext) -> Prompt:
        hints = [_LANGUAGE_HINTS[context.language]]
        if context.has_multiple_questions:
            hints.append(
                f"The text contains about {context.estimated_questions} questions; return all of them in order."
            )
        if context.has_ocr_errors:
            hints.append(
                "The text came from OCR and may confuse 0/O, 1/l, 5/S and |/I; correct obvious recognition errors."
            )
        if context.input_type in ("image", "pdf"):
            hints.append("Ignore page headers, footers and page numbers.")

        user = "\n".join(hints) + "\n\nText:\n" + text
        return Prompt(
            system=SYSTEM_PROMPT,
            user=user,
            temperature=self._temperature(context),
            max_tokens=self._max_tokens(context),
        )

    def build_error_recovery_prompt(
        self,
        text: str,
        context: PromptContext,
        previous_error: str,
    ) -> Prompt:
        """Prompt for a retry after the provider's previous answer was unusable."""
        base = self.build_prompt(text, context)
        user = (
            f"The previous attempt failed with: {previous_error}\n"
            "Return strictly valid JSON. Every question must have a non-empty title, "
            "at least two options and an integer correctAnswer within range.\n\n"
            + base.user
        )
        return Prompt(
            system=base.system,
            user=user,
            temperature=max(0.0, base.temperature - 0.05),
            max_tokens=base.max_tokens,
        )

    def _temperature(self, context: PromptContext) -> float:
        temperature = self.BASE_TEMPERATURE
        if context.has_ocr_errors:
            temperature += 0.05
        if context.confidence < 0.3:
            temperature += 0.05
        return min(max(temperature, 0.0), self.MAX_TEMPERATURE)

    def _max_tokens(self, context: PromptContext) -> int:
        tokens = self.BASE_MAX_TOKENS
        if context.has_multiple_questions:
            tokens += self.TOKENS_PER_QUESTION * context.estimated_questions
        return tokens
