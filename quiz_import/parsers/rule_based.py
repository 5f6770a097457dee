"""Rule-based structured parser."""

import re
from dataclasses import dataclass
from typing import Callable

from ..models import Difficulty, ImportQuestionData, ParseInput, ParseResult
from ..validation import QuestionValidator
from .base import QuestionParser, clean_text

_EXPLANATION = r"(?:\n[ \t]*(?:解析|解释|说明|解答|分析)[ \t]*[：:][ \t]*(?P<explanation>[^\n]*))?"
_DIFFICULTY = r"(?:\n[ \t]*难度[ \t]*[：:][ \t]*(?P<difficulty>[^\n]+))?"
_ANSWER_KEYS = r"(?:正确答案|参考答案|答案)"


@dataclass(frozen=True)
class ParseRule:
    """A named regex over the whole text plus how to read options from a match."""
    name: str
    pattern: re.Pattern
    option_pattern: re.Pattern
    confidence: float


RULES = [
    ParseRule(
        name="standard_choice",
        pattern=re.compile(
            r"^[ \t]*\d+[ \t]*[.、．](?!\d)[ \t]*(?P<title>[^\n]+)\n"
            r"(?P<options>(?:[ \t]*[A-H][ \t]*[.、．][^\n]*\n){2,6})"
            r"[ \t]*" + _ANSWER_KEYS + r"[ \t]*[：:][ \t]*(?P<answer>[A-Ha-h])[ \t]*(?=\n|$)"
            + _EXPLANATION + _DIFFICULTY,
            re.M,
        ),
        option_pattern=re.compile(r"^[ \t]*[A-H][ \t]*[.、．][ \t]*(.*)$", re.M),
        confidence=0.95,
    ),
    ParseRule(
        name="numeric_choice",
        pattern=re.compile(
            r"^[ \t]*\d+[ \t]*[.、．](?!\d)[ \t]*(?P<title>[^\n]+)\n"
            r"(?P<options>(?:[ \t]*[1-9][ \t]*[.、．)）][^\n]*\n){2,6})"
            r"[ \t]*" + _ANSWER_KEYS + r"[ \t]*[：:][ \t]*(?P<answer>[1-9])[ \t]*(?=\n|$)"
            + _EXPLANATION + _DIFFICULTY,
            re.M,
        ),
        option_pattern=re.compile(r"^[ \t]*[1-9][ \t]*[.、．)）][ \t]*(.*)$", re.M),
        confidence=0.9,
    ),
    ParseRule(
        name="parenthesis_choice",
        pattern=re.compile(
            r"^[ \t]*(?:\d+[ \t]*[.、．](?!\d))?[ \t]*(?P<title>[^\n(（]+[^\n]*)\n"
            r"(?P<options>(?:[ \t]*[(（][A-H][)）][^\n]*\n){2,6})"
            r"[ \t]*" + _ANSWER_KEYS + r"[ \t]*[：:][ \t]*[(（]?(?P<answer>[A-Ha-h])[)）]?[ \t]*(?=\n|$)"
            + _EXPLANATION + _DIFFICULTY,
            re.M,
        ),
        option_pattern=re.compile(r"^[ \t]*[(（][A-H][)）][ \t]*(.*)$", re.M),
        confidence=0.9,
    ),
    ParseRule(
        name="simple_choice",
        pattern=re.compile(
            r"(?:\A|(?<=\n\n))(?![ \t]*[A-H][ \t]*[.、．])(?![ \t]*\d+[ \t]*[.、．])"
            r"(?![ \t]*" + _ANSWER_KEYS + r")[ \t]*(?P<title>[^\n]+)\n"
            r"(?P<options>(?:[ \t]*[A-H][ \t]*[.、．][^\n]*\n){2,6})"
            r"[ \t]*" + _ANSWER_KEYS + r"[ \t]*[：:][ \t]*(?P<answer>[A-Ha-h])[ \t]*(?=\n|$)"
            + _EXPLANATION + _DIFFICULTY,
            re.M,
        ),
        option_pattern=re.compile(r"^[ \t]*[A-H][ \t]*[.、．][ \t]*(.*)$", re.M),
        confidence=0.85,
    ),
]


class RuleBasedParser(QuestionParser):
    """
    Regex rules over the whole text, one rule per known question layout.

    Rules run in order. Unless strict_mode is set, the first rule that
    yields questions ends the search; in strict mode every rule runs and
    matches overlapping an earlier rule's span are skipped.

    Numeric-option answers (`答案：2`) are 1-based. With auto_fix the
    returned questions are the validator's fixed versions, answers already
    resolved to 0-based indexes where possible.
    """

    name = "rule_based"
    strategy = "rule"
    answer_base = 1
    default_config = {
        "strict_mode": False,
        "auto_fix": True,
        "max_questions": 100,
    }

    def __init__(self, config=None, rules: list[ParseRule] = None):
        super().__init__(config)
        self.rules = rules or RULES
        self._validator = QuestionValidator()

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        # Trailing newline lets the last option line match the option group
        text = clean_text(parse_input.text_content) + "\n"
        found: list[tuple[int, ImportQuestionData, float]] = []
        taken: list[tuple[int, int]] = []
        matched_rules = []

        for rule in self.rules:
            hits = 0
            for match in rule.pattern.finditer(text):
                span = match.span()
                if any(span[0] < end and start < span[1] for start, end in taken):
                    continue
                question = self._build_question(match, rule.option_pattern.findall)
                taken.append(span)
                found.append((span[0], question, rule.confidence))
                hits += 1
            if hits:
                matched_rules.append(rule.name)
                if not self.config["strict_mode"]:
                    break

        found.sort(key=lambda item: item[0])
        found = found[: self.config["max_questions"]]
        questions = [q for _, q, _ in found]

        if not questions:
            return self._result([], 0.0)

        confidence = sum(c for _, _, c in found) / len(found)
        if self.config["auto_fix"]:
            # Fixed questions carry 0-based integer answers
            reports = [self._validator.fix(q, self.answer_base) for q in questions]
            questions = [r.question for r in reports]
            validation_confidence = sum(r.confidence for r in reports) / len(reports)
            confidence = min(confidence, validation_confidence)

        return self._result(
            questions,
            confidence,
            detected_format=matched_rules[0],
            extra={"rules": matched_rules},
        )

    @staticmethod
    def _build_question(match: re.Match, find_options: Callable) -> ImportQuestionData:
        options = [option.strip() for option in find_options(match.group("options"))]
        explanation = match.group("explanation")
        return ImportQuestionData(
            title=match.group("title").strip(),
            options=options,
            correct_answer=match.group("answer").strip().upper(),
            explanation=explanation.strip() if explanation else None,
            difficulty=Difficulty.from_label(match.group("difficulty")),
        )
