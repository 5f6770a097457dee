"""Line classification for free-form question text."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LineKind(Enum):
    """What a single line of question text represents."""
    OPTION = "option"
    ANSWER = "answer"
    EXPLANATION = "explanation"
    DIFFICULTY = "difficulty"
    QUESTION_START = "question_start"
    CONTINUATION = "continuation"


@dataclass(frozen=True)
class ClassifiedLine:
    """A line with its kind, the marker it carried and the remaining content."""
    kind: LineKind
    content: str
    raw: str
    marker: Optional[str] = None


# Full-width letters fold to ASCII before matching
_FULLWIDTH = str.maketrans("ＡＢＣＤＥＦＧＨａｂｃｄｅｆｇｈ", "ABCDEFGHabcdefgh")

OPTION_PATTERNS = [
    re.compile(r"^([A-H])\s*[.、．)）:：]\s*(.*)$"),
    re.compile(r"^[（(]\s*([A-H])\s*[）)]\s*(.*)$"),
]

ANSWER_PATTERNS = [
    re.compile(r"^(?:正确答案|参考答案|标准答案|答案|答)\s*[：:]\s*(.+)$"),
    re.compile(r"^(?:correct\s+answer|answer)\s*[：:]\s*(.+)$", re.IGNORECASE),
    re.compile(r"^(?:正确答案|参考答案|答案)\s+([A-H1-9]+)\s*$"),
    # A lone option letter on its own line
    re.compile(r"^([A-H])$"),
]

EXPLANATION_PATTERNS = [
    re.compile(r"^(?:解析|解释|说明|解答|分析)\s*[：:]\s*(.*)$"),
    re.compile(r"^explanation\s*[：:]\s*(.*)$", re.IGNORECASE),
]

DIFFICULTY_PATTERNS = [
    re.compile(r"^难度\s*[：:]\s*(简单|容易|中等|一般|困难|难|easy|medium|hard)\s*$", re.IGNORECASE),
    re.compile(r"^difficulty\s*[：:]\s*(easy|medium|hard)\s*$", re.IGNORECASE),
]

QUESTION_START_PATTERNS = [
    re.compile(r"^(\d+)\s*[.、．:：)）](?!\d)\s*(.*)$"),
    re.compile(r"^[（(]\s*(\d+)\s*[）)]\s*(.*)$"),
    re.compile(r"^第\s*(\d+)\s*题\s*[：:.、．]?\s*(.*)$"),
    re.compile(r"^([一二三四五六七八九十]+)\s*[、.．]\s*(.*)$"),
    re.compile(r"^题目\s*(\d*)\s*[：:.、]?\s*(.*)$"),
    # Bare "3 题干": short numbers only, and not a quantity or date ("2023 年", "5 个")
    re.compile(r"^(\d{1,3})\s+(?![年月日号个%])(\S.*)$"),
]


def _first_match(patterns: list, line: str):
    for pattern in patterns:
        match = pattern.match(line)
        if match:
            return match
    return None


def classify_line(line: str) -> ClassifiedLine:
    """
    Classify one line of text.

    Pattern families are tried in a fixed order and the first match wins:
    option, answer, explanation, difficulty, question start, continuation.

    Args:
        line: A single line; surrounding whitespace is ignored.

    Returns:
        ClassifiedLine describing the line.
    """
    raw = line
    text = line.strip().translate(_FULLWIDTH)

    match = _first_match(OPTION_PATTERNS, text)
    if match:
        return ClassifiedLine(LineKind.OPTION, match.group(2).strip(), raw, match.group(1).upper())

    match = _first_match(ANSWER_PATTERNS, text)
    if match:
        value = match.group(1).strip()
        return ClassifiedLine(LineKind.ANSWER, value, raw, value)

    match = _first_match(EXPLANATION_PATTERNS, text)
    if match:
        return ClassifiedLine(LineKind.EXPLANATION, match.group(1).strip(), raw)

    match = _first_match(DIFFICULTY_PATTERNS, text)
    if match:
        return ClassifiedLine(LineKind.DIFFICULTY, match.group(1).strip(), raw, match.group(1).lower())

    match = _first_match(QUESTION_START_PATTERNS, text)
    if match:
        return ClassifiedLine(LineKind.QUESTION_START, match.group(2).strip(), raw, match.group(1))

    return ClassifiedLine(LineKind.CONTINUATION, text, raw)


def classify_lines(text: str) -> list[ClassifiedLine]:
    """Classify every non-blank line of a text."""
    return [classify_line(line) for line in text.split("\n") if line.strip()]


def is_option_line(line: str) -> bool:
    return classify_line(line).kind is LineKind.OPTION


def is_answer_line(line: str) -> bool:
    return classify_line(line).kind is LineKind.ANSWER


def is_explanation_line(line: str) -> bool:
    return classify_line(line).kind is LineKind.EXPLANATION


def is_question_start(line: str) -> bool:
    return classify_line(line).kind is LineKind.QUESTION_START
