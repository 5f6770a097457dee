"""Line- and block-oriented text strategies."""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..detection import LineKind, classify_line, split_blocks
from ..models import Difficulty, ImportQuestionData, ParseInput, ParseResult
from .base import QuestionParser, clean_text


@dataclass
class _Draft:
    """Mutable accumulator for one question while scanning lines."""
    title_lines: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=list)
    answer: Optional[str] = None
    explanation_lines: list[str] = field(default_factory=list)
    difficulty: Optional[str] = None
    in_explanation: bool = False

    @property
    def title(self) -> str:
        return " ".join(line for line in self.title_lines if line)

    def build(self) -> ImportQuestionData:
        explanation = " ".join(line for line in self.explanation_lines if line)
        return ImportQuestionData(
            title=self.title,
            options=list(self.options),
            correct_answer=(self.answer or "").upper(),
            explanation=explanation or None,
            difficulty=Difficulty.from_label(self.difficulty),
        )


def parse_standard_block(block: str) -> Optional[ImportQuestionData]:
    """
    Parse one block laid out as title, lettered options, answer, explanation.

    The block must have at least three lines, a title, two options and an
    answer; anything else returns None. The first line is always title
    text, even when it begins with a keyword such as `说明：`.
    """
    lines = [line for line in block.split("\n") if line.strip()]
    if len(lines) < 3:
        return None

    first = classify_line(lines[0])
    title = first.content if first.kind is LineKind.QUESTION_START else lines[0].strip()
    draft = _Draft(title_lines=[title])
    for line in lines[1:]:
        classified = classify_line(line)
        kind = classified.kind
        if kind is LineKind.OPTION and not draft.in_explanation:
            draft.options.append(classified.content)
        elif kind is LineKind.ANSWER and draft.options:
            draft.answer = classified.content
        elif kind is LineKind.EXPLANATION:
            draft.in_explanation = True
            draft.explanation_lines.append(classified.content)
        elif kind is LineKind.DIFFICULTY:
            draft.difficulty = classified.content
        elif draft.in_explanation:
            draft.explanation_lines.append(line.strip())
        elif not draft.options:
            draft.title_lines.append(line.strip())
        elif draft.answer is None:
            # Wrapped option text
            draft.options[-1] = f"{draft.options[-1]} {line.strip()}".strip()

    if not draft.title or len(draft.options) < 2 or not draft.answer:
        return None
    return draft.build()


class StandardBlockParser(QuestionParser):
    """Splits text into numbered blocks and parses each as a standard block."""

    name = "standard_block"
    strategy = "standard"
    answer_base = 1

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        return self.parse_text(parse_input.text_content)

    def parse_text(self, text: str) -> ParseResult:
        blocks = split_blocks(clean_text(text))
        questions = [q for q in map(parse_standard_block, blocks) if q is not None]
        confidence = 0.85 * len(questions) / len(blocks) if blocks else 0.0
        return self._result(questions, confidence, extra={"blocks": len(blocks)})


class NumberedFormatParser(QuestionParser):
    """
    Line scanner that starts a new question at every numbering marker.

    Accepts `1.`, `（1）`, `第1题`, `题目`, `一、` starts, lettered options,
    answer lines with letters or 1-based numbers, explanation and difficulty
    lines. A question needs a title and two options; a missing answer is
    left for validation to report.
    """

    name = "numbered_format"
    strategy = "numbered"
    answer_base = 1

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        text = clean_text(parse_input.text_content)
        drafts: list[_Draft] = []
        current: Optional[_Draft] = None

        for line in text.split("\n"):
            if not line.strip():
                continue
            classified = classify_line(line)
            kind = classified.kind

            if kind is LineKind.QUESTION_START and (current is None or current.options):
                current = _Draft(title_lines=[classified.content])
                drafts.append(current)
                continue
            if current is None:
                continue

            if kind is LineKind.OPTION and not current.in_explanation:
                current.options.append(classified.content)
            elif kind is LineKind.ANSWER and current.options:
                current.answer = classified.content
            elif kind is LineKind.EXPLANATION:
                current.in_explanation = True
                current.explanation_lines.append(classified.content)
            elif kind is LineKind.DIFFICULTY:
                current.difficulty = classified.content
            elif current.in_explanation:
                current.explanation_lines.append(line.strip())
            elif not current.options:
                current.title_lines.append(line.strip())

        questions = [d.build() for d in drafts if d.title and len(d.options) >= 2]
        answered = sum(1 for q in questions if q.correct_answer)
        confidence = 0.5 + 0.3 * answered / len(questions) if questions else 0.0
        return self._result(questions, confidence)


class SimpleSequentialParser(QuestionParser):
    """
    State machine over lines: title, then options, then answer, then explanation.

    A question is emitted once it has a title and at least one option, so
    malformed questions reach validation instead of disappearing.
    """

    name = "simple_sequential"
    strategy = "simple"
    answer_base = 1

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        text = clean_text(parse_input.text_content)
        drafts: list[_Draft] = []
        current = _Draft()
        state = "title"

        def flush():
            if current.title and current.options:
                drafts.append(current)

        for line in text.split("\n"):
            if not line.strip():
                continue
            classified = classify_line(line)
            kind = classified.kind

            if kind is LineKind.OPTION and state in ("title", "options"):
                current.options.append(classified.content)
                state = "options"
            elif kind is LineKind.ANSWER and state == "options":
                current.answer = classified.content
                state = "answer"
            elif kind is LineKind.EXPLANATION and state in ("options", "answer"):
                current.explanation_lines.append(classified.content)
                state = "explanation"
            elif kind is LineKind.DIFFICULTY and state != "title":
                current.difficulty = classified.content
            elif state == "explanation" and kind is LineKind.CONTINUATION:
                current.explanation_lines.append(line.strip())
            elif state == "title":
                title = classified.content if kind is LineKind.QUESTION_START else line.strip()
                current.title_lines.append(title)
            else:
                flush()
                current = _Draft()
                title = classified.content if kind is LineKind.QUESTION_START else line.strip()
                current.title_lines.append(title)
                state = "title"
        flush()

        questions = [d.build() for d in drafts]
        complete = sum(1 for q in questions if len(q.options) >= 2 and q.correct_answer)
        confidence = 0.4 + 0.3 * complete / len(questions) if questions else 0.0
        return self._result(questions, confidence)


_WORD_GLYPHS = re.compile("[\u2022\u25cf\u25cb\u25a0\u25a1\u25c6\u25c7\uf0b7]")


class WordCopyParser(QuestionParser):
    """Removes Word copy artifacts, then delegates to the standard-block parser."""

    name = "word_copy"
    strategy = "word"
    answer_base = 1

    def __init__(self, config=None):
        super().__init__(config)
        self._delegate = StandardBlockParser()

    @staticmethod
    def clean(text: str) -> str:
        text = _WORD_GLYPHS.sub("", text)
        text = text.replace("\f", "\n").replace("\t", " ")
        text = text.replace("\u00a0", " ").replace("\u3000", " ")
        text = text.replace("\u201c", '"').replace("\u201d", '"')
        text = text.replace("\u2018", "'").replace("\u2019", "'")
        text = clean_text(text)
        # Word inserts blank lines between paragraphs; keep them only before numbered items
        text = re.sub(r"\n\n+(?!\s*(?:\d+[.、．]|第\d+题|[（(]\d+[）)]))", "\n", text)
        return text

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        result = self._delegate.parse_text(self.clean(parse_input.text_content))
        return result.with_metadata(parser=self.name, strategy=self.strategy)


class PdfCopyParser(QuestionParser):
    """Repairs PDF copy artifacts, then delegates to the standard-block parser."""

    name = "pdf_copy"
    strategy = "pdf"
    answer_base = 1

    def __init__(self, config=None):
        super().__init__(config)
        self._delegate = StandardBlockParser()

    @staticmethod
    def clean(text: str) -> str:
        text = text.replace("\f", "\n")
        text = re.sub(r"\r\n?", "\n", text)
        # Page furniture
        text = re.sub(r"\n\s*(?:Page\s+\d+(?:\s+of\s+\d+)?|第\s*\d+\s*页(?:\s*共\s*\d+\s*页)?)\s*(?=\n|$)",
                      "\n", text, flags=re.IGNORECASE)
        # Options and answers run together on one line
        text = re.sub(r"(?<=[^\sA-Za-z])\s*(?=[B-H][.、．]\S)", "\n", text)
        text = re.sub(r"(?<=\S)(?<!正确)(?<!参考)\s*(?=(?:正确答案|参考答案|答案)[：:])", "\n", text)
        text = re.sub(r"(?<=\S)\s*(?=(?:解析|解释|说明)[：:])", "\n", text)
        text = re.sub(r"(?<=[?？])\s*(?=A[.、．]\S)", "\n", text)
        # Broken wraps: a line continuing in lower case, or CJK split mid-sentence
        text = re.sub(r"(?<=[a-z,])\n(?=[a-z])", " ", text)
        text = re.sub(
            r"(?<=[\u4e00-\u9fff，、])\n(?=[\u4e00-\u9fff])(?![^\n]*[：:])",
            "",
            text,
        )
        return clean_text(text)

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        result = self._delegate.parse_text(self.clean(parse_input.text_content))
        return result.with_metadata(parser=self.name, strategy=self.strategy)


INTELLIGENT_SEPARATORS = [
    re.compile(r"\n\s*\n\s*(?=\d+[.、．])"),
    re.compile(r"\n\s*(?=[一二三四五六七八九十]+[、.．])"),
    re.compile(r"\n\s*(?=[（(]\d+[）)])"),
    re.compile(r"\n\s*(?=第\s*\d+\s*题)"),
    re.compile(r"\n\s*(?=\d+[.、．](?!\d))"),
    re.compile(r"\n\s*\n"),
]


class IntelligentSplitParser(QuestionParser):
    """
    Last local fallback: try several separator heuristics and parse each chunk.

    The first separator producing at least one question wins. Each chunk is
    parsed independently with the standard-block rules and then, if that
    fails, with the sequential state machine.
    """

    name = "intelligent_split"
    strategy = "intelligent"
    answer_base = 1

    def __init__(self, config=None):
        super().__init__(config)
        self._sequential = SimpleSequentialParser()

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        text = clean_text(parse_input.text_content)
        for separator in INTELLIGENT_SEPARATORS:
            chunks = [c.strip() for c in separator.split(text) if c.strip()]
            if len(chunks) < 2:
                continue
            questions = self._parse_chunks(chunks)
            if questions:
                return self._result(questions, 0.5, extra={"separator": separator.pattern})

        return self._result(self._parse_chunks([text]), 0.4)

    def _parse_chunks(self, chunks: list[str]) -> list[ImportQuestionData]:
        questions = []
        for chunk in chunks:
            body = re.sub(r"^(?:\d+[.、．]|[一二三四五六七八九十]+[、.．]|[（(]\d+[）)]|第\s*\d+\s*题[：:.、]?)\s*", "", chunk)
            question = parse_standard_block(body)
            if question is not None:
                questions.append(question)
                continue
            result = self._sequential.parse(ParseInput.text(body))
            questions.extend(q for q in result.questions if len(q.options) >= 2)
        return questions
