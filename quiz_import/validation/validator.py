"""Validation and normalization of question candidates."""

import re
from dataclasses import dataclass, field, replace
from typing import Optional

from ..models import Answer, ImportQuestionData

MIN_OPTIONS = 2
MAX_OPTIONS = 6
MIN_TITLE_LENGTH = 3
MAX_OPTION_LENGTH = 200

ERR_TITLE_EMPTY = "题目标题不能为空"
ERR_TOO_FEW_OPTIONS = "选项不足（至少需要2个）"
ERR_OPTION_EMPTY = "选项{n}内容不能为空"
ERR_ANSWER_UNRESOLVABLE = "正确答案无法识别：{answer}"
ERR_ANSWER_OUT_OF_RANGE = "正确答案索引超出选项范围"

_FULLWIDTH = str.maketrans(
    "ＡＢＣＤＥＦＧＨａｂｃｄｅｆｇｈ０１２３４５６７８９",
    "ABCDEFGHabcdefgh0123456789",
)


def resolve_answer(value: Answer, answer_base: int = 0) -> Optional[int]:
    """
    Resolve a raw answer to a 0-based option index.

    Letters always map to their alphabet position. Integers are taken as
    already 0-based. Numeric strings are shifted by the source's
    answer_base (1 for sources that number options from 1).

    Args:
        value: Raw answer as produced by a parser.
        answer_base: Indexing convention of numeric strings in the source.

    Returns:
        The index, or None when the value cannot be resolved.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip().translate(_FULLWIDTH).strip("()（）.、 ")
    if re.fullmatch(r"[A-Za-z]", text):
        return ord(text.upper()) - ord("A")
    if re.fullmatch(r"-?\d+", text):
        return int(text) - answer_base
    return None


def normalize_question(question: ImportQuestionData, answer_base: int = 0) -> ImportQuestionData:
    """Trim strings and resolve the answer to an index where possible."""
    resolved = resolve_answer(question.correct_answer, answer_base)
    explanation = question.explanation.strip() if question.explanation else None
    return replace(
        question,
        title=question.title.strip(),
        options=[option.strip() for option in question.options],
        correct_answer=resolved if resolved is not None else question.correct_answer,
        explanation=explanation or None,
        tags=[tag.strip() for tag in question.tags if tag.strip()],
    )


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating one question."""
    question: ImportQuestionData
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    fixes: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def confidence(self) -> float:
        return max(0.0, 1.0 - 0.3 * len(self.errors) - 0.1 * len(self.warnings))


@dataclass
class ValidationSummary:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    warnings: int = 0
    errors: list[str] = field(default_factory=list)


class QuestionValidator:
    """
    Checks the structural invariants of question candidates.

    Invalid questions are reported, never dropped, so a preview can show
    them for manual correction.
    """

    def __init__(self, max_options: int = MAX_OPTIONS):
        self.max_options = max_options

    def validate(self, question: ImportQuestionData, answer_base: int = 0) -> ValidationReport:
        """
        Validate a single question.

        Args:
            question: Candidate to check.
            answer_base: Indexing convention of numeric-string answers.

        Returns:
            ValidationReport with errors and warnings.
        """
        errors = []
        warnings = []

        title = (question.title or "").strip()
        if not title:
            errors.append(ERR_TITLE_EMPTY)
        elif len(title) < MIN_TITLE_LENGTH:
            warnings.append("题目标题过短")

        options = question.options or []
        if len(options) < MIN_OPTIONS:
            errors.append(ERR_TOO_FEW_OPTIONS)
        for i, option in enumerate(options, 1):
            if not option or not option.strip():
                errors.append(ERR_OPTION_EMPTY.format(n=i))
            elif len(option) > MAX_OPTION_LENGTH:
                warnings.append(f"选项{i}内容过长")
        if len(options) > self.max_options:
            warnings.append(f"选项数量超过{self.max_options}个")
        stripped = [o.strip() for o in options if o and o.strip()]
        if len(set(stripped)) < len(stripped):
            warnings.append("存在重复选项")

        index = resolve_answer(question.correct_answer, answer_base)
        if index is None:
            errors.append(ERR_ANSWER_UNRESOLVABLE.format(answer=question.correct_answer))
        elif not 0 <= index < len(options):
            errors.append(ERR_ANSWER_OUT_OF_RANGE)

        return ValidationReport(question=question, errors=tuple(errors), warnings=tuple(warnings))

    def validate_all(
        self,
        questions: list[ImportQuestionData],
        answer_base: int = 0,
    ) -> list[ValidationReport]:
        return [self.validate(q, answer_base) for q in questions]

    def fix(self, question: ImportQuestionData, answer_base: int = 0) -> ValidationReport:
        """
        Apply safe automatic fixes, then validate.

        Strings are trimmed and blank options dropped with the answer index
        remapped to the surviving options. Nothing else is changed.
        """
        fixes = []
        normalized = normalize_question(question, answer_base)
        if normalized != question:
            fixes.append("已清理空白字符并规范答案")

        index = resolve_answer(normalized.correct_answer, 0)
        kept = [(i, o) for i, o in enumerate(normalized.options) if o]
        if len(kept) < len(normalized.options):
            fixes.append("已移除空选项")
            new_answer: Answer = normalized.correct_answer
            if index is not None:
                positions = [i for i, _ in kept]
                if index in positions:
                    new_answer = positions.index(index)
            normalized = replace(
                normalized,
                options=[o for _, o in kept],
                correct_answer=new_answer,
            )

        report = self.validate(normalized)
        return replace(report, fixes=tuple(fixes))

    @staticmethod
    def summarize(reports: list[ValidationReport]) -> ValidationSummary:
        summary = ValidationSummary(total=len(reports))
        for i, report in enumerate(reports, 1):
            if report.is_valid:
                summary.valid += 1
            else:
                summary.invalid += 1
                summary.errors.extend(f"第{i}题: {e}" for e in report.errors)
            summary.warnings += len(report.warnings)
        return summary
