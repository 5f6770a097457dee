"""Detect which textual question format a piece of text uses."""

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FormatPattern:
    """A known question format with its recognition patterns."""
    name: str
    description: str
    patterns: tuple
    confidence: float
    priority: int


FORMAT_PATTERNS = [
    FormatPattern(
        name="standard_choice",
        description="Numbered question, A-D options, explicit answer line",
        patterns=(
            re.compile(r"^\d+[.、]\s*.+\??\s*\n?[A-D][.、]\s*.+", re.M),
            re.compile(r"答案[：:]\s*[A-D]", re.M),
            re.compile(r"正确答案[：:]\s*[A-D]", re.M),
        ),
        confidence=0.9,
        priority=1,
    ),
    FormatPattern(
        name="simple_choice",
        description="Unnumbered question with lettered options",
        patterns=(
            re.compile(r"^.+\??\s*\n?[A-D][.、]\s*.+", re.M),
            re.compile(r"[A-D][.、]\s*.+"),
        ),
        confidence=0.7,
        priority=2,
    ),
    FormatPattern(
        name="numeric_choice",
        description="Options numbered 1-4",
        patterns=(
            re.compile(r"^\d+[.、]\s*.+\??\s*\n?[1-4][.、]\s*.+", re.M),
            re.compile(r"[1-4][.、]\s*.+"),
        ),
        confidence=0.8,
        priority=3,
    ),
    FormatPattern(
        name="parenthesis_choice",
        description="Options written as (A) (B) (C) (D)",
        patterns=(
            re.compile(r"^\d*[.、]?\s*.+\??\s*\n?\([A-D]\)\s*.+", re.M),
            re.compile(r"\([A-D]\)\s*.+"),
        ),
        confidence=0.8,
        priority=4,
    ),
    FormatPattern(
        name="word_copy",
        description="Text copied from Word with blank lines and odd spacing",
        patterns=(
            re.compile(r"^\d+[.、]\s*.+[\r\n]+[A-D][.、]\s*.+", re.M),
            re.compile(r"\r\n|\r|\n"),
            re.compile(r"\s{2,}"),
        ),
        confidence=0.6,
        priority=5,
    ),
    FormatPattern(
        name="pdf_copy",
        description="Text copied from PDF with page breaks and run-together lines",
        patterns=(
            re.compile(r"^\d+[.、]\s*.+", re.M),
            re.compile(r"[A-D][.、]\s*.+"),
            re.compile(r"\f"),
            re.compile(r"\s+"),
        ),
        confidence=0.5,
        priority=6,
    ),
    FormatPattern(
        name="ocr_format",
        description="OCR output with confusable characters",
        patterns=(
            re.compile(r"[0O1Il|]{2,}"),
            re.compile(r"[^\w\s\u4e00-\u9fff.,;:!?()\[\]{}\"'“”‘’]"),
            re.compile(r"\s{3,}"),
        ),
        confidence=0.4,
        priority=7,
    ),
    FormatPattern(
        name="mixed_format",
        description="Several numbering and option styles mixed together",
        patterns=(
            re.compile(r"^\d+[.、]\s*.+", re.M),
            re.compile(r"[A-D1-4][.、()]\s*.+"),
        ),
        confidence=0.3,
        priority=8,
    ),
]

_QUESTION_COUNT_PATTERNS = [
    re.compile(r"^\d+[.、]", re.M),
    re.compile(r"^第\d+题", re.M),
    re.compile(r"^\(\d+\)", re.M),
]

_OPTION_COUNT_PATTERNS = [
    re.compile(r"[A-D][.、]"),
    re.compile(r"[1-4][.、]"),
    re.compile(r"\([A-D]\)"),
    re.compile(r"\([1-4]\)"),
]

_ANSWER_PATTERNS = [
    re.compile(r"答案[：:]\s*[A-D1-4]", re.I),
    re.compile(r"正确答案[：:]\s*[A-D1-4]", re.I),
    re.compile(r"参考答案[：:]\s*[A-D1-4]", re.I),
]


@dataclass
class FormatAnalysis:
    """Score of one format against a text."""
    pattern: FormatPattern
    matched_patterns: int
    match_score: float
    confidence: float
    issues: list[str] = field(default_factory=list)


@dataclass
class FormatDetectionResult:
    """Best matching format plus the runners-up."""
    format: str
    confidence: float
    alternatives: list[tuple[str, float]]
    metadata: dict
    recommendations: list[str]
    issues: list[str] = field(default_factory=list)


class FormatDetector:
    """
    Scores text against the known question formats.

    Each format starts from its base confidence scaled by the share of its
    patterns that match, then is adjusted for question count, option
    completeness, answer presence, option-marker consistency and text quality.
    """

    def __init__(self, patterns: list[FormatPattern] = None):
        self.patterns = patterns or FORMAT_PATTERNS

    def detect_format(self, text: str) -> FormatDetectionResult:
        """
        Detect the most likely format of the text.

        Args:
            text: Raw or cleaned question text.

        Returns:
            FormatDetectionResult with the winner and alternatives.
        """
        if not text or not text.strip():
            return FormatDetectionResult(
                format="unknown",
                confidence=0.0,
                alternatives=[],
                metadata=self.generate_metadata(""),
                recommendations=["输入文本为空"],
            )

        analyses = [self._analyze_pattern(text, pattern) for pattern in self.patterns]
        best = self._select_best(analyses)
        metadata = self.generate_metadata(text)

        alternatives = [
            (a.pattern.name, round(a.confidence, 4))
            for a in sorted(analyses, key=lambda a: -a.confidence)
            if a is not best and a.confidence > 0.1
        ][:3]

        return FormatDetectionResult(
            format=best.pattern.name,
            confidence=best.confidence,
            alternatives=alternatives,
            metadata=metadata,
            recommendations=self._recommendations(best, metadata),
            issues=list(best.issues),
        )

    def quick_detect(self, text: str) -> str:
        """Return only the name of the best format."""
        return self.detect_format(text).format

    def _analyze_pattern(self, text: str, pattern: FormatPattern) -> FormatAnalysis:
        matched = 0
        total_hits = 0
        for regex in pattern.patterns:
            hits = regex.findall(text)
            if hits:
                matched += 1
                total_hits += len(hits)

        issues: list[str] = []
        confidence = pattern.confidence * (matched / len(pattern.patterns))
        confidence = self._adjust_confidence(confidence, text, pattern, issues)

        return FormatAnalysis(
            pattern=pattern,
            matched_patterns=matched,
            match_score=total_hits / max(len(pattern.patterns), 1),
            confidence=max(0.0, min(1.0, confidence)),
            issues=issues,
        )

    def _adjust_confidence(
        self,
        confidence: float,
        text: str,
        pattern: FormatPattern,
        issues: list[str],
    ) -> float:
        question_count = count_questions(text)
        if question_count == 0:
            confidence *= 0.1
            issues.append("未检测到题目")
        elif question_count > 1 and "simple" in pattern.name:
            confidence *= 0.8

        option_count = count_options(text)
        if option_count < question_count * 4 * 0.5:
            confidence *= 0.7
            issues.append("选项不完整")

        if not has_answers(text) and pattern.name == "standard_choice":
            confidence *= 0.8
            issues.append("缺少答案")

        consistency = check_consistency(text)
        confidence *= consistency
        if consistency < 0.8:
            issues.append("格式不一致")

        quality = assess_text_quality(text)
        if quality < 0.5 and pattern.name != "ocr_format":
            confidence *= 0.6
            issues.append("文本质量较低")

        return confidence

    @staticmethod
    def _select_best(analyses: list[FormatAnalysis]) -> FormatAnalysis:
        best = analyses[0]
        for candidate in analyses[1:]:
            if abs(candidate.confidence - best.confidence) > 0.1:
                if candidate.confidence > best.confidence:
                    best = candidate
            elif candidate.pattern.priority < best.pattern.priority:
                best = candidate
        return best

    @staticmethod
    def generate_metadata(text: str) -> dict:
        return {
            "text_length": len(text),
            "question_count": count_questions(text),
            "has_answers": has_answers(text),
            "has_explanations": bool(re.search(r"解析[：:]", text)),
            "quality_score": assess_text_quality(text) if text else 0.0,
        }

    @staticmethod
    def _recommendations(best: FormatAnalysis, metadata: dict) -> list[str]:
        recommendations = []
        if best.confidence < 0.5:
            recommendations.append("文本格式识别置信度较低，建议手动检查格式")
        if metadata["quality_score"] < 0.7:
            recommendations.append("文本质量较低，建议进行预处理或使用OCR修复")
        if not metadata["has_answers"]:
            recommendations.append("未检测到答案，建议补充答案信息")
        if metadata["question_count"] == 0:
            recommendations.append("未检测到有效题目，请检查文本格式")
        return recommendations


def count_questions(text: str) -> int:
    """Largest count produced by any question-numbering family."""
    return max(len(p.findall(text)) for p in _QUESTION_COUNT_PATTERNS)


def count_options(text: str) -> int:
    return max(len(p.findall(text)) for p in _OPTION_COUNT_PATTERNS)


def has_answers(text: str) -> bool:
    return any(p.search(text) for p in _ANSWER_PATTERNS)


def check_consistency(text: str) -> float:
    """Share of option markers agreeing on letter/number and dot/parenthesis style."""
    markers = re.findall(r"[A-D1-4][.、()]", text)
    if not markers:
        return 0.5

    letters = sum(1 for m in markers if m[0] in "ABCD")
    numbers = len(markers) - letters
    dots = sum(1 for m in markers if m[1] in ".、")
    parens = len(markers) - dots

    total = len(markers)
    return (max(letters, numbers) / total + max(dots, parens) / total) / 2


def assess_text_quality(text: str) -> float:
    """Heuristic 0-1 score penalizing odd characters, long whitespace runs and repeats."""
    if not text:
        return 0.0
    score = 1.0

    abnormal = re.findall(r"[^\w\s\u4e00-\u9fff.,;:!?()\[\]{}\"'“”‘’：，。？！、（）]", text)
    if abnormal:
        score -= min(0.3, len(abnormal) / len(text))

    spaces = re.findall(r"\s{3,}", text)
    if spaces:
        score -= min(0.2, len(spaces) * 0.05)

    repeats = re.findall(r"(.)\1{3,}", text)
    if repeats:
        score -= min(0.2, len(repeats) * 0.1)

    return max(0.0, score)
