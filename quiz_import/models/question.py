"""Question and parse-result models for the import pipeline."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union


class InputType(Enum):
    """Kinds of raw input a parser can accept."""
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"


class Difficulty(Enum):
    """Question difficulty levels."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["Difficulty"]:
        """Map an English or Chinese difficulty label to a level."""
        if not label:
            return None
        label = label.strip().lower()
        mapping = {
            "easy": cls.EASY,
            "简单": cls.EASY,
            "容易": cls.EASY,
            "medium": cls.MEDIUM,
            "中等": cls.MEDIUM,
            "一般": cls.MEDIUM,
            "hard": cls.HARD,
            "困难": cls.HARD,
            "难": cls.HARD,
        }
        return mapping.get(label)


Answer = Union[int, str]


@dataclass
class ImportQuestionData:
    """A question candidate produced by a strategy parser, before persistence."""
    title: str
    options: list[str]
    correct_answer: Answer
    explanation: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        return {
            "title": self.title,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImportQuestionData":
        """Build from a dict using either camelCase or snake_case keys."""
        answer = data.get("correctAnswer", data.get("correct_answer", 0))
        difficulty = data.get("difficulty")
        if isinstance(difficulty, Difficulty):
            level = difficulty
        else:
            level = Difficulty.from_label(difficulty)
        return cls(
            title=str(data.get("title") or data.get("question") or ""),
            options=[str(o) for o in data.get("options") or []],
            correct_answer=answer,
            explanation=data.get("explanation") or None,
            difficulty=level,
            tags=[str(t) for t in data.get("tags") or []],
        )

    def to_standard_text(self, number: int = 1) -> str:
        """Serialize back to the standard block format (N. title / A. opt / 答案：X)."""
        lines = [f"{number}. {self.title}"]
        for i, option in enumerate(self.options):
            lines.append(f"{chr(ord('A') + i)}. {option}")
        if isinstance(self.correct_answer, int):
            lines.append(f"答案：{chr(ord('A') + self.correct_answer)}")
        else:
            lines.append(f"答案：{self.correct_answer}")
        if self.explanation:
            lines.append(f"解析：{self.explanation}")
        return "\n".join(lines)


@dataclass(frozen=True)
class ParseInput:
    """Raw input handed to a strategy parser."""
    type: InputType
    content: Union[str, bytes]
    filename: Optional[str] = None
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def text(cls, content: str, **options) -> "ParseInput":
        return cls(type=InputType.TEXT, content=content, options=options)

    @property
    def text_content(self) -> str:
        """The content as text; binary content decodes to an empty string."""
        if isinstance(self.content, str):
            return self.content
        return ""

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ParseMetadata:
    """Bookkeeping attached to every parse result."""
    parser: str
    strategy: str
    processing_time: float = 0.0  # milliseconds
    cost: int = 0  # cents
    ocr_confidence: Optional[float] = None
    detected_format: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one strategy invocation."""
    success: bool
    questions: tuple[ImportQuestionData, ...]
    confidence: float
    errors: tuple[str, ...]
    metadata: ParseMetadata

    @classmethod
    def failure(
        cls,
        parser: str,
        strategy: str,
        errors: list[str],
        processing_time: float = 0.0,
        **extra,
    ) -> "ParseResult":
        """Build an empty unsuccessful result."""
        return cls(
            success=False,
            questions=(),
            confidence=0.0,
            errors=tuple(errors),
            metadata=ParseMetadata(
                parser=parser,
                strategy=strategy,
                processing_time=processing_time,
                extra=extra,
            ),
        )

    @property
    def accepted(self) -> bool:
        """Whether the dispatcher would take this result."""
        return self.success and len(self.questions) > 0

    def with_metadata(self, **changes) -> "ParseResult":
        """Copy with updated metadata fields."""
        return replace(self, metadata=replace(self.metadata, **changes))

    def with_questions(self, questions: list[ImportQuestionData]) -> "ParseResult":
        return replace(self, questions=tuple(questions))


class QuestionStatus(Enum):
    """Learning status of a stored question."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


@dataclass(frozen=True)
class StoredQuestion:
    """A persistence-ready question record."""
    id: str
    chapter_id: str
    title: str
    options: tuple[str, ...]
    correct_answer: int
    created_at: str
    updated_at: str
    explanation: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: tuple[str, ...] = ()
    status: QuestionStatus = QuestionStatus.NEW
    wrong_count: int = 0
    is_mastered: bool = False
    bank_id: Optional[str] = None

    def to_record(self) -> dict:
        """Convert to the dict layout used by the record store."""
        return {
            "id": self.id,
            "chapter_id": self.chapter_id,
            "bank_id": self.bank_id,
            "title": self.title,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty.value,
            "tags": list(self.tags),
            "status": self.status.value,
            "wrong_count": self.wrong_count,
            "is_mastered": self.is_mastered,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class ImportResult:
    """Final report of one import operation."""
    total_count: int
    success_count: int
    failed_count: int
    errors: tuple[str, ...]
    questions: tuple[StoredQuestion, ...]
    cancelled: bool = False

    def __post_init__(self):
        if self.success_count + self.failed_count != self.total_count:
            raise ValueError(
                f"Inconsistent import counts: {self.success_count} + "
                f"{self.failed_count} != {self.total_count}"
            )
