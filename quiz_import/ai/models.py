"""Pydantic model for questions returned by the AI provider."""

from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ..models import Difficulty, ImportQuestionData


class AIQuestion(BaseModel):
    """One question as returned by the provider."""

    title: str = Field(
        validation_alias=AliasChoices("title", "question", "stem"),
        description="Question stem without its number",
    )
    options: list[str] = Field(
        min_length=2,
        description="Option texts without their letter markers",
    )
    correct_answer: Union[int, str] = Field(
        validation_alias=AliasChoices("correctAnswer", "correct_answer", "answer"),
        description="0-based index of the correct option",
    )
    explanation: Optional[str] = Field(default=None, description="Explanation if present")
    difficulty: Optional[str] = Field(default=None, description="easy, medium or hard")
    tags: list[str] = Field(default_factory=list, description="Topic tags")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value.strip()

    @field_validator("options")
    @classmethod
    def strip_options(cls, value: list[str]) -> list[str]:
        return [str(option).strip() for option in value]

    def to_import_data(self) -> ImportQuestionData:
        return ImportQuestionData(
            title=self.title,
            options=list(self.options),
            correct_answer=self.correct_answer,
            explanation=self.explanation or None,
            difficulty=Difficulty.from_label(self.difficulty),
            tags=list(self.tags),
        )

