"""State machine behind the import button: parse, preview, confirm."""

import logging
from enum import Enum
from typing import Optional

from ..importing import BatchImportManager
from ..models import EventCallback, ImportQuestionData, ImportResult, ParseInput
from ..validation import QuestionValidator, ValidationReport, normalize_question
from .dispatcher import DispatchOutcome, SmartDispatcher

logger = logging.getLogger(__name__)


class FlowState(Enum):
    IDLE = "idle"
    PARSING = "parsing"
    PREVIEW_EDITING = "preview_editing"
    CONFIRM_IMPORT = "confirm_import"
    FAILED = "failed"


class InvalidTransition(RuntimeError):
    """An operation was called in a state that does not allow it."""


_TRANSITIONS = {
    FlowState.IDLE: {FlowState.PARSING},
    FlowState.PARSING: {FlowState.PREVIEW_EDITING, FlowState.FAILED},
    FlowState.PREVIEW_EDITING: {FlowState.PREVIEW_EDITING, FlowState.CONFIRM_IMPORT, FlowState.IDLE},
    FlowState.CONFIRM_IMPORT: {FlowState.IDLE, FlowState.PREVIEW_EDITING},
    FlowState.FAILED: {FlowState.IDLE},
}


class ImportFlow:
    """
    Holds the preview list between parsing and confirmation.

    Idle -> Parsing -> PreviewEditing -> ConfirmImport -> Idle, or
    Parsing -> Failed -> Idle. Every edit re-validates the question.
    """

    def __init__(
        self,
        dispatcher: SmartDispatcher,
        importer: BatchImportManager,
        validator: Optional[QuestionValidator] = None,
    ):
        self.dispatcher = dispatcher
        self.importer = importer
        self.validator = validator or dispatcher.validator
        self.state = FlowState.IDLE
        self.reports: list[ValidationReport] = []
        self.outcome: Optional[DispatchOutcome] = None
        self.error: Optional[str] = None

    def _move(self, target: FlowState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug("Import flow: %s -> %s", self.state.value, target.value)
        self.state = target

    @property
    def questions(self) -> list[ImportQuestionData]:
        return [r.question for r in self.reports]

    @property
    def can_confirm(self) -> bool:
        return (
            self.state is FlowState.PREVIEW_EDITING
            and bool(self.reports)
            and all(r.is_valid for r in self.reports)
        )

    def start(self, parse_input: ParseInput) -> DispatchOutcome:
        """Parse the input and enter preview, or Failed when nothing was found."""
        self._move(FlowState.PARSING)
        self.error = None
        outcome = self.dispatcher.parse(parse_input)
        self.outcome = outcome
        if outcome.success:
            self.reports = list(outcome.reports)
            self._move(FlowState.PREVIEW_EDITING)
        else:
            self.reports = []
            self.error = "; ".join(outcome.result.errors) or "解析失败"
            self._move(FlowState.FAILED)
        return outcome

    def start_text(self, text: str) -> DispatchOutcome:
        return self.start(ParseInput.text(text))

    def edit(self, index: int, question: ImportQuestionData) -> ValidationReport:
        """Replace one preview question and re-validate it."""
        self._move(FlowState.PREVIEW_EDITING)
        if not 0 <= index < len(self.reports):
            raise IndexError(f"No question at position {index}")
        report = self.validator.validate(normalize_question(question))
        self.reports[index] = report
        return report

    def remove(self, index: int) -> None:
        self._move(FlowState.PREVIEW_EDITING)
        if not 0 <= index < len(self.reports):
            raise IndexError(f"No question at position {index}")
        del self.reports[index]

    async def confirm(
        self,
        chapter_id: str,
        on_event: Optional[EventCallback] = None,
        bank_id: Optional[str] = None,
    ) -> ImportResult:
        """
        Import the preview questions and return to Idle.

        Invalid questions are passed along too; the batch manager reports
        them as per-item failures.
        """
        self._move(FlowState.CONFIRM_IMPORT)
        try:
            result = await self.importer.import_questions(
                self.questions, chapter_id, on_event=on_event, bank_id=bank_id
            )
        except Exception:
            self._move(FlowState.PREVIEW_EDITING)
            raise
        self.reports = []
        self.outcome = None
        self._move(FlowState.IDLE)
        return result

    def cancel(self) -> None:
        """Discard the preview (or the failure) and return to Idle."""
        self._move(FlowState.IDLE)
        self.reports = []
        self.outcome = None
        self.error = None
