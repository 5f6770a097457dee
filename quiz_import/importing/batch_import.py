"""Batched, cancellable import of parsed questions into the record store."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..models import (
    Difficulty,
    EventCallback,
    ImportComplete,
    ImportEvent,
    ImportFailed,
    ImportProgress,
    ImportQuestionData,
    ImportResult,
    StoredQuestion,
)
from ..storage import Collections, RecordStore
from ..validation import QuestionValidator, normalize_question

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class QuestionImportError(ValueError):
    """A single question could not be turned into a stored record."""


class BatchRunner(ABC):
    """Executes one batch of work; chosen once when the manager is built."""

    @abstractmethod
    async def run_batch(self, func: Callable[[list], tuple], batch: list) -> tuple:
        pass

    def close(self) -> None:
        pass


class CooperativeRunner(BatchRunner):
    """Runs batches on the caller's thread and yields to the loop after each."""

    async def run_batch(self, func, batch):
        result = func(batch)
        await asyncio.sleep(0)
        return result


class WorkerRunner(BatchRunner):
    """Runs batches on a dedicated background thread."""

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="quiz-import")

    async def run_batch(self, func, batch):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, batch)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def build_stored_question(
    data: ImportQuestionData,
    chapter_id: str,
    validator: QuestionValidator,
    bank_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StoredQuestion:
    """
    Re-validate a question and build its persistence-ready record.

    Raises:
        QuestionImportError: The question breaks a structural invariant.
    """
    question = normalize_question(data)
    report = validator.validate(question)
    if not report.is_valid:
        raise QuestionImportError(report.errors[0])

    timestamp = (now or datetime.now()).isoformat()
    return StoredQuestion(
        id=uuid.uuid4().hex,
        chapter_id=chapter_id,
        bank_id=bank_id,
        title=question.title,
        options=tuple(question.options),
        correct_answer=question.correct_answer,
        explanation=question.explanation or "",
        difficulty=question.difficulty or Difficulty.MEDIUM,
        tags=tuple(question.tags),
        created_at=timestamp,
        updated_at=timestamp,
    )


class BatchImportManager:
    """
    Imports questions in fixed-size batches with progress events.

    One progress event is emitted per batch, in increasing `processed`
    order, followed by a single complete (or failed) event. `destroy`
    takes effect at the next batch boundary: no further events fire and
    the background runner is released.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        use_worker: bool = True,
        validator: Optional[QuestionValidator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.validator = validator or QuestionValidator()
        self.clock = clock
        self.runner: BatchRunner = WorkerRunner() if use_worker else CooperativeRunner()
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Stop delivering events and release the background runner."""
        if self._destroyed:
            return
        self._destroyed = True
        self.runner.close()
        logger.info("Batch import manager destroyed")

    def _emit(self, on_event: Optional[EventCallback], event: ImportEvent) -> None:
        if on_event is not None and not self._destroyed:
            on_event(event)

    def _process_batch(
        self,
        chapter_id: str,
        bank_id: Optional[str],
        offset: int,
        batch: list[ImportQuestionData],
    ) -> tuple[list[StoredQuestion], list[str]]:
        stored = []
        errors = []
        now = self.clock()
        for i, data in enumerate(batch):
            try:
                stored.append(build_stored_question(data, chapter_id, self.validator, bank_id, now))
            except QuestionImportError as e:
                errors.append(f"第{offset + i + 1}题处理失败: {e}")
        return stored, errors

    async def import_questions(
        self,
        questions: Sequence[ImportQuestionData],
        chapter_id: str,
        on_event: Optional[EventCallback] = None,
        bank_id: Optional[str] = None,
    ) -> ImportResult:
        """
        Validate, build and persist questions batch by batch.

        Args:
            questions: Parsed questions, answers already normalized.
            chapter_id: Chapter the questions are imported into.
            on_event: Receives ImportProgress, ImportComplete and ImportFailed.
            bank_id: Optional question bank of the chapter.

        Returns:
            ImportResult; `cancelled` is set when destroy interrupted it.
        """
        if self._destroyed:
            raise RuntimeError("Batch import manager has been destroyed")

        questions = list(questions)
        total = len(questions)
        stored: list[StoredQuestion] = []
        errors: list[str] = []
        cancelled = False

        try:
            for offset in range(0, total, self.batch_size):
                if self._destroyed:
                    cancelled = True
                    break

                batch = questions[offset:offset + self.batch_size]
                batch_stored, batch_errors = await self.runner.run_batch(
                    lambda items, start=offset: self._process_batch(chapter_id, bank_id, start, items),
                    batch,
                )
                if self._destroyed:
                    cancelled = True
                    break

                if self.store is not None and batch_stored:
                    self.store.add_batch(
                        Collections.QUESTIONS,
                        [q.to_record() for q in batch_stored],
                    )
                stored.extend(batch_stored)
                errors.extend(batch_errors)

                processed = min(offset + self.batch_size, total)
                self._emit(on_event, ImportProgress(
                    progress=round(processed / total * 100),
                    processed=processed,
                    total=total,
                    message=f"已处理 {processed}/{total} 题",
                ))
        except Exception as e:
            logger.error("Import failed: %s", e)
            self._emit(on_event, ImportFailed(message=str(e)))
            raise

        if cancelled:
            errors.append("导入已取消")
        result = ImportResult(
            total_count=total,
            success_count=len(stored),
            failed_count=total - len(stored),
            errors=tuple(errors),
            questions=tuple(stored),
            cancelled=cancelled,
        )
        logger.info(
            "Import finished: %d/%d imported, %d failed",
            result.success_count, total, result.failed_count,
        )
        self._emit(on_event, ImportComplete(result=result))
        return result

    def import_questions_sync(
        self,
        questions: Sequence[ImportQuestionData],
        chapter_id: str,
        on_event: Optional[EventCallback] = None,
        bank_id: Optional[str] = None,
    ) -> ImportResult:
        """Run `import_questions` to completion on a fresh event loop."""
        return asyncio.run(self.import_questions(questions, chapter_id, on_event, bank_id))
