"""Tests for the batched, cancellable question import."""

import asyncio
from datetime import datetime

import pytest

from quiz_import.importing import BatchImportManager, QuestionImportError, build_stored_question
from quiz_import.models import (
    Difficulty,
    ImportComplete,
    ImportFailed,
    ImportProgress,
    ImportQuestionData,
)
from quiz_import.storage import Collections, RecordStore
from quiz_import.validation import QuestionValidator


def make_questions(count):
    return [ImportQuestionData(f"第{i}题", ["甲", "乙"], 0) for i in range(1, count + 1)]


@pytest.fixture(params=[True, False], ids=["worker", "cooperative"])
def manager(request):
    manager = BatchImportManager(RecordStore(), batch_size=100, use_worker=request.param)
    yield manager
    manager.destroy()


def test_build_stored_question_defaults():
    stored = build_stored_question(
        ImportQuestionData("题目", ["甲", "乙"], "B"),
        "ch1",
        QuestionValidator(),
        now=datetime(2026, 10, 17, 12, 0),
    )
    assert stored.correct_answer == 1
    assert stored.difficulty is Difficulty.MEDIUM
    assert stored.explanation == ""
    assert stored.created_at == "2026-10-17T12:00:00"
    assert stored.to_record()["status"] == "new"


def test_build_stored_question_rejects_invalid():
    with pytest.raises(QuestionImportError):
        build_stored_question(ImportQuestionData("题目", ["甲"], 0), "ch1", QuestionValidator())


def test_progress_events_then_complete(manager):
    events = []
    result = manager.import_questions_sync(make_questions(250), "ch1", on_event=events.append)

    progress = [e for e in events if isinstance(e, ImportProgress)]
    assert [e.progress for e in progress] == [40, 80, 100]
    assert [e.processed for e in progress] == [100, 200, 250]
    assert isinstance(events[-1], ImportComplete)
    assert events[-1].result == result

    assert result.success_count == 250
    assert result.failed_count == 0
    assert not result.cancelled
    assert len(manager.store.get_by_index(Collections.QUESTIONS, "chapter_id", "ch1")) == 250


def test_invalid_items_are_reported(manager):
    questions = make_questions(3)
    questions[1] = ImportQuestionData("", ["甲", "乙"], 0)

    result = manager.import_questions_sync(questions, "ch1", bank_id="bank")

    assert (result.success_count, result.failed_count) == (2, 1)
    assert result.errors[0].startswith("第2题处理失败: ")
    assert all(q.bank_id == "bank" for q in result.questions)


def test_destroy_cancels_at_batch_boundary(manager):
    events = []

    def on_event(event):
        events.append(event)
        if isinstance(event, ImportProgress):
            manager.destroy()

    result = manager.import_questions_sync(make_questions(250), "ch1", on_event=on_event)

    assert result.cancelled
    assert result.success_count == 100
    assert result.failed_count == 150
    assert result.errors[-1] == "导入已取消"
    assert len(events) == 1
    assert manager.store.count(Collections.QUESTIONS) == 100


def test_destroyed_manager_refuses_work(manager):
    manager.destroy()
    with pytest.raises(RuntimeError):
        manager.import_questions_sync(make_questions(1), "ch1")


def test_empty_import_completes():
    manager = BatchImportManager(use_worker=False)
    events = []
    result = manager.import_questions_sync([], "ch1", on_event=events.append)

    assert result.total_count == 0
    assert [type(e) for e in events] == [ImportComplete]


def test_store_failure_emits_failed_event():
    class BrokenStore(RecordStore):
        def add_batch(self, collection, records):
            raise RuntimeError("disk full")

    manager = BatchImportManager(BrokenStore(), use_worker=False)
    events = []
    with pytest.raises(RuntimeError, match="disk full"):
        manager.import_questions_sync(make_questions(2), "ch1", on_event=events.append)
    assert events == [ImportFailed(message="disk full")]


def test_async_import_inside_running_loop():
    manager = BatchImportManager(batch_size=1, use_worker=False)

    async def run():
        return await manager.import_questions(make_questions(3), "ch1")

    assert asyncio.run(run()).success_count == 3


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchImportManager(batch_size=0)
