"""Tests for the parse, preview and confirm state machine."""

import asyncio

import pytest

from conftest import STANDARD_TEXT
from quiz_import.importing import BatchImportManager
from quiz_import.models import ImportQuestionData
from quiz_import.pipeline import FlowState, ImportFlow, InvalidTransition, SmartDispatcher
from quiz_import.storage import Collections, RecordStore

SINGLE_OPTION = "1. 只有一个选项的题目\nA. 唯一选项\n答案：A"


@pytest.fixture
def flow():
    importer = BatchImportManager(RecordStore(), use_worker=False)
    yield ImportFlow(SmartDispatcher(), importer)
    importer.destroy()


def test_happy_path(flow):
    flow.start_text(STANDARD_TEXT)
    assert flow.state is FlowState.PREVIEW_EDITING
    assert flow.can_confirm

    result = asyncio.run(flow.confirm("ch1"))

    assert result.success_count == 1
    assert flow.state is FlowState.IDLE
    assert flow.reports == []
    assert flow.importer.store.count(Collections.QUESTIONS) == 1


def test_editing_fixes_invalid_question(flow):
    flow.start_text(SINGLE_OPTION)
    assert not flow.can_confirm

    report = flow.edit(0, ImportQuestionData("只有一个选项的题目", ["甲", "乙"], "A"))

    assert report.is_valid
    assert report.question.correct_answer == 0
    assert flow.can_confirm
    assert asyncio.run(flow.confirm("ch1")).success_count == 1
    assert flow.state is FlowState.IDLE


def test_confirm_passes_invalid_questions_to_importer(flow):
    flow.start_text(SINGLE_OPTION)
    result = asyncio.run(flow.confirm("ch1"))
    assert result.failed_count == 1
    assert flow.state is FlowState.IDLE


def test_remove_question(flow):
    flow.start_text(STANDARD_TEXT)
    flow.remove(0)
    assert flow.questions == []
    assert not flow.can_confirm
    with pytest.raises(IndexError):
        flow.remove(0)


def test_failed_parse(flow):
    flow.start_text("   ")
    assert flow.state is FlowState.FAILED
    assert flow.error == "输入内容为空"

    flow.cancel()
    assert flow.state is FlowState.IDLE
    assert flow.error is None


def test_cancel_preview(flow):
    flow.start_text(STANDARD_TEXT)
    flow.cancel()
    assert flow.state is FlowState.IDLE
    assert flow.questions == []


def test_confirm_requires_preview(flow):
    with pytest.raises(InvalidTransition):
        asyncio.run(flow.confirm("ch1"))


def test_cannot_start_twice(flow):
    flow.start_text(STANDARD_TEXT)
    with pytest.raises(InvalidTransition):
        flow.start_text(STANDARD_TEXT)


def test_importer_error_returns_to_preview(flow):
    flow.start_text(STANDARD_TEXT)
    flow.importer.destroy()

    with pytest.raises(RuntimeError):
        asyncio.run(flow.confirm("ch1"))
    assert flow.state is FlowState.PREVIEW_EDITING
