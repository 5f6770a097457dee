"""Tests for the high-level runner and its command line entry point."""

import io
import json
import sys

import pypdf
import pytest

from conftest import STANDARD_TEXT, FakeOCREngine
from quiz_import.config import Settings
from quiz_import.pipeline import QuizImportRunner
from quiz_import.pipeline.runner import main
from quiz_import.storage import Collections


@pytest.fixture
def runner(tmp_path):
    runner = QuizImportRunner(
        settings=Settings(data_dir=tmp_path / "data"),
        verbose=False,
        ocr_engine=FakeOCREngine(STANDARD_TEXT, confidence=90),
    )
    yield runner
    runner.close()


def test_runner_without_ai(runner):
    assert runner.ai_parser is None
    assert "ai" not in runner.dispatcher.strategy_order


def test_run_text(runner):
    outcome = runner.run(STANDARD_TEXT)
    assert outcome.success
    assert outcome.questions[0].correct_answer == 1
    assert len(runner.monitor) == 1


def test_run_text_file(runner, tmp_path):
    path = tmp_path / "questions.txt"
    path.write_text(STANDARD_TEXT, encoding="utf-8")

    outcome = runner.run(str(path))
    assert outcome.success
    assert outcome.questions[0].title == "2+2=?"


def test_run_image_uses_ocr(runner, tmp_path):
    path = tmp_path / "scan.png"
    path.write_bytes(b"\x89PNG fake")

    outcome = runner.run_from_file(path)
    assert outcome.result.metadata.strategy == "ocr"
    assert outcome.result.metadata.ocr_confidence == 90
    assert outcome.questions[0].correct_answer == 1


def test_scanned_pdf_falls_back_to_ocr(runner, tmp_path):
    writer = pypdf.PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    path = tmp_path / "scan.pdf"
    path.write_bytes(buffer.getvalue())

    outcome = runner.run_from_file(path)
    assert outcome.success
    assert outcome.result.metadata.strategy == "ocr"


def test_import_into_chapter(runner):
    outcome = runner.run(STANDARD_TEXT)
    result = runner.import_into(outcome, "ch1", bank_id="bank")

    assert result.success_count == 1
    stored = runner.store.get_by_index(Collections.QUESTIONS, "chapter_id", "ch1")
    assert stored[0]["bank_id"] == "bank"
    assert stored[0]["correct_answer"] == 1


def test_save_questions(runner, tmp_path):
    outcome = runner.run("1. 只有一个选项的题目\nA. 唯一选项\n答案：A")
    path = runner.save_questions(outcome, tmp_path / "out" / "questions.json")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["strategy"] == "simple"
    assert payload["questions"][0]["options"] == ["唯一选项"]
    assert payload["questions"][0]["errors"]


def test_report(runner):
    runner.run(STANDARD_TEXT)
    report = runner.get_report()
    assert report.startswith("PARSE PERFORMANCE REPORT")
    assert "rule" in report


def test_state_persists_between_runners(runner, tmp_path):
    runner.run(STANDARD_TEXT)

    again = QuizImportRunner(settings=Settings(data_dir=tmp_path / "data"), verbose=False)
    try:
        assert len(again.monitor) == 1
    finally:
        again.close()


def test_verbose_output(tmp_path, capsys):
    runner = QuizImportRunner(settings=Settings(data_dir=tmp_path), verbose=True)
    try:
        runner.run(STANDARD_TEXT)
    finally:
        runner.close()
    assert "Parsed 1 question(s) with rule" in capsys.readouterr().out


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("QUIZ_AI_PROVIDER", "QUIZ_AI_ENABLED", "QUIZ_DATA_DIR"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def test_main_parses_and_imports(cli_env, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", [
        "quiz-import", STANDARD_TEXT, "-q", "-d", str(cli_env / "data"), "--chapter", "ch1",
    ])
    main()

    out = capsys.readouterr().out
    assert "Imported 1/1 question(s)" in out
    assert "答案：B" in out


def test_main_exits_on_failure(cli_env, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["quiz-import", "   ", "-q", "-d", str(cli_env / "data")])
    with pytest.raises(SystemExit) as excinfo:
        main()

    assert excinfo.value.code == 1
    assert "输入内容为空" in capsys.readouterr().err
