"""Tests for line classification, block splitting, chunking and format detection."""

import pytest

from conftest import TWO_QUESTIONS
from quiz_import.detection import (
    FormatDetector,
    LineKind,
    TextSplitter,
    classify_line,
    is_answer_line,
    is_option_line,
    split_blocks,
)


@pytest.mark.parametrize("line, kind, marker, content", [
    ("A. 上海", LineKind.OPTION, "A", "上海"),
    ("（B）北京", LineKind.OPTION, "B", "北京"),
    ("Ｃ．全角选项", LineKind.OPTION, "C", "全角选项"),
    ("答案：C", LineKind.ANSWER, "C", "C"),
    ("Answer: D", LineKind.ANSWER, "D", "D"),
    ("解析：因为如此", LineKind.EXPLANATION, None, "因为如此"),
    ("难度：简单", LineKind.DIFFICULTY, "简单", "简单"),
    ("第3题 题干", LineKind.QUESTION_START, "3", "题干"),
    ("（2）题干", LineKind.QUESTION_START, "2", "题干"),
    ("12. 题干", LineKind.QUESTION_START, "12", "题干"),
    ("3 题干", LineKind.QUESTION_START, "3", "题干"),
    ("2023 年举办了亚运会", LineKind.CONTINUATION, None, "2023 年举办了亚运会"),
    ("5 个苹果", LineKind.CONTINUATION, None, "5 个苹果"),
    ("普通文字", LineKind.CONTINUATION, None, "普通文字"),
])
def test_classify_line(line, kind, marker, content):
    classified = classify_line(line)
    assert classified.kind is kind
    assert classified.marker == marker
    assert classified.content == content


def test_option_takes_precedence_over_answer():
    # "A" alone is an answer, "A." is an option
    assert is_answer_line("A")
    assert is_option_line("A. 选项")
    assert not is_answer_line("A. 选项")


def test_split_blocks_on_numbering():
    blocks = split_blocks("1. 题一\nA. a\n2. 题二\nB. b")
    assert blocks == ["题一\nA. a", "题二\nB. b"]


def test_split_blocks_keeps_leading_text():
    assert split_blocks("前言\n1. 题一") == ["前言", "题一"]


def test_split_blocks_without_separator():
    assert split_blocks("没有编号的文字") == ["没有编号的文字"]
    assert split_blocks("   ") == []


def test_text_splitter_short_text_is_one_chunk():
    chunks = TextSplitter(100, 10).split("1. 短题")
    assert len(chunks) == 1
    assert chunks[0].total_chunks == 1


def test_text_splitter_respects_max_size():
    text = "".join(f"{i}. 第{i}题的题干\nA. 甲\nB. 乙\n答案：A\n" for i in range(1, 30))
    splitter = TextSplitter(max_chunk_size=100, overlap=10)
    chunks = splitter.split(text)

    assert len(chunks) > 1
    assert all(len(c.content) <= 100 for c in chunks)
    assert text.startswith(chunks[0].content)
    assert text.endswith(chunks[-1].content)
    assert [c.index for c in chunks] == list(range(len(chunks)))


def test_text_splitter_rejects_bad_overlap():
    with pytest.raises(ValueError):
        TextSplitter(max_chunk_size=100, overlap=100)


def test_estimate_question_count():
    assert TextSplitter.estimate_question_count("1. a\n2. b\n3. c") == 3
    assert TextSplitter.estimate_question_count("x" * 1200) == 3


def test_detect_standard_format():
    result = FormatDetector().detect_format(TWO_QUESTIONS)
    assert result.format == "standard_choice"
    assert result.confidence > 0
    assert result.metadata["question_count"] == 2
    assert result.metadata["has_answers"]


def test_detect_empty_text():
    result = FormatDetector().detect_format("")
    assert result.format == "unknown"
    assert result.confidence == 0.0
