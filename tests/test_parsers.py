"""Tests for the local text strategies: rule-based, line/block parsers and JSON."""

import pytest

from conftest import STANDARD_TEXT, TWO_QUESTIONS
from quiz_import.models import Difficulty, ImportQuestionData, ParseInput
from quiz_import.parsers import (
    IntelligentSplitParser,
    JsonQuestionParser,
    NumberedFormatParser,
    PdfCopyParser,
    RuleBasedParser,
    SimpleSequentialParser,
    StandardBlockParser,
    WordCopyParser,
    parse_standard_block,
)
from quiz_import.validation import normalize_question


def parse(parser, text):
    return parser.parse(ParseInput.text(text))


def test_rule_based_standard_text():
    result = parse(RuleBasedParser(), STANDARD_TEXT)

    assert result.success
    assert len(result.questions) == 1
    question = result.questions[0]
    assert question.title == "2+2=?"
    assert question.options == ["3", "4"]
    assert question.correct_answer == 1
    assert question.explanation == "基础算术"
    assert result.metadata.detected_format == "standard_choice"
    assert result.metadata.strategy == "rule"
    assert result.confidence == 0.95


def test_rule_based_multiple_questions_in_order():
    result = parse(RuleBasedParser(), TWO_QUESTIONS)
    assert [q.title for q in result.questions] == ["中国的首都是哪里？", "1+1等于几？"]
    assert result.questions[0].options == ["上海", "北京", "广州", "深圳"]


def test_rule_based_numeric_options_are_one_based():
    text = "1. 题目一\n1. 选项甲\n2. 选项乙\n3. 选项丙\n答案：2"
    parser = RuleBasedParser({"auto_fix": False})
    result = parse(parser, text)

    assert result.metadata.detected_format == "numeric_choice"
    question = result.questions[0]
    assert question.correct_answer == "2"
    assert normalize_question(question, parser.answer_base).correct_answer == 1


def test_rule_based_auto_fix_returns_fixed_questions():
    text = "1. 题目一\n1. 选项甲\n2. 选项乙\n3. 选项丙\n答案：2"
    question = parse(RuleBasedParser(), text).questions[0]
    assert question.correct_answer == 1
    assert question.options == ["选项甲", "选项乙", "选项丙"]


def test_rule_based_parenthesis_options():
    result = parse(RuleBasedParser(), "下列哪个是偶数\n(A) 1\n(B) 2\n答案：(B)")
    assert result.metadata.detected_format == "parenthesis_choice"
    assert result.questions[0].options == ["1", "2"]
    assert result.questions[0].correct_answer == 1


def test_rule_based_reads_difficulty():
    text = "1. 题目\nA. 甲\nB. 乙\n答案：A\n解析：说明\n难度：简单"
    question = parse(RuleBasedParser(), text).questions[0]
    assert question.difficulty is Difficulty.EASY
    assert question.explanation == "说明"


def test_rule_based_no_match():
    result = parse(RuleBasedParser(), "没有任何题目结构")
    assert not result.success
    assert result.errors == ("rule_based 未识别到题目",)


def test_parse_standard_block_requires_two_options():
    assert parse_standard_block("题目\nA. 唯一选项\n答案：A") is None
    question = parse_standard_block("题目\nA. 甲\nB. 乙\n答案：B")
    assert question.options == ["甲", "乙"]


def test_standard_block_parser():
    result = parse(StandardBlockParser(), STANDARD_TEXT)
    assert result.success
    assert result.questions[0].correct_answer == "B"



def test_standard_block_title_may_start_with_keyword():
    question = parse_standard_block("说明：下列哪个说法正确\nA. 对\nB. 错\n答案：B")
    assert question.title == "说明：下列哪个说法正确"
    assert question.options == ["对", "错"]
    assert question.explanation is None


@pytest.mark.parametrize("question", [
    ImportQuestionData("说明：下列哪个说法正确", ["对", "错"], 1),
    ImportQuestionData("答案：以下哪项是质数", ["4", "6", "7"], 2),
    ImportQuestionData("难度：简单 的题目怎么选", ["甲", "乙", "丙", "丁", "戊"], 4, explanation="解析内容"),
    ImportQuestionData("中国的首都是哪里？", ["上海", "北京", "广州", "深圳"], 1, explanation="北京是中国的首都。"),
    ImportQuestionData("Which planet is largest?", ["Mars", "Jupiter"], 0, explanation="Jupiter is the largest."),
])
def test_standard_text_round_trip(question):
    parser = StandardBlockParser()
    result = parse(parser, question.to_standard_text(3))

    assert len(result.questions) == 1
    assert normalize_question(result.questions[0], parser.answer_base) == question


def test_numbered_format_keeps_year_in_explanation():
    text = "1. 哪一年举办了杭州亚运会？\nA. 2022\nB. 2023\n答案：B\n解析：杭州亚运会延期\n2023 年 9 月开幕"
    result = parse(NumberedFormatParser(), text)

    assert len(result.questions) == 1
    assert result.questions[0].explanation == "杭州亚运会延期 2023 年 9 月开幕"

def test_numbered_format_mixed_markers():
    text = "第1题：太阳从哪边升起？\nA. 东\nB. 西\n答案：A\n（2）水的化学式？\nA. H2O\nB. CO2\n答案：1"
    parser = NumberedFormatParser()
    result = parse(parser, text)

    assert [q.title for q in result.questions] == ["太阳从哪边升起？", "水的化学式？"]
    answers = [normalize_question(q, parser.answer_base).correct_answer for q in result.questions]
    assert answers == [0, 0]


def test_simple_sequential_keeps_incomplete_question():
    result = parse(SimpleSequentialParser(), "1. 只有一个选项的题目\nA. 唯一选项\n答案：A")
    assert result.success
    assert result.questions[0].options == ["唯一选项"]


def test_word_copy_cleans_artifacts():
    text = "1. 题目一\n\n•A. 甲\n\nB. 乙\n\n答案：A"
    result = parse(WordCopyParser(), text)
    assert result.success
    assert result.metadata.strategy == "word"
    assert result.questions[0].options == ["甲", "乙"]


def test_pdf_copy_splits_run_together_lines():
    text = "1. 题目内容？A.甲 B.乙 C.丙 D.丁 答案：B"
    cleaned = PdfCopyParser.clean(text)
    assert cleaned == "1. 题目内容？\nA.甲\nB.乙\nC.丙\nD.丁\n答案：B"

    result = parse(PdfCopyParser(), text)
    assert result.success
    assert result.questions[0].options == ["甲", "乙", "丙", "丁"]


def test_intelligent_split_on_blank_lines():
    text = "太阳从哪边升起？\nA. 东\nB. 西\n答案：A\n\n水是什么？\nA. H2O\nB. CO2\n答案：A"
    result = parse(IntelligentSplitParser(), text)
    assert len(result.questions) == 2
    assert result.confidence == 0.5


def test_json_array():
    text = '[{"title": "2+2=?", "options": ["3", "4"], "correctAnswer": 1}]'
    parser = JsonQuestionParser()
    result = parse(parser, text)
    assert result.success
    assert normalize_question(result.questions[0], parser.answer_base).correct_answer == 1


def test_json_object_with_questions_and_string_answer():
    text = '{"questions": [{"question": "2+2=?", "options": ["3", "4"], "correct_answer": "2"}]}'
    parser = JsonQuestionParser()
    question = parse(parser, text).questions[0]
    assert question.title == "2+2=?"
    assert normalize_question(question, parser.answer_base).correct_answer == 1


def test_json_reports_bad_items():
    text = '[{"title": "题目", "options": ["甲", "乙"], "correctAnswer": 0}, 3]'
    result = parse(JsonQuestionParser(), text)
    assert len(result.questions) == 1
    assert result.errors == ("第2项不是题目对象",)


def test_json_invalid_payload():
    result = parse(JsonQuestionParser(), '[{"title": ')
    assert not result.success
    assert result.errors[0].startswith("JSON格式错误")


def test_json_parser_ignores_plain_text():
    assert not JsonQuestionParser().supports(ParseInput.text(STANDARD_TEXT))


def test_parse_never_raises():
    class Exploding(RuleBasedParser):
        def _parse(self, parse_input):
            raise RuntimeError("boom")

    result = parse(Exploding(), STANDARD_TEXT)
    assert not result.success
    assert "boom" in result.errors[0]
