"""Tests for error classification, format cleanup and the recovery strategies."""

import pytest

from conftest import NOISE_TEXT
from quiz_import.models import ErrorContext, ErrorType, ParseResult
from quiz_import.pipeline import SmartDispatcher
from quiz_import.recovery import (
    ChunkingStrategy,
    ErrorRecoveryEngine,
    RecoveryStrategy,
    RegexFallbackStrategy,
    analyze_error,
    classify_error,
    clean_format,
)

INCOMPLETE_JSON = '[{"title": "题目", "options": ["甲"], "correctAnswer": 0}]'
VALID_JSON = '[{"title": "题目", "options": ["甲", "乙"], "correctAnswer": 1}]'


def context(text, error_type=ErrorType.PARSE_FAILED, message="未识别到题目", attempts=0):
    return ErrorContext(
        original_text=text,
        error_type=error_type,
        error_message=message,
        attempt_count=attempts,
    )


def local_engine(**kwargs):
    return ErrorRecoveryEngine(SmartDispatcher().parse_local, **kwargs)


@pytest.mark.parametrize("message, expected", [
    ("AI返回的JSON格式错误: Expecting value", ErrorType.FORMAT_ERROR),
    ("第1题数据不完整 (incomplete): too short", ErrorType.INCOMPLETE_DATA),
    ("AI服务调用失败: timeout", ErrorType.AI_ERROR),
    ("题目校验失败", ErrorType.VALIDATION_ERROR),
    ("rule_based 未识别到题目", ErrorType.PARSE_FAILED),
])
def test_classify_error(message, expected):
    assert classify_error(message) is expected


def test_analyze_error_uses_first_specific_error():
    ctx = analyze_error("text", ["rule_based 未识别到题目", "第1题数据不完整", "JSON格式错误"])
    assert ctx.error_type is ErrorType.INCOMPLETE_DATA
    assert ctx.error_message.startswith("rule_based 未识别到题目; ")


def test_analyze_error_without_errors():
    ctx = analyze_error("text", [])
    assert ctx.error_type is ErrorType.PARSE_FAILED
    assert ctx.attempt_count == 0


def test_clean_format():
    assert clean_format("He1lo  wor1d\r\nA . x") == "Hello world\nA. x"


def test_clean_format_drops_stray_symbols():
    assert clean_format("1. 题目★\n\n\nA、甲") == "1. 题目\nA. 甲"


def test_format_cleanup_reparses_locally():
    result = local_engine().recover(context("1. 题目内容\nA . 甲\nB . 乙\n答案：A"))

    assert result.accepted
    assert result.metadata.strategy == "format_cleanup"
    assert result.questions[0].options == ["甲", "乙"]
    assert result.questions[0].correct_answer == 0


def test_regex_fallback_keeps_whole_text_without_numbering():
    result = local_engine().recover(context(NOISE_TEXT))

    assert result.metadata.strategy == "regex_fallback"
    assert result.confidence == 0.3
    question = result.questions[0]
    assert question.title == NOISE_TEXT
    assert question.options == []
    assert question.correct_answer == 0
    assert question.tags == ["未分类"]


def test_regex_fallback_splits_numbered_spans():
    text = "1. 这是一个很长的题目内容部分 2. 另一道同样很长的题目内容"
    result = RegexFallbackStrategy().recover(context(text), local_engine())
    assert [q.title for q in result.questions] == ["这是一个很长的题目内容部分", "另一道同样很长的题目内容"]


def test_regex_fallback_on_blank_text():
    result = RegexFallbackStrategy().recover(context("   "), local_engine())
    assert not result.accepted
    assert result.errors == ("无法提取任何题目",)


@pytest.mark.parametrize("text, titles", [
    ("这是一道关于第3章内容的复杂题目但是没有任何选项", ["这是一道关于第3章内容的复杂题目但是没有任何选项"]),
    (
        "1. What is 3.14 approximately equal to in fractions? 2. 2+2=?",
        ["What is 3.14 approximately equal to in fractions?", "2+2=?"],
    ),
    ("请回答下列问题\n1. 第一道题目\n2. 第二道题目", ["请回答下列问题", "第一道题目", "第二道题目"]),
    ("1. 第一道题目 2. 乙", ["第一道题目 2. 乙"]),
    ("1. 甲 2. 第二道题目", ["1. 甲 第二道题目"]),
    ("7.", ["7."]),
])
def test_regex_fallback_keeps_all_text(text, titles):
    result = RegexFallbackStrategy().recover(context(text), local_engine())
    assert [q.title for q in result.questions] == titles


def test_format_cleanup_stays_local_when_ai_is_vetoed(make_ai_parser):
    ai_parser, fake = make_ai_parser()
    engine = local_engine(ai_parser=ai_parser, ai_gate=lambda text: False)

    result = engine.recover(context("1. 题目内容\nA . 甲\nB . 乙\n答案：A"))

    assert result.metadata.strategy == "format_cleanup"
    assert result.questions[0].options == ["甲", "乙"]
    assert fake.calls == []


def test_vetoed_ai_parse_makes_no_request(make_ai_parser):
    ai_parser, fake = make_ai_parser()
    engine = local_engine(ai_parser=ai_parser, ai_gate=lambda text: False)

    assert not engine.ai_allowed("题目")
    assert not engine.ai_parse("题目").accepted
    assert fake.calls == []
    names = [s.name for s in engine.applicable(context("题目", ErrorType.AI_ERROR))]
    assert "prompt_optimization" not in names


def test_chunking_parses_long_text_piece_by_piece():
    text = "".join(
        f"{i}. 第{i}题的题干内容是什么？\nA. 选项甲\nB. 选项乙\n答案：A\n" for i in range(1, 61)
    )
    engine = local_engine()
    strategy = ChunkingStrategy()
    ctx = context(text)

    assert strategy.can_handle(ctx, engine)
    result = strategy.recover(ctx, engine)
    assert result.accepted
    assert len(result.questions) == 60
    assert result.questions[-1].title == "第60题的题干内容是什么？"


def test_chunking_ignores_short_text():
    assert not ChunkingStrategy().can_handle(context("short"), local_engine())


def test_prompt_optimization_retries_with_previous_error(make_ai_parser):
    ai_parser, fake = make_ai_parser(INCOMPLETE_JSON, VALID_JSON)
    engine = local_engine(ai_parser=ai_parser)
    ctx = context("题目 甲 乙", ErrorType.INCOMPLETE_DATA, "第1题数据不完整")

    result = engine.recover(ctx)

    assert result.accepted
    assert result.metadata.strategy == "prompt_optimization"
    assert len(fake.calls) == 2
    assert "The previous attempt failed with: 第1题数据不完整" in fake.user_prompt(0)
    assert "第1题数据不完整 (incomplete)" in fake.user_prompt(1)
    assert result.questions[0].correct_answer == 1


def test_prompt_optimization_needs_ai():
    engine = local_engine()
    names = [s.name for s in engine.applicable(context("x", ErrorType.AI_ERROR))]
    assert "prompt_optimization" not in names
    assert names[-1] == "regex_fallback"


def test_strategies_respect_attempt_limits():
    engine = local_engine()
    names = [s.name for s in engine.applicable(context(NOISE_TEXT, attempts=1))]
    assert names == ["format_cleanup"]


def test_raising_strategy_counts_as_failure():
    class Exploding(RecoveryStrategy):
        name = "exploding"

        def can_handle(self, context, engine):
            return True

        def recover(self, context, engine):
            raise RuntimeError("boom")

    engine = local_engine(strategies=[Exploding(), RegexFallbackStrategy()])
    result = engine.recover(context(NOISE_TEXT))
    assert result.metadata.strategy == "regex_fallback"


def test_nothing_applicable():
    engine = local_engine(strategies=[ChunkingStrategy()])
    result = engine.recover(context("short", message="原始错误"))
    assert not result.accepted
    assert result.errors == ("无法恢复的错误: 原始错误",)


def test_all_strategies_fail():
    class Failing(RecoveryStrategy):
        name = "failing"

        def can_handle(self, context, engine):
            return True

        def recover(self, context, engine):
            return ParseResult.failure("recovery", self.name, ["nope"])

    result = local_engine(strategies=[Failing()]).recover(context("x", message="原始错误"))
    assert result.errors == ("所有恢复策略都失败: 原始错误", "nope")
