"""End-to-end tests for the smart dispatcher: strategy order, recovery, budget and caching."""

import logging
import shutil

import pytest

from conftest import NOISE_TEXT, STANDARD_TEXT, TWO_QUESTIONS
from quiz_import.models import AdjustmentType, ErrorType, StrategyAdjustment
from quiz_import.monitoring import PerformanceMonitor
from quiz_import.optimization import AdaptiveStrategy, ResultCache, cost_for_tokens
from quiz_import.pipeline import STRATEGY_PRIORITY, SmartDispatcher
from quiz_import.storage import LocalStorage
from quiz_import.validation import ERR_TOO_FEW_OPTIONS

INCOMPLETE_JSON = '[{"title": "题目", "options": ["甲"], "correctAnswer": 0}]'


def test_strategy_order_matches_priority(make_ai_parser):
    ai_parser, _ = make_ai_parser()
    assert SmartDispatcher(ai_parser=ai_parser).strategy_order == list(STRATEGY_PRIORITY)


def test_standard_question():
    outcome = SmartDispatcher().parse_text(STANDARD_TEXT)

    assert outcome.success
    assert outcome.attempted == ("rule",)
    question = outcome.questions[0]
    assert question.title == "2+2=?"
    assert question.options == ["3", "4"]
    assert question.correct_answer == 1
    assert question.explanation == "基础算术"
    assert outcome.result.metadata.detected_format == "standard_choice"
    assert outcome.error_type is None
    assert not outcome.recovered


def test_letter_answer_is_normalized():
    outcome = SmartDispatcher().parse_text("1. 题目\nA. 甲\nB. 乙\nC. 丙\n答案：C")
    assert outcome.questions[0].correct_answer == 2


def test_round_trip_through_standard_text():
    question = SmartDispatcher().parse_text(STANDARD_TEXT).questions[0]
    assert question.to_standard_text(1) == STANDARD_TEXT


def test_incomplete_question_is_returned_with_validation_errors():
    outcome = SmartDispatcher().parse_text("1. 只有一个选项的题目\nA. 唯一选项\n答案：A")

    assert outcome.success
    assert outcome.result.metadata.strategy == "simple"
    assert outcome.result.confidence == 0.4
    assert outcome.error_type is ErrorType.VALIDATION_ERROR
    assert ERR_TOO_FEW_OPTIONS in outcome.invalid_reports[0].errors


def test_noise_falls_back_to_regex_candidate():
    outcome = SmartDispatcher().parse_text(NOISE_TEXT)

    assert outcome.success
    assert outcome.recovered
    assert outcome.result.metadata.strategy == "regex_fallback"
    assert outcome.result.confidence == 0.3
    assert outcome.error_type is ErrorType.VALIDATION_ERROR
    assert outcome.attempted[-1] == "regex_fallback"


def test_empty_input():
    outcome = SmartDispatcher().parse_text("   ")

    assert not outcome.success
    assert outcome.result.errors == ("输入内容为空",)
    assert outcome.error_type is ErrorType.PARSE_FAILED


def test_ai_used_after_local_strategies_fail(make_ai_parser, monitor):
    ai_parser, fake = make_ai_parser()
    dispatcher = SmartDispatcher(ai_parser=ai_parser, monitor=monitor)
    outcome = dispatcher.parse_text(NOISE_TEXT)

    assert outcome.success
    assert outcome.result.metadata.strategy == "ai"
    assert outcome.questions[0].correct_answer == 1
    assert len(fake.calls) == 1

    strategies = [m.strategy for m in monitor.metrics]
    assert strategies == ["rule", "standard", "numbered", "simple", "word", "pdf", "intelligent", "ai"]
    assert monitor.metrics[-1].cost == cost_for_tokens(1200, 0.57)
    assert not any(m.success for m in monitor.metrics[:-1])


def test_prompt_optimization_after_incomplete_ai_answer(make_ai_parser):
    ai_parser, fake = make_ai_parser(INCOMPLETE_JSON, '[{"title": "题目", "options": ["甲", "乙"], "correctAnswer": 0}]')
    outcome = SmartDispatcher(ai_parser=ai_parser).parse_text(NOISE_TEXT)

    assert outcome.recovered
    assert outcome.result.metadata.strategy == "prompt_optimization"
    assert len(fake.calls) == 2
    assert "The previous attempt failed with" in fake.user_prompt(1)
    assert "第1题数据不完整" in fake.user_prompt(1)


def test_budget_exhausted_skips_ai(make_ai_parser, cost_optimizer):
    cost_optimizer.record_cost(1000)
    ai_parser, fake = make_ai_parser(cost_optimizer=cost_optimizer)
    dispatcher = SmartDispatcher(ai_parser=ai_parser, cost_optimizer=cost_optimizer)

    outcome = dispatcher.parse_text(NOISE_TEXT)

    assert "ai" in outcome.skipped
    assert any("超出预算" in w for w in outcome.warnings)
    assert fake.calls == []
    assert outcome.result.metadata.strategy == "regex_fallback"


def test_local_results_are_cached():
    cache = ResultCache()
    dispatcher = SmartDispatcher(cache=cache)
    dispatcher.parse_text(STANDARD_TEXT)
    outcome = dispatcher.parse_text(STANDARD_TEXT)

    assert outcome.success
    assert cache.hits == 1


def test_disabled_strategy_is_skipped(monitor, clock):
    adaptive = AdaptiveStrategy(monitor, clock=clock)
    adaptive.apply_adjustment(StrategyAdjustment(
        "rule", AdjustmentType.DISABLE, 0, "manual", clock() * 1000,
    ))
    outcome = SmartDispatcher(adaptive=adaptive).parse_text(STANDARD_TEXT)

    assert outcome.skipped == ("rule",)
    assert outcome.warnings == ()
    assert outcome.result.metadata.strategy == "standard"
    assert outcome.questions[0].correct_answer == 1


def test_parse_local_has_no_side_effects(monitor):
    dispatcher = SmartDispatcher(monitor=monitor)
    result = dispatcher.parse_local(STANDARD_TEXT)

    assert result.accepted
    assert result.questions[0].correct_answer == 1
    assert len(monitor) == 0


def test_budget_veto_also_binds_recovery(make_ai_parser, cost_optimizer):
    cost_optimizer.record_cost(1000)
    # The parser itself knows nothing about the budget
    ai_parser, fake = make_ai_parser()
    dispatcher = SmartDispatcher(ai_parser=ai_parser, cost_optimizer=cost_optimizer)

    outcome = dispatcher.parse_text(NOISE_TEXT)

    assert "ai" in outcome.skipped
    assert fake.calls == []
    assert outcome.result.metadata.strategy == "regex_fallback"


def test_disabled_ai_is_not_used_by_recovery(make_ai_parser, monitor, clock):
    adaptive = AdaptiveStrategy(monitor, clock=clock)
    adaptive.apply_adjustment(StrategyAdjustment(
        "ai", AdjustmentType.DISABLE, 0, "manual", clock() * 1000,
    ))
    ai_parser, fake = make_ai_parser()

    outcome = SmartDispatcher(ai_parser=ai_parser, adaptive=adaptive).parse_text(NOISE_TEXT)

    assert fake.calls == []
    assert outcome.result.metadata.strategy == "regex_fallback"


@pytest.mark.parametrize("text", [
    STANDARD_TEXT,
    TWO_QUESTIONS,
    "1. 只有一个选项的题目\nA. 唯一选项\n答案：A",
    NOISE_TEXT,
])
def test_local_parsing_is_deterministic(text):
    first = SmartDispatcher().parse_text(text)
    second = SmartDispatcher().parse_text(text)

    assert first.questions == second.questions
    assert first.result.metadata.strategy == second.result.metadata.strategy


def test_unwritable_monitor_storage_does_not_fail_parse(tmp_path, clock, caplog):
    data_dir = tmp_path / "data"
    monitor = PerformanceMonitor(LocalStorage(data_dir), clock=clock)
    shutil.rmtree(data_dir)

    with caplog.at_level(logging.WARNING, logger="quiz_import.storage"):
        outcome = SmartDispatcher(monitor=monitor).parse_text(STANDARD_TEXT)

    assert outcome.success
    assert len(monitor) == 1
    assert "Could not persist performance_metrics" in caplog.text
