"""Adjusts strategy selection scores from recorded performance."""

import logging
import time
from dataclasses import asdict, dataclass, replace
from typing import Callable, Optional

from ..models import AdjustmentType, StrategyAdjustment, StrategyPerformance, Trend
from ..monitoring import PerformanceMonitor
from ..storage import STRATEGY_ADJUSTMENTS_KEY, LocalStorage

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS
DISABLED_SCORE = -100
ANALYSIS_WINDOW_HOURS = 30 * 24


@dataclass(frozen=True)
class AdaptiveConfig:
    learning_rate: float = 0.1
    adaptation_threshold: float = 0.15
    min_sample_size: int = 10
    trend_window: int = 20
    enable_auto_adjustment: bool = True


@dataclass(frozen=True)
class AdaptationRule:
    """A named check over all strategy snapshots that may yield one adjustment."""
    name: str
    priority: int
    evaluate: Callable[[list[StrategyPerformance], float], Optional[StrategyAdjustment]]


def calculate_trend(confidences: list[float]) -> Trend:
    """Compare the last five confidences with the five before them."""
    if len(confidences) < 5:
        return Trend.STABLE
    recent = confidences[-5:]
    earlier = confidences[-10:-5]
    if not earlier:
        return Trend.STABLE

    earlier_avg = sum(earlier) / len(earlier)
    recent_avg = sum(recent) / len(recent)
    if earlier_avg == 0:
        return Trend.IMPROVING if recent_avg > 0 else Trend.STABLE

    change = (recent_avg - earlier_avg) / earlier_avg
    if change > 0.1:
        return Trend.IMPROVING
    if change < -0.1:
        return Trend.DECLINING
    return Trend.STABLE


class AdaptiveStrategy:
    """
    Derives per-strategy snapshots from the monitor and applies a prioritized
    rule set, producing time-bounded score adjustments.

    The dispatcher consults `is_disabled` before each strategy attempt.
    Adjustments persist under the `strategy_adjustments` storage key and
    expire on read.
    """

    def __init__(
        self,
        monitor: PerformanceMonitor,
        storage: Optional[LocalStorage] = None,
        config: Optional[AdaptiveConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.monitor = monitor
        self.storage = storage or monitor.storage
        self.config = config or AdaptiveConfig()
        self.clock = clock
        self._adjustments: dict[str, list[StrategyAdjustment]] = {}
        self._rules: list[AdaptationRule] = []
        self._register_default_rules()
        self._load()

    def _now_ms(self) -> float:
        return self.clock() * 1000

    def analyze_performance(self) -> list[StrategyPerformance]:
        """One snapshot per strategy seen in the analysis window."""
        report = self.monitor.generate_report(period_hours=ANALYSIS_WINDOW_HOURS)
        recent = self.monitor.get_recent_metrics(self.config.trend_window)
        performances = []

        for strategy, stats in report.by_strategy.items():
            window = [m for m in recent if m.strategy == strategy]
            history = self.monitor.metrics_for_strategy(strategy)
            performances.append(StrategyPerformance(
                strategy=strategy,
                total_requests=stats.requests,
                success_rate=stats.success_rate / 100,
                average_time=stats.average_time,
                average_cost=stats.total_cost / stats.requests if stats.requests else 0.0,
                average_confidence=stats.average_confidence,
                trend=calculate_trend([m.confidence for m in window]),
                last_used=max((m.timestamp for m in history), default=None),
            ))

        return performances

    def adapt(self) -> list[StrategyAdjustment]:
        """
        Run every rule in priority order and apply what they produce.

        A rule holds at most one adjustment per strategy: a new one replaces
        the rule's earlier adjustment for that strategy, so repeated runs
        over the same history do not stack.
        """
        if not self.config.enable_auto_adjustment:
            return []

        performances = self.analyze_performance()
        now = self._now_ms()
        applied = []
        for rule in self._rules:
            adjustment = rule.evaluate(performances, now)
            if adjustment is None:
                continue
            adjustment = replace(adjustment, rule=rule.name)
            self._drop_rule_adjustments(adjustment.strategy, rule.name)
            self.apply_adjustment(adjustment)
            applied.append(adjustment)
        return applied

    def _drop_rule_adjustments(self, strategy: str, rule_name: str) -> None:
        items = self._adjustments.get(strategy)
        if items:
            self._adjustments[strategy] = [a for a in items if a.rule != rule_name]

    def apply_adjustment(self, adjustment: StrategyAdjustment) -> None:
        if adjustment.duration is None:
            adjustment = replace(adjustment, duration=DAY_MS)
        self._adjustments.setdefault(adjustment.strategy, []).append(adjustment)
        self._save()
        logger.info(
            "应用策略调整: %s %s (%s)",
            adjustment.type.value, adjustment.strategy, adjustment.reason,
        )

    def register_rule(self, rule: AdaptationRule) -> None:
        self._rules.append(rule)
        self._rules.sort(key=lambda r: -r.priority)

    def active_adjustments(self, strategy: Optional[str] = None) -> dict[str, list[StrategyAdjustment]]:
        """Unexpired adjustments, pruning expired ones as a side effect."""
        now = self._now_ms()
        changed = False
        for name in list(self._adjustments):
            active = [a for a in self._adjustments[name] if a.is_active(now)]
            if len(active) != len(self._adjustments[name]):
                changed = True
            if active:
                self._adjustments[name] = active
            else:
                del self._adjustments[name]
        if changed:
            self._save()

        if strategy is not None:
            return {strategy: list(self._adjustments.get(strategy, []))}
        return {name: list(items) for name, items in self._adjustments.items()}

    def get_adjustment_score(self, strategy: str) -> float:
        """
        Sum of boosts minus penalties.

        A disable pins the running score to -100 and an enable lifts it back
        to at least 0, applied in the order the adjustments were made.
        """
        score = 0.0
        for adjustment in self.active_adjustments(strategy)[strategy]:
            if adjustment.type is AdjustmentType.BOOST:
                score += adjustment.amount
            elif adjustment.type is AdjustmentType.PENALIZE:
                score -= adjustment.amount
            elif adjustment.type is AdjustmentType.DISABLE:
                score = DISABLED_SCORE
            elif adjustment.type is AdjustmentType.ENABLE:
                score = max(score, 0)
        return score

    def is_disabled(self, strategy: str) -> bool:
        return self.get_adjustment_score(strategy) <= DISABLED_SCORE

    def get_adaptation_report(self) -> dict:
        performances = self.analyze_performance()
        recommendations = []
        for p in performances:
            if p.total_requests < self.config.min_sample_size:
                recommendations.append(f"{p.strategy}策略样本数量不足，建议增加使用")
            if p.trend is Trend.DECLINING:
                recommendations.append(f"{p.strategy}策略性能下降，建议检查配置")
            if p.success_rate < 0.8:
                recommendations.append(f"{p.strategy}策略成功率偏低，建议优化或减少使用")

        return {
            "performances": performances,
            "active_adjustments": self.active_adjustments(),
            "recommendations": recommendations,
            "config": asdict(self.config),
        }

    def update_config(self, **changes) -> None:
        self.config = replace(self.config, **changes)
        logger.info("自适应策略配置已更新: %s", self.config)

    def reset_adjustments(self) -> None:
        self._adjustments.clear()
        self._save()
        logger.info("所有策略调整已重置")

    def _sampled(self, performances: list[StrategyPerformance]) -> list[StrategyPerformance]:
        return [p for p in performances if p.total_requests >= self.config.min_sample_size]

    def _register_default_rules(self) -> None:
        def low_success_rate(performances, now):
            candidates = [p for p in self._sampled(performances) if p.success_rate < 0.6]
            if not candidates:
                return None
            worst = min(candidates, key=lambda p: p.success_rate)
            return StrategyAdjustment(
                strategy=worst.strategy,
                type=AdjustmentType.PENALIZE,
                amount=3,
                reason=f"成功率过低 ({worst.success_rate * 100:.1f}%)",
                created_at=now,
            )

        def declining_trend(performances, now):
            for p in self._sampled(performances):
                if p.trend is Trend.DECLINING:
                    return StrategyAdjustment(p.strategy, AdjustmentType.PENALIZE, 2, "性能呈下降趋势", now)
            return None

        def improving_trend(performances, now):
            for p in self._sampled(performances):
                if p.trend is Trend.IMPROVING:
                    return StrategyAdjustment(p.strategy, AdjustmentType.BOOST, 2, "性能呈上升趋势", now)
            return None

        def cost_efficiency(performances, now):
            expensive = [p for p in performances if "ai" in p.strategy and p.average_cost > 100]
            if not expensive:
                return None
            worst = max(expensive, key=lambda p: p.average_cost)
            return StrategyAdjustment(
                worst.strategy,
                AdjustmentType.PENALIZE,
                1,
                f"成本过高 ({worst.average_cost:.0f}分)",
                now,
            )

        def unused_strategy(performances, now):
            for p in performances:
                if p.last_used is not None and now - p.last_used > WEEK_MS:
                    return StrategyAdjustment(
                        p.strategy, AdjustmentType.PENALIZE, 1, "长期未使用", now, duration=WEEK_MS
                    )
            return None

        for rule in (
            AdaptationRule("low_success_rate", 10, low_success_rate),
            AdaptationRule("declining_trend", 8, declining_trend),
            AdaptationRule("improving_trend", 6, improving_trend),
            AdaptationRule("cost_efficiency", 5, cost_efficiency),
            AdaptationRule("unused_strategy", 3, unused_strategy),
        ):
            self.register_rule(rule)

    def _load(self) -> None:
        stored = self.storage.get(STRATEGY_ADJUSTMENTS_KEY)
        if not isinstance(stored, dict):
            return
        for strategy, items in stored.items():
            for item in items or []:
                try:
                    adjustment = StrategyAdjustment.from_dict(item)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping unreadable adjustment for %s: %s", strategy, e)
                    continue
                self._adjustments.setdefault(strategy, []).append(adjustment)

    def _save(self) -> None:
        self.storage.persist(STRATEGY_ADJUSTMENTS_KEY, {
            strategy: [a.to_dict() for a in items]
            for strategy, items in self._adjustments.items()
        })
