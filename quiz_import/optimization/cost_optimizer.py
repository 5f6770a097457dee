"""Cost estimation and budget enforcement for AI-backed parsing.

All amounts are integer cents.
"""

import calendar
import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from ..config import AI_PROVIDERS
from ..storage import COST_TRACKER_KEY, LocalStorage

logger = logging.getLogger(__name__)

API_CALL_COST = 5
PROCESSING_COST_PER_10K_TOKENS = 2
PROMPT_OVERHEAD_TOKENS = 500


@dataclass(frozen=True)
class CostBudget:
    daily: int = 1000
    monthly: int = 20000
    per_request: int = 50
    alert_threshold: int = 80  # percent


@dataclass
class CostTracker:
    today: int = 0
    this_month: int = 0
    total_cost: int = 0
    total_requests: int = 0
    day: str = ""  # ISO date the `today` counter belongs to
    month: str = ""  # YYYY-MM the `this_month` counter belongs to

    @property
    def average_cost_per_request(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_cost / self.total_requests


@dataclass(frozen=True)
class CostAlternative:
    strategy: str
    cost: int
    savings: int
    tradeoffs: tuple[str, ...]
    confidence: float


@dataclass(frozen=True)
class SavingOpportunity:
    type: str
    description: str
    potential_savings: int  # tokens
    effort: str
    impact: int


@dataclass(frozen=True)
class CostAnalysis:
    estimated_tokens: int
    estimated_cost: int
    breakdown: dict[str, int]
    within_budget: bool
    alternatives: list[CostAlternative] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    saving_opportunities: list[SavingOpportunity] = field(default_factory=list)


def estimate_tokens(text: str) -> int:
    """Approximate prompt plus completion tokens for a text."""
    cjk = len(re.findall(r"[\u4e00-\u9fff]", text))
    words = len(re.findall(r"[A-Za-z]+", text))
    punctuation = len(re.findall(r"[^\w\s\u4e00-\u9fff]", text))
    return math.ceil(cjk * 1.5 + words + punctuation * 0.5 + PROMPT_OVERHEAD_TOKENS)


def cost_for_tokens(tokens: int, cost_per_1k_tokens: float) -> int:
    """Total cost of a call using `tokens` tokens at the given model price."""
    token_cost = math.ceil(tokens / 1000 * cost_per_1k_tokens)
    processing = math.ceil(tokens / 10000) * PROCESSING_COST_PER_10K_TOKENS
    return token_cost + API_CALL_COST + processing


class CostOptimizer:
    """
    Tracks AI spend against daily, monthly and per-request budgets.

    Counters roll over when the local date (or month) changes, checked on
    every access. Tracker and budget persist to local storage after every
    mutation.
    """

    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        budget: Optional[CostBudget] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage or LocalStorage()
        self.clock = clock
        self.budget = budget or CostBudget()
        self.tracker = CostTracker()
        self._load(keep_budget=budget is not None)
        self._roll_over()

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    def analyze_cost(
        self,
        text: str,
        provider: str = "siliconflow",
        model: Optional[str] = None,
    ) -> CostAnalysis:
        """
        Estimate the cost of parsing text with an AI model.

        Args:
            text: Text that would be sent.
            provider: Provider id from the provider table.
            model: Model id; the provider default when omitted.

        Returns:
            CostAnalysis with breakdown, alternatives and recommendations.
        """
        tokens = estimate_tokens(text)
        info = AI_PROVIDERS.get(provider)
        model_info = info.get_model(model or info.default_model) if info else None

        breakdown = {"token": 0, "api_call": 0, "processing": 0}
        if model_info and provider != "local":
            breakdown = {
                "token": math.ceil(tokens / 1000 * model_info.cost_per_1k_tokens),
                "api_call": API_CALL_COST,
                "processing": math.ceil(tokens / 10000) * PROCESSING_COST_PER_10K_TOKENS,
            }
        cost = sum(breakdown.values())

        alternatives = self._alternatives(text, cost)
        return CostAnalysis(
            estimated_tokens=tokens,
            estimated_cost=cost,
            breakdown=breakdown,
            within_budget=self.can_use_ai(cost),
            alternatives=alternatives,
            recommendations=self._recommendations(cost, alternatives),
            saving_opportunities=self._saving_opportunities(text, tokens),
        )

    def can_use_ai(self, estimated_cost: int) -> bool:
        """Whether a call of this cost fits every budget."""
        self._roll_over()
        return (
            self.tracker.today + estimated_cost <= self.budget.daily
            and self.tracker.this_month + estimated_cost <= self.budget.monthly
            and estimated_cost <= self.budget.per_request
        )

    def record_cost(self, cost: int) -> None:
        """Add the actual cost of a completed AI call."""
        self._roll_over()
        self.tracker.today += cost
        self.tracker.this_month += cost
        self.tracker.total_cost += cost
        self.tracker.total_requests += 1
        self._save()
        self._check_budget_alerts()

    def get_cost_stats(self) -> dict:
        """Budget, tracker, usage percentages and linear projections."""
        self._roll_over()
        now = self.clock()
        daily_pct = self.tracker.today / self.budget.daily * 100 if self.budget.daily else 0.0
        monthly_pct = (
            self.tracker.this_month / self.budget.monthly * 100 if self.budget.monthly else 0.0
        )

        day_progress = (now.hour * 60 + now.minute) / (24 * 60)
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        month_progress = now.day / days_in_month

        return {
            "budget": asdict(self.budget),
            "tracker": {
                **asdict(self.tracker),
                "average_cost_per_request": self.tracker.average_cost_per_request,
            },
            "usage": {
                "daily_percentage": daily_pct,
                "monthly_percentage": monthly_pct,
            },
            "projections": {
                "daily_projection": self.tracker.today / day_progress if day_progress else 0.0,
                "monthly_projection": self.tracker.this_month / month_progress,
            },
        }

    def set_budget(self, **changes) -> None:
        self.budget = replace(self.budget, **changes)
        self._save()
        logger.info("Cost budget updated: %s", self.budget)

    def reset_stats(self) -> None:
        now = self.clock()
        self.tracker = CostTracker(day=now.date().isoformat(), month=now.strftime("%Y-%m"))
        self._save()

    def _roll_over(self) -> None:
        now = self.clock()
        day = now.date().isoformat()
        month = now.strftime("%Y-%m")
        changed = False
        if self.tracker.day != day:
            self.tracker.today = 0
            self.tracker.day = day
            changed = True
        if self.tracker.month != month:
            self.tracker.this_month = 0
            self.tracker.month = month
            changed = True
        if changed:
            self._save()

    def _check_budget_alerts(self) -> None:
        checks = [
            ("今日", self.tracker.today, self.budget.daily),
            ("本月", self.tracker.this_month, self.budget.monthly),
        ]
        for label, used, limit in checks:
            if not limit:
                continue
            usage = used / limit * 100
            if usage >= 100:
                logger.warning("%s成本预算已用完", label)
            elif usage >= self.budget.alert_threshold:
                logger.warning("%s成本已达预算的%.1f%%", label, usage)

    @staticmethod
    def _alternatives(text: str, ai_cost: int) -> list[CostAlternative]:
        alternatives = [
            CostAlternative("rule_based", 0, ai_cost, ("准确率可能较低", "不支持复杂格式"), 0.7),
        ]
        if len(text) > 1000:
            alternatives.append(CostAlternative(
                "ocr_preprocessing",
                math.ceil(ai_cost * 0.3),
                ai_cost - math.ceil(ai_cost * 0.3),
                ("需要额外的预处理时间", "OCR可能有识别错误"),
                0.8,
            ))
        if len(text) > 2000:
            chunk_cost = math.ceil(ai_cost * 0.6)
            alternatives.append(CostAlternative(
                "chunked_processing",
                chunk_cost,
                ai_cost - chunk_cost,
                ("处理时间较长", "可能丢失上下文信息"),
                0.9,
            ))
        alternatives.append(CostAlternative("cached_result", 0, ai_cost, ("仅适用于重复内容",), 0.95))
        return sorted(alternatives, key=lambda a: -a.savings)

    @staticmethod
    def _saving_opportunities(text: str, tokens: int) -> list[SavingOpportunity]:
        opportunities = [
            SavingOpportunity("caching", "启用智能缓存，避免重复解析相同内容", math.ceil(tokens * 0.8), "low", 8),
        ]
        if "\u3000" in text or "\t" in text:
            opportunities.append(SavingOpportunity(
                "preprocessing", "清理文本格式，减少无效token", math.ceil(tokens * 0.1), "low", 3,
            ))
        if len(text) > 2000:
            opportunities.append(SavingOpportunity(
                "chunking", "将长文本分块处理，提高成功率", math.ceil(tokens * 0.3), "medium", 6,
            ))
        if "\n\n\n" in text or "  " in text:
            opportunities.append(SavingOpportunity(
                "format_optimization", "优化文本格式，减少冗余内容", math.ceil(tokens * 0.15), "low", 4,
            ))
        return sorted(opportunities, key=lambda o: -o.impact)

    def _recommendations(self, cost: int, alternatives: list[CostAlternative]) -> list[str]:
        recommendations = []
        if cost > self.budget.per_request:
            recommendations.append(f"成本超出单次预算({self.budget.per_request}分)，建议使用替代方案")
        if alternatives and alternatives[0].savings > cost * 0.5:
            best = alternatives[0]
            recommendations.append(f"推荐使用{best.strategy}策略，可节省{best.savings}分")
        if self.budget.daily:
            usage = self.tracker.today / self.budget.daily * 100
            if usage > self.budget.alert_threshold:
                recommendations.append(f"今日成本已达预算的{usage:.1f}%，建议谨慎使用AI解析")
        if self.tracker.average_cost_per_request > self.budget.per_request * 0.8:
            recommendations.append("平均单次成本较高，建议启用缓存和预处理优化")
        return recommendations

    def _load(self, keep_budget: bool) -> None:
        data = self.storage.get(COST_TRACKER_KEY)
        if not isinstance(data, dict):
            return
        tracker = data.get("tracker") or {}
        known = {k: v for k, v in tracker.items() if k in CostTracker.__dataclass_fields__}
        self.tracker = CostTracker(**known)
        if not keep_budget and isinstance(data.get("budget"), dict):
            budget = {k: v for k, v in data["budget"].items() if k in CostBudget.__dataclass_fields__}
            self.budget = CostBudget(**budget)

    def _save(self) -> None:
        self.storage.persist(COST_TRACKER_KEY, {
            "tracker": asdict(self.tracker),
            "budget": asdict(self.budget),
            "timestamp": self.clock().timestamp(),
        })
