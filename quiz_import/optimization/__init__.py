"""Cost budgeting, adaptive strategy scoring and result caching."""

from .cost_optimizer import (
    CostAlternative,
    CostAnalysis,
    CostBudget,
    CostOptimizer,
    CostTracker,
    SavingOpportunity,
    cost_for_tokens,
    estimate_tokens,
)
from .adaptive_strategy import AdaptationRule, AdaptiveConfig, AdaptiveStrategy, calculate_trend
from .cache import ResultCache, cache_key

__all__ = [
    "CostAlternative",
    "CostAnalysis",
    "CostBudget",
    "CostOptimizer",
    "CostTracker",
    "SavingOpportunity",
    "cost_for_tokens",
    "estimate_tokens",
    "AdaptationRule",
    "AdaptiveConfig",
    "AdaptiveStrategy",
    "calculate_trend",
    "ResultCache",
    "cache_key",
]
