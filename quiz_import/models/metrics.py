"""Performance metric and strategy adaptation models."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class PerformanceMetric:
    """One recorded parse attempt. Append-only."""
    id: str
    timestamp: float  # epoch milliseconds
    parser: str
    strategy: str
    input_type: str
    input_size: int
    processing_time: float  # milliseconds
    success: bool
    questions_count: int
    confidence: float
    cost: int  # cents
    errors: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["errors"] = list(self.errors)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceMetric":
        return cls(
            id=str(data["id"]),
            timestamp=float(data["timestamp"]),
            parser=str(data["parser"]),
            strategy=str(data["strategy"]),
            input_type=str(data.get("input_type", "text")),
            input_size=int(data.get("input_size", 0)),
            processing_time=float(data.get("processing_time", 0.0)),
            success=bool(data.get("success", False)),
            questions_count=int(data.get("questions_count", 0)),
            confidence=float(data.get("confidence", 0.0)),
            cost=int(data.get("cost", 0)),
            errors=tuple(data.get("errors") or ()),
            metadata=dict(data.get("metadata") or {}),
        )


class Trend(Enum):
    """Direction of a strategy's recent confidence."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass(frozen=True)
class StrategyPerformance:
    """Snapshot derived from a strategy's metric history."""
    strategy: str
    total_requests: int
    success_rate: float
    average_time: float
    average_cost: float
    average_confidence: float
    trend: Trend
    last_used: Optional[float] = None  # epoch milliseconds


class AdjustmentType(Enum):
    """Effect an adjustment has on a strategy's selection score."""
    BOOST = "boost"
    PENALIZE = "penalize"
    DISABLE = "disable"
    ENABLE = "enable"


@dataclass(frozen=True)
class StrategyAdjustment:
    """Time-bounded annotation on a strategy's selection score."""
    strategy: str
    type: AdjustmentType
    amount: float
    reason: str
    created_at: float  # epoch milliseconds
    duration: Optional[float] = None  # milliseconds; None never expires
    rule: Optional[str] = None  # adaptation rule that produced it

    def is_active(self, now_ms: float) -> bool:
        if self.duration is None:
            return True
        return now_ms < self.created_at + self.duration

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "StrategyAdjustment":
        return cls(
            strategy=data["strategy"],
            type=AdjustmentType(data["type"]),
            amount=float(data["amount"]),
            reason=data.get("reason", ""),
            created_at=float(data["created_at"]),
            duration=data.get("duration"),
            rule=data.get("rule"),
        )
