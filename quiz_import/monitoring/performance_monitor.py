"""Metrics ledger for parse attempts and the reports derived from it."""

import json
import logging
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..models import PerformanceMetric
from ..storage import PERFORMANCE_METRICS_KEY, LocalStorage

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


@dataclass(frozen=True)
class AlertThresholds:
    processing_time_ms: float = 30000
    success_rate_percent: float = 80
    cost_per_question: float = 10  # cents
    confidence: float = 0.7


@dataclass(frozen=True)
class Alert:
    type: str  # info | warning | error
    message: str
    timestamp: float
    metric: Optional[str] = None
    value: Optional[float] = None
    threshold: Optional[float] = None


@dataclass(frozen=True)
class ParserStats:
    requests: int
    success_rate: float  # percent
    average_time: float
    total_cost: int
    average_confidence: float


@dataclass(frozen=True)
class StrategyStats:
    requests: int
    success_rate: float  # percent
    average_time: float
    total_cost: int
    average_confidence: float
    cost_efficiency: float  # successful questions per cent


@dataclass(frozen=True)
class TrendSeries:
    time_labels: list[str] = field(default_factory=list)
    processing_times: list[float] = field(default_factory=list)
    success_rates: list[float] = field(default_factory=list)
    costs: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class PerformanceReport:
    period_start: float
    period_end: float
    summary: dict[str, float]
    by_parser: dict[str, ParserStats]
    by_strategy: dict[str, StrategyStats]
    trends: TrendSeries
    alerts: list[Alert]

    def to_dict(self) -> dict:
        return asdict(self)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _success_rate(metrics: list[PerformanceMetric]) -> float:
    if not metrics:
        return 0.0
    return sum(1 for m in metrics if m.success) / len(metrics) * 100


class PerformanceMonitor:
    """
    Append-only ledger of PerformanceMetrics with FIFO eviction.

    One instance is shared by the dispatcher, the adaptive strategy and the
    reports. Every mutation is persisted to local storage. Threshold checks
    on record only log; they never fail the caller.
    """

    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        max_metrics: int = 1000,
        thresholds: Optional[AlertThresholds] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_metrics <= 0:
            raise ValueError("max_metrics must be positive")
        self.storage = storage or LocalStorage()
        self.max_metrics = max_metrics
        self.thresholds = thresholds or AlertThresholds()
        self.clock = clock
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._load()

    def _now_ms(self) -> float:
        return self.clock() * 1000

    def _generate_id(self) -> str:
        return f"metric_{int(self._now_ms())}_{uuid.uuid4().hex[:9]}"

    @property
    def metrics(self) -> list[PerformanceMetric]:
        """All metrics, oldest first."""
        return list(self._metrics)

    def __len__(self) -> int:
        return len(self._metrics)

    def record_metric(
        self,
        parser: str,
        strategy: str,
        input_type: str,
        input_size: int,
        processing_time: float,
        success: bool,
        questions_count: int,
        confidence: float,
        cost: int = 0,
        errors: Optional[list[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PerformanceMetric:
        """
        Append one parse attempt, evicting the oldest entry past capacity.

        Returns:
            The stored metric with its generated id and timestamp.
        """
        metric = PerformanceMetric(
            id=self._generate_id(),
            timestamp=self._now_ms(),
            parser=parser,
            strategy=strategy,
            input_type=input_type,
            input_size=input_size,
            processing_time=processing_time,
            success=success,
            questions_count=questions_count,
            confidence=confidence,
            cost=cost,
            errors=tuple(errors or ()),
            metadata=dict(metadata or {}),
        )
        self._metrics.append(metric)
        self._save()
        self._check_alerts(metric)
        logger.debug(
            "Recorded metric %s/%s: %.1fms success=%s cost=%d",
            parser, strategy, processing_time, success, cost,
        )
        return metric

    def metrics_since(self, start_ms: float) -> list[PerformanceMetric]:
        return [m for m in self._metrics if m.timestamp >= start_ms]

    def metrics_for_strategy(self, strategy: str) -> list[PerformanceMetric]:
        return [m for m in self._metrics if m.strategy == strategy]

    def generate_report(self, period_hours: float = 24) -> PerformanceReport:
        """
        Aggregate the last `period_hours` of metrics.

        Args:
            period_hours: Length of the reporting window.

        Returns:
            PerformanceReport with summary, per-parser and per-strategy
            stats, bucketed trends and threshold alerts.
        """
        now = self._now_ms()
        start = now - period_hours * HOUR_MS
        metrics = self.metrics_since(start)

        if not metrics:
            return PerformanceReport(
                period_start=start,
                period_end=now,
                summary=self._summary([]),
                by_parser={},
                by_strategy={},
                trends=TrendSeries(),
                alerts=[],
            )

        return PerformanceReport(
            period_start=start,
            period_end=now,
            summary=self._summary(metrics),
            by_parser=self._parser_stats(metrics),
            by_strategy=self._strategy_stats(metrics),
            trends=self.get_performance_trends(hours=period_hours),
            alerts=self._generate_alerts(metrics),
        )

    def get_real_time_stats(self) -> dict[str, float]:
        """Requests, success rate, average time and total cost over the last hour."""
        recent = self.metrics_since(self._now_ms() - HOUR_MS)
        return {
            "recent_requests": len(recent),
            "current_success_rate": _success_rate(recent),
            "average_response_time": _average([m.processing_time for m in recent]),
            "total_cost": sum(m.cost for m in recent),
        }

    def get_performance_trends(self, hours: float = 24, buckets: int = 12) -> TrendSeries:
        """Split the window into equal buckets and average each one."""
        now = self._now_ms()
        start = now - hours * HOUR_MS
        interval = hours * HOUR_MS / buckets
        series = TrendSeries()

        for i in range(buckets):
            bucket_start = start + i * interval
            bucket_end = bucket_start + interval
            bucket = [m for m in self._metrics if bucket_start <= m.timestamp < bucket_end]
            series.time_labels.append(
                datetime.fromtimestamp(bucket_start / 1000).strftime("%H:%M")
            )
            series.processing_times.append(_average([m.processing_time for m in bucket]))
            series.success_rates.append(_success_rate(bucket))
            series.costs.append(sum(m.cost for m in bucket))

        return series

    def get_recent_metrics(self, count: int = 10) -> list[PerformanceMetric]:
        if count <= 0:
            return []
        return list(self._metrics)[-count:]

    def clear_old_data(self, days_to_keep: float = 7) -> int:
        """Drop metrics older than the cutoff; returns how many were removed."""
        cutoff = self._now_ms() - days_to_keep * DAY_MS
        kept = [m for m in self._metrics if m.timestamp >= cutoff]
        removed = len(self._metrics) - len(kept)
        self._metrics = deque(kept, maxlen=self.max_metrics)
        self._save()
        return removed

    def clear(self) -> None:
        self._metrics.clear()
        self._save()

    def export_data(self) -> str:
        return json.dumps({
            "metrics": [m.to_dict() for m in self._metrics],
            "config": {
                "max_metrics": self.max_metrics,
                "alert_thresholds": asdict(self.thresholds),
            },
            "export_time": self._now_ms(),
        }, ensure_ascii=False, indent=2)

    def import_data(self, data: str) -> bool:
        """Replace the ledger with exported data; False when it is unusable."""
        try:
            parsed = json.loads(data)
            metrics = [PerformanceMetric.from_dict(m) for m in parsed["metrics"]]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to import metrics: %s", e)
            return False

        self._metrics = deque(metrics, maxlen=self.max_metrics)
        self._save()
        return True

    def _load(self) -> None:
        stored = self.storage.get(PERFORMANCE_METRICS_KEY)
        if not isinstance(stored, list):
            return
        for item in stored:
            try:
                self._metrics.append(PerformanceMetric.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable stored metric: %s", e)

    def _save(self) -> None:
        self.storage.persist(PERFORMANCE_METRICS_KEY, [m.to_dict() for m in self._metrics])

    def _check_alerts(self, metric: PerformanceMetric) -> None:
        if metric.processing_time > self.thresholds.processing_time_ms:
            logger.warning(
                "处理时间警报: %.0fms 超过阈值 %.0fms",
                metric.processing_time, self.thresholds.processing_time_ms,
            )
        if metric.success and metric.confidence < self.thresholds.confidence:
            logger.warning(
                "置信度警报: %.1f%% 低于阈值 %.1f%%",
                metric.confidence * 100, self.thresholds.confidence * 100,
            )

    @staticmethod
    def _summary(metrics: list[PerformanceMetric]) -> dict[str, float]:
        return {
            "total_requests": len(metrics),
            "success_rate": _success_rate(metrics),
            "average_processing_time": _average([m.processing_time for m in metrics]),
            "total_cost": sum(m.cost for m in metrics),
            "average_confidence": _average([m.confidence for m in metrics]),
            "total_questions_processed": sum(m.questions_count for m in metrics),
        }

    @staticmethod
    def _group(metrics: list[PerformanceMetric], key: str) -> dict[str, list[PerformanceMetric]]:
        groups: dict[str, list[PerformanceMetric]] = {}
        for metric in metrics:
            groups.setdefault(getattr(metric, key), []).append(metric)
        return groups

    def _parser_stats(self, metrics: list[PerformanceMetric]) -> dict[str, ParserStats]:
        return {
            parser: ParserStats(
                requests=len(group),
                success_rate=_success_rate(group),
                average_time=_average([m.processing_time for m in group]),
                total_cost=sum(m.cost for m in group),
                average_confidence=_average([m.confidence for m in group]),
            )
            for parser, group in self._group(metrics, "parser").items()
        }

    def _strategy_stats(self, metrics: list[PerformanceMetric]) -> dict[str, StrategyStats]:
        stats = {}
        for strategy, group in self._group(metrics, "strategy").items():
            total_cost = sum(m.cost for m in group)
            questions = sum(m.questions_count for m in group if m.success)
            stats[strategy] = StrategyStats(
                requests=len(group),
                success_rate=_success_rate(group),
                average_time=_average([m.processing_time for m in group]),
                total_cost=total_cost,
                average_confidence=_average([m.confidence for m in group]),
                cost_efficiency=questions / total_cost if total_cost else 0.0,
            )
        return stats

    def _generate_alerts(self, metrics: list[PerformanceMetric]) -> list[Alert]:
        alerts = []
        recent = metrics[-10:]
        now = self._now_ms()

        avg_time = _average([m.processing_time for m in recent])
        if avg_time > self.thresholds.processing_time_ms:
            alerts.append(Alert(
                type="warning",
                message=f"平均处理时间过长: {avg_time / 1000:.1f}秒",
                timestamp=now,
                metric="processing_time",
                value=avg_time,
                threshold=self.thresholds.processing_time_ms,
            ))

        success_rate = _success_rate(recent)
        if success_rate < self.thresholds.success_rate_percent:
            alerts.append(Alert(
                type="error",
                message=f"成功率过低: {success_rate:.1f}%",
                timestamp=now,
                metric="success_rate",
                value=success_rate,
                threshold=self.thresholds.success_rate_percent,
            ))

        questions = sum(m.questions_count for m in recent)
        cost = sum(m.cost for m in recent)
        if questions and cost / questions > self.thresholds.cost_per_question:
            alerts.append(Alert(
                type="warning",
                message=f"单题成本过高: {cost / questions:.1f}分",
                timestamp=now,
                metric="cost_per_question",
                value=cost / questions,
                threshold=self.thresholds.cost_per_question,
            ))

        return alerts
