from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Literal

from shared.schemas.realtime import Alert, AlertSeverity, MetricsSnapshot

Operator = Literal["gt", "lt", "eq", "ne"]

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "gt": operator.gt,
    "lt": operator.lt,
    "eq": operator.eq,
    "ne": operator.ne,
}

_SYMBOLS = {"gt": ">", "lt": "<", "eq": "=", "ne": "!="}


@dataclass(frozen=True)
class ThresholdRule:
    metric: str
    operator: Operator
    value: float
    severity: AlertSeverity
    title: str

    def breached(self, snapshot: MetricsSnapshot) -> bool:
        return _OPERATORS[self.operator](snapshot.metric(self.metric), self.value)

    def to_alert(self, snapshot: MetricsSnapshot) -> Alert:
        current = snapshot.metric(self.metric)
        return Alert(
            title=self.title,
            message=(
                f"{self.metric} is {current:g} "
                f"({_SYMBOLS[self.operator]} {self.value:g})"
            ),
            severity=self.severity,
            timestamp=snapshot.timestamp,
        )


DEFAULT_RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule(
        "active_users", "gt", 1000, AlertSeverity.WARNING, "High traffic detected"
    ),
    ThresholdRule("error_rate", "gt", 5, AlertSeverity.CRITICAL, "High error rate"),
    ThresholdRule("system_load", "gt", 90, AlertSeverity.WARNING, "High system load"),
    ThresholdRule(
        "response_time", "gt", 1000, AlertSeverity.WARNING, "Slow response times"
    ),
)


class AlertEvaluator:
    """Turn fresh snapshots into alerts.

    A rule fires on the first snapshot that breaches it and stays silent
    until a later snapshot is back inside the threshold.
    """

    def __init__(self, rules: Iterable[ThresholdRule] = DEFAULT_RULES):
        self.rules = list(rules)
        for rule in self.rules:
            if rule.operator not in _OPERATORS:
                raise ValueError(f"Unknown operator: {rule.operator}")
        self._firing: set[int] = set()

    def evaluate(self, snapshot: MetricsSnapshot) -> List[Alert]:
        if snapshot.error or snapshot.estimated:
            return []
        alerts: List[Alert] = []
        for idx, rule in enumerate(self.rules):
            if rule.breached(snapshot):
                if idx not in self._firing:
                    self._firing.add(idx)
                    alerts.append(rule.to_alert(snapshot))
            else:
                self._firing.discard(idx)
        return alerts
