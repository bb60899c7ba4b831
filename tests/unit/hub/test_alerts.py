import pytest

from pulse_hub.services.alerts import DEFAULT_RULES, AlertEvaluator, ThresholdRule
from shared.schemas.realtime import AlertSeverity, MetricsSnapshot


def test_breach_fires_once_until_recovery():
    evaluator = AlertEvaluator(
        [ThresholdRule("system_load", "gt", 90, AlertSeverity.WARNING, "High load")]
    )

    first = evaluator.evaluate(MetricsSnapshot(system_load=95))
    still_high = evaluator.evaluate(MetricsSnapshot(system_load=97))
    recovered = evaluator.evaluate(MetricsSnapshot(system_load=50))
    again = evaluator.evaluate(MetricsSnapshot(system_load=92))

    assert len(first) == 1
    assert first[0].severity is AlertSeverity.WARNING
    assert "system_load is 95" in first[0].message
    assert still_high == []
    assert recovered == []
    assert len(again) == 1


@pytest.mark.parametrize(
    "op,value,current,fires",
    [
        ("gt", 10, 11, True),
        ("gt", 10, 10, False),
        ("lt", 10, 9, True),
        ("eq", 10, 10, True),
        ("ne", 10, 10, False),
    ],
)
def test_operators(op, value, current, fires):
    evaluator = AlertEvaluator(
        [ThresholdRule("active_users", op, value, AlertSeverity.INFO, "t")]
    )

    alerts = evaluator.evaluate(MetricsSnapshot(active_users=current))

    assert bool(alerts) is fires


def test_error_and_estimated_snapshots_are_ignored():
    evaluator = AlertEvaluator(DEFAULT_RULES)

    assert evaluator.evaluate(MetricsSnapshot(error_rate=50, error=True)) == []
    assert evaluator.evaluate(MetricsSnapshot(error_rate=50, estimated=True)) == []


def test_default_rules_cover_error_rate():
    alerts = AlertEvaluator().evaluate(MetricsSnapshot(error_rate=6.0))

    assert [a.severity for a in alerts] == [AlertSeverity.CRITICAL]


def test_unknown_operator_rejected():
    with pytest.raises(ValueError):
        AlertEvaluator([ThresholdRule("events", "gte", 1, AlertSeverity.INFO, "t")])
