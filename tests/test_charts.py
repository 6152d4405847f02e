import plotly.graph_objects as go
import pytest

from guardrail_planner.components.charts import (
    cashflow_chart,
    fan_chart,
    search_chart,
    spending_profile_chart,
    success_gauge,
)

YEARLY = [
    {"year": y, "age": 65 + y, "p10": 100.0 * y, "p25": 200.0 * y, "p50": 300.0 * y, "p75": 400.0 * y, "p90": 500.0 * y}
    for y in range(3)
]
TIMELINE = [
    {"year": y, "age": 65 + y, "spending": 40_000.0, "income": 10_000.0, "expenses": 0.0,
     "net_withdrawal": 30_000.0, "spending_multiplier": 1.0}
    for y in range(3)
]


def test_fan_chart():
    fig = fan_chart(YEARLY)
    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 5
    median = fig.data[-1]
    assert median.name == "Median"
    assert list(median.x) == [65, 66, 67]
    assert list(median.y) == [0.0, 300.0, 600.0]


def test_success_gauge_takes_percentage():
    fig = success_gauge(87.456, 80, 95)
    indicator = fig.data[0]
    assert indicator.value == pytest.approx(87.5)
    assert [tuple(s.range) for s in indicator.gauge.steps] == [(0, 80), (80, 95), (95, 100)]


def test_cashflow_chart_shows_income_as_inflow():
    fig = cashflow_chart(TIMELINE)
    income = next(t for t in fig.data if t.name == "Income")
    assert list(income.y) == [-10_000.0] * 3
    assert fig.layout.barmode == "relative"


def test_spending_profile_chart_in_percent():
    fig = spending_profile_chart({66: 0.9, 65: 1.0})
    assert list(fig.data[0].x) == [65, 66]
    assert list(fig.data[0].y) == pytest.approx([100.0, 90.0])


def test_search_chart():
    fig = search_chart([{"spending": 5_000, "probability_of_success": 70.0},
                        {"spending": 2_500, "probability_of_success": 93.0}], 90)
    assert list(fig.data[0].y) == [70.0, 93.0]
