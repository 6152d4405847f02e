from guardrail_planner.components.insights import generate_insights, insight_points


def _report(**overrides) -> dict:
    report = {
        "interpretation": "Your probability of success (85%) is within the safe zone (80% - 95%).",
        "current_withdrawal_rate": 4.5,
        "monte_carlo": {
            "percentiles": {"p10": 0.0, "p50": 650_000.0},
            "yearly_percentiles": [
                {"age": 65, "p10": 900_000.0},
                {"age": 90, "p10": 0.0},
                {"age": 94, "p10": 0.0},
            ],
        },
        "income_impact": {"year0_income": 0.0, "year0_net_withdrawal": 45_000.0},
        "target_search": None,
    }
    report.update(overrides)
    return report


def test_interpretation_comes_first():
    text = generate_insights(_report())
    assert text.splitlines()[0].startswith("Your probability of success (85%)")


def test_points():
    points = insight_points(_report())
    assert "on the high side" in points[0]
    assert "age 94 is $650,000" in points[1]
    assert "exhausted by age 90" in points[2]
    assert len(points) == 3


def test_income_and_unconverged_search():
    report = _report(
        current_withdrawal_rate=3.5,
        income_impact={"year0_income": 20_000.0, "year0_net_withdrawal": 25_000.0},
        target_search={"converged": False, "best_probability": 88.1},
    )
    text = generate_insights(report)
    assert "usually considered sustainable" in text
    assert "cover $20,000" in text
    assert "closest level found (88.1% success)" in text


def test_empty_report():
    assert generate_insights({}) == "- A 0.00% initial withdrawal rate is within the range usually considered sustainable."
