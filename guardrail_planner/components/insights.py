from typing import Dict, List


def _withdrawal_note(rate: float) -> str:
    if rate <= 4.0:
        return f"A {rate:.2f}% initial withdrawal rate is within the range usually considered sustainable."
    if rate <= 5.5:
        return f"A {rate:.2f}% initial withdrawal rate is on the high side; expect guardrail adjustments in weak markets."
    return f"A {rate:.2f}% initial withdrawal rate is aggressive and leaves little room for poor early returns."


def insight_points(report: Dict) -> List[str]:
    """Short rule-based observations about a guardrail report dict."""
    points = []
    points.append(_withdrawal_note(float(report.get("current_withdrawal_rate", 0.0))))

    mc = report.get("monte_carlo", {})
    p = mc.get("percentiles", {})
    yearly = mc.get("yearly_percentiles", [])
    if p and yearly:
        last_age = yearly[-1]["age"]
        points.append(
            f"Median projected portfolio at age {last_age} is ${p.get('p50', 0.0):,.0f}; "
            f"the weakest 10% of paths end below ${p.get('p10', 0.0):,.0f}."
        )
        depleted = next((row["age"] for row in yearly if row["p10"] <= 0.0), None)
        if depleted is not None:
            points.append(f"In the weakest 10% of paths the portfolio is exhausted by age {depleted}.")

    impact = report.get("income_impact", {})
    if impact.get("year0_income", 0.0) > 0:
        points.append(
            f"Income sources cover ${impact['year0_income']:,.0f} of first-year spending, "
            f"leaving a net withdrawal of ${impact.get('year0_net_withdrawal', 0.0):,.0f}."
        )

    search = report.get("target_search")
    if search and not search.get("converged", True):
        points.append(
            "The spending search did not land exactly on the target; the recommendation is the "
            f"closest level found ({search.get('best_probability', 0.0):.1f}% success)."
        )
    return points


def generate_insights(report: Dict) -> str:
    """Return the interpretation followed by rule-based observations."""
    lines = [report.get("interpretation", "")]
    lines.extend(f"- {point}" for point in insight_points(report))
    return "\n".join(line for line in lines if line)
