from guardrail_planner.calculators.config import PlannerConfig
from guardrail_planner.calculators.guardrails import GuardrailEngine
from guardrail_planner.calculators.scenario import parse_scenario
from guardrail_planner.components.report import build_pdf

SCENARIO = {
    "current_age": 70,
    "retirement_age": 65,
    "planning_horizon_years": 10,
    "current_portfolio_value": 600_000,
    "desired_spending": 30_000,
    "stock_allocation": 50,
    "bond_allocation": 40,
    "cash_allocation": 10,
    "monte_carlo_iterations": 100,
    "income_sources": [{"name": "Social Security", "annual_amount": 18_000, "start_age": 70}],
}


def test_build_pdf_without_charts():
    config = PlannerConfig.from_dict({"search": {"iterations": 100, "max_iterations": 3}})
    report = GuardrailEngine(config, seed=4).calculate(parse_scenario(SCENARIO, config)).to_dict()
    pdf = build_pdf(SCENARIO, report)
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1_000


def test_build_pdf_from_minimal_report():
    assert build_pdf({}, {}).startswith(b"%PDF")
