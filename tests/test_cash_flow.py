import pytest

from guardrail_planner.calculators.cash_flow import CashFlowModel
from guardrail_planner.calculators.config import PlannerConfig
from guardrail_planner.calculators.errors import ConfigurationError
from guardrail_planner.calculators.scenario import ExpenseItem, IncomeSource, parse_scenario
from guardrail_planner.calculators.spending_profile import FlatProfile, SmileProfile


def _model(incomes=(), expenses=(), anchor="source_start", inflation=0.02) -> CashFlowModel:
    return CashFlowModel(FlatProfile(), incomes, expenses, inflation_rate=inflation, income_inflation_anchor=anchor)


def test_income_window():
    model = _model([IncomeSource("Pension", 10_000, start_age=67, end_age=70, inflation_adjusted=False)])
    assert model.income(66, 1) == 0.0
    assert model.income(67, 2) == 10_000
    assert model.income(70, 5) == 10_000
    assert model.income(71, 6) == 0.0


def test_open_ended_income_runs_through_horizon():
    model = _model([IncomeSource("SS", 20_000, start_age=67, inflation_adjusted=False)])
    assert model.income(99, 34) == 20_000


def test_income_inflation_anchored_at_source_start():
    model = _model([IncomeSource("SS", 20_000, start_age=67)])
    # age 69 is the third year of payments, four years into the scenario
    assert model.income(69, 4) == pytest.approx(20_000 * 1.02**2)


def test_income_inflation_anchored_at_scenario_start():
    model = _model([IncomeSource("SS", 20_000, start_age=67)], anchor="scenario_start")
    assert model.income(69, 4) == pytest.approx(20_000 * 1.02**4)


def test_incomes_sum_regardless_of_recipient():
    model = _model(
        [
            IncomeSource("A", 1_000, 65, inflation_adjusted=False, recipient="spouse1"),
            IncomeSource("B", 2_000, 65, inflation_adjusted=False, recipient="spouse2"),
        ]
    )
    assert model.income(65, 0) == 3_000


def test_one_time_expense_fires_once_with_scenario_inflation():
    model = _model(expenses=[ExpenseItem("Roof", 15_000, start_age=70)])
    assert model.expenses_for(69, 4) == 0.0
    assert model.expenses_for(70, 5) == pytest.approx(15_000 * 1.02**5)
    assert model.expenses_for(71, 6) == 0.0


def test_duration_expense_window():
    item = ExpenseItem("Care", 30_000, start_age=80, type="duration", duration_years=3, inflation_adjusted=False)
    model = _model(expenses=[item])
    assert [model.expenses_for(age, age - 65) for age in range(79, 85)] == [0, 30_000, 30_000, 30_000, 0, 0]


def test_spending_and_net_withdrawal():
    model = CashFlowModel(
        SmileProfile(),
        [IncomeSource("SS", 10_000, 65, inflation_adjusted=False)],
        [ExpenseItem("Car", 5_000, 75, inflation_adjusted=False)],
        inflation_rate=0.0,
    )
    assert model.spending(40_000, 75, 65, 10) == pytest.approx(38_000)
    assert model.net_withdrawal(40_000, 75, 65, 10) == pytest.approx(38_000 + 5_000 - 10_000)


def test_project_timeline():
    model = _model([IncomeSource("SS", 12_000, 67)], [ExpenseItem("Roof", 9_000, 66)])
    rows = model.project(40_000, 65, 65, 5)
    assert [r["age"] for r in rows] == [65, 66, 67, 68, 69]
    assert rows[0]["income"] == 0.0
    assert rows[1]["expenses"] == pytest.approx(9_000 * 1.02, abs=0.01)
    assert rows[2]["income"] == pytest.approx(12_000)
    for r in rows:
        assert r["spending_multiplier"] == 1.0
        assert r["net_withdrawal"] == pytest.approx(r["spending"] + r["expenses"] - r["income"], abs=0.02)
    assert len(model.project(40_000, 65, 65, 30, limit=10)) == 10


def test_from_scenario_uses_config_anchor():
    scenario = parse_scenario(
        {
            "current_age": 65, "retirement_age": 65, "planning_horizon_years": 30,
            "current_portfolio_value": 500_000, "desired_spending": 20_000,
            "stock_allocation": 50, "bond_allocation": 50, "cash_allocation": 0,
            "spending_profile_type": "flat", "inflation_rate": 0.03,
            "income_sources": [{"name": "SS", "annual_amount": 10_000, "start_age": 70}],
        }
    )
    cfg = PlannerConfig.from_dict({"income_inflation_anchor": "scenario_start"})
    source_start = CashFlowModel.from_scenario(scenario)
    scenario_start = CashFlowModel.from_scenario(scenario, cfg)
    assert isinstance(source_start.spending_profile, FlatProfile)
    assert source_start.income(70, 5) == pytest.approx(10_000)
    assert scenario_start.income(70, 5) == pytest.approx(10_000 * 1.03**5)


def test_unknown_anchor_rejected():
    with pytest.raises(ConfigurationError):
        _model(anchor="birthday")
