"""Tests for the Monte Carlo simulation engine."""

import pytest

from guardrail_planner.calculators.cash_flow import CashFlowModel
from guardrail_planner.calculators.config import PlannerConfig
from guardrail_planner.calculators.errors import ConfigurationError
from guardrail_planner.calculators.monte_carlo import MonteCarloSimulation, percentile
from guardrail_planner.calculators.returns import ReturnModel
from guardrail_planner.calculators.scenario import IncomeSource, parse_scenario
from guardrail_planner.calculators.spending_profile import FlatProfile


def _flat_returns(mean: float) -> PlannerConfig:
    asset = {"mean": mean, "std_dev": 0.0}
    return PlannerConfig.from_dict({"returns": {"stocks": asset, "bonds": asset, "cash": asset}})


def _simulation(spending, horizon=5, mean=0.0, fee=0.0, iterations=100, **kwargs) -> MonteCarloSimulation:
    cash_flow = CashFlowModel(FlatProfile(), inflation_rate=0.0)
    return MonteCarloSimulation(
        cash_flow, 100_000, spending, 65, 65, horizon, 60, 35, 5,
        annual_fee=fee, iterations=iterations, config=_flat_returns(mean), **kwargs
    )


def test_percentile_interpolation():
    assert percentile([100, 200, 300], 50) == 200
    assert percentile([0, 100], 10) == pytest.approx(10)
    assert percentile([0, 100], 90) == pytest.approx(90)
    assert percentile([5], 75) == 5
    assert percentile([], 50) == 0.0


def test_depleted_trajectory_stops_at_depletion_year():
    path = _simulation(30_000).simulate_path()
    assert not path.succeeded
    assert path.depletion_year == 3
    assert [y.year for y in path.years] == [0, 1, 2, 3]
    assert [y.portfolio_value for y in path.years] == pytest.approx([70_000, 40_000, 10_000, 0.0])
    assert path.final_value == 0.0
    last = path.years[-1]
    assert last.net_withdrawal == 30_000 and last.income == 0.0 and last.extra_expenses == 0.0


def test_exact_zero_counts_as_depleted():
    path = _simulation(25_000, horizon=6).simulate_path()
    assert not path.succeeded
    assert path.depletion_year == 3
    assert len(path.years) == 4


def test_failed_run_aggregates():
    result = _simulation(30_000).run()
    assert result.probability_of_success == 0.0
    assert (result.successful, result.failed, result.iterations) == (0, 100, 100)
    yearly = result.yearly_percentiles
    assert len(yearly) == 5
    assert yearly[0]["p50"] == pytest.approx(70_000)
    assert yearly[3]["p90"] == 0.0
    assert yearly[4] == {"year": 4, "age": 69, "p10": 0.0, "p25": 0.0, "p50": 0.0, "p75": 0.0, "p90": 0.0}


def test_successful_run_aggregates():
    result = _simulation(10_000).run()
    assert result.probability_of_success == 100.0
    assert result.failed == 0
    assert result.percentiles["p50"] == pytest.approx(50_000)
    assert result.percentiles["min"] == result.percentiles["max"] == pytest.approx(50_000)


def test_return_applied_before_fee_then_withdrawal():
    path = _simulation(1_000, horizon=1, mean=0.10, fee=0.01).simulate_path()
    assert path.years[0].annual_return == pytest.approx(0.10)
    assert path.final_value == pytest.approx(100_000 * 1.10 * 0.99 - 1_000)


def test_income_above_spending_grows_the_portfolio():
    cash_flow = CashFlowModel(
        FlatProfile(), [IncomeSource("Pension", 10_000, 65, inflation_adjusted=False)], inflation_rate=0.0
    )
    sim = MonteCarloSimulation(cash_flow, 100_000, 4_000, 65, 65, 3, 60, 35, 5, annual_fee=0.0,
                               iterations=100, config=_flat_returns(0.0))
    path = sim.simulate_path()
    assert path.succeeded
    assert path.years[0].net_withdrawal == -6_000
    assert path.final_value == pytest.approx(118_000)


class _CountingModel(ReturnModel):
    name = "counting"

    def __init__(self):
        super().__init__()
        self.resets = 0

    def sample(self, stock, bond, cash):
        return 0.0

    def reset(self):
        self.resets += 1


def test_return_model_reset_before_every_trajectory():
    model = _CountingModel()
    sim = _simulation(1_000, iterations=150, return_model=model)
    sim.run(keep_trajectories=True)
    assert model.resets == 150
    assert len(sim.trajectories) == 150


def test_trajectories_empty_until_kept():
    sim = _simulation(1_000)
    assert sim.trajectories == []
    sim.run()
    assert sim.trajectories == []


@pytest.mark.parametrize("iterations", [99, 100_001])
def test_iteration_bounds(iterations):
    with pytest.raises(ConfigurationError):
        _simulation(1_000, iterations=iterations)


def test_allocation_sum_checked():
    cash_flow = CashFlowModel(FlatProfile())
    with pytest.raises(ConfigurationError):
        MonteCarloSimulation(cash_flow, 100_000, 1_000, 65, 65, 5, 60, 30, 9)


def _scenario(**overrides):
    data = {
        "current_age": 65,
        "retirement_age": 65,
        "planning_horizon_years": 30,
        "current_portfolio_value": 1_000_000,
        "desired_spending": 45_000,
        "stock_allocation": 60,
        "bond_allocation": 35,
        "cash_allocation": 5,
        "monte_carlo_iterations": 500,
    }
    data.update(overrides)
    return parse_scenario(data)


def test_reference_scenario_structure():
    sim = MonteCarloSimulation.from_scenario(_scenario(), seed=42)
    result = sim.run()
    assert 0.0 <= result.probability_of_success <= 100.0
    assert result.successful + result.failed == 500
    p = result.percentiles
    assert p["min"] <= p["p10"] <= p["p25"] <= p["p50"] <= p["p75"] <= p["p90"] <= p["max"]
    assert len(result.yearly_percentiles) == 30
    for row in result.yearly_percentiles:
        assert row["p10"] <= row["p25"] <= row["p50"] <= row["p75"] <= row["p90"]
    assert result.yearly_percentiles[-1]["age"] == 94
    assert result.to_dict()["iterations"] == 500


def test_seed_makes_runs_reproducible():
    a = MonteCarloSimulation.from_scenario(_scenario(), seed=7).run()
    b = MonteCarloSimulation.from_scenario(_scenario(), seed=7).run()
    assert a.probability_of_success == b.probability_of_success
    assert a.percentiles == b.percentiles


def test_enhanced_scenario_uses_mean_reverting_model():
    sim = MonteCarloSimulation.from_scenario(_scenario(enhanced_mc_enabled=True, autocorrelation=-0.2), seed=1)
    assert sim.return_model.name == "enhanced"
    assert sim.return_model.autocorrelation == -0.2
    result = sim.run()
    assert result.successful + result.failed == 500
