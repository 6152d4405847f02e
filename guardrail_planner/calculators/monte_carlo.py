from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .cash_flow import CashFlowModel
from .config import DEFAULT_CONFIG, PlannerConfig
from .errors import ConfigurationError
from .returns import NormalReturnModel, ReturnModel, make_return_model
from .scenario import ScenarioInput

logger = logging.getLogger(__name__)

PERCENTILES = (10, 25, 50, 75, 90)


@dataclass
class YearRecord:
    year: int
    age: int
    portfolio_value: float
    annual_return: float
    spending: float
    extra_expenses: float
    income: float
    net_withdrawal: float


@dataclass
class Trajectory:
    """One simulated path.  ``years`` stops at the depletion year."""

    years: List[YearRecord] = field(default_factory=list)
    succeeded: bool = True
    depletion_year: Optional[int] = None

    @property
    def final_value(self) -> float:
        return self.years[-1].portfolio_value if self.years else 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.succeeded,
            "final_portfolio_value": self.final_value,
            "depletion_year": self.depletion_year,
            "yearly_values": [asdict(y) for y in self.years],
        }


@dataclass
class AggregateResult:
    probability_of_success: float
    iterations: int
    successful: int
    failed: int
    duration_ms: int
    percentiles: Dict[str, float]
    yearly_percentiles: List[Dict[str, float]]

    def to_dict(self) -> dict:
        return asdict(self)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile at rank ``p/100 * (n - 1)``; 0 when empty."""
    if len(sorted_values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(sorted_values, dtype=float), p))


def percentile_summary(values: np.ndarray) -> Dict[str, float]:
    if values.size == 0:
        return {f"p{p}": 0.0 for p in PERCENTILES}
    points = np.percentile(values, PERCENTILES)
    return {f"p{p}": float(v) for p, v in zip(PERCENTILES, points)}


class MonteCarloSimulation:
    """Runs independent retirement trajectories and aggregates them.

    Each year of a trajectory applies the sampled return, then the annual fee,
    then withdraws ``spending + extra expenses - income``.  A value at or
    below zero ends the trajectory as a failure.
    """

    def __init__(
        self,
        cash_flow: CashFlowModel,
        portfolio_value: float,
        desired_spending: float,
        current_age: int,
        retirement_age: int,
        horizon: int,
        stock: float,
        bond: float,
        cash: float,
        annual_fee: float = 0.0075,
        iterations: int = 10_000,
        return_model: Optional[ReturnModel] = None,
        config: PlannerConfig = DEFAULT_CONFIG,
        seed: Optional[int] = None,
    ):
        limits = config.monte_carlo
        if not limits.min_iterations <= iterations <= limits.max_iterations:
            raise ConfigurationError(
                f"Iterations must be between {limits.min_iterations} and {limits.max_iterations}, got {iterations}"
            )
        total = stock + bond + cash
        if abs(total - 100.0) > 0.01:
            raise ConfigurationError(f"Asset allocations must sum to 100%, got {total}%")
        if horizon < 1:
            raise ConfigurationError("planning horizon must be at least one year")

        self.cash_flow = cash_flow
        self.portfolio_value = float(portfolio_value)
        self.desired_spending = float(desired_spending)
        self.current_age = int(current_age)
        self.retirement_age = int(retirement_age)
        self.horizon = int(horizon)
        self.allocation = (stock, bond, cash)
        self.annual_fee = annual_fee
        self.iterations = int(iterations)
        self.config = config
        self.return_model = return_model or NormalReturnModel(config=config, seed=seed)
        self.trajectories: List[Trajectory] = []

    @classmethod
    def from_scenario(
        cls,
        scenario: ScenarioInput,
        config: PlannerConfig = DEFAULT_CONFIG,
        spending: Optional[float] = None,
        iterations: Optional[int] = None,
        cash_flow: Optional[CashFlowModel] = None,
        return_model: Optional[ReturnModel] = None,
        seed: Optional[int] = None,
    ) -> "MonteCarloSimulation":
        if return_model is None:
            return_model = make_return_model(
                scenario.enhanced_mc_enabled, scenario.autocorrelation, config=config, seed=seed
            )
        return cls(
            cash_flow or CashFlowModel.from_scenario(scenario, config),
            scenario.current_portfolio_value,
            scenario.desired_spending if spending is None else spending,
            scenario.current_age,
            scenario.retirement_age,
            scenario.planning_horizon_years,
            *scenario.allocation,
            annual_fee=scenario.annual_fee_percentage,
            iterations=scenario.monte_carlo_iterations if iterations is None else iterations,
            return_model=return_model,
            config=config,
        )

    def expected_return(self) -> float:
        return self.return_model.expected_return(*self.allocation)

    def volatility(self) -> float:
        return self.return_model.volatility(*self.allocation)

    def simulate_path(self) -> Trajectory:
        self.return_model.reset()
        value = self.portfolio_value
        path = Trajectory()
        for year in range(self.horizon):
            age = self.current_age + year
            annual_return = self.return_model.sample(*self.allocation)
            value *= 1.0 + annual_return
            value *= 1.0 - self.annual_fee

            spending = self.cash_flow.spending(self.desired_spending, age, self.retirement_age, year)
            income = self.cash_flow.income(age, year)
            extra = self.cash_flow.expenses_for(age, year)
            net = spending + extra - income
            value -= net

            if value <= 0:
                path.succeeded = False
                path.depletion_year = year
                value = 0.0
            path.years.append(
                YearRecord(year, age, value, annual_return, spending, extra, income, net)
            )
            if not path.succeeded:
                break
        return path

    def run(self, keep_trajectories: bool = False) -> AggregateResult:
        start = time.perf_counter()
        n, horizon = self.iterations, self.horizon
        # depleted years stay 0
        values = np.zeros((n, horizon))
        finals = np.zeros(n)
        successful = 0
        self.trajectories = []

        for i in range(n):
            path = self.simulate_path()
            if path.succeeded:
                successful += 1
            for record in path.years:
                values[i, record.year] = record.portfolio_value
            finals[i] = path.final_value
            if keep_trajectories:
                self.trajectories.append(path)

        summary = percentile_summary(finals)
        summary["min"] = float(finals.min())
        summary["max"] = float(finals.max())

        yearly_points = np.percentile(values, PERCENTILES, axis=0)
        yearly = []
        for year in range(horizon):
            row = {"year": year, "age": self.current_age + year}
            row.update({f"p{p}": float(yearly_points[j, year]) for j, p in enumerate(PERCENTILES)})
            yearly.append(row)

        duration_ms = int(round((time.perf_counter() - start) * 1000))
        result = AggregateResult(
            probability_of_success=round(successful / n * 100.0, 2),
            iterations=n,
            successful=successful,
            failed=n - successful,
            duration_ms=duration_ms,
            percentiles=summary,
            yearly_percentiles=yearly,
        )
        logger.debug(
            "%s simulation: %d paths at spending %.0f, PoS %.2f%% in %d ms",
            self.return_model.name,
            n,
            self.desired_spending,
            result.probability_of_success,
            duration_ms,
        )
        return result


__all__ = [
    "YearRecord",
    "Trajectory",
    "AggregateResult",
    "MonteCarloSimulation",
    "percentile",
    "percentile_summary",
    "PERCENTILES",
]
