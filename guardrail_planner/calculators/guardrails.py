"""Guardrail decisions on top of the Monte Carlo engine.

The engine runs one simulation at the desired spending and compares the
probability of success (PoS) with the guardrail band:

* PoS above ``upper``  -> ``above_upper``, spending can increase;
* PoS below ``lower``  -> ``below_lower``, spending should decrease;
* otherwise           -> ``within_range``, keep spending as is.

Outside the band a bisection on spending looks for the level whose PoS is
closest to ``target``.  Each step re-samples a fresh, smaller simulation so
the objective is noisy; the closest midpoint seen is what gets returned, not
the last bracket.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .cash_flow import CashFlowModel
from .config import DEFAULT_CONFIG, PlannerConfig
from .errors import ConfigurationError
from .monte_carlo import AggregateResult, MonteCarloSimulation
from .returns import make_return_model
from .scenario import ScenarioInput

logger = logging.getLogger(__name__)

STATUSES = ("above_upper", "within_range", "below_lower")
ADJUSTMENTS = {"above_upper": "increase", "within_range": "maintain", "below_lower": "decrease"}


@dataclass(frozen=True)
class GuardrailThresholds:
    lower: float
    upper: float
    target: float

    @classmethod
    def from_scenario(cls, scenario: ScenarioInput, config: PlannerConfig = DEFAULT_CONFIG) -> "GuardrailThresholds":
        return cls.validated(scenario.lower_guardrail, scenario.upper_guardrail, scenario.target_guardrail, config)

    @classmethod
    def validated(cls, lower, upper, target, config: PlannerConfig = DEFAULT_CONFIG) -> "GuardrailThresholds":
        g = config.guardrails
        if lower >= upper:
            raise ConfigurationError("Lower guardrail must be less than upper guardrail")
        if not lower < target < upper:
            raise ConfigurationError("Target PoS must lie strictly between the lower and upper guardrails")
        if lower < g.min_lower:
            raise ConfigurationError(f"Lower guardrail cannot be less than {g.min_lower:g}%")
        if upper > g.max_upper:
            raise ConfigurationError(f"Upper guardrail cannot exceed {g.max_upper:g}%")
        return cls(float(lower), float(upper), float(target))

    def classify(self, probability_of_success: float) -> str:
        if probability_of_success > self.upper:
            return "above_upper"
        if probability_of_success < self.lower:
            return "below_lower"
        return "within_range"


@dataclass
class SearchStep:
    spending: float
    probability_of_success: float


@dataclass
class TargetSearch:
    """Outcome of the target-seeking bisection."""

    direction: str
    target: float
    initial_low: float
    initial_high: float
    recommended_spending: float
    best_probability: float
    converged: bool
    steps: List[SearchStep] = field(default_factory=list)

    @property
    def iterations(self) -> int:
        return len(self.steps)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["iterations"] = self.iterations
        return data


@dataclass
class GuardrailDecision:
    status: str
    adjustment: str
    desired_spending: float
    recommended_spending: float
    probability_of_success: float

    @property
    def change_amount(self) -> float:
        return self.recommended_spending - self.desired_spending

    @property
    def change_percentage(self) -> float:
        return percentage_change(self.desired_spending, self.recommended_spending)


@dataclass
class GuardrailReport:
    scenario: ScenarioInput
    thresholds: GuardrailThresholds
    decision: GuardrailDecision
    result: AggregateResult
    expected_return: float
    volatility: float
    cashflow_timeline: List[Dict[str, float]]
    model: str = "standard"
    search: Optional[TargetSearch] = None
    duration_ms: int = 0

    @property
    def interpretation(self) -> str:
        return interpret(self.decision, self.thresholds)

    def to_dict(self) -> Dict[str, Any]:
        s, d = self.scenario, self.decision
        year0 = self.cashflow_timeline[0] if self.cashflow_timeline else {}
        year0_income = year0.get("income", 0.0)
        year0_expenses = year0.get("expenses", 0.0)
        year0_net = year0.get("net_withdrawal", s.desired_spending + year0_expenses - year0_income)
        return {
            "probability_of_success": d.probability_of_success,
            "guardrail_status": d.status,
            "spending_adjustment_needed": d.adjustment,
            "desired_spending": d.desired_spending,
            "recommended_spending": d.recommended_spending,
            "spending_change_amount": d.change_amount,
            "spending_change_percentage": d.change_percentage,
            "current_withdrawal_rate": round(s.current_withdrawal_rate, 2),
            "interpretation": self.interpretation,
            "guardrail_thresholds": asdict(self.thresholds),
            "monte_carlo": self.result.to_dict(),
            "portfolio_metrics": {
                "current_value": s.current_portfolio_value,
                "expected_return": round(self.expected_return * 100, 2),
                "portfolio_volatility": round(self.volatility * 100, 2),
            },
            "income_impact": {
                "year0_income": year0_income,
                "year0_expenses": year0_expenses,
                "year0_net_withdrawal": year0_net,
            },
            "cashflow_timeline": self.cashflow_timeline,
            "target_search": self.search.to_dict() if self.search else None,
            "model": self.model,
            "calculation_duration_ms": self.duration_ms,
        }


def percentage_change(original: float, new: float) -> float:
    if original == 0:
        return 0.0
    return round((new - original) / original * 100.0, 2)


def round_to(value: float, step: float) -> float:
    """Round half up to the nearest multiple of ``step``."""
    return math.floor(value / step + 0.5) * step


def _money(amount: float) -> str:
    return f"${amount:,.0f}"


def interpret(decision: GuardrailDecision, thresholds: GuardrailThresholds) -> str:
    pos = f"{decision.probability_of_success:g}%"
    change = _money(abs(decision.change_amount))
    recommended = _money(decision.recommended_spending)
    if decision.status == "above_upper":
        return (
            f"Your probability of success ({pos}) is above the upper guardrail ({thresholds.upper:g}%). "
            "Your portfolio is performing significantly better than needed. "
            f"To return to your target confidence level of {thresholds.target:g}%, you could increase "
            f"your annual spending by {change} to {recommended}."
        )
    if decision.status == "below_lower":
        return (
            f"Your probability of success ({pos}) is below the lower guardrail ({thresholds.lower:g}%). "
            "Your portfolio is at risk of depletion. "
            f"To restore your target confidence level of {thresholds.target:g}%, you should decrease "
            f"your annual spending by {change} to {recommended}."
        )
    return (
        f"Your probability of success ({pos}) is within the safe zone "
        f"({thresholds.lower:g}% - {thresholds.upper:g}%). "
        f"Your desired spending of {_money(decision.desired_spending)} is sustainable. "
        "No adjustment is needed at this time."
    )


class GuardrailEngine:
    """Runs a scenario, classifies it, and recommends a spending level.

    Parameters
    ----------
    config : PlannerConfig
        Return assumptions, limits and search settings.
    thresholds : GuardrailThresholds, optional
        Overrides the thresholds carried by each scenario.
    seed : int, optional
        Seeds the single random generator shared by every simulation this
        engine runs, so a whole calculation is reproducible.
    """

    def __init__(
        self,
        config: PlannerConfig = DEFAULT_CONFIG,
        thresholds: Optional[GuardrailThresholds] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.thresholds = thresholds
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def thresholds_for(self, scenario: ScenarioInput) -> GuardrailThresholds:
        if self.thresholds is not None:
            return self.thresholds
        return GuardrailThresholds.from_scenario(scenario, self.config)

    def _simulation(
        self,
        scenario: ScenarioInput,
        cash_flow: CashFlowModel,
        spending: float,
        iterations: int,
        enhanced: bool,
    ) -> MonteCarloSimulation:
        model = make_return_model(enhanced, scenario.autocorrelation, config=self.config, rng=self.rng)
        return MonteCarloSimulation.from_scenario(
            scenario,
            self.config,
            spending=spending,
            iterations=iterations,
            cash_flow=cash_flow,
            return_model=model,
        )

    def search_bracket(self, scenario: ScenarioInput, direction: str):
        desired = scenario.desired_spending
        if direction == "decrease":
            return 0.0, desired
        if direction == "increase":
            return desired, max(desired * 2.0, scenario.current_portfolio_value / 5.0)
        raise ValueError(f"direction must be 'increase' or 'decrease', got {direction!r}")

    def find_spending_for_target(
        self,
        scenario: ScenarioInput,
        direction: str,
        cash_flow: Optional[CashFlowModel] = None,
        enhanced: bool = False,
    ) -> TargetSearch:
        """Bisect spending toward the target PoS.

        PoS below target means spending is too high, so ``high`` moves down;
        otherwise ``low`` moves up.  Stops early once a midpoint lands within
        the tolerance.
        """
        settings = self.config.search
        target = self.thresholds_for(scenario).target
        cash_flow = cash_flow or CashFlowModel.from_scenario(scenario, self.config)
        low, high = self.search_bracket(scenario, direction)
        search = TargetSearch(
            direction=direction,
            target=target,
            initial_low=low,
            initial_high=high,
            recommended_spending=scenario.desired_spending,
            best_probability=float("nan"),
            converged=False,
        )

        best_spending = scenario.desired_spending
        closest = 100.0
        for _ in range(settings.max_iterations):
            mid = max((low + high) / 2.0, 0.0)
            pos = self._simulation(scenario, cash_flow, mid, settings.iterations, enhanced).run().probability_of_success
            search.steps.append(SearchStep(mid, pos))
            logger.debug("search step %d: spending %.2f -> PoS %.2f%%", len(search.steps), mid, pos)

            diff = abs(pos - target)
            if diff < closest:
                closest = diff
                best_spending = mid
                search.best_probability = pos
            if diff <= settings.tolerance:
                search.converged = True
                break
            if pos < target:
                high = mid
            else:
                low = mid

        search.recommended_spending = round_to(best_spending, settings.rounding)
        if search.converged:
            logger.info("target search converged after %d steps at %.0f", search.iterations, search.recommended_spending)
        else:
            logger.info(
                "target search did not reach %.1f%% within %d steps; best %.2f%% at %.0f",
                target,
                search.iterations,
                search.best_probability,
                search.recommended_spending,
            )
        return search

    def calculate(self, scenario: ScenarioInput, enhanced: bool = False) -> GuardrailReport:
        start = time.perf_counter()
        thresholds = self.thresholds_for(scenario)
        cash_flow = CashFlowModel.from_scenario(scenario, self.config)

        simulation = self._simulation(
            scenario, cash_flow, scenario.desired_spending, scenario.monte_carlo_iterations, enhanced
        )
        result = simulation.run()
        status = thresholds.classify(result.probability_of_success)
        adjustment = ADJUSTMENTS[status]
        logger.info(
            "%s PoS %.2f%% -> %s (band %g-%g%%)",
            simulation.return_model.name,
            result.probability_of_success,
            status,
            thresholds.lower,
            thresholds.upper,
        )

        search = None
        recommended = scenario.desired_spending
        if adjustment != "maintain":
            search = self.find_spending_for_target(scenario, adjustment, cash_flow, enhanced)
            recommended = search.recommended_spending

        decision = GuardrailDecision(
            status=status,
            adjustment=adjustment,
            desired_spending=scenario.desired_spending,
            recommended_spending=recommended,
            probability_of_success=result.probability_of_success,
        )
        timeline = cash_flow.project(
            scenario.desired_spending,
            scenario.current_age,
            scenario.retirement_age,
            scenario.planning_horizon_years,
        )
        return GuardrailReport(
            scenario=scenario,
            thresholds=thresholds,
            decision=decision,
            result=result,
            expected_return=simulation.expected_return(),
            volatility=simulation.volatility(),
            cashflow_timeline=timeline,
            model=simulation.return_model.name,
            search=search,
            duration_ms=int(round((time.perf_counter() - start) * 1000)),
        )

    def calculate_enhanced(self, scenario: ScenarioInput) -> GuardrailReport:
        return self.calculate(scenario, enhanced=True)

    def decide(self, scenario: ScenarioInput, enhanced: bool = False) -> GuardrailDecision:
        return self.calculate(scenario, enhanced).decision


__all__ = [
    "STATUSES",
    "ADJUSTMENTS",
    "GuardrailThresholds",
    "SearchStep",
    "TargetSearch",
    "GuardrailDecision",
    "GuardrailReport",
    "GuardrailEngine",
    "interpret",
    "percentage_change",
    "round_to",
]
