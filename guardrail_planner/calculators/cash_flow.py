"""Yearly income, extra expenses and target spending for a scenario."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_CONFIG, INCOME_ANCHORS, PlannerConfig
from .errors import ConfigurationError
from .scenario import ExpenseItem, IncomeSource, ScenarioInput
from .spending_profile import SpendingProfile, make_spending_profile


class CashFlowModel:
    """Combines a spending profile with income sources and future expenses.

    ``income_inflation_anchor`` picks what inflation-adjusted income is
    indexed from: ``"source_start"`` compounds for the years the source has
    been paying (``age - start_age``), ``"scenario_start"`` compounds for the
    years since the scenario began (``year``), as expenses always do.
    """

    def __init__(
        self,
        spending_profile: SpendingProfile,
        income_sources: Sequence[IncomeSource] = (),
        expenses: Sequence[ExpenseItem] = (),
        inflation_rate: float = 0.025,
        income_inflation_anchor: str = "source_start",
    ):
        if income_inflation_anchor not in INCOME_ANCHORS:
            raise ConfigurationError(f"income_inflation_anchor must be one of {INCOME_ANCHORS}")
        self.spending_profile = spending_profile
        self.income_sources = tuple(income_sources)
        self.expenses = tuple(expenses)
        self.inflation_rate = inflation_rate
        self.income_inflation_anchor = income_inflation_anchor

    @classmethod
    def from_scenario(cls, scenario: ScenarioInput, config: PlannerConfig = DEFAULT_CONFIG) -> "CashFlowModel":
        profile = make_spending_profile(scenario.spending_profile_type, scenario.custom_spending_multipliers)
        return cls(
            profile,
            scenario.income_sources,
            scenario.future_expenses,
            inflation_rate=scenario.inflation_rate,
            income_inflation_anchor=config.income_inflation_anchor,
        )

    def _inflate(self, amount: float, years: int) -> float:
        return amount * (1.0 + self.inflation_rate) ** years

    def income(self, age: int, year: int) -> float:
        total = 0.0
        for source in self.income_sources:
            if not source.is_active(age):
                continue
            amount = source.annual_amount
            if source.inflation_adjusted:
                years = age - source.start_age if self.income_inflation_anchor == "source_start" else year
                amount = self._inflate(amount, years)
            total += amount
        return total

    def expenses_for(self, age: int, year: int) -> float:
        total = 0.0
        for item in self.expenses:
            if not item.is_active(age):
                continue
            amount = item.annual_amount
            if item.inflation_adjusted:
                amount = self._inflate(amount, year)
            total += amount
        return total

    def spending(self, desired_spending: float, age: int, retirement_age: int, year: int) -> float:
        return self.spending_profile.calculate_year_spending(
            desired_spending, age, retirement_age, self.inflation_rate, year
        )

    def net_withdrawal(self, desired_spending: float, age: int, retirement_age: int, year: int) -> float:
        return (
            self.spending(desired_spending, age, retirement_age, year)
            + self.expenses_for(age, year)
            - self.income(age, year)
        )

    def project(
        self,
        desired_spending: float,
        current_age: int,
        retirement_age: int,
        horizon: int,
        limit: Optional[int] = None,
    ) -> List[Dict[str, float]]:
        """Deterministic cash-flow timeline, one row per year."""
        years = horizon if limit is None else min(horizon, limit)
        rows = []
        for year in range(years):
            age = current_age + year
            spending = self.spending(desired_spending, age, retirement_age, year)
            income = self.income(age, year)
            expenses = self.expenses_for(age, year)
            rows.append(
                {
                    "year": year,
                    "age": age,
                    "spending": round(spending, 2),
                    "income": round(income, 2),
                    "expenses": round(expenses, 2),
                    "net_withdrawal": round(spending + expenses - income, 2),
                    "spending_multiplier": round(self.spending_profile.multiplier(age, retirement_age), 4),
                }
            )
        return rows


__all__ = ["CashFlowModel"]
