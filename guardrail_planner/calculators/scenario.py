"""Scenario input records and validation.

A scenario is the immutable input to one guardrail calculation.  Front ends
(the Streamlit form, the CLI, saved JSON files) all produce a plain dict in the
shape below and hand it to :func:`parse_scenario`, which rejects bad input
before any simulation runs::

    {
        "current_age": 65,               # or "spouse1_age"
        "spouse2_age": 63,               # optional, informational
        "retirement_age": 65,
        "planning_horizon_years": 30,
        "current_portfolio_value": 1_000_000,
        "desired_spending": 45_000,
        "stock_allocation": 60, "bond_allocation": 35, "cash_allocation": 5,
        "annual_fee_percentage": 0.0075,
        "inflation_rate": 0.025,
        "spending_profile_type": "smile",   # flat | smile | custom
        "custom_spending_multipliers": {"70": 1.0, "85": 0.8},
        "lower_guardrail": 80, "upper_guardrail": 95, "target_guardrail": 90,
        "monte_carlo_iterations": 10_000,
        "enhanced_mc_enabled": false,
        "autocorrelation": -0.10,
        "income_sources": [...],
        "future_expenses": [...],
    }
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import DEFAULT_CONFIG, SPENDING_PROFILES, PlannerConfig
from .errors import ScenarioValidationError

RECIPIENTS = ("household", "spouse1", "spouse2")
EXPENSE_TYPES = ("one_time", "duration")

_REQUIRED = (
    "retirement_age",
    "planning_horizon_years",
    "current_portfolio_value",
    "desired_spending",
    "stock_allocation",
    "bond_allocation",
    "cash_allocation",
)


@dataclass(frozen=True)
class IncomeSource:
    name: str
    annual_amount: float
    start_age: int
    end_age: Optional[int] = None
    inflation_adjusted: bool = True
    recipient: str = "household"  # informational only

    def is_active(self, age: int) -> bool:
        if age < self.start_age:
            return False
        return self.end_age is None or age <= self.end_age


@dataclass(frozen=True)
class ExpenseItem:
    name: str
    annual_amount: float
    start_age: int
    type: str = "one_time"
    duration_years: Optional[int] = None
    inflation_adjusted: bool = True

    @property
    def one_time(self) -> bool:
        return self.type == "one_time"

    @property
    def end_age(self) -> int:
        if self.one_time:
            return self.start_age
        return self.start_age + int(self.duration_years) - 1

    def is_active(self, age: int) -> bool:
        if self.one_time:
            return age == self.start_age
        return self.start_age <= age <= self.end_age


@dataclass(frozen=True)
class ScenarioInput:
    current_age: int
    retirement_age: int
    planning_horizon_years: int
    current_portfolio_value: float
    desired_spending: float
    stock_allocation: float
    bond_allocation: float
    cash_allocation: float
    annual_fee_percentage: float = 0.0075
    inflation_rate: float = 0.025
    spending_profile_type: str = "smile"
    custom_spending_multipliers: Tuple[Tuple[int, float], ...] = ()
    lower_guardrail: float = 80.0
    upper_guardrail: float = 95.0
    target_guardrail: float = 90.0
    monte_carlo_iterations: int = 10_000
    enhanced_mc_enabled: bool = False
    autocorrelation: Optional[float] = None
    spouse2_age: Optional[int] = None
    income_sources: Tuple[IncomeSource, ...] = field(default_factory=tuple)
    future_expenses: Tuple[ExpenseItem, ...] = field(default_factory=tuple)

    @property
    def allocation(self) -> Tuple[float, float, float]:
        return self.stock_allocation, self.bond_allocation, self.cash_allocation

    @property
    def current_withdrawal_rate(self) -> float:
        return self.desired_spending / self.current_portfolio_value * 100.0

    def to_dict(self) -> Dict[str, Any]:
        """Plain-JSON form, accepted back by :func:`parse_scenario`."""
        data = asdict(self)
        data["custom_spending_multipliers"] = {str(a): m for a, m in self.custom_spending_multipliers}
        data["income_sources"] = [asdict(s) for s in self.income_sources]
        data["future_expenses"] = [asdict(e) for e in self.future_expenses]
        return data


def _present(data: Mapping[str, Any], key: str) -> bool:
    return data.get(key) is not None and data.get(key) != ""


def _number(data: Mapping[str, Any], key: str, default=None, field_name: Optional[str] = None) -> float:
    name = field_name or key
    value = data.get(key, default)
    if value is None or value == "":
        if default is None:
            raise ScenarioValidationError(f"Missing required field: {name}", name)
        value = default
    if isinstance(value, bool):
        raise ScenarioValidationError(f"{name} must be a number", name)
    try:
        num = float(value)
    except (TypeError, ValueError) as exc:
        raise ScenarioValidationError(f"{name} must be a number, got {value!r}", name) from exc
    if not math.isfinite(num):
        raise ScenarioValidationError(f"{name} must be a finite number", name)
    return num


def _integer(data: Mapping[str, Any], key: str, default=None, field_name: Optional[str] = None) -> int:
    name = field_name or key
    num = _number(data, key, default, name)
    if num != int(num):
        raise ScenarioValidationError(f"{name} must be a whole number, got {num}", name)
    return int(num)


def _flag(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _parse_income(index: int, raw: Mapping[str, Any]) -> IncomeSource:
    prefix = f"income_sources[{index}]"
    if not isinstance(raw, Mapping):
        raise ScenarioValidationError(f"{prefix} must be an object", prefix)
    name = str(raw.get("name") or "").strip()
    if not name:
        raise ScenarioValidationError(f"{prefix}.name is required", f"{prefix}.name")
    amount = _number(raw, "annual_amount", field_name=f"{prefix}.annual_amount")
    if amount < 0:
        raise ScenarioValidationError(f"{prefix}.annual_amount cannot be negative", f"{prefix}.annual_amount")
    start = _integer(raw, "start_age", field_name=f"{prefix}.start_age")
    if start < 0:
        raise ScenarioValidationError(f"{prefix}.start_age cannot be negative", f"{prefix}.start_age")
    end = None
    if _present(raw, "end_age"):
        end = _integer(raw, "end_age", field_name=f"{prefix}.end_age")
        if end < start:
            raise ScenarioValidationError(f"{prefix}.end_age must be >= start_age", f"{prefix}.end_age")
    recipient = str(raw.get("recipient") or "household").strip()
    if recipient not in RECIPIENTS:
        raise ScenarioValidationError(
            f"{prefix}.recipient must be one of: {', '.join(RECIPIENTS)}", f"{prefix}.recipient"
        )
    return IncomeSource(
        name=name,
        annual_amount=amount,
        start_age=start,
        end_age=end,
        inflation_adjusted=_flag(raw.get("inflation_adjusted")),
        recipient=recipient,
    )


def _parse_expense(index: int, raw: Mapping[str, Any]) -> ExpenseItem:
    prefix = f"future_expenses[{index}]"
    if not isinstance(raw, Mapping):
        raise ScenarioValidationError(f"{prefix} must be an object", prefix)
    name = str(raw.get("name") or "").strip()
    label = name or "(unnamed)"
    amount = _number(raw, "annual_amount", field_name=f"{prefix}.annual_amount")
    if amount < 0:
        raise ScenarioValidationError(f"{prefix}.annual_amount cannot be negative", f"{prefix}.annual_amount")
    start = _integer(raw, "start_age", field_name=f"{prefix}.start_age")

    kind = raw.get("type")
    if kind is None:
        kind = "one_time" if _flag(raw.get("one_time"), default=not _present(raw, "duration_years")) else "duration"
    if kind not in EXPENSE_TYPES:
        raise ScenarioValidationError(f"{prefix}.type must be one of: {', '.join(EXPENSE_TYPES)}", f"{prefix}.type")

    duration = None
    if kind == "duration":
        bad = ScenarioValidationError(
            f'Duration-based expense "{label}" must have a positive duration_years',
            f"{prefix}.duration_years",
        )
        if not _present(raw, "duration_years"):
            raise bad
        try:
            duration = _integer(raw, "duration_years", field_name=f"{prefix}.duration_years")
        except ScenarioValidationError:
            raise bad from None
        if duration <= 0:
            raise bad
    return ExpenseItem(
        name=name,
        annual_amount=amount,
        start_age=start,
        type=kind,
        duration_years=duration,
        inflation_adjusted=_flag(raw.get("inflation_adjusted")),
    )


def _parse_multipliers(raw: Any) -> Tuple[Tuple[int, float], ...]:
    if raw in (None, ""):
        return ()
    if isinstance(raw, Mapping):
        items = raw.items()
    else:
        try:
            items = [(p["age"], p["multiplier"]) for p in raw]
        except (TypeError, KeyError) as exc:
            raise ScenarioValidationError(
                "custom_spending_multipliers must map age to multiplier", "custom_spending_multipliers"
            ) from exc
    points = {}
    for age, mult in items:
        try:
            age_i, mult_f = int(float(age)), float(mult)
        except (TypeError, ValueError) as exc:
            raise ScenarioValidationError(
                f"Invalid custom spending point {age!r}: {mult!r}", "custom_spending_multipliers"
            ) from exc
        if mult_f < 0:
            raise ScenarioValidationError("Spending multipliers cannot be negative", "custom_spending_multipliers")
        points[age_i] = mult_f
    return tuple(sorted(points.items()))


def parse_scenario(data: Mapping[str, Any], config: PlannerConfig = DEFAULT_CONFIG) -> ScenarioInput:
    """Validate a raw scenario mapping and return a :class:`ScenarioInput`.

    Optional fields fall back to ``config`` defaults.  The first violation
    found raises :class:`ScenarioValidationError` naming the offending field.
    """
    if not isinstance(data, Mapping):
        raise ScenarioValidationError("Input must be a JSON object")

    for key in _REQUIRED:
        if not _present(data, key):
            raise ScenarioValidationError(f"Missing required field: {key}", key)
    if _present(data, "spouse1_age"):
        current_age = _integer(data, "spouse1_age")
        age_field = "spouse1_age"
    elif _present(data, "current_age"):
        current_age = _integer(data, "current_age")
        age_field = "current_age"
    else:
        raise ScenarioValidationError("Missing required field: current_age or spouse1_age", "current_age")
    if not 18 <= current_age <= 120:
        raise ScenarioValidationError(f"{age_field} must be between 18 and 120", age_field)

    spouse2_age = None
    if _present(data, "spouse2_age"):
        spouse2_age = _integer(data, "spouse2_age")
        if not 18 <= spouse2_age <= 120:
            raise ScenarioValidationError("spouse2_age must be between 18 and 120", "spouse2_age")

    retirement_age = _integer(data, "retirement_age")
    if not 18 <= retirement_age <= 120:
        raise ScenarioValidationError("retirement_age must be between 18 and 120", "retirement_age")
    if current_age < retirement_age:
        raise ScenarioValidationError(
            f"Current age ({age_field}) must be >= retirement_age", age_field
        )

    horizon = _integer(data, "planning_horizon_years")
    if not 1 <= horizon <= 60:
        raise ScenarioValidationError("planning_horizon_years must be between 1 and 60", "planning_horizon_years")

    portfolio = _number(data, "current_portfolio_value")
    if portfolio <= 0:
        raise ScenarioValidationError("current_portfolio_value must be positive", "current_portfolio_value")
    spending = _number(data, "desired_spending")
    if spending < 0:
        raise ScenarioValidationError("desired_spending cannot be negative", "desired_spending")

    stock = _number(data, "stock_allocation")
    bond = _number(data, "bond_allocation")
    cash = _number(data, "cash_allocation")
    for key, value in (("stock_allocation", stock), ("bond_allocation", bond), ("cash_allocation", cash)):
        if not 0 <= value <= 100:
            raise ScenarioValidationError(f"{key} must be between 0 and 100", key)
    total = stock + bond + cash
    if abs(total - 100.0) > 0.01:
        raise ScenarioValidationError(f"Asset allocations must sum to 100%, got {total:.1f}%", "allocations")

    defaults = config.defaults
    fee = _number(data, "annual_fee_percentage", defaults.annual_fee)
    if not 0 <= fee < 1:
        raise ScenarioValidationError("annual_fee_percentage must be a fraction in [0, 1)", "annual_fee_percentage")
    inflation = _number(data, "inflation_rate", defaults.inflation_rate)
    if not -0.10 <= inflation <= 0.20:
        raise ScenarioValidationError("inflation_rate must be between -10% and 20%", "inflation_rate")

    profile = str(data.get("spending_profile_type") or defaults.spending_profile).strip()
    if profile not in SPENDING_PROFILES:
        raise ScenarioValidationError(
            f"spending_profile_type must be one of: {', '.join(SPENDING_PROFILES)}", "spending_profile_type"
        )
    multipliers = _parse_multipliers(data.get("custom_spending_multipliers"))

    g = config.guardrails
    lower = _number(data, "lower_guardrail", g.default_lower)
    upper = _number(data, "upper_guardrail", g.default_upper)
    target = _number(data, "target_guardrail", data.get("target_pos", g.default_target), "target_guardrail")
    if lower >= upper:
        raise ScenarioValidationError("lower_guardrail must be less than upper_guardrail", "lower_guardrail")
    if not lower < target < upper:
        raise ScenarioValidationError(
            "target_guardrail must be strictly between lower_guardrail and upper_guardrail", "target_guardrail"
        )
    if lower < g.min_lower:
        raise ScenarioValidationError(f"lower_guardrail cannot be less than {g.min_lower:g}%", "lower_guardrail")
    if upper > g.max_upper:
        raise ScenarioValidationError(f"upper_guardrail cannot exceed {g.max_upper:g}%", "upper_guardrail")

    mc = config.monte_carlo
    iterations = _integer(data, "monte_carlo_iterations", mc.default_iterations)
    if not mc.min_iterations <= iterations <= mc.max_iterations:
        raise ScenarioValidationError(
            f"monte_carlo_iterations must be between {mc.min_iterations} and {mc.max_iterations}",
            "monte_carlo_iterations",
        )

    phi = None
    if _present(data, "autocorrelation"):
        phi = _number(data, "autocorrelation")
        e = config.enhanced
        if not e.min_autocorrelation <= phi <= e.max_autocorrelation:
            raise ScenarioValidationError(
                f"autocorrelation must be between {e.min_autocorrelation} and {e.max_autocorrelation}",
                "autocorrelation",
            )

    incomes = data.get("income_sources") or []
    expenses = data.get("future_expenses") or []
    if not isinstance(incomes, (list, tuple)):
        raise ScenarioValidationError("income_sources must be a list", "income_sources")
    if not isinstance(expenses, (list, tuple)):
        raise ScenarioValidationError("future_expenses must be a list", "future_expenses")

    return ScenarioInput(
        current_age=current_age,
        retirement_age=retirement_age,
        planning_horizon_years=horizon,
        current_portfolio_value=portfolio,
        desired_spending=spending,
        stock_allocation=stock,
        bond_allocation=bond,
        cash_allocation=cash,
        annual_fee_percentage=fee,
        inflation_rate=inflation,
        spending_profile_type=profile,
        custom_spending_multipliers=multipliers,
        lower_guardrail=lower,
        upper_guardrail=upper,
        target_guardrail=target,
        monte_carlo_iterations=iterations,
        enhanced_mc_enabled=_flag(data.get("enhanced_mc_enabled"), default=False),
        autocorrelation=phi,
        spouse2_age=spouse2_age,
        income_sources=tuple(_parse_income(i, s) for i, s in enumerate(incomes)),
        future_expenses=tuple(_parse_expense(i, e) for i, e in enumerate(expenses)),
    )


__all__ = ["IncomeSource", "ExpenseItem", "ScenarioInput", "parse_scenario", "RECIPIENTS", "EXPENSE_TYPES"]
