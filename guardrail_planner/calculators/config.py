"""Planner configuration.

Return assumptions, correlation coefficients, Monte Carlo limits, guardrail
bounds and search settings live in one immutable :class:`PlannerConfig`
object that is handed to each calculator.  Nothing here is module-level
mutable state, so two calculations with different assumptions never see
each other's settings.

Example
-------

>>> cfg = PlannerConfig.from_dict({"returns": {"stocks": {"mean": 0.08}}})
>>> cfg.returns.stocks.mean, cfg.returns.stocks.std_dev
(0.08, 0.2)

Overrides can also be read from a JSON file with :func:`load_config`.  The
file uses the same nested layout as :meth:`PlannerConfig.to_dict`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigurationError

INCOME_ANCHORS = ("source_start", "scenario_start")
SPENDING_PROFILES = ("flat", "smile", "custom")


@dataclass(frozen=True)
class AssetClassAssumption:
    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        if self.std_dev < 0:
            raise ConfigurationError(f"std_dev cannot be negative, got {self.std_dev}")
        if self.mean <= -1.0:
            raise ConfigurationError(f"mean return must be greater than -100%, got {self.mean}")


@dataclass(frozen=True)
class ReturnAssumptions:
    stocks: AssetClassAssumption = AssetClassAssumption(mean=0.10, std_dev=0.20)
    bonds: AssetClassAssumption = AssetClassAssumption(mean=0.05, std_dev=0.06)
    cash: AssetClassAssumption = AssetClassAssumption(mean=0.03, std_dev=0.01)


@dataclass(frozen=True)
class Correlations:
    stocks_bonds: float = 0.1
    stocks_cash: float = 0.0
    bonds_cash: float = 0.2

    def __post_init__(self) -> None:
        for f in fields(self):
            rho = getattr(self, f.name)
            if not -1.0 <= rho <= 1.0:
                raise ConfigurationError(f"correlation {f.name} must be in [-1, 1], got {rho}")


@dataclass(frozen=True)
class MonteCarloLimits:
    default_iterations: int = 10_000
    min_iterations: int = 100
    max_iterations: int = 100_000

    def __post_init__(self) -> None:
        if not 1 <= self.min_iterations <= self.max_iterations:
            raise ConfigurationError("min_iterations must be >= 1 and <= max_iterations")
        if not self.min_iterations <= self.default_iterations <= self.max_iterations:
            raise ConfigurationError("default_iterations must lie within the iteration limits")


@dataclass(frozen=True)
class GuardrailDefaults:
    default_lower: float = 80.0
    default_upper: float = 95.0
    default_target: float = 90.0
    min_lower: float = 1.0
    max_upper: float = 99.0

    def __post_init__(self) -> None:
        if not self.min_lower <= self.default_lower < self.default_target < self.default_upper <= self.max_upper:
            raise ConfigurationError("default guardrails must satisfy min_lower <= lower < target < upper <= max_upper")


@dataclass(frozen=True)
class EnhancedDefaults:
    # annual equity autocorrelation estimates run -0.05 to -0.20
    default_autocorrelation: float = -0.10
    min_autocorrelation: float = -0.40
    max_autocorrelation: float = 0.0

    def __post_init__(self) -> None:
        if not self.min_autocorrelation <= self.default_autocorrelation <= self.max_autocorrelation:
            raise ConfigurationError("default_autocorrelation must lie within its bounds")
        if self.min_autocorrelation <= -1.0 or self.max_autocorrelation >= 1.0:
            raise ConfigurationError("autocorrelation bounds must lie strictly inside (-1, 1)")


@dataclass(frozen=True)
class SearchSettings:
    tolerance: float = 0.5      # percentage points of PoS
    max_iterations: int = 12
    iterations: int = 1_000     # Monte Carlo paths per search step
    rounding: float = 10.0      # dollars

    def __post_init__(self) -> None:
        if self.tolerance < 0 or self.max_iterations < 1 or self.iterations < 1 or self.rounding <= 0:
            raise ConfigurationError("search settings must be positive")


@dataclass(frozen=True)
class Defaults:
    inflation_rate: float = 0.025
    annual_fee: float = 0.0075
    planning_horizon: int = 30
    spending_profile: str = "smile"

    def __post_init__(self) -> None:
        if self.spending_profile not in SPENDING_PROFILES:
            raise ConfigurationError(f"spending_profile must be one of {SPENDING_PROFILES}")


@dataclass(frozen=True)
class PlannerConfig:
    returns: ReturnAssumptions = field(default_factory=ReturnAssumptions)
    correlations: Correlations = field(default_factory=Correlations)
    monte_carlo: MonteCarloLimits = field(default_factory=MonteCarloLimits)
    guardrails: GuardrailDefaults = field(default_factory=GuardrailDefaults)
    enhanced: EnhancedDefaults = field(default_factory=EnhancedDefaults)
    search: SearchSettings = field(default_factory=SearchSettings)
    defaults: Defaults = field(default_factory=Defaults)
    # Years an inflation-adjusted income source has been paid ("source_start")
    # or years since the scenario began ("scenario_start").
    income_inflation_anchor: str = "source_start"

    def __post_init__(self) -> None:
        if self.income_inflation_anchor not in INCOME_ANCHORS:
            raise ConfigurationError(
                f"income_inflation_anchor must be one of {INCOME_ANCHORS}, got {self.income_inflation_anchor!r}"
            )
        limits = self.monte_carlo
        if not limits.min_iterations <= self.search.iterations <= limits.max_iterations:
            raise ConfigurationError(
                f"search.iterations must be between {limits.min_iterations} and "
                f"{limits.max_iterations}, got {self.search.iterations}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> "PlannerConfig":
        """Build a config by overlaying ``data`` on the defaults."""
        return _overlay(cls(), data or {}, "config")

    def with_overrides(self, data: Mapping[str, Any]) -> "PlannerConfig":
        return _overlay(self, data, "config")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _overlay(obj, data: Mapping[str, Any], path: str):
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{path} must be an object")
    known = {f.name: f for f in fields(obj)}
    changes = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigurationError(f"Unknown configuration key: {path}.{key}")
        current = getattr(obj, key)
        if is_dataclass(current):
            changes[key] = _overlay(current, value, f"{path}.{key}")
        else:
            try:
                changes[key] = type(current)(value)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"Invalid value for {path}.{key}: {value!r}") from exc
    return replace(obj, **changes)


def load_config(path: Union[str, Path, None] = None) -> PlannerConfig:
    """Load configuration overrides from a JSON file.

    A missing ``path`` yields the defaults.
    """
    if path is None:
        return PlannerConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    return PlannerConfig.from_dict(data)


DEFAULT_CONFIG = PlannerConfig()

__all__ = [
    "AssetClassAssumption",
    "ReturnAssumptions",
    "Correlations",
    "MonteCarloLimits",
    "GuardrailDefaults",
    "EnhancedDefaults",
    "SearchSettings",
    "Defaults",
    "PlannerConfig",
    "DEFAULT_CONFIG",
    "INCOME_ANCHORS",
    "SPENDING_PROFILES",
    "load_config",
]
