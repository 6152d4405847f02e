"""Synthetic annual portfolio returns.

Two interchangeable models share one interface:

* :class:`NormalReturnModel` draws each year's portfolio return independently
  from ``Normal(expected_return, volatility)``.
* :class:`MeanRevertingReturnModel` draws log-returns from an AR(1) process
  calibrated to the geometric mean of the portfolio, so a bad year tends to be
  followed by a partial recovery (for ``phi < 0``).

Both sample one scalar per year for the blended portfolio.  Asset-class
correlation enters only through the closed-form :func:`portfolio_volatility`.

Allocation weights are given in percent (``60, 35, 5``).
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from .config import DEFAULT_CONFIG, Correlations, PlannerConfig, ReturnAssumptions
from .errors import ConfigurationError

# below this the model degenerates to a constant return
MIN_VOLATILITY = 1e-10


def _weights(stock: float, bond: float, cash: float) -> Tuple[float, float, float]:
    return stock / 100.0, bond / 100.0, cash / 100.0


def expected_return(stock: float, bond: float, cash: float, assumptions: ReturnAssumptions) -> float:
    """Weighted arithmetic mean return of the blended portfolio."""
    ws, wb, wc = _weights(stock, bond, cash)
    return ws * assumptions.stocks.mean + wb * assumptions.bonds.mean + wc * assumptions.cash.mean


def portfolio_volatility(
    stock: float,
    bond: float,
    cash: float,
    assumptions: ReturnAssumptions,
    correlations: Correlations,
) -> float:
    """Closed-form standard deviation of the blended portfolio.

    ``sigma_p^2 = sum (w_i sigma_i)^2 + 2 sum_{i<j} w_i w_j sigma_i sigma_j rho_ij``
    """
    ws, wb, wc = _weights(stock, bond, cash)
    s = ws * assumptions.stocks.std_dev
    b = wb * assumptions.bonds.std_dev
    c = wc * assumptions.cash.std_dev
    variance = (
        s * s
        + b * b
        + c * c
        + 2.0 * s * b * correlations.stocks_bonds
        + 2.0 * s * c * correlations.stocks_cash
        + 2.0 * b * c * correlations.bonds_cash
    )
    return math.sqrt(max(variance, 0.0))


def log_normal_parameters(mean: float, volatility: float) -> Tuple[float, float]:
    """Convert an arithmetic mean/volatility to ``(mu_log, sigma_log)``.

    Centred on the geometric mean: ``mu_log = ln(1 + mean) - sigma_log**2``,
    which sits below the arithmetic-preserving ``- sigma_log**2 / 2``.
    """
    sigma_log = math.sqrt(math.log(1.0 + volatility ** 2 / (1.0 + mean) ** 2))
    mu_log = math.log(1.0 + mean) - sigma_log ** 2
    return mu_log, sigma_log


class ReturnModel:
    """Base class; subclasses implement :meth:`sample`."""

    name = "base"

    def __init__(
        self,
        config: PlannerConfig = DEFAULT_CONFIG,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def expected_return(self, stock: float, bond: float, cash: float) -> float:
        return expected_return(stock, bond, cash, self.config.returns)

    def volatility(self, stock: float, bond: float, cash: float) -> float:
        return portfolio_volatility(stock, bond, cash, self.config.returns, self.config.correlations)

    def sample(self, stock: float, bond: float, cash: float) -> float:
        raise NotImplementedError

    def reset(self) -> None:
        """Clear per-trajectory state.  Stateless models have nothing to do."""


class NormalReturnModel(ReturnModel):
    name = "standard"

    def sample(self, stock: float, bond: float, cash: float) -> float:
        mean = self.expected_return(stock, bond, cash)
        vol = self.volatility(stock, bond, cash)
        if vol < MIN_VOLATILITY:
            return mean
        return mean + vol * float(self.rng.standard_normal())


class MeanRevertingReturnModel(ReturnModel):
    """AR(1) log-normal returns.

    ``X_t = mu_log + phi * (X_{t-1} - mu_log) + sigma_eps * z_t`` with
    ``sigma_eps = sigma_log * sqrt(1 - phi**2)`` so the stationary variance
    stays ``sigma_log**2``.  The first draw after :meth:`reset` is
    unconditional.
    """

    name = "enhanced"

    def __init__(
        self,
        autocorrelation: Optional[float] = None,
        config: PlannerConfig = DEFAULT_CONFIG,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(config=config, rng=rng, seed=seed)
        bounds = config.enhanced
        phi = bounds.default_autocorrelation if autocorrelation is None else float(autocorrelation)
        if not bounds.min_autocorrelation <= phi <= bounds.max_autocorrelation:
            raise ConfigurationError(
                f"autocorrelation must be between {bounds.min_autocorrelation} and "
                f"{bounds.max_autocorrelation}, got {phi}"
            )
        self.autocorrelation = phi
        self._previous: Optional[float] = None

    def reset(self) -> None:
        self._previous = None

    def sample(self, stock: float, bond: float, cash: float) -> float:
        mean = self.expected_return(stock, bond, cash)
        vol = self.volatility(stock, bond, cash)
        if vol < MIN_VOLATILITY:
            return mean

        mu_log, sigma_log = log_normal_parameters(mean, vol)
        z = float(self.rng.standard_normal())
        if self._previous is None:
            x = mu_log + sigma_log * z
        else:
            phi = self.autocorrelation
            sigma_eps = sigma_log * math.sqrt(1.0 - phi * phi)
            x = mu_log + phi * (self._previous - mu_log) + sigma_eps * z
        self._previous = x
        return math.exp(x) - 1.0


def make_return_model(
    enhanced: bool = False,
    autocorrelation: Optional[float] = None,
    config: PlannerConfig = DEFAULT_CONFIG,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> ReturnModel:
    if enhanced:
        return MeanRevertingReturnModel(autocorrelation, config=config, rng=rng, seed=seed)
    return NormalReturnModel(config=config, rng=rng, seed=seed)


__all__ = [
    "MIN_VOLATILITY",
    "expected_return",
    "portfolio_volatility",
    "log_normal_parameters",
    "ReturnModel",
    "NormalReturnModel",
    "MeanRevertingReturnModel",
    "make_return_model",
]
