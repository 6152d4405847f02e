import math

import numpy as np
import pytest

from guardrail_planner.calculators.config import PlannerConfig
from guardrail_planner.calculators.errors import ConfigurationError
from guardrail_planner.calculators.returns import (
    MeanRevertingReturnModel,
    NormalReturnModel,
    log_normal_parameters,
    make_return_model,
)

ZERO_VOL = PlannerConfig.from_dict(
    {
        "returns": {
            "stocks": {"mean": 0.07, "std_dev": 0.0},
            "bonds": {"mean": 0.04, "std_dev": 0.0},
            "cash": {"mean": 0.02, "std_dev": 0.0},
        }
    }
)


@pytest.mark.parametrize(
    "alloc",
    [(60, 35, 5), (100, 0, 0), (0, 100, 0), (0, 0, 100), (33.3, 33.3, 33.4)],
)
@pytest.mark.parametrize("model_cls", [NormalReturnModel, MeanRevertingReturnModel])
def test_expected_return_is_weighted_mean(model_cls, alloc):
    s, b, c = alloc
    model = model_cls(seed=1)
    expected = s / 100 * 0.10 + b / 100 * 0.05 + c / 100 * 0.03
    assert model.expected_return(s, b, c) == pytest.approx(expected)
    model.sample(s, b, c)
    assert model.expected_return(s, b, c) == pytest.approx(expected)


def test_volatility_closed_form():
    model = NormalReturnModel()
    assert model.volatility(100, 0, 0) == pytest.approx(0.20)
    assert model.volatility(0, 0, 100) == pytest.approx(0.01)
    ws, wb, wc = 0.6, 0.35, 0.05
    s, b, c = ws * 0.20, wb * 0.06, wc * 0.01
    var = s**2 + b**2 + c**2 + 2 * s * b * 0.1 + 2 * s * c * 0.0 + 2 * b * c * 0.2
    assert model.volatility(60, 35, 5) == pytest.approx(math.sqrt(var))


def test_correlation_comes_from_config():
    cfg = PlannerConfig.from_dict({"correlations": {"stocks_bonds": 0.0}})
    uncorrelated = NormalReturnModel(config=cfg).volatility(50, 50, 0)
    correlated = NormalReturnModel().volatility(50, 50, 0)
    assert uncorrelated == pytest.approx(math.hypot(0.10, 0.03))
    assert correlated > uncorrelated


@pytest.mark.parametrize("model_cls", [NormalReturnModel, MeanRevertingReturnModel])
def test_zero_volatility_returns_mean(model_cls):
    model = model_cls(config=ZERO_VOL, seed=3)
    expected = 0.6 * 0.07 + 0.35 * 0.04 + 0.05 * 0.02
    assert [model.sample(60, 35, 5) for _ in range(5)] == pytest.approx([expected] * 5)


def test_normal_samples_centre_on_expected_return():
    model = NormalReturnModel(seed=42)
    draws = np.array([model.sample(60, 35, 5) for _ in range(20_000)])
    assert draws.mean() == pytest.approx(model.expected_return(60, 35, 5), abs=0.005)
    assert draws.std() == pytest.approx(model.volatility(60, 35, 5), rel=0.05)


def test_geometric_mean_centering_is_below_arithmetic_mean():
    mu_log, sigma_log = log_normal_parameters(0.08, 0.15)
    assert sigma_log == pytest.approx(math.sqrt(math.log(1 + 0.15**2 / 1.08**2)))
    assert mu_log == pytest.approx(math.log(1.08) - sigma_log**2)
    assert math.exp(mu_log + sigma_log**2 / 2) - 1 < 0.08


def test_first_draw_after_reset_is_unconditional():
    model = MeanRevertingReturnModel(seed=11)
    mean, vol = model.expected_return(60, 35, 5), model.volatility(60, 35, 5)
    mu_log, sigma_log = log_normal_parameters(mean, vol)
    z = np.random.default_rng(11).standard_normal()
    assert model.sample(60, 35, 5) == pytest.approx(math.exp(mu_log + sigma_log * z) - 1)


def test_ar1_step_uses_previous_log_return():
    phi = -0.3
    model = MeanRevertingReturnModel(autocorrelation=phi, seed=5)
    mean, vol = model.expected_return(60, 35, 5), model.volatility(60, 35, 5)
    mu_log, sigma_log = log_normal_parameters(mean, vol)
    z1, z2 = np.random.default_rng(5).standard_normal(2)

    first = model.sample(60, 35, 5)
    second = model.sample(60, 35, 5)
    x1 = mu_log + sigma_log * z1
    x2 = mu_log + phi * (x1 - mu_log) + sigma_log * math.sqrt(1 - phi**2) * z2
    assert first == pytest.approx(math.exp(x1) - 1)
    assert second == pytest.approx(math.exp(x2) - 1)


def test_reset_clears_previous_return():
    model = MeanRevertingReturnModel(seed=2)
    model.sample(60, 35, 5)
    assert model._previous is not None
    model.reset()
    assert model._previous is None


@pytest.mark.parametrize("phi", [-0.5, 0.05])
def test_autocorrelation_bounds(phi):
    with pytest.raises(ConfigurationError):
        MeanRevertingReturnModel(autocorrelation=phi)


def test_default_autocorrelation_from_config():
    assert MeanRevertingReturnModel().autocorrelation == -0.10
    cfg = PlannerConfig.from_dict({"enhanced": {"default_autocorrelation": -0.25}})
    assert MeanRevertingReturnModel(config=cfg).autocorrelation == -0.25


def test_factory_and_shared_generator():
    rng = np.random.default_rng(0)
    assert isinstance(make_return_model(False, rng=rng), NormalReturnModel)
    enhanced = make_return_model(True, -0.2, rng=rng)
    assert isinstance(enhanced, MeanRevertingReturnModel)
    assert enhanced.rng is rng
    assert enhanced.autocorrelation == -0.2
