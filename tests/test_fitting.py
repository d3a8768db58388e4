import numpy as np
import pytest

from curvewarp.config import Settings
from curvewarp.core import BasisSet, fit_curve
from curvewarp.errors import ConfigurationError, DomainError, SingularFitError
from curvewarp.types import TimeSeries


def _sine_series(n=10):
    t = np.linspace(0.0, 2 * np.pi, n)
    return TimeSeries(t, np.sin(t))


def test_sine_scenario():
    basis = BasisSet.periodic((0.0, 2 * np.pi), 5)
    curve = fit_curve(_sine_series(), basis, 0.0)
    assert curve.n_replicates == 1
    assert curve.evaluate([np.pi / 2])[0] == pytest.approx(1.0, abs=1e-2)
    np.testing.assert_allclose(curve.derivative([0.0, np.pi]), [1.0, -1.0], atol=1e-8)
    # integral of (sin'')^2 over one period
    np.testing.assert_allclose(curve.roughness(), [np.pi], rtol=1e-8)


def test_bspline_interpolates_when_count_matches_samples():
    rng = np.random.default_rng(3)
    t = np.linspace(0.0, 1.0, 10)
    y = rng.normal(size=10)
    basis = BasisSet.piecewise_polynomial((0.0, 1.0), 10)
    curve = fit_curve(y, basis, times=t)
    np.testing.assert_allclose(curve.evaluate(t), y, atol=1e-6)
    assert curve.df == pytest.approx(10.0)
    assert curve.sse[0] == pytest.approx(0.0, abs=1e-10)
    assert np.isnan(curve.gcv).all()


def test_roughness_decreases_with_lambda():
    rng = np.random.default_rng(11)
    t = np.linspace(0.0, 1.0, 50)
    y = np.sin(6 * t) + rng.normal(scale=0.3, size=t.size)
    basis = BasisSet.piecewise_polynomial((0.0, 1.0), 15)
    roughness = [
        fit_curve(y, basis, lam, times=t).roughness()[0] for lam in (0.0, 1e-4, 1e-2, 1.0, 100.0)
    ]
    assert np.all(np.diff(roughness) <= 1e-9 * roughness[0])
    dfs = [fit_curve(y, basis, lam, times=t).df for lam in (0.0, 1e-2, 100.0)]
    assert dfs[0] > dfs[1] > dfs[2] > 2.0 - 1e-6


def test_large_lambda_approaches_line():
    rng = np.random.default_rng(5)
    t = np.linspace(0.0, 1.0, 50)
    y = 3.0 * t - 1.0 + rng.normal(scale=0.2, size=t.size)
    basis = BasisSet.piecewise_polynomial((0.0, 1.0), 15)
    curve = fit_curve(y, basis, 1e6, times=t)
    slope, intercept = np.polyfit(t, y, 1)
    np.testing.assert_allclose(curve.evaluate(t), slope * t + intercept, atol=1e-3)


def test_replicate_columns_are_fit_independently():
    t = np.linspace(0.0, 2 * np.pi, 25)
    y = np.column_stack([np.sin(t), np.cos(2 * t) + 0.5])
    basis = BasisSet.periodic((0.0, 2 * np.pi), 5)
    curve = fit_curve(y, basis, 0.1, times=t)
    assert curve.coefficients.shape == (5, 2)
    assert curve.evaluate(t).shape == (25, 2)
    for col in range(2):
        single = fit_curve(y[:, col], basis, 0.1, times=t)
        np.testing.assert_allclose(curve.coefficients[:, col], single.coefficients[:, 0])
        np.testing.assert_allclose(curve.evaluate(t, replicate=col), single.evaluate(t))
    assert curve.sse.shape == (2,)
    assert curve.gcv.shape == (2,)


def test_singular_system():
    basis = BasisSet.piecewise_polynomial((0.0, 1.0), 10)
    with pytest.raises(SingularFitError):
        fit_curve([1.0, 2.0, 0.5], basis, 0.0, times=[0.0, 0.5, 1.0])


def test_invalid_input():
    basis = BasisSet.periodic((0.0, 1.0), 3)
    t = np.linspace(0.0, 1.0, 5)
    with pytest.raises(ConfigurationError):
        fit_curve(np.ones(5), basis, -1.0, times=t)
    with pytest.raises(ConfigurationError):
        fit_curve(np.ones(5), basis)
    with pytest.raises(ConfigurationError):
        fit_curve(np.ones(4), basis, times=t)
    with pytest.raises(DomainError):
        fit_curve(np.ones(5), basis, times=t + 0.5)


def test_replicate_out_of_range():
    basis = BasisSet.periodic((0.0, 1.0), 3)
    t = np.linspace(0.0, 1.0, 5)
    curve = fit_curve(np.ones((5, 2)), basis, times=t)
    with pytest.raises(IndexError):
        curve.evaluate(t, replicate=2)
    with pytest.raises(IndexError):
        curve.evaluate(t, replicate=-1)
    with pytest.raises(DomainError):
        curve.evaluate([1.5])


def test_coefficients_are_read_only():
    curve = fit_curve(_sine_series(), BasisSet.periodic((0.0, 2 * np.pi), 3))
    with pytest.raises(ValueError):
        curve.coefficients[0, 0] = 1.0


def test_defaults_from_settings():
    series = _sine_series(20)
    basis = BasisSet.periodic((0.0, 2 * np.pi), 5)
    settings = Settings()
    settings.smoothing.lam = 0.5
    settings.smoothing.penalty_order = 1
    curve = fit_curve(series, basis, settings=settings)
    assert curve.lam == 0.5
    assert curve.penalty_order == 1
    expected = fit_curve(series, basis, 0.5, penalty_order=1)
    np.testing.assert_allclose(curve.coefficients, expected.coefficients)


def test_override_settings():
    series = _sine_series(20)
    basis = BasisSet.periodic((0.0, 2 * np.pi), 5)
    settings = Settings()
    settings.smoothing.lam = 10.0
    curve = fit_curve(series, basis, 0.0, settings=settings)
    assert curve.lam == 0.0


def test_defaults_ignore_environment(monkeypatch):
    monkeypatch.setenv("CURVEWARP_SMOOTHING__LAM", "5.0")
    monkeypatch.setenv("CURVEWARP_SMOOTHING__PENALTY_ORDER", "1")
    curve = fit_curve(_sine_series(), BasisSet.periodic((0.0, 2 * np.pi), 5))
    assert curve.lam == 0.0
    assert curve.penalty_order == 2
