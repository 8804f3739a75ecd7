import logging

import numpy as np
import pytest
from scipy.integrate import quad

from cases_from_deaths.errors import InvalidDistributionParameters
from cases_from_deaths.simulate.delay_distributions import (
    EmpiricalDelay,
    FixedDelay,
    GammaDelay,
    LogNormalDelay,
    convolve,
    default_onset_to_death,
    default_serial_interval,
    density,
    discretize,
    gamma_from_mean_sd,
    sample,
)


def slow_reference_weights(mean, std, max_lag):
    """
    Slow but precise reference for the triangular kernel using quad.
    """
    g = gamma_from_mean_sd(mean, std)

    w = np.zeros(max_lag + 1, dtype=float)

    for k in range(0, max_lag + 1):
        left = max(0.0, k - 1.0)
        right = k + 1.0

        def integrand(u):
            tri = 1.0 - abs(u - k)
            if tri < 0.0:
                return 0.0
            return tri * g.pdf(u)

        val, _ = quad(integrand, left, right, epsabs=1e-10, epsrel=1e-10)
        w[k] = val

    w /= w.sum()
    return w


def test_gamma_pmf_sums_to_one():
    d = GammaDelay(mean=15.0, sd=6.9)
    assert np.all(d.pmf >= 0)
    assert abs(d.pmf.sum() - 1.0) < 1e-12
    # default tolerance keeps all but 1e-6 of the mass
    assert d.max_lag > 40


def test_discretized_mean_close_to_continuous():
    d = GammaDelay(mean=15.0, sd=6.9)
    # cdf-difference masses put lag k on [k, k+1), so the mean shifts by ~0.5
    assert d.mean() == pytest.approx(14.5, abs=0.1)

    tri = GammaDelay(mean=15.0, sd=6.9, method="triangular")
    assert tri.mean() == pytest.approx(15.0, abs=0.05)


def test_triangular_matches_reference():
    mean = 15.0
    std = 6.9
    max_lag = 40

    w_fast = discretize(gamma_from_mean_sd(mean, std), max_lag=max_lag, method="triangular", nquad=64).pmf
    w_slow = slow_reference_weights(mean, std, max_lag)

    assert np.allclose(w_fast, w_slow, atol=1e-5, rtol=1e-5)


def test_truncation_renormalises_and_warns(caplog):
    g = gamma_from_mean_sd(15.0, 6.9)
    with caplog.at_level(logging.WARNING):
        d = discretize(g, max_lag=10)
    assert d.max_lag == 10
    assert abs(d.pmf.sum() - 1.0) < 1e-12
    assert "drops" in caplog.text


def test_lognormal_serial_interval():
    d = LogNormalDelay(mean=4.7, sd=2.9)
    assert abs(d.pmf.sum() - 1.0) < 1e-12
    assert 3.5 < d.mean() < 5.0


def test_sample_is_non_negative_integers():
    d = default_onset_to_death()
    rng = np.random.default_rng(1)
    draws = sample(d, 5000, rng)
    assert draws.shape == (5000,)
    assert draws.dtype.kind == "i"
    assert np.all(draws >= 0)
    assert np.all(draws <= d.max_lag)
    assert np.mean(draws) == pytest.approx(d.mean(), abs=0.5)


def test_sample_is_reproducible():
    d = default_serial_interval()
    a = d.sample(100, np.random.default_rng(7))
    b = d.sample(100, np.random.default_rng(7))
    assert np.array_equal(a, b)


def test_density_lookup():
    d = EmpiricalDelay([1, 2, 1])
    assert density(d, 0) == pytest.approx(0.25)
    assert density(d, 1) == pytest.approx(0.5)
    assert density(d, 3) == 0.0
    assert density(d, -1) == 0.0


def test_fixed_delay():
    d = FixedDelay(3)
    assert d.max_lag == 3
    assert d.density(3) == 1.0
    assert np.all(d.sample(10, np.random.default_rng(0)) == 3)


def test_convolve_adds_means():
    a = FixedDelay(2)
    b = EmpiricalDelay([0.5, 0.5])
    c = convolve(a, b)
    assert c.max_lag == 3
    assert c.mean() == pytest.approx(a.mean() + b.mean())


@pytest.mark.parametrize("mean, sd", [(0.0, 1.0), (-1.0, 2.0), (5.0, -1.0), (5.0, 0.0), (np.nan, 1.0)])
def test_invalid_parameters(mean, sd):
    with pytest.raises(InvalidDistributionParameters):
        GammaDelay(mean=mean, sd=sd)


@pytest.mark.parametrize("pmf", [[], [0.0, 0.0], [0.5, -0.1], [[0.5, 0.5]], [np.inf]])
def test_invalid_pmf(pmf):
    with pytest.raises(InvalidDistributionParameters):
        EmpiricalDelay(pmf)


def test_invalid_fixed_lag():
    with pytest.raises(InvalidDistributionParameters):
        FixedDelay(-1)


def test_unknown_method():
    with pytest.raises(InvalidDistributionParameters):
        discretize(gamma_from_mean_sd(5.0, 2.0), method="midpoint")


def test_equal_delays_hash_equal():
    a = EmpiricalDelay([0.0, 1.0])
    b = FixedDelay(1)
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_coarse_unit_places_mass_on_whole_days():
    d = discretize(gamma_from_mean_sd(10.0, 3.0), unit=2, max_lag=15)
    assert d.max_lag == 30
    assert np.isclose(d.pmf.sum(), 1.0)
    assert np.all(d.pmf[1::2] == 0.0)
    assert density(d, 1) == 0.0
    assert density(d, 10) > 0.0
    # bin k covers days [2k, 2k + 2), so the mean is near 10 - 1
    assert abs(d.mean() - 9.0) < 0.5
    lags = sample(d, 500, rng=np.random.default_rng(3))
    assert np.all(lags % 2 == 0)


@pytest.mark.parametrize("unit", [0, 0.5, 1.5, -1])
def test_invalid_unit(unit):
    with pytest.raises(InvalidDistributionParameters):
        discretize(gamma_from_mean_sd(5.0, 2.0), unit=unit)
