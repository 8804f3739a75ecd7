import numpy as np
import pandas as pd
import pytest

from cases_from_deaths.errors import InvalidDistributionParameters, InvalidHorizon
from cases_from_deaths.simulate.back_calculation import InferredCaseSeed
from cases_from_deaths.simulate.branching_process import generation_weights, project
from cases_from_deaths.simulate.delay_distributions import (
    EmpiricalDelay,
    FixedDelay,
    default_serial_interval,
)


def make_seed(n_cases=1, onset="2020-02-15", death="2020-03-01"):
    return InferredCaseSeed(
        onset_date=pd.Timestamp(onset),
        n_cases=n_cases,
        death_date=pd.Timestamp(death),
    )


def test_R_zero_keeps_only_seed_day():
    """
    With R=0 nobody is infected after the seed cases.
    """
    traj = project(make_seed(5), R=0.0, horizon_days=10,
                   generation_time_distribution=FixedDelay(1),
                   rng=np.random.default_rng(123))

    assert traj.incidence.shape == (10,)
    assert traj.incidence[0] == 5
    assert np.all(traj.incidence[1:] == 0)
    assert traj.cumulative == 5
    assert traj.start_date == pd.Timestamp("2020-02-15")
    assert traj.dates[-1] == pd.Timestamp("2020-02-24")


def test_horizon_of_one_day_is_seed_only():
    traj = project(make_seed(3), R=2.0, horizon_days=1,
                   generation_time_distribution=default_serial_interval(),
                   rng=np.random.default_rng(1))
    assert traj.incidence.tolist() == [3]


def test_fixed_generation_time_places_offspring():
    """
    A one-day generation time means every case's offspring appears the next day.
    """
    traj = project(make_seed(10), R=1.0, horizon_days=3,
                   generation_time_distribution=FixedDelay(1),
                   rng=np.random.default_rng(5))
    # nothing can land on day 0 beyond the seed
    assert traj.incidence[0] == 10
    assert np.all(traj.incidence >= 0)


def test_trajectory_length_and_non_negative():
    rng = np.random.default_rng(9)
    for horizon in (1, 5, 30):
        traj = project(make_seed(50), R=2.5, horizon_days=horizon,
                       generation_time_distribution=default_serial_interval(), rng=rng)
        assert traj.incidence.shape == (horizon,)
        assert np.all(traj.incidence >= 0)


def test_same_rng_stream_gives_same_trajectory():
    si = default_serial_interval()
    a = project(make_seed(20), 2.0, 25, si, rng=np.random.default_rng(42))
    b = project(make_seed(20), 2.0, 25, si, rng=np.random.default_rng(42))
    assert np.array_equal(a.incidence, b.incidence)


def test_mean_growth_matches_R():
    """
    With a one-day generation time and Poisson offspring, E[I_t] = n * R^t.
    """
    rng = np.random.default_rng(2024)
    totals = np.array([
        project(make_seed(10), 1.5, 4, FixedDelay(1), rng=rng).incidence
        for _ in range(2000)
    ])
    expected = 10 * 1.5 ** np.arange(4)
    assert np.allclose(totals.mean(axis=0), expected, rtol=0.05)


def test_negative_binomial_offspring_mean():
    rng = np.random.default_rng(77)
    day1 = np.array([
        project(make_seed(10), 2.0, 2, FixedDelay(1), rng=rng,
                offspring="negative_binomial", dispersion=0.5).incidence[1]
        for _ in range(4000)
    ])
    assert day1.mean() == pytest.approx(20.0, rel=0.08)
    # overdispersed relative to Poisson
    assert day1.var() > 2 * day1.mean()


def test_generation_weights_drop_lag_zero():
    w = generation_weights(EmpiricalDelay([0.5, 0.25, 0.25]))
    assert w[0] == 0.0
    assert np.allclose(w, [0.0, 0.5, 0.5])


def test_invalid_horizon():
    with pytest.raises(InvalidHorizon):
        project(make_seed(), 2.0, 0, default_serial_interval(), rng=np.random.default_rng(0))


def test_negative_R_raises():
    with pytest.raises(ValueError):
        project(make_seed(), -1.0, 5, default_serial_interval(), rng=np.random.default_rng(0))


def test_all_mass_at_lag_zero_raises():
    with pytest.raises(InvalidDistributionParameters):
        project(make_seed(), 2.0, 5, FixedDelay(0), rng=np.random.default_rng(0))


def test_negative_binomial_needs_dispersion():
    with pytest.raises(ValueError):
        project(make_seed(), 2.0, 5, FixedDelay(1), rng=np.random.default_rng(0),
                offspring="negative_binomial")
