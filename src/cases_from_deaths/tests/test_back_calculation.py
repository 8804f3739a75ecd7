import numpy as np
import pandas as pd
import pytest

from cases_from_deaths.errors import InvalidCFR
from cases_from_deaths.simulate.back_calculation import (
    draw_seed_cases,
    expected_seed_cases,
    infer_case_seed,
)
from cases_from_deaths.simulate.delay_distributions import FixedDelay, default_onset_to_death


def test_deterministic_seed_is_one_over_cfr():
    seed = infer_case_seed("2020-03-01", 0.02, FixedDelay(10), rng=np.random.default_rng(1))
    assert seed.n_cases == 50
    assert seed.onset_date == pd.Timestamp("2020-02-20")
    assert seed.death_date == pd.Timestamp("2020-03-01")
    assert seed.delay_days == 10


def test_cfr_of_one_gives_single_case():
    seed = infer_case_seed("2020-03-01", 1.0, FixedDelay(0), rng=np.random.default_rng(1))
    assert seed.n_cases == 1
    assert seed.onset_date == seed.death_date


def test_onset_never_after_death():
    rng = np.random.default_rng(3)
    delay = default_onset_to_death()
    for _ in range(200):
        seed = infer_case_seed("2020-03-01", 0.1, delay, rng=rng)
        assert seed.onset_date <= seed.death_date
        assert seed.n_cases >= 1


def test_lower_cfr_gives_more_cases():
    cfrs = [0.5, 0.1, 0.05, 0.02, 0.01, 0.001]
    means = [expected_seed_cases(c) for c in cfrs]
    assert means == sorted(means)
    assert expected_seed_cases(0.1) == 10
    assert expected_seed_cases(0.02) == 50


@pytest.mark.parametrize("policy", ["geometric", "poisson"])
def test_stochastic_policies_centre_on_one_over_cfr(policy):
    rng = np.random.default_rng(11)
    draws = np.array([draw_seed_cases(0.05, rng, policy=policy) for _ in range(4000)])
    assert np.all(draws >= 1)
    assert draws.mean() == pytest.approx(expected_seed_cases(0.05, policy), rel=0.08)


@pytest.mark.parametrize("cfr", [0.0, -0.1, 1.5, np.nan, None])
def test_invalid_cfr(cfr):
    with pytest.raises(InvalidCFR):
        infer_case_seed("2020-03-01", cfr, FixedDelay(1), rng=np.random.default_rng(0))


def test_unknown_policy():
    with pytest.raises(ValueError):
        infer_case_seed("2020-03-01", 0.1, FixedDelay(1), rng=np.random.default_rng(0), policy="binomial")
