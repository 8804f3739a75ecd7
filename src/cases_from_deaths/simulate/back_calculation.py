# src/cases_from_deaths/simulate/back_calculation.py
# Turn one observed death into the cases that must have preceded it:
# 1/cfr cases, with symptom onset one onset-to-death delay before the death.
from dataclasses import dataclass
import logging
import math

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import InvalidCFR

logger = logging.getLogger(__name__)

SEED_POLICIES = ("deterministic", "geometric", "poisson")


@dataclass(frozen=True)
class InferredCaseSeed:
    onset_date: pd.Timestamp
    n_cases: int
    death_date: pd.Timestamp

    @property
    def delay_days(self):
        return int((self.death_date - self.onset_date).days)


def as_day(value):
    """Normalise a date-like value to a midnight pandas Timestamp."""
    return pd.Timestamp(value).normalize()


def check_cfr(cfr):
    if cfr is None or not np.isfinite(cfr) or cfr <= 0 or cfr > 1:
        raise InvalidCFR(f"cfr must be in (0, 1], got {cfr}")
    return float(cfr)


def expected_seed_cases(cfr, policy="deterministic"):
    """Mean number of cases implied by one death under a seed policy."""
    cfr = check_cfr(cfr)
    if policy == "deterministic":
        return max(1, int(round(1.0 / cfr)))
    if policy == "geometric":
        return 1.0 / cfr
    if policy == "poisson":
        # E[max(1, X)] = lam + P(X = 0) for X ~ Poisson(lam)
        lam = 1.0 / cfr
        return lam + math.exp(-lam)
    raise ValueError(f"Unknown seed policy {policy!r}, expected one of {SEED_POLICIES}")


def draw_seed_cases(cfr, rng, policy="deterministic"):
    """Number of cases behind a single death.

    deterministic: round(1/cfr), at least one case
    geometric:     cases up to and including the first death when each
                   case dies with probability cfr, 1 + NegBin(1, cfr)
    poisson:       Poisson(1/cfr), at least one case
    """
    cfr = check_cfr(cfr)
    if policy == "deterministic":
        return max(1, int(round(1.0 / cfr)))
    if policy == "geometric":
        return 1 + int(rng.negative_binomial(1, cfr))
    if policy == "poisson":
        return max(1, int(rng.poisson(1.0 / cfr)))
    raise ValueError(f"Unknown seed policy {policy!r}, expected one of {SEED_POLICIES}")


def infer_case_seed(death_date, cfr, delay_distribution, rng=None, policy="deterministic"):
    """Back-calculate the cases seeded by one death.

    Args:
        death_date: date of the observed death
        cfr (float): case-fatality ratio in (0, 1]
        delay_distribution (DelayDistribution): onset-to-death delay, or
            infection-to-death when a composed kernel is passed
        rng (Generator): numpy random generator
        policy (str): how 1/cfr is turned into a case count
    Returns:
        InferredCaseSeed with onset_date <= death_date and n_cases >= 1
    Raises:
        InvalidCFR
    """
    cfr = check_cfr(cfr)
    if rng is None:
        rng = default_rng()

    death_date = as_day(death_date)
    n_cases = draw_seed_cases(cfr, rng, policy=policy)
    lag = int(delay_distribution.sample(1, rng)[0])
    onset_date = death_date - pd.Timedelta(days=lag)

    logger.debug("Death on %s -> %d cases with onset %s", death_date.date(), n_cases, onset_date.date())
    return InferredCaseSeed(onset_date=onset_date, n_cases=n_cases, death_date=death_date)
