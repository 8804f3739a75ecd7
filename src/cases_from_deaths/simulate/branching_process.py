# src/cases_from_deaths/simulate/branching_process.py
# Forward projection of daily incidence from a seed of cases.
#
# Each day's cohort of new cases I_t produces Z_t secondary cases
# (Poisson or negative binomial with mean R * I_t). Their onset dates are
# spread over the following days by a multinomial draw from the
# generation-time weights w_1, w_2, ...
from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import InvalidDistributionParameters, InvalidHorizon

logger = logging.getLogger(__name__)

OFFSPRING_DISTRIBUTIONS = ("poisson", "negative_binomial")


@dataclass(frozen=True, eq=False)
class Trajectory:
    start_date: pd.Timestamp
    incidence: np.ndarray = field(repr=False)

    @property
    def dates(self):
        return pd.date_range(self.start_date, periods=self.incidence.size, freq="D")

    @property
    def cumulative(self):
        return int(self.incidence.sum())

    def to_series(self):
        return pd.Series(self.incidence, index=self.dates, name="incidence")


def generation_weights(generation_time):
    """Generation-time masses for lags 1..max_lag.

    Offspring cannot appear on their parent's onset day, so the lag 0
    mass is dropped and the rest renormalised.
    """
    w = np.array(generation_time.pmf, dtype=float)
    w[0] = 0.0
    total = float(w.sum())
    if total <= 0:
        raise InvalidDistributionParameters("Generation time has no mass beyond lag 0")
    return w / total


def draw_offspring(n_parents, R, rng, offspring="poisson", dispersion=None):
    """Total secondary cases produced by a cohort of n_parents cases."""
    lam = R * n_parents
    if lam <= 0.0:
        return 0
    if offspring == "poisson":
        return int(rng.poisson(lam))
    # sum of n_parents NB(mean R, size k) draws is NB(mean R * n, size k * n)
    size = dispersion * n_parents
    return int(rng.negative_binomial(size, size / (size + lam)))


def _check_offspring(offspring, dispersion):
    if offspring not in OFFSPRING_DISTRIBUTIONS:
        raise ValueError(f"Unknown offspring distribution {offspring!r}, expected one of {OFFSPRING_DISTRIBUTIONS}")
    if offspring == "negative_binomial" and (dispersion is None or not dispersion > 0):
        raise ValueError("A negative binomial offspring distribution needs dispersion > 0")


def project_incidence(n_seed, R, horizon_days, w, rng, offspring="poisson", dispersion=None):
    """Daily incidence array of length horizon_days, seed cases on day 0.

    w are the generation weights from generation_weights().
    """
    trajectory = np.zeros(horizon_days, dtype=np.int64)
    trajectory[0] = n_seed
    k_support = w.size

    for t in range(horizon_days):
        n_parents = int(trajectory[t])
        if n_parents == 0:
            continue
        # days t+1 .. t+max_lag that still fall inside the horizon
        max_lag = min(k_support - 1, horizon_days - 1 - t)
        if max_lag < 1:
            continue
        new_cases = draw_offspring(n_parents, R, rng, offspring=offspring, dispersion=dispersion)
        if new_cases == 0:
            continue
        # the last bin collects offspring falling past the horizon
        ws = np.append(w[1:max_lag + 1], max(0.0, 1.0 - float(w[1:max_lag + 1].sum())))
        counts = rng.multinomial(new_cases, ws / ws.sum())
        trajectory[t + 1:t + 1 + max_lag] += counts[:max_lag]

    return trajectory


def project(seed, R, horizon_days, generation_time_distribution, rng=None, offspring="poisson", dispersion=None):
    """Simulate one realisation of onward transmission from a seed.

    Args:
        seed (InferredCaseSeed): seed cases and their onset date
        R (float): mean number of secondary cases per case, >= 0
        horizon_days (int): number of days to simulate, seed day included
        generation_time_distribution (DelayDistribution): serial interval
        rng (Generator): numpy random generator
        offspring (str): "poisson" or "negative_binomial"
        dispersion (float): negative binomial size parameter k
    Returns:
        Trajectory starting on seed.onset_date, exactly horizon_days long
    Raises:
        InvalidHorizon, InvalidDistributionParameters, ValueError
    """
    if horizon_days is None or horizon_days < 1:
        raise InvalidHorizon(f"horizon_days must be >= 1, got {horizon_days}")
    R = float(R)
    if not np.isfinite(R) or R < 0:
        raise ValueError(f"R must be a finite number >= 0, got {R}")
    _check_offspring(offspring, dispersion)
    if rng is None:
        rng = default_rng()

    w = generation_weights(generation_time_distribution)
    incidence = project_incidence(
        int(seed.n_cases), R, int(horizon_days), w, rng,
        offspring=offspring, dispersion=dispersion,
    )
    incidence.setflags(write=False)
    logger.debug("Projected %d seed cases over %d days -> %d cases", seed.n_cases, horizon_days, int(incidence.sum()))
    return Trajectory(start_date=seed.onset_date, incidence=incidence)
