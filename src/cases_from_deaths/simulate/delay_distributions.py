# src/cases_from_deaths/simulate/delay_distributions.py
# Discrete daily delay distributions (onset-to-death, serial interval)
# built from continuous gamma / log-normal distributions
from functools import lru_cache
import logging
import math

import numpy as np
from numpy.polynomial.legendre import leggauss
from scipy.stats import gamma, lognorm

from ..errors import InvalidDistributionParameters

logger = logging.getLogger(__name__)

# defaults (COVID-19 literature values)
MEAN_ONSET_TO_DEATH = 15.0
SD_ONSET_TO_DEATH = 6.9
MEAN_SI_DAYS = 4.7
SD_SI_DAYS = 2.9
DEFAULT_TOL = 1e-6

DISCRETIZATION_METHODS = ("interval", "triangular")


def _check_mean_sd(mean, sd):
    if not (np.isfinite(mean) and np.isfinite(sd)):
        raise InvalidDistributionParameters("Mean and sd must be finite numbers")
    if mean <= 0 or sd < 0:
        raise InvalidDistributionParameters(
            f"Mean must be > 0 and sd >= 0 (got mean={mean}, sd={sd})")
    if sd == 0:
        # zero variance at a non-zero mean has no continuous density
        raise InvalidDistributionParameters(
            "sd == 0 gives a degenerate distribution, use FixedDelay instead")


def gamma_from_mean_sd(mean, sd):
    """Frozen scipy gamma distribution parameterised by mean and sd."""
    _check_mean_sd(mean, sd)
    shape = (mean / sd) ** 2
    scale = sd ** 2 / mean
    return gamma(a=shape, scale=scale)


def lognormal_from_mean_sd(mean, sd):
    """Frozen scipy log-normal distribution parameterised by mean and sd."""
    _check_mean_sd(mean, sd)
    sigma2 = math.log(1.0 + (sd / mean) ** 2)
    mu = math.log(mean) - 0.5 * sigma2
    return lognorm(s=math.sqrt(sigma2), scale=math.exp(mu))


def _normalise_pmf(pmf):
    """Validate a vector of masses and rescale it to sum to one."""
    arr = np.array(pmf, dtype=float)
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidDistributionParameters("pmf must be a non-empty 1D sequence")
    if not np.all(np.isfinite(arr)):
        raise InvalidDistributionParameters("pmf contains non-finite values")
    if np.any(arr < 0):
        raise InvalidDistributionParameters("pmf contains negative masses")
    total = float(arr.sum())
    if total <= 0:
        raise InvalidDistributionParameters("pmf masses sum to zero")
    return arr / total


def choose_max_lag(distribution, tol=DEFAULT_TOL, unit=1.0):
    """Smallest lag (in units) whose upper tail mass is at most tol."""
    upper = distribution.ppf(1.0 - tol)
    if not np.isfinite(upper):
        raise InvalidDistributionParameters("Distribution has no finite upper quantile")
    return max(int(math.ceil(upper / unit)), 0)


def _interval_masses(distribution, max_lag, unit):
    # p_k = F((k+1) * unit) - F(k * unit)
    edges = np.arange(max_lag + 2, dtype=float) * unit
    return np.diff(distribution.cdf(edges))


def _triangular_masses(distribution, max_lag, unit, nquad):
    # p_k = int_(k-1)^(k+1) [1 - |u - k|] g(u) du, in units of `unit`
    # Evaluated with Gauss-Legendre nodes rather than quad(), which is slow
    nodes, weights = leggauss(nquad)
    w = np.zeros(max_lag + 1)

    for k in range(0, max_lag + 1):
        center = unit * k
        left = unit * (k - 1)
        right = unit * (k + 1)
        half_width = 0.5 * (right - left)
        midpoint = 0.5 * (right + left)

        u = half_width * nodes + midpoint

        tri = 1.0 - np.abs(u - center) / unit
        tri[tri < 0.0] = 0.0

        # the density is zero for u < 0, which covers the k = 0 kernel
        pdf_vals = np.where(u >= 0.0, distribution.pdf(np.clip(u, 0.0, None)), 0.0)

        w[k] = half_width * np.sum(weights * tri * pdf_vals)
    return w


def discretize(distribution, unit=1, max_lag=None, tol=DEFAULT_TOL, method="interval", nquad=32):
    """Turn a continuous distribution into a daily delay distribution.

    Mass beyond ``max_lag`` is truncated and the remaining masses are
    renormalised. This is the only truncation policy used in the package.

    Args:
        distribution: frozen ``scipy.stats`` distribution on [0, inf)
        unit (int): width of one lag bin, in whole days; bin k is
            placed on day k * unit of the returned daily pmf
        max_lag (int): last bin kept; chosen from ``tol`` when None
        tol (float): tail mass allowed to be dropped by truncation
        method (str): "interval" (cdf differences) or "triangular"
            (triangular kernel integrated by quadrature)
        nquad (int): number of Gauss-Legendre nodes for "triangular"
    Returns:
        EmpiricalDelay
    Raises:
        InvalidDistributionParameters
    """
    if unit < 1 or int(unit) != unit:
        raise InvalidDistributionParameters("unit must be a whole number of days >= 1")
    unit = int(unit)
    if not 0 < tol < 1:
        raise InvalidDistributionParameters("tol must be in (0, 1)")
    if method not in DISCRETIZATION_METHODS:
        raise InvalidDistributionParameters(
            f"Unknown discretization method {method!r}, expected one of {DISCRETIZATION_METHODS}")

    if max_lag is None:
        max_lag = choose_max_lag(distribution, tol=tol, unit=unit)
    elif max_lag < 0:
        raise InvalidDistributionParameters("max_lag must be >= 0")
    max_lag = int(max_lag)

    if method == "interval":
        w = _interval_masses(distribution, max_lag, unit)
    else:
        w = _triangular_masses(distribution, max_lag, unit, nquad)

    dropped = 1.0 - float(w.sum())
    if dropped > tol:
        logger.warning("Truncating at lag %d drops %.3g of the probability mass", max_lag, dropped)
    logger.debug("Discretized delay (method=%s, unit=%d, max_lag=%d)", method, unit, max_lag)

    # pmf index is always a lag in days
    days = np.zeros(max_lag * unit + 1)
    days[::unit] = w
    return EmpiricalDelay(days)


class DelayDistribution:
    """Probability masses over whole-day lags 0..max_lag.

    Variants are EmpiricalDelay, FixedDelay, GammaDelay and
    LogNormalDelay; all of them share density lookup and sampling.
    """

    kind = "empirical"

    def __init__(self, pmf):
        self._pmf = _normalise_pmf(pmf)
        self._pmf.setflags(write=False)

    @property
    def pmf(self):
        return self._pmf

    @property
    def max_lag(self):
        return self._pmf.size - 1

    def density(self, k):
        """Probability mass at lag k (zero outside the support)."""
        if k < 0 or k > self.max_lag or int(k) != k:
            return 0.0
        return float(self._pmf[int(k)])

    def sample(self, n, rng=None):
        """Draw n non-negative integer lags."""
        if n < 0:
            raise ValueError("n must be >= 0")
        if rng is None:
            rng = np.random.default_rng()
        return rng.choice(self._pmf.size, size=int(n), p=self._pmf).astype(np.int64)

    def mean(self):
        return float(np.dot(np.arange(self._pmf.size), self._pmf))

    def __eq__(self, other):
        if not isinstance(other, DelayDistribution):
            return NotImplemented
        return self._pmf.shape == other._pmf.shape and bool(np.array_equal(self._pmf, other._pmf))

    def __hash__(self):
        return hash(self._pmf.tobytes())

    def __repr__(self):
        return f"{type(self).__name__}(max_lag={self.max_lag}, mean={self.mean():.3f})"


class EmpiricalDelay(DelayDistribution):
    """Delay given directly as masses for lags 0, 1, 2, ..."""

    kind = "empirical"


class FixedDelay(DelayDistribution):
    """All mass on a single lag."""

    kind = "fixed"

    def __init__(self, lag):
        if lag < 0 or int(lag) != lag:
            raise InvalidDistributionParameters("A fixed lag must be a non-negative integer")
        self.lag = int(lag)
        pmf = np.zeros(self.lag + 1)
        pmf[self.lag] = 1.0
        super().__init__(pmf)


class GammaDelay(DelayDistribution):
    """Gamma-shaped delay discretized to days."""

    kind = "gamma"

    def __init__(self, mean, sd, max_lag=None, tol=DEFAULT_TOL, method="interval"):
        self.mean_days = float(mean)
        self.sd_days = float(sd)
        w = discretize(gamma_from_mean_sd(mean, sd), max_lag=max_lag, tol=tol, method=method)
        super().__init__(w.pmf)


class LogNormalDelay(DelayDistribution):
    """Log-normal delay discretized to days."""

    kind = "lognormal"

    def __init__(self, mean, sd, max_lag=None, tol=DEFAULT_TOL, method="interval"):
        self.mean_days = float(mean)
        self.sd_days = float(sd)
        w = discretize(lognormal_from_mean_sd(mean, sd), max_lag=max_lag, tol=tol, method=method)
        super().__init__(w.pmf)


def sample(dist, n, rng=None):
    return dist.sample(n, rng=rng)


def density(dist, k):
    return dist.density(k)


def convolve(first, second):
    """Delay of two independent consecutive intervals, e.g.
    infection-to-onset followed by onset-to-death."""
    return EmpiricalDelay(np.convolve(first.pmf, second.pmf))


@lru_cache(maxsize=8)
def default_onset_to_death():
    return GammaDelay(MEAN_ONSET_TO_DEATH, SD_ONSET_TO_DEATH)


@lru_cache(maxsize=8)
def default_serial_interval():
    return LogNormalDelay(MEAN_SI_DAYS, SD_SI_DAYS)
