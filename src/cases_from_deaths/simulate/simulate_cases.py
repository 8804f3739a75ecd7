# src/cases_from_deaths/simulate/simulate_cases.py
"""
Simulate the cases behind a set of observed deaths.

For each of n_sim realisations and for each death:
  - back-calculate 1/cfr cases with onset one onset-to-death delay earlier
  - project onward transmission with R up to death date + duration
then add the per-death trajectories on a common calendar.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import csv
import logging
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import EmptyDeathSet, InvalidHorizon
from .back_calculation import as_day, check_cfr, infer_case_seed
from .branching_process import project
from .delay_distributions import (
    MEAN_ONSET_TO_DEATH,
    MEAN_SI_DAYS,
    SD_ONSET_TO_DEATH,
    SD_SI_DAYS,
    GammaDelay,
    LogNormalDelay,
    default_onset_to_death,
    default_serial_interval,
)
from .ensemble import Ensemble

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationParameters:
    R: float
    cfr: float
    duration: int = 1
    n_sim: int = 50

    def __post_init__(self):
        if not np.isfinite(self.R) or self.R <= 0:
            raise ValueError(f"R must be > 0, got {self.R}")
        check_cfr(self.cfr)
        if self.duration is None or self.duration < 1:
            raise InvalidHorizon(f"duration must be >= 1 day, got {self.duration}")
        if self.n_sim is None or self.n_sim < 1 or int(self.n_sim) != self.n_sim:
            raise ValueError(f"n_sim must be an integer >= 1, got {self.n_sim}")


def parse_death_dates(death_dates):
    if death_dates is None:
        raise EmptyDeathSet("No death dates given")
    if isinstance(death_dates, (str, pd.Timestamp)) or not hasattr(death_dates, "__iter__"):
        death_dates = [death_dates]
    days = tuple(as_day(d) for d in death_dates)
    if not days:
        raise EmptyDeathSet("No death dates given")
    return days


def simulate_cases(
    death_dates,
    n_sim=50,
    R=2.0,
    cfr=0.01,
    duration=1,
    seed=None,
    rng=None,
    onset_to_death=None,
    serial_interval=None,
    seed_policy="deterministic",
    offspring="poisson",
    dispersion=None,
):
    """Ensemble of case trajectories consistent with the observed deaths.

    Args:
        death_dates: one date or a sequence of dates, one entry per death
        n_sim (int): number of realisations
        R (float): reproduction number, > 0
        cfr (float): case-fatality ratio in (0, 1]
        duration (int): days simulated from each death date onwards,
            the death day included
        seed (int): seed for a fresh generator, ignored when rng is given
        rng (Generator): numpy random generator
        onset_to_death (DelayDistribution): defaults to gamma(15, 6.9)
        serial_interval (DelayDistribution): defaults to lognormal(4.7, 2.9)
        seed_policy (str): "deterministic", "geometric" or "poisson"
        offspring (str): "poisson" or "negative_binomial"
        dispersion (float): size parameter of the negative binomial
    Returns:
        dict with key "projections" holding an Ensemble of n_sim
        trajectories on the calendar
        [earliest death - max onset-to-death lag, latest death + duration - 1]
    Raises:
        EmptyDeathSet, InvalidCFR, InvalidHorizon, ValueError
    """
    deaths = parse_death_dates(death_dates)
    params = SimulationParameters(R=R, cfr=cfr, duration=duration, n_sim=n_sim)

    if onset_to_death is None:
        onset_to_death = default_onset_to_death()
    if serial_interval is None:
        serial_interval = default_serial_interval()
    if rng is None:
        rng = default_rng(seed)

    start = min(deaths) - pd.Timedelta(days=onset_to_death.max_lag)
    end = max(deaths) + pd.Timedelta(days=params.duration - 1)
    dates = pd.date_range(start, end, freq="D")

    by_event = np.zeros((len(deaths), params.n_sim, len(dates)), dtype=np.int64)

    for sim_id in range(params.n_sim):
        for event_id, death in enumerate(deaths):
            case_seed = infer_case_seed(death, params.cfr, onset_to_death, rng, policy=seed_policy)
            horizon = case_seed.delay_days + params.duration
            traj = project(
                case_seed,
                params.R,
                horizon,
                serial_interval,
                rng,
                offspring=offspring,
                dispersion=dispersion,
            )
            offset = int((case_seed.onset_date - start).days)
            by_event[event_id, sim_id, offset:offset + horizon] += traj.incidence

    counts = by_event.sum(axis=0)
    ensemble = Ensemble(dates=dates, counts=counts, by_event=by_event, death_dates=deaths)
    logger.info(
        "Simulated %d trajectories for %d deaths (R=%.3g, cfr=%.3g), %s to %s",
        params.n_sim, len(deaths), params.R, params.cfr, start.date(), end.date(),
    )
    return {"projections": ensemble}


@dataclass(frozen=True)
class SimConfig:
    """Picklable description of one simulate_cases run."""

    death_dates: Tuple[str, ...] = ()
    n_sim: int = 50
    R: float = 2.0
    cfr: float = 0.01
    duration: int = 1
    seed: Optional[int] = None
    mean_onset_to_death: float = MEAN_ONSET_TO_DEATH
    sd_onset_to_death: float = SD_ONSET_TO_DEATH
    mean_si: float = MEAN_SI_DAYS
    sd_si: float = SD_SI_DAYS
    seed_policy: str = "deterministic"
    offspring: str = "poisson"
    dispersion: Optional[float] = None


def build_delays(cfg: SimConfig):
    """Onset-to-death and serial-interval distributions for a config."""
    onset_to_death = GammaDelay(cfg.mean_onset_to_death, cfg.sd_onset_to_death)
    serial_interval = LogNormalDelay(cfg.mean_si, cfg.sd_si)
    logger.debug("Built delays: onset-to-death %r, serial interval %r", onset_to_death, serial_interval)
    return onset_to_death, serial_interval


def run_config(cfg: SimConfig, rng=None):
    """Run simulate_cases from a SimConfig and return the Ensemble."""
    onset_to_death, serial_interval = build_delays(cfg)
    result = simulate_cases(
        cfg.death_dates,
        n_sim=cfg.n_sim,
        R=cfg.R,
        cfr=cfg.cfr,
        duration=cfg.duration,
        seed=cfg.seed,
        rng=rng,
        onset_to_death=onset_to_death,
        serial_interval=serial_interval,
        seed_policy=cfg.seed_policy,
        offspring=cfg.offspring,
        dispersion=cfg.dispersion,
    )
    return result["projections"]


def default_csv_path(use_tempfile=True):
    """Define the filepath of csv"""
    if use_tempfile:
        tf = tempfile.NamedTemporaryFile(prefix="simulated_cases_", suffix=".csv")
        p = Path(tf.name)
        tf.close()
        return p
    return Path("simulated_cases.csv")


def write_ensemble_csv(ensemble, out_path=None, use_tempfile=True):
    """Write one row per realisation: sim_id, one column per date, cumulative_cases."""
    if out_path is None:
        csv_path = default_csv_path(use_tempfile=use_tempfile)
    else:
        csv_path = Path(out_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    header = ["sim_id"] + [d.strftime("%Y-%m-%d") for d in ensemble.dates] + ["cumulative_cases"]

    with csv_path.open("w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(header)
        for sim_id, traj in enumerate(ensemble.counts, start=1):
            writer.writerow([sim_id, *traj.tolist(), int(traj.sum())])

    logger.info("Ensemble CSV written to: %s", csv_path)
    return csv_path
