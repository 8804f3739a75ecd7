# src/cases_from_deaths/simulate/parameter_sweep.py
"""
Run simulate_cases over a grid of (R, cfr) values.

Every grid row is an independent task: a SimConfig plus its own child
SeedSequence, so the result of a row does not depend on n_jobs or on the
order in which joblib finishes the tasks.
"""

from dataclasses import dataclass, field, replace
from itertools import product
from typing import Dict, Optional, Tuple
import logging

import pandas as pd
from joblib import Parallel, delayed
from numpy.random import SeedSequence, default_rng

from .simulate_cases import SimConfig, parse_death_dates, run_config

logger = logging.getLogger(__name__)

GridKey = Tuple[float, float]


@dataclass
class SweepResult:
    ensembles: Dict[GridKey, object] = field(default_factory=dict)
    failures: Dict[GridKey, str] = field(default_factory=dict)
    grid: Optional[pd.DataFrame] = None

    def __getitem__(self, key):
        return self.ensembles[key]

    def __len__(self):
        return len(self.ensembles)

    def keys(self):
        return self.ensembles.keys()

    def items(self):
        return self.ensembles.items()


def make_grid(R_values, cfr_values):
    """All (R, cfr) combinations as a DataFrame with columns R and cfr."""
    rows = list(product(R_values, cfr_values))
    return pd.DataFrame(rows, columns=["R", "cfr"], dtype=float)


def _grid_keys(parameter_grid):
    if isinstance(parameter_grid, pd.DataFrame):
        missing = {"R", "cfr"} - set(parameter_grid.columns)
        if missing:
            raise ValueError(f"Parameter grid is missing columns: {sorted(missing)}")
        pairs = zip(parameter_grid["R"], parameter_grid["cfr"])
    else:
        pairs = parameter_grid
    keys = [(float(R), float(cfr)) for R, cfr in pairs]
    if len(set(keys)) != len(keys):
        raise ValueError("Parameter grid contains duplicate (R, cfr) rows")
    return keys


def _run_cell(cfg, seed_seq):
    """Simulate one grid cell; rejected inputs are returned, not raised."""
    try:
        return run_config(cfg, rng=default_rng(seed_seq)), None
    except ValueError as exc:
        return None, f"{type(exc).__name__}: {exc}"


def sweep(death_dates, parameter_grid, n_sim=50, duration=1, seed=None, n_jobs=1, **sim_kwargs):
    """Simulate every (R, cfr) row of a parameter grid.

    Args:
        death_dates: dates of the observed deaths
        parameter_grid: DataFrame with R and cfr columns, or (R, cfr) pairs
        n_sim (int): realisations per cell
        duration (int): days simulated after each death
        seed (int): master seed, one child seed is spawned per row
        n_jobs (int): joblib workers, 1 runs in-process, -1 uses all cores
        **sim_kwargs: other SimConfig fields (delay parameters, policies)
    Returns:
        SweepResult mapping (R, cfr) to an Ensemble; cells whose inputs
        were rejected are listed in failures instead
    """
    keys = _grid_keys(parameter_grid)
    deaths = tuple(d.strftime("%Y-%m-%d") for d in parse_death_dates(death_dates))
    base = SimConfig(death_dates=deaths, n_sim=n_sim, duration=duration, **sim_kwargs)

    children = SeedSequence(seed).spawn(len(keys))
    configs = [replace(base, R=R, cfr=cfr) for R, cfr in keys]

    outputs = Parallel(n_jobs=n_jobs)(
        delayed(_run_cell)(cfg, child) for cfg, child in zip(configs, children)
    )

    result = SweepResult(grid=pd.DataFrame(keys, columns=["R", "cfr"]))
    for key, (ensemble, error) in zip(keys, outputs):
        if error is not None:
            logger.warning("Grid cell R=%s, cfr=%s failed: %s", key[0], key[1], error)
            result.failures[key] = error
        else:
            result.ensembles[key] = ensemble

    logger.info("Sweep finished: %d cells simulated, %d failed", len(result.ensembles), len(result.failures))
    return result
