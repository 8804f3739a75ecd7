# src/cases_from_deaths/simulate/ensemble.py
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class Ensemble:
    """Simulated daily incidence on a shared calendar.

    counts has shape (n_sim, n_days) and is the sum over death events of
    by_event, which has shape (n_events, n_sim, n_days). Days on which a
    realisation had no cases are zero.
    """

    dates: pd.DatetimeIndex
    counts: np.ndarray = field(repr=False)
    by_event: np.ndarray = field(repr=False)
    death_dates: Tuple[pd.Timestamp, ...] = ()

    def __post_init__(self):
        if self.counts.ndim != 2 or self.counts.shape[1] != len(self.dates):
            raise ValueError("counts must have shape (n_sim, len(dates))")
        if self.by_event.shape[1:] != self.counts.shape:
            raise ValueError("by_event must have shape (n_events, n_sim, len(dates))")

    @property
    def n_sim(self) -> int:
        return int(self.counts.shape[0])

    @property
    def n_days(self) -> int:
        return int(self.counts.shape[1])

    @property
    def start_date(self) -> pd.Timestamp:
        return self.dates[0]

    @property
    def end_date(self) -> pd.Timestamp:
        return self.dates[-1]

    def __len__(self):
        return self.n_sim

    def trajectory(self, sim_id: int) -> pd.Series:
        """Daily incidence of one realisation (0-based sim_id)."""
        return pd.Series(self.counts[sim_id], index=self.dates, name=f"sim_{sim_id + 1}")

    def cumulative(self) -> np.ndarray:
        """Running total of cases per realisation, shape (n_sim, n_days)."""
        return np.cumsum(self.counts, axis=1)

    def to_frame(self) -> pd.DataFrame:
        """Incidence with one row per date and one column per realisation."""
        columns = [f"sim_{i}" for i in range(1, self.n_sim + 1)]
        df = pd.DataFrame(self.counts.T, index=self.dates, columns=columns)
        df.index.name = "date"
        return df
