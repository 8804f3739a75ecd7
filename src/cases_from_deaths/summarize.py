# src/cases_from_deaths/summarize.py
"""
Point and interval estimates of cumulative cases from an Ensemble.
"""

from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .errors import DateOutOfRange
from .simulate.back_calculation import as_day

# 2.5 / 25 / 50 / 75 / 97.5 percentiles
QUANTILES = (0.025, 0.25, 0.5, 0.75, 0.975)

TABLE_COLUMNS = ["R", "cfr", "average", "median", "lower_95", "lower_50", "upper_50", "upper_95"]


@dataclass(frozen=True)
class SummaryRow:
    date: pd.Timestamp
    mean: int
    median: int
    lower_95: int
    lower_50: int
    upper_50: int
    upper_95: int
    R: Optional[float] = None
    cfr: Optional[float] = None

    def as_dict(self):
        return asdict(self)


def cumulative_at(ensemble, at_date):
    """Cumulative cases per realisation from the ensemble start to at_date.

    Dates after the end of the ensemble give the final totals.
    """
    at = as_day(at_date)
    if at < ensemble.start_date:
        raise DateOutOfRange(f"{at.date()} precedes the ensemble start {ensemble.start_date.date()}")
    last = min(int((at - ensemble.start_date).days), ensemble.n_days - 1)
    return ensemble.counts[:, :last + 1].sum(axis=1)


def summarize(ensemble, at_date, R=None, cfr=None):
    """Summarise cumulative cases at one date.

    Mean, median and the central 50% / 95% intervals across
    realisations, each rounded to the nearest integer.
    """
    totals = cumulative_at(ensemble, at_date).astype(float)
    lo95, lo50, med, hi50, hi95 = np.quantile(totals, QUANTILES)
    return SummaryRow(
        date=as_day(at_date),
        mean=int(np.rint(totals.mean())),
        median=int(np.rint(med)),
        lower_95=int(np.rint(lo95)),
        lower_50=int(np.rint(lo50)),
        upper_50=int(np.rint(hi50)),
        upper_95=int(np.rint(hi95)),
        R=R,
        cfr=cfr,
    )


def summarize_dates(ensemble, dates=None):
    """One summary row per date (all ensemble dates by default)."""
    if dates is None:
        dates = ensemble.dates
    rows = [summarize(ensemble, d).as_dict() for d in dates]
    df = pd.DataFrame(rows).drop(columns=["R", "cfr"])
    return df.set_index("date")


def summary_table(sweep_result, at_date):
    """Summary at at_date for each simulated cell of a parameter sweep."""
    rows = []
    for (R, cfr), ensemble in sweep_result.items():
        s = summarize(ensemble, at_date, R=R, cfr=cfr)
        rows.append({
            "R": R,
            "cfr": cfr,
            "average": s.mean,
            "median": s.median,
            "lower_95": s.lower_95,
            "lower_50": s.lower_50,
            "upper_50": s.upper_50,
            "upper_95": s.upper_95,
        })
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


def format_summary_table(df):
    """Copy of a summary table with thousands separators on the counts."""
    out = df.copy()
    for col in TABLE_COLUMNS[2:]:
        out[col] = out[col].map(lambda v: f"{int(v):,}")
    out["cfr"] = out["cfr"].map(lambda v: f"{v:.1%}")
    return out
