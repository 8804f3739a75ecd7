# src/cases_from_deaths/simulate/plot_projections.py
from pathlib import Path
from typing import Optional, Tuple
import logging

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection

logger = logging.getLogger(__name__)


def select_indices(n: int, sample_size: Optional[int], random_seed: Optional[int] = None):
    """Indices of the realisations to draw (all of them when sample_size >= n)."""
    if sample_size is None or sample_size >= n:
        return np.arange(n)
    rng = np.random.default_rng(random_seed)
    return np.sort(rng.choice(n, size=sample_size, replace=False))


def plot_projections(
    ensemble,
    ax=None,
    cumulative: bool = False,
    sample_size: Optional[int] = 200,
    quantiles: Optional[Tuple[float, float]] = (0.025, 0.975),
    random_seed: Optional[int] = 42,
):
    """
    Draw simulated trajectories:
    - a LineCollection of up to sample_size realisations
    - the median across all realisations
    - a quantile ribbon across all realisations
    - a marker for each death date
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 6))

    arr = ensemble.cumulative() if cumulative else ensemble.counts
    arr = arr.astype(float)
    x = mdates.date2num(ensemble.dates.to_pydatetime())

    sel_idx = select_indices(ensemble.n_sim, sample_size, random_seed=random_seed)
    segs = [np.column_stack([x, arr[i]]) for i in sel_idx]
    lc = LineCollection(segs, linewidths=0.9, colors=(0.3, 0.3, 0.3, 0.35), zorder=1)
    ax.add_collection(lc)
    ax.autoscale()

    ax.plot(x, np.median(arr, axis=0), color="#1f77b4", linewidth=2.0, label="median")

    if quantiles is not None:
        q_lo = np.quantile(arr, quantiles[0], axis=0)
        q_hi = np.quantile(arr, quantiles[1], axis=0)
        ax.fill_between(x, q_lo, q_hi, color="#7f8fa6", alpha=0.25,
                        label=f"{quantiles[0]:.1%}-{quantiles[1]:.1%}")

    for death in ensemble.death_dates:
        ax.axvline(mdates.date2num(death.to_pydatetime()), color="red", linestyle=":", linewidth=1.0)

    ax.xaxis.set_major_formatter(mdates.DateFormatter("%d %b"))
    ax.set_xlabel("Date of onset")
    ax.set_ylabel("Cumulative cases" if cumulative else "Daily incidence")
    ax.set_title(f"Simulated cases: plotted {len(sel_idx)} of {ensemble.n_sim}")
    ax.grid(alpha=0.25)
    ax.legend(loc="upper left", fontsize="small")
    return ax


def save_projection_plot(ensemble, save_path: str = "figs/projections.png", **kwargs):
    fig, ax = plt.subplots(figsize=(10, 6))
    plot_projections(ensemble, ax=ax, **kwargs)
    Path(save_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved projections plot to %s", save_path)
    return Path(save_path)
