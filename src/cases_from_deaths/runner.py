#!/usr/bin/env python3
# src/cases_from_deaths/runner.py: command line runner

import argparse
import logging
import re
import sys
import time
from typing import List, Optional

import pandas as pd

from .simulate import parameter_sweep as ps
from .simulate import plot_projections as plot
from .simulate.simulate_cases import SimConfig, parse_death_dates, run_config, write_ensemble_csv
from .summarize import format_summary_table, summarize, summary_table


# Parser for value lists like 1.5,2,3
def parse_float_list(s: Optional[str]) -> List[float]:
    if not s:
        return []
    return [float(x) for x in re.split(r"[,\s;]+", s.strip()) if x]


def add_common_args(p):
    p.add_argument("--death-date", dest="death_dates", action="append", required=True,
                   metavar="DATE",
                   help="Date of an observed death, YYYY-MM-DD (repeat for several deaths)")
    p.add_argument("--n-sim", type=int, default=200, metavar="N",
                   help="Number of simulated realisations (default: 200)")
    p.add_argument("--duration", type=int, default=1, metavar="DAYS",
                   help="Days simulated from each death date onwards (default: 1)")
    p.add_argument("--seed", type=int, default=42, metavar="SEED",
                   help="RNG seed for reproducibility (default: 42)")
    p.add_argument("--seed-policy", choices=["deterministic", "geometric", "poisson"],
                   default="deterministic",
                   help="How one death is turned into a number of cases (default: deterministic)")


def build_parser():
    p = argparse.ArgumentParser(description="Infer circulating cases from observed deaths")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ---------- simulate ----------
    sim_p = sub.add_parser("simulate", help="Simulate case trajectories for one (R, cfr)")
    add_common_args(sim_p)
    sim_p.add_argument("--R", type=float, default=2.0, help="Reproduction number (default: 2.0)")
    sim_p.add_argument("--cfr", type=float, default=0.02, help="Case-fatality ratio (default: 0.02)")
    sim_p.add_argument("--out", default="data/simulated_cases.csv", metavar="PATH",
                       help="Output CSV path (default: data/simulated_cases.csv)")

    # ---------- sweep ----------
    sweep_p = sub.add_parser("sweep", help="Summarise simulations over a grid of R and cfr")
    add_common_args(sweep_p)
    sweep_p.add_argument("--R-values", type=str, default="1.5,2,3", metavar="LIST",
                         help="Reproduction numbers (default: '1.5,2,3')")
    sweep_p.add_argument("--cfr-values", type=str, default="0.01,0.02,0.03", metavar="LIST",
                         help="Case-fatality ratios (default: '0.01,0.02,0.03')")
    sweep_p.add_argument("--at-date", type=str, default=None, metavar="DATE",
                         help="Date of the summary (default: latest death date + duration - 1)")
    sweep_p.add_argument("--n-jobs", type=int, default=1, metavar="JOBS",
                         help="Parallel workers, -1 for all cores (default: 1)")
    sweep_p.add_argument("--out", default=None, metavar="PATH", help="Optional CSV for the summary table")

    # ---------- plot ----------
    plot_p = sub.add_parser("plot", help="Plot simulated trajectories for one (R, cfr)")
    add_common_args(plot_p)
    plot_p.add_argument("--R", type=float, default=2.0)
    plot_p.add_argument("--cfr", type=float, default=0.02)
    plot_p.add_argument("--cumulative", action="store_true", help="Plot cumulative cases")
    plot_p.add_argument("--sample-size", type=int, default=200)
    plot_p.add_argument("--out", default="figs/projections.png", metavar="PATH")
    return p


def run_simulate(args):
    cfg = SimConfig(
        death_dates=tuple(args.death_dates),
        n_sim=args.n_sim,
        R=args.R,
        cfr=args.cfr,
        duration=args.duration,
        seed=args.seed,
        seed_policy=args.seed_policy,
    )
    ensemble = run_config(cfg)
    write_ensemble_csv(ensemble, out_path=args.out, use_tempfile=False)
    row = summarize(ensemble, ensemble.end_date, R=args.R, cfr=args.cfr)
    print(f"Cumulative cases by {row.date.date()}: median {row.median:,} "
          f"(95% {row.lower_95:,} - {row.upper_95:,})")
    print("Simulation done ->", args.out)


def run_sweep(args):
    grid = ps.make_grid(parse_float_list(args.R_values), parse_float_list(args.cfr_values))
    result = ps.sweep(
        args.death_dates,
        grid,
        n_sim=args.n_sim,
        duration=args.duration,
        seed=args.seed,
        n_jobs=args.n_jobs,
        seed_policy=args.seed_policy,
    )
    if args.at_date:
        at_date = args.at_date
    else:
        # last day of the simulated window
        at_date = max(parse_death_dates(args.death_dates)) + pd.Timedelta(days=args.duration - 1)
    table = summary_table(result, at_date)
    print(format_summary_table(table).to_string(index=False))
    for (R, cfr), error in result.failures.items():
        print(f"R={R}, cfr={cfr} failed: {error}", file=sys.stderr)
    if args.out:
        table.to_csv(args.out, index=False)
        print("Summary table ->", args.out)


def run_plot(args):
    cfg = SimConfig(
        death_dates=tuple(args.death_dates),
        n_sim=args.n_sim,
        R=args.R,
        cfr=args.cfr,
        duration=args.duration,
        seed=args.seed,
        seed_policy=args.seed_policy,
    )
    ensemble = run_config(cfg)
    plot.save_projection_plot(ensemble, save_path=args.out, cumulative=args.cumulative,
                              sample_size=args.sample_size)
    print("Projections plot ->", args.out)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    t0 = time.perf_counter()

    try:
        if args.cmd == "simulate":
            run_simulate(args)
        elif args.cmd == "sweep":
            run_sweep(args)
        elif args.cmd == "plot":
            run_plot(args)
    except ValueError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2

    print(f"Done in {time.perf_counter() - t0:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
