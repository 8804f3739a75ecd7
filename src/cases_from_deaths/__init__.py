"""Infer circulating case counts from a few observed deaths."""

from .version_info import VERSION as __version__  # noqa: F401
from .errors import (  # noqa: F401
    CasesFromDeathsError,
    DateOutOfRange,
    EmptyDeathSet,
    InvalidCFR,
    InvalidDistributionParameters,
    InvalidHorizon,
)
from .simulate import (  # noqa: F401
    Ensemble,
    SimConfig,
    make_grid,
    run_config,
    simulate_cases,
    sweep,
)
from .summarize import (  # noqa: F401
    SummaryRow,
    format_summary_table,
    summarize,
    summarize_dates,
    summary_table,
)
