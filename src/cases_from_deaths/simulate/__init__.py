from .delay_distributions import (  # noqa: F401
    DelayDistribution,
    EmpiricalDelay,
    FixedDelay,
    GammaDelay,
    LogNormalDelay,
    convolve,
    density,
    discretize,
    sample,
)
from .back_calculation import InferredCaseSeed, infer_case_seed  # noqa: F401
from .branching_process import Trajectory, project  # noqa: F401
from .ensemble import Ensemble  # noqa: F401
from .simulate_cases import SimConfig, SimulationParameters, run_config, simulate_cases  # noqa: F401
from .parameter_sweep import SweepResult, make_grid, sweep  # noqa: F401
