"""
DPMM Gibbs - Dirichlet Process Mixture Gibbs Sampler

Chinese Restaurant Process Gibbs sampling for one-dimensional Normal mixtures
with an unbounded number of components, conjugate base measures and a
Gamma hyperprior on the concentration parameter.
"""

__version__ = "0.1.0"

# Exceptions
from .exceptions import (
    DPMMError,
    InvalidConfiguration,
    InvalidComponent,
    UnknownComponent,
    ComponentNotEmpty,
    InvariantViolation,
    NumericalDegeneracy,
    NumericalDegeneracyWarning,
)

# Base measures
from .base_measure import (
    ComponentParams,
    NormalFixedVariance,
    NormalInverseGamma,
    base_measure_from_dict,
)

# Sampler state and updates
from .stores import ClusterAssignmentStore, ComponentParameterStore, ComponentState
from .crp import CRPSampler
from .concentration import ConcentrationSampler

# Driver
from .driver import GibbsConfig, GibbsDriver, SweepOrder, run_chains

# Samples
from .samples import (
    ChainResult,
    RunStatus,
    SampleRecord,
    load_samples,
    save_samples,
    samples_to_dataframe,
    cluster_count_distribution,
    posterior_mode_cluster_count,
)

# Data loading
from .data import load_observations, log_odds_ratios

__all__ = [
    "DPMMError",
    "InvalidConfiguration",
    "InvalidComponent",
    "UnknownComponent",
    "ComponentNotEmpty",
    "InvariantViolation",
    "NumericalDegeneracy",
    "NumericalDegeneracyWarning",
    "ComponentParams",
    "NormalFixedVariance",
    "NormalInverseGamma",
    "base_measure_from_dict",
    "ClusterAssignmentStore",
    "ComponentParameterStore",
    "ComponentState",
    "CRPSampler",
    "ConcentrationSampler",
    "GibbsConfig",
    "GibbsDriver",
    "SweepOrder",
    "run_chains",
    "ChainResult",
    "RunStatus",
    "SampleRecord",
    "load_samples",
    "save_samples",
    "samples_to_dataframe",
    "cluster_count_distribution",
    "posterior_mode_cluster_count",
    "load_observations",
    "log_odds_ratios",
]
