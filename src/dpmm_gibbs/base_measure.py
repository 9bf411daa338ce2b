"""
DPMM Gibbs — Base Measures
==========================
Prior distributions from which mixture-component parameters are drawn.

Every component carries a (mean, variance) pair and explains its observations
through a Normal likelihood:

    y_i | z_i = k  ~  Normal(mean_k, variance_k)

Two conjugate families are provided:

    NormalFixedVariance:  mean ~ Normal(mean_loc, mean_scale²), variance fixed
    NormalInverseGamma:   variance ~ InvGamma(shape, scale),
                          mean | variance ~ Normal(mean_loc, variance / kappa)

Conjugacy gives closed forms for the two quantities the CRP sampler needs
besides the likelihood itself: the prior predictive density of a single
observation (the weight of opening a new component) and a posterior draw of
a component's parameters given its sufficient statistics.

Usage:
    from dpmm_gibbs.base_measure import NormalFixedVariance

    base = NormalFixedVariance(mean_loc=0.0, mean_scale=10.0, variance=1.0)
    rng = np.random.default_rng(0)
    params = base.sample_prior(rng)
    log_w = base.log_prior_predictive(-10.0)
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Dict, NamedTuple, Tuple, Type
from scipy import stats

from .exceptions import InvalidConfiguration


class ComponentParams(NamedTuple):
    """Parameters of a single mixture component."""
    mean: float
    variance: float


class BaseMeasure(ABC):
    """Interface shared by all base-measure families."""

    family: str = ''

    @abstractmethod
    def sample_prior(self, rng: np.random.Generator) -> ComponentParams:
        """Draw one parameter set from the base measure."""

    @abstractmethod
    def sample_prior_batch(self, size: int,
                           rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
        """Draw `size` parameter sets at once, returned as (means, variances)."""

    @abstractmethod
    def log_prior_predictive(self, y: float) -> float:
        """log ∫ Normal(y | mean, variance) dG(mean, variance)."""

    @abstractmethod
    def sample_posterior(self, count: int, total: float, total_sq: float,
                         rng: np.random.Generator) -> ComponentParams:
        """Draw parameters conditioned on a component's sufficient statistics.

        Args:
            count: Number of observations in the component
            total: Sum of their values
            total_sq: Sum of their squared values
            rng: Random source
        """

    def log_likelihood(self, y: float, means: np.ndarray,
                       variances: np.ndarray) -> np.ndarray:
        """Normal log density of `y` under each (mean, variance) pair."""
        means = np.asarray(means, dtype=np.float64)
        variances = np.asarray(variances, dtype=np.float64)
        with np.errstate(divide='ignore', invalid='ignore'):
            return stats.norm.logpdf(y, loc=means, scale=np.sqrt(variances))

    def to_dict(self) -> Dict:
        return {'family': self.family, **asdict(self)}


def _require_positive(**values: float):
    for name, value in values.items():
        if not np.isfinite(value) or value <= 0:
            raise InvalidConfiguration(f"{name} must be positive and finite, got {value}")


@dataclass(frozen=True)
class NormalFixedVariance(BaseMeasure):
    """Normal prior on the component mean, variance held fixed."""
    mean_loc: float = 0.0
    mean_scale: float = 1.0   # Standard deviation of the mean prior
    variance: float = 1.0     # Shared within-component variance

    family = 'normal_fixed_variance'

    def __post_init__(self):
        if not np.isfinite(self.mean_loc):
            raise InvalidConfiguration(f"mean_loc must be finite, got {self.mean_loc}")
        _require_positive(mean_scale=self.mean_scale, variance=self.variance)

    def sample_prior(self, rng: np.random.Generator) -> ComponentParams:
        return ComponentParams(float(rng.normal(self.mean_loc, self.mean_scale)),
                               float(self.variance))

    def sample_prior_batch(self, size, rng):
        means = rng.normal(self.mean_loc, self.mean_scale, size=size)
        return means, np.full(size, float(self.variance))

    def log_prior_predictive(self, y: float) -> float:
        scale = np.sqrt(self.mean_scale ** 2 + self.variance)
        return float(stats.norm.logpdf(y, loc=self.mean_loc, scale=scale))

    def sample_posterior(self, count, total, total_sq, rng):
        if count == 0:
            return self.sample_prior(rng)
        precision = 1.0 / self.mean_scale ** 2 + count / self.variance
        loc = (self.mean_loc / self.mean_scale ** 2 + total / self.variance) / precision
        mean = rng.normal(loc, np.sqrt(1.0 / precision))
        return ComponentParams(float(mean), float(self.variance))


@dataclass(frozen=True)
class NormalInverseGamma(BaseMeasure):
    """Conjugate Normal-Inverse-Gamma prior on (mean, variance).

    variance ~ InvGamma(shape, scale)
    mean | variance ~ Normal(mean_loc, variance / kappa)
    """
    mean_loc: float = 0.0
    kappa: float = 1.0
    shape: float = 2.0
    scale: float = 1.0

    family = 'normal_inverse_gamma'

    def __post_init__(self):
        if not np.isfinite(self.mean_loc):
            raise InvalidConfiguration(f"mean_loc must be finite, got {self.mean_loc}")
        _require_positive(kappa=self.kappa, shape=self.shape, scale=self.scale)

    def _draw(self, loc: float, kappa: float, shape: float, scale: float,
              rng: np.random.Generator) -> ComponentParams:
        variance = scale / rng.gamma(shape)
        mean = rng.normal(loc, np.sqrt(variance / kappa))
        return ComponentParams(float(mean), float(variance))

    def sample_prior(self, rng):
        return self._draw(self.mean_loc, self.kappa, self.shape, self.scale, rng)

    def sample_prior_batch(self, size, rng):
        variances = self.scale / rng.gamma(self.shape, size=size)
        means = rng.normal(self.mean_loc, np.sqrt(variances / self.kappa))
        return means, variances

    def log_prior_predictive(self, y: float) -> float:
        # Student-t with 2 * shape degrees of freedom
        t_scale = np.sqrt(self.scale * (1.0 + self.kappa) / (self.shape * self.kappa))
        return float(stats.t.logpdf(y, df=2.0 * self.shape, loc=self.mean_loc, scale=t_scale))

    def sample_posterior(self, count, total, total_sq, rng):
        if count == 0:
            return self.sample_prior(rng)
        y_bar = total / count
        # Clamp: running sums can drift slightly below zero
        centered_sq = max(total_sq - total * y_bar, 0.0)
        kappa_n = self.kappa + count
        loc_n = (self.kappa * self.mean_loc + total) / kappa_n
        shape_n = self.shape + 0.5 * count
        scale_n = (self.scale + 0.5 * centered_sq
                   + self.kappa * count * (y_bar - self.mean_loc) ** 2 / (2.0 * kappa_n))
        return self._draw(loc_n, kappa_n, shape_n, scale_n, rng)


BASE_MEASURES: Dict[str, Type[BaseMeasure]] = {
    NormalFixedVariance.family: NormalFixedVariance,
    NormalInverseGamma.family: NormalInverseGamma,
}


def base_measure_from_dict(spec: Dict) -> BaseMeasure:
    """Build a base measure from a plain mapping.

    Example:
        >>> base_measure_from_dict({'family': 'normal_fixed_variance',
        ...                         'mean_loc': 0.0, 'mean_scale': 10.0, 'variance': 1.0})
    """
    spec = dict(spec)
    family = spec.pop('family', None)
    if family not in BASE_MEASURES:
        raise InvalidConfiguration(f"Unknown base measure family: {family}. "
                                   f"Available: {sorted(BASE_MEASURES)}")
    try:
        return BASE_MEASURES[family](**spec)
    except TypeError as e:
        raise InvalidConfiguration(f"Invalid hyperparameters for {family}: {e}") from e
