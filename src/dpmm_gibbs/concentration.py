"""
DPMM Gibbs — Concentration Parameter Updates
============================================
Resamples the DP concentration α under a Gamma(shape, rate) hyperprior,
given only the number of active components K and observations n:

    p(α | K, n) ∝ Gamma(α; shape, rate) · α^K · Γ(α) / Γ(α + n)

Two updates are provided:

- update():      Escobar & West (1995) auxiliary-variable scheme (exact)
                   η ~ Beta(α + 1, n)
                   π / (1 - π) = (shape + K - 1) / (n · (rate - log η))
                   α ~ π · Gamma(shape + K, rate - log η)
                       + (1 - π) · Gamma(shape + K - 1, rate - log η)
- update_grid(): categorical draw over a log-spaced grid of α values

Both are pure functions of their arguments and an explicit random source.
"""

import numpy as np
from dataclasses import dataclass
from scipy.special import gammaln

from .exceptions import InvalidConfiguration

CONCENTRATION_METHODS = ('escobar_west', 'grid')

_TINY = np.finfo(np.float64).tiny


def _validate(hyper_shape: float, hyper_rate: float):
    if not (np.isfinite(hyper_shape) and hyper_shape > 0):
        raise InvalidConfiguration(f"Concentration hyperprior shape must be positive, got {hyper_shape}")
    if not (np.isfinite(hyper_rate) and hyper_rate > 0):
        raise InvalidConfiguration(f"Concentration hyperprior rate must be positive, got {hyper_rate}")


def _validate_counts(active_component_count: int, total_observations: int):
    if total_observations < 0:
        raise InvalidConfiguration(f"total_observations must be >= 0, got {total_observations}")
    if total_observations > 0 and not 1 <= active_component_count <= total_observations:
        raise InvalidConfiguration(
            f"active_component_count must lie in [1, {total_observations}], "
            f"got {active_component_count}"
        )


def update(current_alpha: float,
           active_component_count: int,
           total_observations: int,
           hyper_shape: float,
           hyper_rate: float,
           rng: np.random.Generator) -> float:
    """Escobar-West auxiliary-variable draw of a new concentration value."""
    _validate(hyper_shape, hyper_rate)
    _validate_counts(active_component_count, total_observations)
    if total_observations == 0:
        return float(rng.gamma(hyper_shape, 1.0 / hyper_rate))
    # Zero is allowed: Gamma draws with a small shape can underflow
    if not current_alpha >= 0:
        raise InvalidConfiguration(f"current_alpha must be non-negative, got {current_alpha}")

    n = total_observations
    k = active_component_count
    eta = rng.beta(current_alpha + 1.0, n)
    rate_post = hyper_rate - np.log(eta + _TINY)

    odds = (hyper_shape + k - 1.0) / (n * rate_post)
    pi = odds / (1.0 + odds)
    shape_post = hyper_shape + k if rng.random() < pi else hyper_shape + k - 1.0
    return float(rng.gamma(shape_post, 1.0 / rate_post))


def log_conditional(alpha: np.ndarray,
                    active_component_count: int,
                    total_observations: int,
                    hyper_shape: float,
                    hyper_rate: float) -> np.ndarray:
    """Unnormalized log p(α | K, n) under the Gamma hyperprior."""
    alpha = np.asarray(alpha, dtype=np.float64)
    return ((hyper_shape - 1.0 + active_component_count) * np.log(alpha)
            - hyper_rate * alpha
            + gammaln(alpha) - gammaln(alpha + total_observations))


def update_grid(current_alpha: float,
                active_component_count: int,
                total_observations: int,
                hyper_shape: float,
                hyper_rate: float,
                rng: np.random.Generator,
                alpha_min: float = 1e-2,
                alpha_max: float = 1e2,
                grid_size: int = 100) -> float:
    """Discretized draw of α on a log-spaced grid.

    `current_alpha` is unused: the conditional does not depend on it. It is
    accepted so both updates share a signature.
    """
    _validate(hyper_shape, hyper_rate)
    _validate_counts(active_component_count, total_observations)
    if not 0 < alpha_min < alpha_max or grid_size < 2:
        raise InvalidConfiguration(
            f"Invalid grid: alpha_min={alpha_min}, alpha_max={alpha_max}, grid_size={grid_size}"
        )

    grid = np.geomspace(alpha_min, alpha_max, grid_size)
    # Log-spaced cells have width proportional to α
    log_p = log_conditional(grid, active_component_count, total_observations,
                            hyper_shape, hyper_rate) + np.log(grid)
    probs = np.exp(log_p - log_p.max())
    probs /= probs.sum()
    return float(grid[rng.choice(grid_size, p=probs)])


@dataclass(frozen=True)
class ConcentrationSampler:
    """Hyperprior and method bundled for repeated use by a driver."""
    hyper_shape: float = 1.0
    hyper_rate: float = 1.0
    method: str = 'escobar_west'
    alpha_min: float = 1e-2
    alpha_max: float = 1e2
    grid_size: int = 100

    def __post_init__(self):
        _validate(self.hyper_shape, self.hyper_rate)
        if self.method not in CONCENTRATION_METHODS:
            raise InvalidConfiguration(f"Unknown concentration method: {self.method}. "
                                       f"Available: {CONCENTRATION_METHODS}")

    def __call__(self, current_alpha: float, active_component_count: int,
                 total_observations: int, rng: np.random.Generator) -> float:
        if self.method == 'grid':
            return update_grid(current_alpha, active_component_count, total_observations,
                               self.hyper_shape, self.hyper_rate, rng,
                               alpha_min=self.alpha_min, alpha_max=self.alpha_max,
                               grid_size=self.grid_size)
        return update(current_alpha, active_component_count, total_observations,
                      self.hyper_shape, self.hyper_rate, rng)
