"""
DPMM Gibbs — Chinese Restaurant Process Sampler
===============================================
Gibbs update of each observation's component assignment in a Dirichlet
process mixture.

For observation i with the rest of the partition held fixed:

    P(z_i = k     | ...) ∝ n_k · N(y_i | mean_k, variance_k)      existing k
    P(z_i = new   | ...) ∝ α · ∫ N(y_i | θ) dG(θ)                 marginal scheme
    P(z_i = new_j | ...) ∝ (α / m) · N(y_i | θ_j),  j = 1..m      auxiliary scheme

n_k excludes observation i. A component left empty when i is removed is
retired immediately; its id is never handed out again. In the marginal
scheme its parameters are discarded. In the auxiliary scheme they become
θ_1 and only the remaining m - 1 candidates are drawn from G.

Schemes:
    'marginal'  — Neal (2000) Algorithm 2. A new component's parameters are
                  drawn from the base-measure posterior given y_i.
    'auxiliary' — Neal (2000) Algorithm 8 with m auxiliary components; the
                  chosen candidate becomes the new component.
"""

import numpy as np
import warnings
from typing import Iterable, Optional, Tuple

from .base_measure import BaseMeasure, ComponentParams
from .exceptions import (
    InvalidConfiguration, NumericalDegeneracy, NumericalDegeneracyWarning,
)
from .stores import ClusterAssignmentStore, ComponentParameterStore, UNASSIGNED

NEW_COMPONENT_SCHEMES = ('marginal', 'auxiliary')


def normalize_log_weights(log_weights: np.ndarray) -> np.ndarray:
    """Turn unnormalized log weights into probabilities.

    Raises:
        NumericalDegeneracy: if no weight is positive and finite
    """
    log_weights = np.asarray(log_weights, dtype=np.float64)
    log_weights = np.where(np.isnan(log_weights), -np.inf, log_weights)
    top = np.max(log_weights) if log_weights.size else -np.inf
    if not np.isfinite(top):
        raise NumericalDegeneracy(f"Degenerate assignment weights: {log_weights}")
    weights = np.exp(log_weights - top)
    return weights / weights.sum()


def sample_categorical(probs: np.ndarray, rng: np.random.Generator) -> int:
    """Inverse-CDF draw from a normalized probability vector."""
    cdf = np.cumsum(probs)
    u = rng.random() * cdf[-1]
    return min(int(np.searchsorted(cdf, u, side='right')), len(probs) - 1)


class CRPSampler:
    """Per-observation Gibbs updates of DP mixture assignments."""

    def __init__(self,
                 assignments: ClusterAssignmentStore,
                 components: ComponentParameterStore,
                 base_measure: BaseMeasure,
                 rng: np.random.Generator,
                 scheme: str = 'marginal',
                 n_auxiliary: int = 1):
        """
        Args:
            assignments: Assignment store (mutated)
            components: Parameter store (components created and retired here)
            base_measure: Prior G over component parameters
            rng: Random source
            scheme: 'marginal' or 'auxiliary'
            n_auxiliary: Number of prior draws m for the auxiliary scheme
        """
        if scheme not in NEW_COMPONENT_SCHEMES:
            raise InvalidConfiguration(f"Unknown new-component scheme: {scheme}. "
                                       f"Available: {NEW_COMPONENT_SCHEMES}")
        if n_auxiliary < 1:
            raise InvalidConfiguration(f"n_auxiliary must be >= 1, got {n_auxiliary}")

        self.assignments = assignments
        self.components = components
        self.base_measure = base_measure
        self.rng = rng
        self.scheme = scheme
        self.n_auxiliary = n_auxiliary
        self.degeneracy_count = 0

    def _new_component_weights(self, y: float, alpha: float,
                               retained: Optional[ComponentParams] = None
                               ) -> Tuple[np.ndarray, Optional[Tuple]]:
        with np.errstate(divide='ignore'):
            log_alpha = np.log(alpha)
        if self.scheme == 'marginal':
            return np.array([log_alpha + self.base_measure.log_prior_predictive(y)]), None

        m = self.n_auxiliary
        n_fresh = m if retained is None else m - 1
        means, variances = self.base_measure.sample_prior_batch(n_fresh, self.rng)
        if retained is not None:
            means = np.concatenate([[retained.mean], means])
            variances = np.concatenate([[retained.variance], variances])
        log_w = log_alpha - np.log(m) + self.base_measure.log_likelihood(y, means, variances)
        return log_w, (means, variances)

    def update_observation(self, obs_index: int, alpha: float) -> int:
        """Resample the component of one observation. Returns the chosen id."""
        y = float(self.assignments.observations[obs_index])

        retained = None
        old, remaining = self.assignments.unassign(obs_index)
        if old != UNASSIGNED and remaining == 0:
            if self.scheme == 'auxiliary':
                # A singleton's parameters stay on offer as the first candidate
                retained = self.components.parameters_for(old)
            self.components.retire_component(old)

        ids = [k for k in self.components.ids() if self.assignments.count_for(k) > 0]
        log_w_new, candidates = self._new_component_weights(y, alpha, retained)

        if ids:
            counts = np.array([self.assignments.count_for(k) for k in ids], dtype=np.float64)
            means, variances = self.components.parameter_arrays(ids)
            log_w_existing = np.log(counts) + self.base_measure.log_likelihood(y, means, variances)
            log_w = np.concatenate([log_w_existing, log_w_new])
        else:
            log_w = log_w_new

        try:
            choice = sample_categorical(normalize_log_weights(log_w), self.rng)
        except NumericalDegeneracy:
            if ids:
                self.degeneracy_count += 1
                warnings.warn(
                    f"[CRP] All assignment weights underflowed for observation "
                    f"{obs_index} (y={y:.4g}); assigning uniformly among "
                    f"{len(ids)} components and a new one",
                    NumericalDegeneracyWarning,
                )
                choice = int(self.rng.integers(len(ids) + 1))
            else:
                # Nothing else is seated: opening a component is the only option
                choice = 0

        if choice < len(ids):
            chosen = ids[choice]
        elif candidates is None:
            params = self.base_measure.sample_posterior(1, y, y * y, self.rng)
            chosen = self.components.create_component(params)
        else:
            j = choice - len(ids)
            chosen = self.components.create_component(
                ComponentParams(float(candidates[0][j]), float(candidates[1][j]))
            )

        self.assignments.assign(obs_index, chosen)
        return chosen

    def sweep(self, alpha: float, order: Optional[Iterable[int]] = None):
        """Update every observation once, in `order` (default: index order)."""
        if order is None:
            order = range(self.assignments.n_observations)
        for i in order:
            self.update_observation(int(i), alpha)

    def refresh_parameters(self):
        """Conjugate redraw of every live component's parameters."""
        for k in self.components.ids():
            count, total, total_sq = self.assignments.sufficient_stats(k)
            params = self.base_measure.sample_posterior(count, total, total_sq, self.rng)
            self.components.update_parameters(k, params)
